"""
lcbridge Exceptions

Error taxonomy for the bridge engine. Every error is raised synchronously to
the caller; the engine never retries on its own.
"""


class BridgeException(Exception):
    """Base exception for lcbridge."""
    pass


class ValidationError(BridgeException):
    """Bad input, rejected before any state change. Retryable with corrected input."""
    pass


class ChainNotSupported(ValidationError):
    """Operation references a chain missing from the registry."""

    def __init__(self, chain_id: int):
        super().__init__(f"Chain {chain_id} is not supported")
        self.chain_id = chain_id


class UnsupportedAsset(ValidationError):
    """Asset handle has no registered ledger."""
    pass


class InvalidProofError(ValidationError):
    """Merkle path, attested root or receipt proof did not verify."""
    pass


class RecordNotFound(ValidationError):
    """No lock, burn or HTLC record under the given identifier."""
    pass


class ReplayError(BridgeException):
    """Proof, lock or preimage already consumed. Permanent for that identifier."""
    pass


class ExternalLedgerError(BridgeException):
    """Asset ledger refused a transfer or broke the balance invariant."""
    pass


class AuthorizationError(BridgeException):
    """Caller lacks the admin capability."""
    pass


class StateError(BridgeException):
    """Record already settled, window closed, or engine paused."""
    pass


class ConfigurationError(BridgeException):
    """Configuration error."""
    pass
