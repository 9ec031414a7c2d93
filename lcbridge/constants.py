"""
lcbridge Constants

This module consolidates the global constants and environment configuration
used throughout the bridge engine. Constants are organized by category for
easy reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# BRIDGE PARAMETERS
# ==================================================================================
BRIDGE_VERSION = '1.0.0'

# Basis-point denominator for fee computation
BPS_DENOMINATOR = 10_000

# Default bridge fee (0.1%) and the hard cap operators may raise it to (10%)
DEFAULT_BRIDGE_FEE_BPS = 10
MAX_BRIDGE_FEE_BPS = 1_000

# Chain id of the ledger this engine runs on when no config overrides it
DEFAULT_LOCAL_CHAIN_ID = 0

# Account on the asset ledgers that holds escrowed value
DEFAULT_CUSTODY_ADDRESS = 'lcbridge:custody'

# Width of every hash the engine handles (lock ids, roots, proof hashes)
HASH_SIZE = 32

# Supported digests for HTLC hash locks
HASHLOCK_ALGORITHMS = ('keccak256', 'sha256')
DEFAULT_HASHLOCK_ALGORITHM = 'keccak256'

# Domain separators keep identifiers of different record kinds disjoint
LOCK_ID_DOMAIN = b'LCBRIDGE-LOCK-v1'
BURN_ID_DOMAIN = b'LCBRIDGE-BURN-v1'
HTLC_ID_DOMAIN = b'LCBRIDGE-HTLC-v1'
PROOF_HASH_DOMAIN = b'LCBRIDGE-PROOF-v1'
TRANSFER_COMMITMENT_DOMAIN = b'LCBRIDGE-TRANSFER-v1'


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
