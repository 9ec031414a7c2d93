"""
lcbridge: trustless lock/mint and HTLC cross-chain transfers.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from lcbridge.bridge import BridgeEngine, BridgeProof
    from lcbridge.tokens import BridgeToken, AssetRegistry
    from lcbridge.exceptions import ReplayError
"""

__version__ = "1.0.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'BridgeEngine':
        from .bridge.engine import BridgeEngine
        return BridgeEngine
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'lcbridge' has no attribute {name!r}")


__all__ = ['BridgeEngine', 'load_config', '__version__']
