"""
lcbridge Configuration

Loads bridge.toml at startup. Environment variables override TOML values.
"""

from .loader import (
    BridgeConfig,
    BridgeSectionConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "BridgeConfig",
    "BridgeSectionConfig",
    "LoggingConfig",
    "load_config",
]
