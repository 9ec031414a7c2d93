"""
lcbridge TOML Configuration Loader

Loads bridge.toml with environment variable overrides.

Environment variable mapping:
    [bridge] local_chain_id     → LCBRIDGE_LOCAL_CHAIN_ID
    [bridge] custody_address    → LCBRIDGE_CUSTODY_ADDRESS
    [bridge] fee_bps            → LCBRIDGE_FEE_BPS
    [bridge] admins             → LCBRIDGE_ADMINS (comma-separated)
    [bridge] hashlock_algorithm → LCBRIDGE_HASHLOCK_ALGORITHM
    [logging] level             → LCBRIDGE_LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    DEFAULT_BRIDGE_FEE_BPS,
    DEFAULT_CUSTODY_ADDRESS,
    DEFAULT_HASHLOCK_ALGORITHM,
    DEFAULT_LOCAL_CHAIN_ID,
    HASHLOCK_ALGORITHMS,
    MAX_BRIDGE_FEE_BPS,
)
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class BridgeSectionConfig:
    """[bridge] section."""
    local_chain_id: int = DEFAULT_LOCAL_CHAIN_ID
    custody_address: str = DEFAULT_CUSTODY_ADDRESS
    fee_bps: int = DEFAULT_BRIDGE_FEE_BPS
    admins: List[str] = field(default_factory=list)
    hashlock_algorithm: str = DEFAULT_HASHLOCK_ALGORITHM

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeSectionConfig":
        return cls(
            local_chain_id=data.get("local_chain_id", DEFAULT_LOCAL_CHAIN_ID),
            custody_address=data.get("custody_address", DEFAULT_CUSTODY_ADDRESS),
            fee_bps=data.get("fee_bps", DEFAULT_BRIDGE_FEE_BPS),
            admins=list(data.get("admins", [])),
            hashlock_algorithm=data.get("hashlock_algorithm", DEFAULT_HASHLOCK_ALGORITHM),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("LCBRIDGE_LOCAL_CHAIN_ID"):
            self.local_chain_id = int(v)
        if v := os.environ.get("LCBRIDGE_CUSTODY_ADDRESS"):
            self.custody_address = v
        if v := os.environ.get("LCBRIDGE_FEE_BPS"):
            self.fee_bps = int(v)
        if v := os.environ.get("LCBRIDGE_ADMINS"):
            self.admins = [a.strip() for a in v.split(",") if a.strip()]
        if v := os.environ.get("LCBRIDGE_HASHLOCK_ALGORITHM"):
            self.hashlock_algorithm = v


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(level=data.get("level", "INFO"))

    def apply_env(self) -> None:
        if v := os.environ.get("LCBRIDGE_LOG_LEVEL"):
            self.level = v.upper()


@dataclass
class BridgeConfig:
    """
    Unified bridge configuration.

    Loads every section of bridge.toml and applies environment variable
    overrides.
    """
    bridge: BridgeSectionConfig = field(default_factory=BridgeSectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeConfig":
        """Create BridgeConfig from a parsed TOML dict."""
        return cls(
            bridge=BridgeSectionConfig.from_dict(data.get("bridge", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "BridgeConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides); a malformed
        file raises ConfigurationError.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {exc}") from exc

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.bridge.apply_env()
        self.logging.apply_env()

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        b = self.bridge
        if not isinstance(b.local_chain_id, int) or b.local_chain_id < 0:
            raise ConfigurationError("local_chain_id must be a non-negative integer")
        if not b.custody_address:
            raise ConfigurationError("custody_address must be set")
        if not isinstance(b.fee_bps, int) or not 0 <= b.fee_bps <= MAX_BRIDGE_FEE_BPS:
            raise ConfigurationError(f"fee_bps must be within 0..{MAX_BRIDGE_FEE_BPS}")
        if b.hashlock_algorithm not in HASHLOCK_ALGORITHMS:
            raise ConfigurationError(f"Invalid hashlock_algorithm: {b.hashlock_algorithm}")
        if b.custody_address in b.admins:
            raise ConfigurationError("custody_address cannot be an admin")
        if self.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "bridge": {
                "local_chain_id": self.bridge.local_chain_id,
                "custody_address": self.bridge.custody_address,
                "fee_bps": self.bridge.fee_bps,
                "admins": list(self.bridge.admins),
                "hashlock_algorithm": self.bridge.hashlock_algorithm,
            },
            "logging": {
                "level": self.logging.level,
            },
        }


def load_config(path: Optional[str] = None) -> BridgeConfig:
    """
    Load bridge configuration.

    Resolution order:
        1. Explicit *path* argument
        2. LCBRIDGE_CONFIG env var
        3. ./bridge.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("LCBRIDGE_CONFIG", "bridge.toml")

    return BridgeConfig.from_file(path)
