"""
lcbridge Chain Registry & Admin Capability

Admin-controlled mapping of supported chains to their light clients, and the
capability check used for every administrative action.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from ..exceptions import AuthorizationError, ChainNotSupported, ValidationError
from ..logger import get_logger
from .events import ChainAdded, ChainRemoved, EventLog
from .light_client import LightClient
from .types import chain_name

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ADMIN CAPABILITY
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class Authorizer(Protocol):
    """Host-provided capability check for administrative actions."""

    def is_admin(self, caller: str) -> bool:
        ...


class AdminSet:
    """Authorizer backed by a fixed set of admin identities."""

    def __init__(self, admins: Iterable[str] = ()):
        self._admins = frozenset(admins)

    def is_admin(self, caller: str) -> bool:
        return caller in self._admins

    @property
    def admins(self) -> List[str]:
        return sorted(self._admins)


def require_admin(authorizer: Authorizer, caller: str, action: str) -> None:
    if not authorizer.is_admin(caller):
        logger.warning(f"Admin action {action} rejected for {caller!r}")
        raise AuthorizationError(f"{caller!r} is not authorized to {action}")


# ══════════════════════════════════════════════════════════════════════
#  CHAIN REGISTRY
# ══════════════════════════════════════════════════════════════════════

@dataclass
class ChainEntry:
    """Registry entry for one chain."""
    chain_id: int
    light_client: Optional[LightClient]
    supported: bool
    added_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "name": chain_name(self.chain_id),
            "supported": self.supported,
            "has_light_client": self.light_client is not None,
            "added_at": self.added_at,
        }


class ChainRegistry:
    """
    Gates which chains may be locked to or proven from.

    Re-adding a chain overwrites its light-client handle. Removing a chain
    keeps the entry (marked unsupported) as an audit trail.
    """

    def __init__(
        self,
        authorizer: Authorizer,
        events: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._authorizer = authorizer
        self._events = events if events is not None else EventLog()
        self._clock = clock or (lambda: int(time.time()))
        self._entries: Dict[int, ChainEntry] = {}
        self._lock = threading.Lock()

    def add_chain(self, caller: str, chain_id: int, light_client: Optional[LightClient]) -> ChainEntry:
        """
        Register (or re-register) a chain with its light client.

        Raises:
            AuthorizationError: caller is not an admin
            ValidationError: chain_id is not a non-negative int
        """
        require_admin(self._authorizer, caller, "add_chain")
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id < 0:
            raise ValidationError(f"Invalid chain id: {chain_id!r}")
        chain_id = int(chain_id)

        now = self._clock()
        entry = ChainEntry(chain_id, light_client, True, now)
        with self._lock:
            self._entries[chain_id] = entry
        logger.info(f"Chain registered: {chain_name(chain_id)} chain={chain_id}")
        self._events.emit(ChainAdded(actor=caller, chain_id=chain_id, timestamp=now))
        return entry

    def remove_chain(self, caller: str, chain_id: int) -> bool:
        """Mark a chain unsupported. Returns False if it was not supported."""
        require_admin(self._authorizer, caller, "remove_chain")
        with self._lock:
            entry = self._entries.get(chain_id)
            if entry is None or not entry.supported:
                return False
            entry.supported = False
        logger.warning(f"Chain deregistered: {chain_name(chain_id)} chain={chain_id}")
        self._events.emit(ChainRemoved(actor=caller, chain_id=chain_id, timestamp=self._clock()))
        return True

    def is_supported(self, chain_id: int) -> bool:
        with self._lock:
            entry = self._entries.get(chain_id)
            return entry is not None and entry.supported

    def light_client_for(self, chain_id: int) -> Optional[LightClient]:
        """Light client of a supported chain, or None."""
        with self._lock:
            entry = self._entries.get(chain_id)
            if entry is None or not entry.supported:
                return None
            return entry.light_client

    def require_supported(self, chain_id: int) -> None:
        if not self.is_supported(chain_id):
            logger.warning(f"Operation rejected: chain={chain_id} not supported")
            raise ChainNotSupported(chain_id)

    def supported_chains(self) -> List[int]:
        with self._lock:
            return sorted(c for c, e in self._entries.items() if e.supported)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {str(c): e.to_dict() for c, e in sorted(self._entries.items())}
