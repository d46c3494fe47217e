"""
Membership Root Store

Holds the currently trusted membership-commitment root. Every vote proves
membership against this value; only the designated authority may replace it.
Validity of a new root is the membership manager's concern, not this store's.
"""

import hmac
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import AuthorizationError
from ..logger import get_logger
from .events import EventLog, MemberRootUpdatedEvent

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class UnauthorizedError(AuthorizationError):
    """Caller does not hold the authority capability."""
    kind = "Unauthorized"


# ══════════════════════════════════════════════════════════════════════
#  AUTHORITY
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AuthorityCapability:
    """
    Unforgeable token proving the caller is the DAO authority.

    Created once at bootstrap and handed to the authority out of band.
    """
    holder: str
    token: str = field(default_factory=lambda: secrets.token_hex(32), repr=False)

    @classmethod
    def generate(cls, holder: str = "authority") -> "AuthorityCapability":
        return cls(holder=holder)

    def matches(self, other: Optional["AuthorityCapability"]) -> bool:
        if not isinstance(other, AuthorityCapability):
            return False
        return hmac.compare_digest(self.token, other.token)


def require_authority(
    authority: AuthorityCapability,
    capability: Optional[AuthorityCapability],
    operation: str,
) -> None:
    """Raise UnauthorizedError unless *capability* is the authority's."""
    if not authority.matches(capability):
        holder = capability.holder if isinstance(capability, AuthorityCapability) else None
        logger.warning(f"Unauthorized {operation} attempt (holder={holder})")
        raise UnauthorizedError(
            f"{operation} is restricted to the DAO authority",
            field="capability",
        )


# ══════════════════════════════════════════════════════════════════════
#  ROOT STORE
# ══════════════════════════════════════════════════════════════════════

class MembershipRootStore:
    """Process-wide trusted membership root with an authority-gated setter."""

    def __init__(
        self,
        initial_root: int,
        authority: AuthorityCapability,
        events: Optional[EventLog] = None,
    ):
        self._root = int(initial_root)
        self._authority = authority
        self._events = events if events is not None else EventLog()
        self._lock = threading.Lock()
        self._history: List[Dict[str, Any]] = [{
            "root": self._root,
            "reason": "bootstrap",
            "timestamp": time.time(),
        }]
        logger.info(f"Membership root initialised: {self._root:#x}")

    def current_root(self) -> int:
        with self._lock:
            return self._root

    def update_root(self, new_root: int, capability: Optional[AuthorityCapability]) -> int:
        """
        Replace the root unconditionally.

        Returns:
            The previous root.

        Raises:
            UnauthorizedError: capability is not the authority's
        """
        require_authority(self._authority, capability, "updateMemberRoot")
        new_root = int(new_root)
        with self._lock:
            old = self._root
            self._root = new_root
            self._history.append({
                "root": new_root,
                "reason": "update",
                "timestamp": time.time(),
            })
        logger.info(f"Membership root updated: {old:#x} -> {new_root:#x}")
        self._events.emit(MemberRootUpdatedEvent(old_root=old, new_root=new_root))
        return old

    @property
    def history(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._history)

    def __repr__(self) -> str:
        return f"<MembershipRootStore root={self._root:#x} updates={len(self._history) - 1}>"
