"""
Governance Notifications

Frozen event records emitted by every state transition of the DAO, plus a
small in-process event log that downstream auditors subscribe to.
Events carry only public values.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalCreatedEvent:
    """Emitted when a proposal is created."""
    proposal_id: int
    title: str
    mode: str
    options: Tuple[str, ...]
    closes_at: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalCreated",
            "proposalId": self.proposal_id,
            "title": self.title,
            "mode": self.mode,
            "options": list(self.options),
            "closesAt": self.closes_at,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProofVerifiedEvent:
    """Emitted once a vote's membership proof has been accepted."""
    proposal_id: int
    nullifier_hash: int
    signal_hash: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProofVerified",
            "proposalId": self.proposal_id,
            "nullifierHash": str(self.nullifier_hash),
            "signalHash": str(self.signal_hash),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoteRecordedEvent:
    """Emitted after a validated vote's weight is added to the tally."""
    proposal_id: int
    option_index: int
    nullifier_hash: int
    weight: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteRecorded",
            "proposalId": self.proposal_id,
            "optionIndex": self.option_index,
            "nullifierHash": str(self.nullifier_hash),
            "weight": str(self.weight),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProposalClosedEvent:
    """Emitted on closure. ``winner`` is None when there is no single leader."""
    proposal_id: int
    winner: Optional[int]
    tally: Tuple[int, ...]
    automatic: bool = False
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalClosed",
            "proposalId": self.proposal_id,
            "winner": self.winner,
            "tally": [str(t) for t in self.tally],
            "automatic": self.automatic,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class MemberRootUpdatedEvent:
    """Emitted when the authority replaces the membership root."""
    old_root: int
    new_root: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "MemberRootUpdated",
            "oldRoot": str(self.old_root),
            "newRoot": str(self.new_root),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  EVENT LOG
# ══════════════════════════════════════════════════════════════════════

class EventLog:
    """
    Append-only record of emitted events with synchronous subscribers.

    A subscriber that raises is logged and skipped: the transaction that
    emitted the event has already been applied and must not be reported as
    failed because an observer broke.
    """

    def __init__(self):
        self._events: List[Any] = []
        self._subscribers: List[Callable[[Any], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, event: Any) -> None:
        with self._lock:
            self._events.append(event)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    f"Event subscriber {callback!r} failed on {type(event).__name__}"
                )

    @property
    def events(self) -> List[Any]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: type) -> List[Any]:
        return [e for e in self.events if isinstance(e, event_type)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
