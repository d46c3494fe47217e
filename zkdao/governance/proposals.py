"""
Governance Proposals

Defines the proposal voting modes, the per-proposal record that owns its
own tally and nullifier set, and the ProposalStore that assigns ids and
addresses records by id.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..constants import (
    FIRST_PROPOSAL_ID,
    MAX_PROPOSAL_DURATION_SECONDS,
    MIN_PROPOSAL_OPTIONS,
)
from ..exceptions import AdmissionError, LifecycleError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InvalidProposalError(AdmissionError):
    """Raised when proposal data is invalid."""
    kind = "InvalidProposal"


class InvalidOptionsError(AdmissionError):
    """Raised when a proposal is created with fewer than two options."""
    kind = "InvalidOptions"


class ProposalNotFoundError(AdmissionError):
    """No proposal with the requested id."""
    kind = "NotFound"


class AlreadyClosedError(LifecycleError):
    """Closure requested on a proposal that is already closed."""
    kind = "AlreadyClosed"


class TooEarlyError(LifecycleError):
    """Closure requested before the proposal's close time."""
    kind = "TooEarly"


class ProposalStillOpenError(LifecycleError):
    """Result requested for a proposal that has not been closed yet."""
    kind = "ProposalStillOpen"


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalMode(IntEnum):
    """How a vote's weight is derived."""
    SIMPLE = 0      # One member, one vote
    QUADRATIC = 1   # floor(sqrt(balance)) from the weight oracle


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalView:
    """Read-only snapshot returned to callers by get_proposal."""
    id: int
    title: str
    mode: ProposalMode
    is_open: bool
    closes_at: int
    options: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "mode": self.mode.name,
            "isOpen": self.is_open,
            "closesAt": self.closes_at,
            "options": list(self.options),
        }


@dataclass
class Proposal:
    """
    Anonymous-vote proposal record.

    Fields:
        id:          Unique monotonic identifier, starting at 1
        title:       Short title
        description: Detailed description
        mode:        ProposalMode, fixed at creation
        options:     Ordered option labels (at least two)
        closes_at:   Unix timestamp after which voting stops
        created_at:  Unix timestamp of creation
        closed:      Set exactly once by closure
        winner:      Winning option index after closure, None for no winner
        tally:       Accumulated weight per option index

    The record's lock guards the tally, the nullifier set and the closure
    transition. It is re-entrant so a vote transaction can consume a
    nullifier and close the proposal while already holding it.
    """
    id: int
    title: str
    description: str
    mode: ProposalMode
    options: Tuple[str, ...]
    closes_at: int
    created_at: int = field(default_factory=lambda: int(time.time()))
    closed: bool = False
    winner: Optional[int] = None
    tally: List[int] = field(default_factory=list)
    _nullifiers: Set[int] = field(default_factory=set, repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.title, str) or not self.title.strip():
            raise InvalidProposalError("Proposal title cannot be empty", field="title")
        if not isinstance(self.description, str):
            raise InvalidProposalError("Proposal description must be text", field="description")
        self.options = _normalize_options(self.options)
        self.mode = _normalize_mode(self.mode)
        if not self.tally:
            self.tally = [0] * len(self.options)
        elif len(self.tally) != len(self.options):
            raise InvalidProposalError(
                f"Tally has {len(self.tally)} entries for {len(self.options)} options",
                field="tally",
            )

    # ── Properties ────────────────────────────────────────────────────

    @property
    def option_count(self) -> int:
        return len(self.options)

    def is_open(self, now: float) -> bool:
        return not self.closed and now < self.closes_at

    def has_nullifier(self, nullifier_hash: int) -> bool:
        with self.lock:
            return nullifier_hash in self._nullifiers

    @property
    def nullifier_count(self) -> int:
        with self.lock:
            return len(self._nullifiers)

    @property
    def total_weight(self) -> int:
        with self.lock:
            return sum(self.tally)

    def view(self, now: float) -> ProposalView:
        with self.lock:
            return ProposalView(
                id=self.id,
                title=self.title,
                mode=self.mode,
                is_open=self.is_open(now),
                closes_at=self.closes_at,
                options=self.options,
            )

    def tally_snapshot(self) -> Tuple[int, ...]:
        with self.lock:
            return tuple(self.tally)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "id": self.id,
                "title": self.title,
                "description": self.description,
                "mode": self.mode.name,
                "options": list(self.options),
                "closesAt": self.closes_at,
                "createdAt": self.created_at,
                "closed": self.closed,
                "winner": self.winner,
                "tally": [str(t) for t in self.tally],
                "nullifiers": sorted(str(n) for n in self._nullifiers),
            }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        try:
            proposal = cls(
                id=int(data["id"]),
                title=data["title"],
                description=data.get("description", ""),
                mode=ProposalMode[data["mode"]],
                options=tuple(data["options"]),
                closes_at=int(data["closesAt"]),
                created_at=int(data.get("createdAt", 0)),
                closed=bool(data.get("closed", False)),
                winner=data.get("winner"),
                tally=[int(t) for t in data.get("tally", [])],
            )
            proposal._nullifiers = {int(n) for n in data.get("nullifiers", [])}
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidProposalError(f"Malformed proposal record: {e}") from e
        return proposal

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return (
            f"<Proposal #{self.id} '{self.title}' "
            f"mode={self.mode.name} options={len(self.options)} {state}>"
        )


def _normalize_options(options: Iterable[str]) -> Tuple[str, ...]:
    if isinstance(options, str):
        raise InvalidOptionsError("Options must be a sequence of labels", field="options")
    try:
        normalized = tuple(options)
    except TypeError as e:
        raise InvalidOptionsError("Options must be a sequence of labels", field="options") from e
    if len(normalized) < MIN_PROPOSAL_OPTIONS:
        raise InvalidOptionsError(
            f"At least {MIN_PROPOSAL_OPTIONS} options required, got {len(normalized)}",
            field="options",
        )
    for label in normalized:
        if not isinstance(label, str):
            raise InvalidOptionsError(
                f"Option labels must be strings, got {type(label).__name__}",
                field="options",
            )
    return normalized


def _normalize_mode(mode: Any) -> ProposalMode:
    try:
        return ProposalMode(mode)
    except ValueError as e:
        raise InvalidProposalError(f"Unknown proposal mode: {mode!r}", field="mode") from e


# ══════════════════════════════════════════════════════════════════════
#  STORE
# ══════════════════════════════════════════════════════════════════════

class ProposalStore:
    """
    Top-level mapping from proposal id to its record.

    Ids are assigned sequentially under the store lock; everything else on
    a proposal is guarded by the proposal's own lock.
    """

    def __init__(self):
        self._proposals: Dict[int, Proposal] = {}
        self._next_id = FIRST_PROPOSAL_ID
        self._lock = threading.Lock()

    def create(
        self,
        title: str,
        description: str,
        mode: ProposalMode,
        options: Sequence[str],
        duration_seconds: int,
        now: int,
    ) -> Proposal:
        """
        Create and register a proposal.

        Raises:
            InvalidOptionsError: fewer than two options
            InvalidProposalError: bad title, mode or duration
        """
        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, int):
            raise InvalidProposalError("Duration must be an integer number of seconds",
                                       field="duration_seconds")
        if duration_seconds < 0 or duration_seconds > MAX_PROPOSAL_DURATION_SECONDS:
            raise InvalidProposalError(
                f"Duration {duration_seconds}s outside [0, {MAX_PROPOSAL_DURATION_SECONDS}]",
                field="duration_seconds",
            )
        with self._lock:
            proposal = Proposal(
                id=self._next_id,
                title=title,
                description=description,
                mode=mode,
                options=options,
                closes_at=int(now) + duration_seconds,
                created_at=int(now),
            )
            self._proposals[proposal.id] = proposal
            self._next_id += 1
        logger.info(
            f"Proposal #{proposal.id} ({proposal.title}) created: "
            f"mode={proposal.mode.name} options={len(proposal.options)} "
            f"closes_at={proposal.closes_at}"
        )
        return proposal

    def get(self, proposal_id: int) -> Proposal:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} not found", field="proposal_id")
        return proposal

    def add(self, proposal: Proposal) -> None:
        """Register a restored record; ids keep increasing past it."""
        with self._lock:
            if proposal.id in self._proposals:
                raise InvalidProposalError(f"Duplicate proposal id {proposal.id}", field="id")
            if proposal.id < FIRST_PROPOSAL_ID:
                raise InvalidProposalError(f"Invalid proposal id {proposal.id}", field="id")
            self._proposals[proposal.id] = proposal
            self._next_id = max(self._next_id, proposal.id + 1)

    def count(self) -> int:
        with self._lock:
            return len(self._proposals)

    def all(self) -> List[Proposal]:
        """Proposals ordered newest first."""
        with self._lock:
            return sorted(self._proposals.values(), key=lambda p: p.id, reverse=True)

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        return f"<ProposalStore proposals={self.count()} next_id={self._next_id}>"
