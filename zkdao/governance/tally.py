"""
Tally & Closure Engine

Implements:
  - Vote weight: 1 per vote in SIMPLE mode or without a weight oracle,
    floor(sqrt(balance)) in QUADRATIC mode
  - Tally accumulation (Python ints, no overflow)
  - Proposal closure and winner determination
  - Paginated tally reads
"""

import math
import time
from typing import Any, Callable, List, Optional, Sequence

from ..exceptions import AdmissionError
from ..logger import get_logger
from .events import EventLog, ProposalClosedEvent, VoteRecordedEvent
from .proposals import (
    AlreadyClosedError,
    Proposal,
    ProposalMode,
    ProposalStillOpenError,
    TooEarlyError,
)
from .validator import ValidatedVote

logger = get_logger(__name__)

NO_WINNER: Optional[int] = None

WeightOracle = Callable[[Any], int]


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class OutOfBoundsError(AdmissionError):
    """Tally page starts past the last option."""
    kind = "OutOfBounds"


class InvalidWeightError(AdmissionError):
    """The weight oracle produced an unusable balance."""
    kind = "InvalidWeight"


# ══════════════════════════════════════════════════════════════════════
#  WINNER SCAN
# ══════════════════════════════════════════════════════════════════════

def determine_winner(tally: Sequence[int]) -> Optional[int]:
    """
    Single pass over the final tally in option order.

    The running maximum starts at 0. A tally strictly above it takes the
    lead; a tally equal to it resets the winner to NO_WINNER. A zero tally
    can therefore only tie while no option has any weight yet, so
    ``[0, 5]`` elects option 1 and ``[0, 0]`` has no winner.
    """
    best = 0
    winner = NO_WINNER
    for index, weight in enumerate(tally):
        if weight > best:
            best = weight
            winner = index
        elif weight == best:
            winner = NO_WINNER
    return winner


def quadratic_weight(balance: int) -> int:
    """floor(sqrt(balance)) for a non-negative integer balance."""
    if isinstance(balance, bool) or not isinstance(balance, int):
        raise InvalidWeightError(
            f"Balance must be an integer, got {type(balance).__name__}", field="balance"
        )
    if balance < 0:
        raise InvalidWeightError(f"Balance cannot be negative: {balance}", field="balance")
    return math.isqrt(balance)


# ══════════════════════════════════════════════════════════════════════
#  ENGINE
# ══════════════════════════════════════════════════════════════════════

class TallyEngine:
    """
    Applies validated votes to proposal tallies and closes proposals.

    Callers mutate a proposal only through this engine while holding the
    proposal's lock (the engine re-acquires it, the lock is re-entrant).
    """

    def __init__(
        self,
        weight_oracle: Optional[WeightOracle] = None,
        events: Optional[EventLog] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._weight_oracle = weight_oracle
        self._events = events if events is not None else EventLog()
        self._clock = clock

    @property
    def has_weight_oracle(self) -> bool:
        return self._weight_oracle is not None

    # ── Weight ────────────────────────────────────────────────────────

    def weight_for(self, proposal: Proposal, voter_handle: Any = None) -> int:
        """
        Resolve the weight a vote carries on *proposal*.

        Raises:
            InvalidWeightError: the oracle failed or returned a bad balance
        """
        if proposal.mode == ProposalMode.SIMPLE or self._weight_oracle is None:
            return 1
        if voter_handle is None:
            raise InvalidWeightError(
                f"Proposal #{proposal.id} is quadratic and needs a voter handle",
                field="voter_handle",
            )
        try:
            balance = self._weight_oracle(voter_handle)
        except Exception as e:
            raise InvalidWeightError(
                f"Weight oracle failed: {type(e).__name__}: {e}", field="voter_handle"
            ) from e
        return quadratic_weight(balance)

    # ── Votes ─────────────────────────────────────────────────────────

    def apply_vote(self, proposal: Proposal, vote: ValidatedVote, weight: int) -> bool:
        """
        Add *weight* to the chosen option.

        Returns True if the vote landed at or after the close time and
        closed the proposal.
        """
        with proposal.lock:
            proposal.tally[vote.option_index] += weight
            self._events.emit(VoteRecordedEvent(
                proposal_id=proposal.id,
                option_index=vote.option_index,
                nullifier_hash=vote.nullifier_hash,
                weight=weight,
            ))
            logger.info(
                f"Proposal #{proposal.id}: vote recorded option={vote.option_index} "
                f"weight={weight}"
            )
            if not proposal.closed and self._clock() >= proposal.closes_at:
                self.close(proposal, automatic=True)
                return True
        return False

    # ── Closure ───────────────────────────────────────────────────────

    def close(self, proposal: Proposal, automatic: bool = False) -> Optional[int]:
        """
        Close *proposal* and determine its winner.

        Raises:
            AlreadyClosedError: closure already happened
            TooEarlyError:      close time not reached
        """
        with proposal.lock:
            if proposal.closed:
                raise AlreadyClosedError(
                    f"Proposal #{proposal.id} is already closed", field="proposal_id"
                )
            if self._clock() < proposal.closes_at:
                raise TooEarlyError(
                    f"Proposal #{proposal.id} closes at {proposal.closes_at}",
                    field="proposal_id",
                )
            proposal.closed = True
            proposal.winner = determine_winner(proposal.tally)
            final = tuple(proposal.tally)

        logger.info(
            f"Proposal #{proposal.id} closed{' automatically' if automatic else ''}: "
            f"winner={proposal.winner} tally={list(final)}"
        )
        self._events.emit(ProposalClosedEvent(
            proposal_id=proposal.id,
            winner=proposal.winner,
            tally=final,
            automatic=automatic,
        ))
        return proposal.winner

    @staticmethod
    def winner_of(proposal: Proposal) -> Optional[int]:
        with proposal.lock:
            if not proposal.closed:
                raise ProposalStillOpenError(
                    f"Proposal #{proposal.id} has not been closed", field="proposal_id"
                )
            return proposal.winner

    # ── Reads ─────────────────────────────────────────────────────────

    @staticmethod
    def tallies(proposal: Proposal, start: int, count: int) -> List[int]:
        """
        Page through a proposal's tally.

        ``count == 0`` or a page running past the end is clamped to the
        last option.

        Raises:
            OutOfBoundsError: start is not a valid option index
        """
        n = proposal.option_count
        if start < 0 or start >= n:
            raise OutOfBoundsError(
                f"Start {start} out of bounds for {n} options", field="start"
            )
        if count < 0:
            raise OutOfBoundsError(f"Count cannot be negative: {count}", field="count")
        end = start + count
        if count == 0 or end > n:
            end = n
        with proposal.lock:
            return list(proposal.tally[start:end])
