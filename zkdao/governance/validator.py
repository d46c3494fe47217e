"""
Vote Validator

Decides whether an anonymous vote submission is admissible using only
public values. Checks run in a fixed order and stop at the first failure:

  1. proposal exists and is open
  2. option index is in range
  3. nullifier not yet consumed for this proposal
  4. claimed root equals the trusted membership root
  5. signal hash equals keccak256("VOTE_" + option index)
  6. the external verifier accepts the proof for
     [root, nullifier, signal, proposal id]

Submissions whose root, nullifier or signal hash is not a non-negative
integer are refused before any of these checks run.

The checks run without holding the proposal's lock, so a slow verifier
never blocks readers. No state is written until every check has passed;
``commit`` then takes the lock, re-checks closure and consumes the
nullifier atomically with a re-check of step 3.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..crypto.hashing import signal_hash as expected_signal_hash
from ..exceptions import AdmissionError, LifecycleError, ProtocolIntegrityError
from ..logger import get_logger
from .events import EventLog, ProofVerifiedEvent
from .membership import MembershipRootStore
from .nullifiers import NullifierLedger
from .proposals import Proposal, ProposalStore
from .verifier import ProofVerifier

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class MalformedSubmissionError(AdmissionError):
    """A public value of the submission is not a non-negative integer."""
    kind = "MalformedSubmission"


class ProposalClosedError(LifecycleError):
    """Vote submitted to a proposal that is closed or past its close time."""
    kind = "ProposalClosed"


class InvalidOptionError(AdmissionError):
    """Option index outside the proposal's options."""
    kind = "InvalidOption"


class RootMismatchError(ProtocolIntegrityError):
    """Proof was built against a membership root that is not current."""
    kind = "RootMismatch"


class SignalMismatchError(ProtocolIntegrityError):
    """Signal hash does not commit to the declared option."""
    kind = "SignalMismatch"


class ProofInvalidError(ProtocolIntegrityError):
    """External verifier rejected the proof, failed, or timed out."""
    kind = "ProofInvalid"


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoteSubmission:
    """A vote exactly as submitted by a wallet."""
    proposal_id: int
    option_index: int
    signal_hash: int
    nullifier_hash: int
    claimed_root: int
    proof: Any = field(repr=False, default=None)

    def public_signals(self):
        """Public inputs in the order the membership circuit exposes them."""
        return [self.claimed_root, self.nullifier_hash, self.signal_hash, self.proposal_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "optionIndex": self.option_index,
            "signalHash": str(self.signal_hash),
            "nullifierHash": str(self.nullifier_hash),
            "merkleTreeRoot": str(self.claimed_root),
        }


@dataclass(frozen=True)
class ValidatedVote:
    """A submission that passed every check."""
    proposal_id: int
    option_index: int
    nullifier_hash: int
    signal_hash: int
    validated_at: float = field(default_factory=time.time)


# ══════════════════════════════════════════════════════════════════════
#  VALIDATOR
# ══════════════════════════════════════════════════════════════════════

class VoteValidator:
    """Check pipeline for vote submissions."""

    def __init__(
        self,
        proposals: ProposalStore,
        ledger: NullifierLedger,
        roots: MembershipRootStore,
        verifier: ProofVerifier,
        events: Optional[EventLog] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._proposals = proposals
        self._ledger = ledger
        self._roots = roots
        self._verifier = verifier
        self._events = events if events is not None else EventLog()
        self._clock = clock

    @property
    def verifier(self) -> ProofVerifier:
        return self._verifier

    def check(self, submission: VoteSubmission) -> ValidatedVote:
        """
        Run all six checks without writing anything.

        Raises the first failing check's error.
        """
        try:
            return self._check(submission)
        except (AdmissionError, ProtocolIntegrityError, LifecycleError) as e:
            logger.warning(
                f"Vote rejected on Proposal #{submission.proposal_id}: "
                f"{e.kind} ({e})"
            )
            raise

    def _check(self, submission: VoteSubmission) -> ValidatedVote:
        for name in ("claimed_root", "nullifier_hash", "signal_hash"):
            if not _is_field_element(getattr(submission, name)):
                raise MalformedSubmissionError(
                    f"{name} must be a non-negative integer", field=name
                )

        pid = submission.proposal_id
        proposal = self._proposals.get(pid)

        # 1. open
        if not proposal.is_open(self._clock()):
            raise ProposalClosedError(
                f"Proposal #{pid} is not open for voting", field="proposal_id"
            )

        # 2. option range
        option_index = submission.option_index
        if not _is_valid_index(option_index, proposal):
            raise InvalidOptionError(
                f"Option {option_index!r} out of range for {proposal.option_count} options",
                field="option_index",
            )

        # 3. replay
        self._ledger.ensure_unused(pid, submission.nullifier_hash)

        # 4. membership root
        current_root = self._roots.current_root()
        if submission.claimed_root != current_root:
            raise RootMismatchError(
                "Claimed membership root is not the current root", field="claimed_root"
            )

        # 5. signal binding
        if submission.signal_hash != expected_signal_hash(option_index):
            raise SignalMismatchError(
                f"Signal hash does not commit to option {option_index}", field="signal_hash"
            )

        # 6. proof
        self._verify_proof(submission)

        return ValidatedVote(
            proposal_id=pid,
            option_index=option_index,
            nullifier_hash=submission.nullifier_hash,
            signal_hash=submission.signal_hash,
            validated_at=self._clock(),
        )

    def _verify_proof(self, submission: VoteSubmission) -> None:
        try:
            accepted = self._verifier.verify(submission.proof, submission.public_signals())
        except Exception as e:
            raise ProofInvalidError(
                f"Proof verification failed: {type(e).__name__}: {e}", field="proof"
            ) from e
        if not accepted:
            raise ProofInvalidError("Proof rejected by verifier", field="proof")

    def commit(self, validated: ValidatedVote) -> None:
        """
        Consume the nullifier of a checked vote and announce the proof.

        Closure or a competing vote with the same nullifier may have landed
        while the checks ran; both are re-checked under the proposal's lock
        and raise without writing anything.
        """
        pid = validated.proposal_id
        proposal = self._proposals.get(pid)
        with proposal.lock:
            try:
                if proposal.closed:
                    raise ProposalClosedError(
                        f"Proposal #{pid} closed during validation", field="proposal_id"
                    )
                self._ledger.consume(pid, validated.nullifier_hash)
            except (ProtocolIntegrityError, LifecycleError) as e:
                logger.warning("Vote rejected on Proposal #%s: %s (%s)", pid, e.kind, e)
                raise
            self._events.emit(ProofVerifiedEvent(
                proposal_id=pid,
                nullifier_hash=validated.nullifier_hash,
                signal_hash=validated.signal_hash,
            ))

    def validate(self, submission: VoteSubmission) -> ValidatedVote:
        """Check a submission and, on success, consume its nullifier."""
        validated = self.check(submission)
        self.commit(validated)
        return validated


def _is_field_element(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_valid_index(option_index: Any, proposal: Proposal) -> bool:
    if isinstance(option_index, bool) or not isinstance(option_index, int):
        return False
    return 0 <= option_index < proposal.option_count
