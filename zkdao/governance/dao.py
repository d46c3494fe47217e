"""
Privacy Voting DAO

Caller-facing facade over the membership root store, proposal store,
nullifier ledger, vote validator and tally engine. Every mutating call is
one transaction: it either applies completely or raises before writing.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import DAOConfig
from ..logger import get_logger, set_log_level
from .events import EventLog, ProposalCreatedEvent
from .membership import AuthorityCapability, MembershipRootStore, require_authority
from .nullifiers import NullifierLedger
from .proposals import (
    InvalidProposalError,
    Proposal,
    ProposalMode,
    ProposalStore,
    ProposalView,
)
from .tally import InvalidWeightError, TallyEngine, WeightOracle
from .validator import VoteSubmission, VoteValidator
from .verifier import ProofVerifier, build_verifier

logger = get_logger(__name__)

STATE_VERSION = 1


@dataclass(frozen=True)
class VoteReceipt:
    """Outcome of an accepted vote."""
    proposal_id: int
    option_index: int
    nullifier_hash: int
    weight: int
    auto_closed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "optionIndex": self.option_index,
            "nullifierHash": str(self.nullifier_hash),
            "weight": str(self.weight),
            "autoClosed": self.auto_closed,
        }


class PrivacyVotingDAO:
    """
    Anonymous one-member-one-vote DAO.

    Members prove membership against the current root with a
    zero-knowledge proof; nullifiers stop double voting without revealing
    who voted.
    """

    def __init__(
        self,
        verifier: ProofVerifier,
        initial_member_root: int,
        authority: AuthorityCapability,
        weight_oracle: Optional[WeightOracle] = None,
        restrict_proposal_creation: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            verifier:            Proof verification capability
            initial_member_root: Membership root trusted at bootstrap
            authority:           Capability allowed to update the root
            weight_oracle:       Callable(voter_handle) -> int balance, or None
            restrict_proposal_creation: Only the authority may create proposals
            clock:               Callable() -> unix time, injectable for tests
        """
        self._clock = clock
        self._authority = authority
        self.restrict_proposal_creation = restrict_proposal_creation

        self.events = EventLog()
        self.proposals = ProposalStore()
        self.roots = MembershipRootStore(initial_member_root, authority, self.events)
        self.ledger = NullifierLedger(self.proposals)
        self.validator = VoteValidator(
            self.proposals, self.ledger, self.roots, verifier, self.events, clock
        )
        self.engine = TallyEngine(weight_oracle, self.events, clock)

    @classmethod
    def from_config(
        cls,
        config: DAOConfig,
        authority: AuthorityCapability,
        verify_fn: Optional[Callable[[Any, List[int]], bool]] = None,
        weight_oracle: Optional[WeightOracle] = None,
        clock: Callable[[], float] = time.time,
    ) -> "PrivacyVotingDAO":
        """Build a DAO from loaded configuration."""
        config.validate()
        set_log_level(config.dao.log_level)
        verifier = build_verifier(
            config.verifier.backend,
            verify_fn=verify_fn,
            timeout_seconds=config.verifier.timeout_seconds,
        )
        if weight_oracle is not None and not config.weights.quadratic_enabled:
            logger.info("Quadratic weighting disabled by config; every vote weighs 1")
            weight_oracle = None
        logger.info(f"Bootstrapping DAO '{config.dao.name}' with {verifier!r}")
        return cls(
            verifier=verifier,
            initial_member_root=config.dao.initial_member_root,
            authority=authority,
            weight_oracle=weight_oracle,
            restrict_proposal_creation=config.dao.restrict_proposal_creation,
            clock=clock,
        )

    # ── Proposals ─────────────────────────────────────────────────────

    def create_proposal(
        self,
        title: str,
        description: str,
        mode: ProposalMode,
        options: Sequence[str],
        duration_seconds: int,
        capability: Optional[AuthorityCapability] = None,
    ) -> int:
        """
        Create a proposal and return its id.

        Raises:
            UnauthorizedError:    creation is restricted and caller is not the authority
            InvalidOptionsError:  fewer than two options
            InvalidProposalError: bad title, mode or duration
        """
        if self.restrict_proposal_creation:
            require_authority(self._authority, capability, "createProposal")
        proposal = self.proposals.create(
            title, description, mode, options, duration_seconds, int(self._clock())
        )
        self.events.emit(ProposalCreatedEvent(
            proposal_id=proposal.id,
            title=proposal.title,
            mode=proposal.mode.name,
            options=proposal.options,
            closes_at=proposal.closes_at,
        ))
        return proposal.id

    def get_proposal(self, proposal_id: int) -> ProposalView:
        return self.proposals.get(proposal_id).view(self._clock())

    def proposal_count(self) -> int:
        return self.proposals.count()

    def list_proposals(self) -> List[ProposalView]:
        """Every proposal, newest first."""
        now = self._clock()
        return [p.view(now) for p in self.proposals.all()]

    def close_proposal(self, proposal_id: int) -> Optional[int]:
        """
        Close a proposal whose time is up; returns the winner or None.

        Raises:
            ProposalNotFoundError, AlreadyClosedError, TooEarlyError
        """
        return self.engine.close(self.proposals.get(proposal_id))

    def winner_of(self, proposal_id: int) -> Optional[int]:
        return self.engine.winner_of(self.proposals.get(proposal_id))

    def tallies(self, proposal_id: int, start: int, count: int) -> List[int]:
        return self.engine.tallies(self.proposals.get(proposal_id), start, count)

    # ── Voting ────────────────────────────────────────────────────────

    def vote(
        self,
        proposal_id: int,
        option_index: int,
        signal_hash: int,
        nullifier_hash: int,
        claimed_root: int,
        proof: Any,
        voter_handle: Any = None,
    ) -> VoteReceipt:
        """
        Validate and record an anonymous vote.

        *voter_handle* is only used to look up the balance of a quadratic
        proposal's submitter; it is never stored.

        Raises:
            ProposalNotFoundError, ProposalClosedError, InvalidOptionError,
            NullifierAlreadyUsedError, RootMismatchError, SignalMismatchError,
            ProofInvalidError, InvalidWeightError, MalformedSubmissionError
        """
        submission = VoteSubmission(
            proposal_id=proposal_id,
            option_index=option_index,
            signal_hash=signal_hash,
            nullifier_hash=nullifier_hash,
            claimed_root=claimed_root,
            proof=proof,
        )
        # Checks, proof verification and the oracle lookup run unlocked;
        # readers of the proposal are never queued behind the verifier.
        validated = self.validator.check(submission)
        proposal = self.proposals.get(proposal_id)
        try:
            weight = self.engine.weight_for(proposal, voter_handle)
        except InvalidWeightError as e:
            logger.warning(f"Vote rejected on Proposal #{proposal_id}: {e.kind} ({e})")
            raise

        with proposal.lock:
            self.validator.commit(validated)
            auto_closed = self.engine.apply_vote(proposal, validated, weight)

        return VoteReceipt(
            proposal_id=proposal_id,
            option_index=validated.option_index,
            nullifier_hash=nullifier_hash,
            weight=weight,
            auto_closed=auto_closed,
        )

    def is_nullifier_used(self, proposal_id: int, nullifier_hash: int) -> bool:
        return self.ledger.contains(proposal_id, nullifier_hash)

    # ── Membership ────────────────────────────────────────────────────

    def member_root(self) -> int:
        return self.roots.current_root()

    def update_member_root(
        self, new_root: int, capability: Optional[AuthorityCapability]
    ) -> int:
        """Replace the membership root; returns the previous one."""
        return self.roots.update_root(new_root, capability)

    # ── Notifications ─────────────────────────────────────────────────

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        return self.events.subscribe(callback)

    # ── Persistence ───────────────────────────────────────────────────

    def export_state(self) -> Dict[str, Any]:
        """JSON-serialisable snapshot of all durable state."""
        return {
            "version": STATE_VERSION,
            "memberRoot": str(self.roots.current_root()),
            "proposals": [p.to_dict() for p in reversed(self.proposals.all())],
        }

    @classmethod
    def from_state(
        cls,
        state: Dict[str, Any],
        verifier: ProofVerifier,
        authority: AuthorityCapability,
        weight_oracle: Optional[WeightOracle] = None,
        restrict_proposal_creation: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> "PrivacyVotingDAO":
        """Rebuild a DAO from :meth:`export_state` output."""
        if state.get("version") != STATE_VERSION:
            raise InvalidProposalError(
                f"Unsupported state version: {state.get('version')!r}", field="version"
            )
        try:
            root = int(state["memberRoot"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidProposalError(f"Malformed member root: {e}", field="memberRoot") from e
        dao = cls(
            verifier=verifier,
            initial_member_root=root,
            authority=authority,
            weight_oracle=weight_oracle,
            restrict_proposal_creation=restrict_proposal_creation,
            clock=clock,
        )
        for record in state.get("proposals", []):
            dao.proposals.add(Proposal.from_dict(record))
        logger.info(f"Restored DAO state with {dao.proposal_count()} proposals")
        return dao

    # ── Lifecycle ─────────────────────────────────────────────────────

    def close(self) -> None:
        """Release the verifier's worker threads. Safe to call twice."""
        self.validator.verifier.close()

    def __enter__(self) -> "PrivacyVotingDAO":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"<PrivacyVotingDAO proposals={self.proposals.count()} "
            f"root={self.roots.current_root():#x}>"
        )
