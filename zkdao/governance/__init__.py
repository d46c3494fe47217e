"""
zkdao Anonymous Governance

Provides:
  - AuthorityCapability / MembershipRootStore        (membership.py)
  - ProposalMode / Proposal / ProposalStore          (proposals.py)
  - NullifierLedger                                  (nullifiers.py)
  - ProofVerifier / MockProofVerifier / CallableProofVerifier (verifier.py)
  - VoteSubmission / VoteValidator                   (validator.py)
  - TallyEngine / determine_winner                   (tally.py)
  - Event records and EventLog                       (events.py)
  - PrivacyVotingDAO facade                          (dao.py)
"""

from .membership import (
    AuthorityCapability,
    MembershipRootStore,
    UnauthorizedError,
)
from .proposals import (
    AlreadyClosedError,
    InvalidOptionsError,
    InvalidProposalError,
    Proposal,
    ProposalMode,
    ProposalNotFoundError,
    ProposalStillOpenError,
    ProposalStore,
    ProposalView,
    TooEarlyError,
)
from .nullifiers import (
    NullifierAlreadyUsedError,
    NullifierLedger,
)
from .verifier import (
    CallableProofVerifier,
    MockProofVerifier,
    ProofVerifier,
    VerifierTimeoutError,
    build_verifier,
)
from .validator import (
    InvalidOptionError,
    MalformedSubmissionError,
    ProofInvalidError,
    ProposalClosedError,
    RootMismatchError,
    SignalMismatchError,
    ValidatedVote,
    VoteSubmission,
    VoteValidator,
)
from .tally import (
    NO_WINNER,
    InvalidWeightError,
    OutOfBoundsError,
    TallyEngine,
    determine_winner,
    quadratic_weight,
)
from .events import (
    EventLog,
    MemberRootUpdatedEvent,
    ProofVerifiedEvent,
    ProposalClosedEvent,
    ProposalCreatedEvent,
    VoteRecordedEvent,
)
from .dao import PrivacyVotingDAO, VoteReceipt

__all__ = [
    # Membership
    "AuthorityCapability",
    "MembershipRootStore",
    "UnauthorizedError",
    # Proposals
    "AlreadyClosedError",
    "InvalidOptionsError",
    "InvalidProposalError",
    "Proposal",
    "ProposalMode",
    "ProposalNotFoundError",
    "ProposalStillOpenError",
    "ProposalStore",
    "ProposalView",
    "TooEarlyError",
    # Nullifiers
    "NullifierAlreadyUsedError",
    "NullifierLedger",
    # Verifier
    "CallableProofVerifier",
    "MockProofVerifier",
    "ProofVerifier",
    "VerifierTimeoutError",
    "build_verifier",
    # Validation
    "InvalidOptionError",
    "MalformedSubmissionError",
    "ProofInvalidError",
    "ProposalClosedError",
    "RootMismatchError",
    "SignalMismatchError",
    "ValidatedVote",
    "VoteSubmission",
    "VoteValidator",
    # Tally
    "NO_WINNER",
    "InvalidWeightError",
    "OutOfBoundsError",
    "TallyEngine",
    "determine_winner",
    "quadratic_weight",
    # Events
    "EventLog",
    "MemberRootUpdatedEvent",
    "ProofVerifiedEvent",
    "ProposalClosedEvent",
    "ProposalCreatedEvent",
    "VoteRecordedEvent",
    # Facade
    "PrivacyVotingDAO",
    "VoteReceipt",
]
