"""
Shared fixtures for the zkdao test suite.
"""

import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from zkdao.crypto.hashing import signal_hash
from zkdao.governance import (
    AuthorityCapability,
    MockProofVerifier,
    PrivacyVotingDAO,
    ProposalMode,
)

MEMBER_ROOT = int(
    "19578321284379261479951354471353484202061003775662017676802743947860909013807"
)
NEW_ROOT = int(
    "15726912462015966406672618542702632965322252428400947996599523114086132293048"
)
START_TIME = 1_700_000_000
PROOF = ["1", "2", "3", "4", "5", "6", "7", "8"]


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_dao(verifier=None, weight_oracle=None, clock=None, restrict=True):
    """DAO with a mock verifier, fixed root and manual clock."""
    authority = AuthorityCapability.generate("deployer")
    clock = clock or FakeClock()
    dao = PrivacyVotingDAO(
        verifier=verifier or MockProofVerifier(),
        initial_member_root=MEMBER_ROOT,
        authority=authority,
        weight_oracle=weight_oracle,
        restrict_proposal_creation=restrict,
        clock=clock,
    )
    return dao, authority, clock


def make_proposal(dao, authority, options=("Yes", "No"), mode=ProposalMode.SIMPLE,
                  duration=300, title="Proposal Yes/No", description="Description"):
    return dao.create_proposal(title, description, mode, list(options), duration,
                               capability=authority)


def cast(dao, proposal_id, option_index, nullifier, root=MEMBER_ROOT, proof=PROOF,
         signal=None, voter_handle=None):
    """Submit a vote whose signal hash matches *option_index* unless overridden."""
    return dao.vote(
        proposal_id,
        option_index,
        signal_hash(option_index) if signal is None else signal,
        nullifier,
        root,
        proof,
        voter_handle=voter_handle,
    )
