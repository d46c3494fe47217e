"""
Nullifier Ledger

Per-proposal set of consumed anti-replay tokens. A nullifier is derived
from a member's private identity and the proposal's external nullifier, so
its reuse reveals a double-vote attempt without revealing the voter.

Records are write-once: nothing here removes or rewrites an entry.
"""

from typing import List

from ..exceptions import ProtocolIntegrityError
from ..logger import get_logger
from .proposals import ProposalStore

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class NullifierAlreadyUsedError(ProtocolIntegrityError):
    """The (proposal, nullifier) pair was already accepted."""
    kind = "NullifierAlreadyUsed"


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class NullifierLedger:
    """
    Anti-replay ledger addressed by (proposal_id, nullifier_hash).

    Entries live in each proposal's own record; the ledger serialises
    access through that record's lock so the existence check and the
    insertion form one atomic step.
    """

    def __init__(self, store: ProposalStore):
        self._store = store

    def contains(self, proposal_id: int, nullifier_hash: int) -> bool:
        return self._store.get(proposal_id).has_nullifier(nullifier_hash)

    def ensure_unused(self, proposal_id: int, nullifier_hash: int) -> None:
        """Raise NullifierAlreadyUsedError if the pair is already recorded."""
        if self.contains(proposal_id, nullifier_hash):
            raise NullifierAlreadyUsedError(
                f"Nullifier already used for proposal #{proposal_id}",
                field="nullifier_hash",
            )

    def consume(self, proposal_id: int, nullifier_hash: int) -> None:
        """
        Atomically check and record a nullifier.

        Of two concurrent callers with the same pair exactly one returns;
        the other raises NullifierAlreadyUsedError.
        """
        proposal = self._store.get(proposal_id)
        with proposal.lock:
            if nullifier_hash in proposal._nullifiers:
                raise NullifierAlreadyUsedError(
                    f"Nullifier already used for proposal #{proposal_id}",
                    field="nullifier_hash",
                )
            proposal._nullifiers.add(nullifier_hash)
        logger.debug("Proposal #%s: nullifier %s consumed", proposal_id, nullifier_hash)

    def consumed(self, proposal_id: int) -> List[int]:
        proposal = self._store.get(proposal_id)
        with proposal.lock:
            return sorted(proposal._nullifiers)

    def count(self, proposal_id: int) -> int:
        return self._store.get(proposal_id).nullifier_count

    def __repr__(self) -> str:
        return f"<NullifierLedger proposals={self._store.count()}>"
