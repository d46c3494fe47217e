"""
Tally & Closure Test Suite

Coverage:
  - Winner scan including ties and zero tallies
  - Quadratic weight arithmetic
  - Manual closure lifecycle errors
  - Tally pagination and bounds

Run with:
    pytest tests/test_tally_closure.py -v
"""

import pytest

from helpers import START_TIME, FakeClock, cast, make_dao, make_proposal

from zkdao.governance import (
    NO_WINNER,
    AlreadyClosedError,
    EventLog,
    InvalidWeightError,
    OutOfBoundsError,
    Proposal,
    ProposalClosedEvent,
    ProposalMode,
    ProposalNotFoundError,
    ProposalStillOpenError,
    TallyEngine,
    TooEarlyError,
    ValidatedVote,
    determine_winner,
    quadratic_weight,
)


def _proposal(options=("A", "B", "C"), closes_at=START_TIME + 100, **kwargs):
    return Proposal(
        id=1,
        title="t",
        description="d",
        mode=ProposalMode.SIMPLE,
        options=options,
        closes_at=closes_at,
        **kwargs,
    )


# ══════════════════════════════════════════════════════════════════════
#  WINNER SCAN
# ══════════════════════════════════════════════════════════════════════


class TestDetermineWinner:
    """Single pass, strict lead wins, ties reset to no winner."""

    @pytest.mark.parametrize("tally,expected", [
        ([3, 2], 0),
        ([2, 3], 1),
        ([5, 5], NO_WINNER),
        ([0, 0], NO_WINNER),
        ([0, 5], 1),
        ([5, 0], 0),
        ([5, 5, 7], 2),
        ([5, 3, 5], NO_WINNER),
        ([1, 2, 3, 4], 3),
        ([0, 0, 0, 1], 3),
    ])
    def test_scan(self, tally, expected):
        assert determine_winner(tally) == expected

    def test_huge_values(self):
        assert determine_winner([2 ** 255, 2 ** 255 + 1]) == 1


class TestQuadraticWeight:
    """floor(sqrt(balance))."""

    @pytest.mark.parametrize("balance,weight", [
        (0, 0), (1, 1), (3, 1), (4, 2), (10, 3), (100, 10), (99, 9),
    ])
    def test_values(self, balance, weight):
        assert quadratic_weight(balance) == weight

    def test_exact_for_large_squares(self):
        assert quadratic_weight((10 ** 30) ** 2) == 10 ** 30
        assert quadratic_weight((10 ** 30) ** 2 - 1) == 10 ** 30 - 1

    @pytest.mark.parametrize("balance", [-1, 1.5, "100", True, None])
    def test_invalid(self, balance):
        with pytest.raises(InvalidWeightError):
            quadratic_weight(balance)


# ══════════════════════════════════════════════════════════════════════
#  CLOSURE
# ══════════════════════════════════════════════════════════════════════


class TestCloseProposal:
    """Manual closure through the DAO facade."""

    def test_close_after_time(self):
        dao, auth, clock = make_dao()
        pid = make_proposal(dao, auth, duration=300)
        for i, option in enumerate([0, 0, 0, 1, 1]):
            cast(dao, pid, option, nullifier=i + 1)
        clock.advance(300)
        assert dao.close_proposal(pid) == 0
        assert dao.winner_of(pid) == 0
        assert not dao.get_proposal(pid).is_open

    def test_too_early(self):
        dao, auth, clock = make_dao()
        pid = make_proposal(dao, auth, duration=300)
        clock.advance(299)
        with pytest.raises(TooEarlyError) as exc:
            dao.close_proposal(pid)
        assert exc.value.kind == "TooEarly"
        assert dao.get_proposal(pid).is_open

    def test_already_closed(self):
        dao, auth, clock = make_dao()
        pid = make_proposal(dao, auth)
        clock.advance(300)
        dao.close_proposal(pid)
        with pytest.raises(AlreadyClosedError):
            dao.close_proposal(pid)
        assert len(dao.events.of_type(ProposalClosedEvent)) == 1

    def test_not_found(self):
        dao, _, _ = make_dao()
        with pytest.raises(ProposalNotFoundError):
            dao.close_proposal(3)

    def test_tie_has_no_winner(self):
        dao, auth, clock = make_dao()
        pid = make_proposal(dao, auth)
        cast(dao, pid, 0, nullifier=1)
        cast(dao, pid, 1, nullifier=2)
        clock.advance(300)
        assert dao.close_proposal(pid) is NO_WINNER
        assert dao.winner_of(pid) is NO_WINNER

    def test_zero_duration_closes_immediately(self):
        dao, auth, _ = make_dao()
        pid = make_proposal(dao, auth, duration=0)
        assert not dao.get_proposal(pid).is_open
        assert dao.close_proposal(pid) is NO_WINNER

    def test_winner_of_open_proposal(self):
        dao, auth, _ = make_dao()
        pid = make_proposal(dao, auth)
        with pytest.raises(ProposalStillOpenError):
            dao.winner_of(pid)

    def test_tally_frozen_after_close(self):
        dao, auth, clock = make_dao()
        pid = make_proposal(dao, auth)
        cast(dao, pid, 1, nullifier=1)
        clock.advance(300)
        dao.close_proposal(pid)
        assert dao.tallies(pid, 0, 0) == [0, 1]
        event = dao.events.of_type(ProposalClosedEvent)[0]
        assert event.tally == (0, 1)
        assert event.winner == 1
        assert not event.automatic


class TestTallyEngine:
    """Engine used directly on a proposal record."""

    def test_apply_vote_before_close(self):
        clock = FakeClock()
        engine = TallyEngine(clock=clock)
        proposal = _proposal()
        vote = ValidatedVote(proposal_id=1, option_index=2, nullifier_hash=9, signal_hash=0)
        assert engine.apply_vote(proposal, vote, 4) is False
        assert proposal.tally == [0, 0, 4]

    def test_apply_vote_at_close_time_closes(self):
        clock = FakeClock(START_TIME + 100)
        events = EventLog()
        engine = TallyEngine(events=events, clock=clock)
        proposal = _proposal()
        vote = ValidatedVote(proposal_id=1, option_index=0, nullifier_hash=9, signal_hash=0)
        assert engine.apply_vote(proposal, vote, 1) is True
        assert proposal.closed
        assert proposal.winner == 0
        assert events.of_type(ProposalClosedEvent)[0].automatic

    def test_weight_without_oracle(self):
        engine = TallyEngine()
        proposal = _proposal()
        proposal.mode = ProposalMode.QUADRATIC
        assert engine.weight_for(proposal, "anyone") == 1
        assert not engine.has_weight_oracle

    def test_weight_with_oracle(self):
        engine = TallyEngine(weight_oracle=lambda handle: 49)
        proposal = _proposal()
        proposal.mode = ProposalMode.QUADRATIC
        assert engine.weight_for(proposal, "anyone") == 7


# ══════════════════════════════════════════════════════════════════════
#  PAGINATION
# ══════════════════════════════════════════════════════════════════════


class TestTallies:
    """Paginated reads of a proposal's tally."""

    def _setup(self):
        dao, auth, _ = make_dao()
        pid = make_proposal(dao, auth, options=("A", "B", "C", "D", "E"))
        for option in range(5):
            for n in range(option):
                cast(dao, pid, option, nullifier=option * 100 + n)
        return dao, pid

    def test_full_read(self):
        dao, pid = self._setup()
        assert dao.tallies(pid, 0, 5) == [0, 1, 2, 3, 4]

    def test_count_zero_reads_to_end(self):
        dao, pid = self._setup()
        assert dao.tallies(pid, 2, 0) == [2, 3, 4]

    def test_page(self):
        dao, pid = self._setup()
        assert dao.tallies(pid, 1, 2) == [1, 2]

    def test_overflowing_page_clamps(self):
        dao, pid = self._setup()
        assert dao.tallies(pid, 3, 10) == [3, 4]

    def test_last_option(self):
        dao, pid = self._setup()
        assert dao.tallies(pid, 4, 1) == [4]

    @pytest.mark.parametrize("start", [5, 6, -1])
    def test_start_out_of_bounds(self, start):
        dao, pid = self._setup()
        with pytest.raises(OutOfBoundsError) as exc:
            dao.tallies(pid, start, 1)
        assert exc.value.field == "start"

    def test_negative_count(self):
        dao, pid = self._setup()
        with pytest.raises(OutOfBoundsError):
            dao.tallies(pid, 0, -1)

    def test_unknown_proposal(self):
        dao, _ = self._setup()
        with pytest.raises(ProposalNotFoundError):
            dao.tallies(9, 0, 0)
