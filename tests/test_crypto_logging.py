"""
Hashing, Membership & Logging Test Suite

Coverage:
  - keccak256 vectors and the vote signal hash
  - Authority capability and membership root history
  - Event log subscribers
  - Log sanitising and format validation

Run with:
    pytest tests/test_crypto_logging.py -v
"""

import logging

import pytest

from helpers import MEMBER_ROOT, NEW_ROOT

from zkdao.constants import ConfigBool, ConfigString, parse_bool
from zkdao.crypto import keccak256, keccak256_hex, signal_hash, vote_signal
from zkdao.governance import (
    AuthorityCapability,
    EventLog,
    MemberRootUpdatedEvent,
    MembershipRootStore,
    ProposalClosedEvent,
    UnauthorizedError,
    VoteSubmission,
)
from zkdao.logger import LogManager, TerminalSafeFormatter, get_logger


# ══════════════════════════════════════════════════════════════════════
#  HASHING
# ══════════════════════════════════════════════════════════════════════


class TestKeccak:

    def test_empty(self):
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_abc(self):
        assert keccak256_hex(b"abc") == (
            "0x4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"
        )

    def test_hex_string_input(self):
        assert keccak256("0x616263") == keccak256(b"abc")
        assert keccak256("616263") == keccak256(b"abc")

    def test_digest_length(self):
        assert len(keccak256(b"zkdao")) == 32


class TestSignalHash:

    def test_vote_signal(self):
        assert vote_signal(0) == "VOTE_0"
        assert vote_signal(12) == "VOTE_12"

    def test_matches_packed_string_hash(self):
        expected = int.from_bytes(keccak256(b"VOTE_1"), "big")
        assert signal_hash(1) == expected

    def test_distinct_per_option(self):
        hashes = {signal_hash(i) for i in range(16)}
        assert len(hashes) == 16

    def test_fits_in_256_bits(self):
        assert 0 <= signal_hash(3) < 2 ** 256

    def test_public_signals_order(self):
        submission = VoteSubmission(
            proposal_id=4,
            option_index=1,
            signal_hash=signal_hash(1),
            nullifier_hash=99,
            claimed_root=MEMBER_ROOT,
            proof=None,
        )
        assert submission.public_signals() == [MEMBER_ROOT, 99, signal_hash(1), 4]
        assert submission.to_dict()["merkleTreeRoot"] == str(MEMBER_ROOT)


# ══════════════════════════════════════════════════════════════════════
#  MEMBERSHIP
# ══════════════════════════════════════════════════════════════════════


class TestAuthorityCapability:

    def test_matches_itself(self):
        cap = AuthorityCapability.generate("deployer")
        assert cap.matches(cap)

    def test_distinct_tokens(self):
        a = AuthorityCapability.generate("deployer")
        b = AuthorityCapability.generate("deployer")
        assert not a.matches(b)

    def test_non_capability(self):
        cap = AuthorityCapability.generate()
        assert not cap.matches(None)
        assert not cap.matches("deployer")

    def test_token_hidden_from_repr(self):
        cap = AuthorityCapability.generate()
        assert cap.token not in repr(cap)


class TestMembershipRootStore:

    def test_update_and_history(self):
        authority = AuthorityCapability.generate()
        events = EventLog()
        store = MembershipRootStore(MEMBER_ROOT, authority, events)
        assert store.update_root(NEW_ROOT, authority) == MEMBER_ROOT
        assert store.current_root() == NEW_ROOT
        assert [h["root"] for h in store.history] == [MEMBER_ROOT, NEW_ROOT]
        event = events.of_type(MemberRootUpdatedEvent)[0]
        assert event.old_root == MEMBER_ROOT
        assert event.new_root == NEW_ROOT
        assert event.to_dict()["newRoot"] == str(NEW_ROOT)

    def test_events_reach_subscribers_of_shared_log(self):
        authority = AuthorityCapability.generate()
        events = EventLog()
        seen = []
        events.subscribe(seen.append)
        store = MembershipRootStore(MEMBER_ROOT, authority, events)
        store.update_root(NEW_ROOT, authority)
        assert len(seen) == 1
        assert seen[0] is events.of_type(MemberRootUpdatedEvent)[0]

    def test_same_root_is_accepted(self):
        authority = AuthorityCapability.generate()
        store = MembershipRootStore(MEMBER_ROOT, authority)
        assert store.update_root(MEMBER_ROOT, authority) == MEMBER_ROOT
        assert len(store.history) == 2

    def test_unauthorized_update(self):
        store = MembershipRootStore(MEMBER_ROOT, AuthorityCapability.generate())
        with pytest.raises(UnauthorizedError) as exc:
            store.update_root(NEW_ROOT, AuthorityCapability.generate())
        assert exc.value.to_dict()["category"] == "authorization"
        assert store.current_root() == MEMBER_ROOT
        assert len(store.history) == 1


# ══════════════════════════════════════════════════════════════════════
#  EVENT LOG
# ══════════════════════════════════════════════════════════════════════


class TestEventLog:

    def _event(self, pid=1):
        return ProposalClosedEvent(proposal_id=pid, winner=None, tally=(1, 1))

    def test_emit_and_filter(self):
        log = EventLog()
        log.emit(self._event())
        log.emit(MemberRootUpdatedEvent(old_root=1, new_root=2))
        assert len(log) == 2
        assert len(log.of_type(ProposalClosedEvent)) == 1

    def test_unsubscribe(self):
        log = EventLog()
        seen = []
        unsubscribe = log.subscribe(seen.append)
        log.emit(self._event(1))
        unsubscribe()
        unsubscribe()
        log.emit(self._event(2))
        assert [e.proposal_id for e in seen] == [1]

    def test_failing_subscriber_is_logged(self, caplog):
        log = EventLog()
        seen = []

        def broken(event):
            raise ValueError("boom")

        log.subscribe(broken)
        log.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="zkdao.governance.events"):
            log.emit(self._event())
        assert len(seen) == 1
        assert "failed on ProposalClosedEvent" in caplog.text

    def test_closed_event_to_dict(self):
        d = self._event().to_dict()
        assert d["event"] == "ProposalClosed"
        assert d["winner"] is None
        assert d["tally"] == ["1", "1"]


# ══════════════════════════════════════════════════════════════════════
#  LOGGING
# ══════════════════════════════════════════════════════════════════════


class TestLogging:

    def test_singleton(self):
        assert LogManager() is LogManager()
        assert LogManager().is_configured

    def test_get_logger_name(self):
        assert get_logger("zkdao.test").name == "zkdao.test"

    def test_sanitize_strips_ansi_and_controls(self):
        raw = "Proposal \x1b[31mred\x1b[0m title\r\x07"
        assert TerminalSafeFormatter.sanitize(raw) == "Proposal red title"

    def test_sanitize_keeps_newlines_and_tabs(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_formatter_sanitizes_record(self):
        formatter = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.LogRecord(
            name="zkdao", level=logging.INFO, pathname="", lineno=0,
            msg="title=\x1b[2Jgone", args=(), exc_info=None,
        )
        assert formatter.format(record) == "title=gone"

    def test_valid_log_format_kept(self):
        fmt = "%(levelname)s - %(message)s"
        assert LogManager.validate_log_format(fmt) == fmt

    def test_malformed_log_format_falls_back(self):
        default = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
        assert LogManager.validate_log_format("(message)s only") == default

    def test_date_format(self):
        assert LogManager.validate_date_format("%Y-%m-%d") == "%Y-%m-%d"
        assert LogManager.validate_date_format("not a date") == "%Y-%m-%dT%H:%M:%S"


class TestConstants:

    def test_parse_bool(self):
        assert parse_bool(" TRUE ") is True
        assert parse_bool("false") is False
        assert parse_bool("maybe") == "maybe"
        assert parse_bool(5) == 5

    def test_config_wrappers(self):
        flag = ConfigBool(False, True)
        assert flag == False  # noqa: E712
        assert str(flag) == "False"
        assert flag.default() is True
        text = ConfigString("DEBUG", "INFO")
        assert text == "DEBUG"
        assert text.default() == "INFO"
