"""
zkdao Vote Hashing

Keccak-256 (the Ethereum variant, not NIST SHA3-256) and the signal hash
that binds a ballot to its declared option. The signal must match what
wallets compute with ``solidityPackedKeccak256(["string"], ["VOTE_<i>"])``.
"""

from typing import Union

from Crypto.Hash import keccak as _keccak

from ..constants import SIGNAL_PREFIX


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    32-byte Keccak-256 digest.

    A ``str`` argument is read as hex, with or without a ``0x`` prefix.
    """
    if isinstance(data, str):
        data = bytes.fromhex(data[2:] if data[:2].lower() == "0x" else data)
    return _keccak.new(data=data, digest_bits=256).digest()


def keccak256_hex(data: Union[bytes, str]) -> str:
    """``0x``-prefixed hex form of :func:`keccak256`."""
    return "0x" + keccak256(data).hex()


def vote_signal(option_index: int) -> str:
    """Canonical signal string for a choice, e.g. ``VOTE_0``."""
    return f"{SIGNAL_PREFIX}{int(option_index)}"


def signal_hash(option_index: int) -> int:
    """
    Hash of the canonical vote signal for *option_index*, as a big-endian
    integer. Packed encoding of a lone string is its raw UTF-8 bytes.
    """
    return int.from_bytes(keccak256(vote_signal(option_index).encode("utf-8")), "big")
