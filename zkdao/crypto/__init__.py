"""
zkdao Crypto Module

Hash primitives shared with proof-generating clients:
- keccak256 (Solidity-compatible)
- canonical vote signal and its hash
"""

from .hashing import keccak256, keccak256_hex, signal_hash, vote_signal

__all__ = [
    'keccak256',
    'keccak256_hex',
    'signal_hash',
    'vote_signal',
]
