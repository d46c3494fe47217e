"""
Proof Verification Capability

The zero-knowledge proof system is an external collaborator. The validator
only ever sees ``verify(proof, public_signals) -> bool`` through the
ProofVerifier interface, so a mock and a real pairing-based verifier are
interchangeable without touching validation logic.

Public signals are passed in the order
``[merkle_root, nullifier_hash, signal_hash, external_nullifier]`` where the
external nullifier is the proposal id.
"""

import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, List, Optional, Sequence

from ..constants import DEFAULT_VERIFY_TIMEOUT_SECONDS, VERIFIER_BACKENDS
from ..exceptions import ConfigurationError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class VerifierTimeoutError(Exception):
    """The external verifier did not answer within its time budget."""


# ══════════════════════════════════════════════════════════════════════
#  INTERFACE
# ══════════════════════════════════════════════════════════════════════

class ProofVerifier(ABC):
    """Opaque membership-proof verifier."""

    @abstractmethod
    def verify(self, proof: Any, public_signals: Sequence[int]) -> bool:
        """Return True iff *proof* is valid for *public_signals*."""

    def close(self) -> None:
        """Release any resources held by the verifier."""


class MockProofVerifier(ProofVerifier):
    """
    Verifier that returns a fixed answer. Used in tests and local demos.

    Every call is recorded in ``calls`` so tests can assert on the public
    signals the validator produced.
    """

    def __init__(self, result: bool = True):
        self.result = result
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def verify(self, proof: Any, public_signals: Sequence[int]) -> bool:
        with self._lock:
            self.calls.append((proof, list(public_signals)))
        return self.result

    def __repr__(self) -> str:
        return f"<MockProofVerifier result={self.result} calls={len(self.calls)}>"


class CallableProofVerifier(ProofVerifier):
    """
    Adapter around a real verifier function.

    With a timeout the call runs on a worker thread and a late answer
    raises VerifierTimeoutError. The call is never retried and cannot be
    interrupted: a timed-out call keeps its worker busy until verify_fn
    returns, so more than ``max_workers`` hung calls starve later ones into
    timeouts. ``close`` drops queued calls and stops accepting new ones.
    """

    def __init__(
        self,
        verify_fn: Callable[[Any, List[int]], bool],
        timeout_seconds: Optional[float] = DEFAULT_VERIFY_TIMEOUT_SECONDS,
        max_workers: int = 4,
    ):
        if not callable(verify_fn):
            raise ConfigurationError("verify_fn must be callable")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be positive")
        self._verify_fn = verify_fn
        self.timeout_seconds = timeout_seconds
        self._executor: Optional[ThreadPoolExecutor] = None
        if timeout_seconds is not None:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="zkdao-verify"
            )

    def verify(self, proof: Any, public_signals: Sequence[int]) -> bool:
        signals = list(public_signals)
        if self._executor is None:
            return bool(self._verify_fn(proof, signals))

        future = self._executor.submit(self._verify_fn, proof, signals)
        try:
            return bool(future.result(timeout=self.timeout_seconds))
        except FutureTimeoutError as e:
            future.cancel()
            raise VerifierTimeoutError(
                f"Proof verification exceeded {self.timeout_seconds}s"
            ) from e

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __repr__(self) -> str:
        return f"<CallableProofVerifier timeout={self.timeout_seconds}>"


def build_verifier(
    backend: str,
    verify_fn: Optional[Callable[[Any, List[int]], bool]] = None,
    timeout_seconds: Optional[float] = DEFAULT_VERIFY_TIMEOUT_SECONDS,
) -> ProofVerifier:
    """
    Construct the verifier named by configuration.

    ``mock`` needs nothing; ``external`` needs *verify_fn*.
    """
    if backend not in VERIFIER_BACKENDS:
        raise ConfigurationError(
            f"Unknown verifier backend {backend!r}; expected one of {VERIFIER_BACKENDS}"
        )
    if backend == "mock":
        logger.warning("Using mock proof verifier: every proof is accepted")
        return MockProofVerifier(result=True)
    if verify_fn is None:
        raise ConfigurationError("The 'external' verifier backend requires a verify function")
    return CallableProofVerifier(verify_fn, timeout_seconds=timeout_seconds)
