"""
zkdao Exceptions

Base exception classes shared by every zkdao subsystem. Governance errors
carry a machine-readable ``kind`` and the offending ``field`` so callers can
decide whether to re-fetch state and resubmit or abandon.
"""

from typing import Optional


class ZKDAOException(Exception):
    """Base exception for zkdao."""
    pass


class ConfigurationError(ZKDAOException):
    """Configuration error."""
    pass


class GovernanceError(ZKDAOException):
    """
    Base governance exception.

    Attributes:
        kind:  Stable error identifier (e.g. ``"NullifierAlreadyUsed"``)
        field: Name of the offending input, when there is one
    """

    kind: str = "GovernanceError"

    def __init__(self, message: str = "", field: Optional[str] = None):
        super().__init__(message or self.kind)
        self.field = field

    def to_dict(self):
        return {
            "kind": self.kind,
            "field": self.field,
            "message": str(self),
            "category": self.category,
        }

    @property
    def category(self) -> str:
        return "governance"


class AdmissionError(GovernanceError):
    """Caller-input problem. Reported immediately, never retried."""

    @property
    def category(self) -> str:
        return "admission"


class ProtocolIntegrityError(GovernanceError):
    """Malicious or stale submission. Always rejected, never partially applied."""

    @property
    def category(self) -> str:
        return "protocol-integrity"


class LifecycleError(GovernanceError):
    """Timing violation against a proposal's lifecycle."""

    @property
    def category(self) -> str:
        return "lifecycle"


class AuthorizationError(GovernanceError):
    """Caller lacks the privilege for a restricted operation."""

    @property
    def category(self) -> str:
        return "authorization"
