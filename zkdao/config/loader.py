"""
zkdao TOML Configuration Loader

Loads every section of zkdao.toml at startup with environment variable
overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [dao] initial_member_root        → ZKDAO_MEMBER_ROOT
    [dao] restrict_proposal_creation → ZKDAO_RESTRICT_PROPOSALS
    [dao] log_level                  → ZKDAO_LOG_LEVEL
    [verifier] backend               → ZKDAO_VERIFIER_BACKEND
    [verifier] timeout_seconds       → ZKDAO_VERIFY_TIMEOUT
    [weights] quadratic_enabled      → ZKDAO_QUADRATIC_ENABLED

Membership roots are field elements wider than TOML integers, so they may
be written as decimal or 0x-prefixed strings.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    DEFAULT_VERIFY_TIMEOUT_SECONDS,
    VERIFIER_BACKENDS,
    ZKDAO_CONFIG,
    ZKDAO_NAME,
    parse_bool,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_root(value: Any) -> int:
    """Accept an int, a decimal string or a 0x-prefixed hex string."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid membership root: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError as e:
            raise ConfigurationError(f"Invalid membership root: {value!r}") from e
    raise ConfigurationError(f"Invalid membership root type: {type(value).__name__}")


def _env_bool(name: str) -> Optional[bool]:
    v = os.environ.get(name)
    if v is None or not v.strip():
        return None
    parsed = parse_bool(v)
    if not isinstance(parsed, bool):
        raise ConfigurationError(f"{name} must be True or False, got {v!r}")
    return parsed


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------


@dataclass
class DAOSectionConfig:
    """[dao] section."""
    name: str = str(ZKDAO_NAME)
    initial_member_root: int = 0
    restrict_proposal_creation: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOSectionConfig":
        return cls(
            name=data.get("name", str(ZKDAO_NAME)),
            initial_member_root=parse_root(data.get("initial_member_root", 0)),
            restrict_proposal_creation=data.get("restrict_proposal_creation", True),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("ZKDAO_MEMBER_ROOT"):
            self.initial_member_root = parse_root(v)
        if (b := _env_bool("ZKDAO_RESTRICT_PROPOSALS")) is not None:
            self.restrict_proposal_creation = b
        if v := os.environ.get("ZKDAO_LOG_LEVEL"):
            self.log_level = v.upper()


@dataclass
class VerifierConfig:
    """[verifier] section."""
    backend: str = "mock"
    timeout_seconds: float = DEFAULT_VERIFY_TIMEOUT_SECONDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifierConfig":
        return cls(
            backend=data.get("backend", "mock"),
            timeout_seconds=float(data.get("timeout_seconds", DEFAULT_VERIFY_TIMEOUT_SECONDS)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ZKDAO_VERIFIER_BACKEND"):
            self.backend = v
        if v := os.environ.get("ZKDAO_VERIFY_TIMEOUT"):
            try:
                self.timeout_seconds = float(v)
            except ValueError as e:
                raise ConfigurationError(f"ZKDAO_VERIFY_TIMEOUT must be a number, got {v!r}") from e

    def validate(self) -> None:
        if self.backend not in VERIFIER_BACKENDS:
            raise ConfigurationError(
                f"verifier.backend must be one of {VERIFIER_BACKENDS}, got {self.backend!r}"
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError("verifier.timeout_seconds must be > 0")


@dataclass
class WeightsConfig:
    """[weights] section."""
    quadratic_enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeightsConfig":
        return cls(quadratic_enabled=data.get("quadratic_enabled", True))

    def apply_env(self) -> None:
        if (b := _env_bool("ZKDAO_QUADRATIC_ENABLED")) is not None:
            self.quadratic_enabled = b


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class DAOConfig:
    """Complete zkdao configuration."""
    dao: DAOSectionConfig = field(default_factory=DAOSectionConfig)
    verifier: VerifierConfig = field(default_factory=VerifierConfig)
    weights: WeightsConfig = field(default_factory=WeightsConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        return cls(
            dao=DAOSectionConfig.from_dict(data.get("dao", {})),
            verifier=VerifierConfig.from_dict(data.get("verifier", {})),
            weights=WeightsConfig.from_dict(data.get("weights", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DAOConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (with env overrides applied).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.dao.apply_env()
        self.verifier.apply_env()
        self.weights.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if not self.dao.name:
            raise ConfigurationError("dao.name cannot be empty")
        if self.dao.log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log_level: {self.dao.log_level}")
        if not isinstance(self.dao.restrict_proposal_creation, bool):
            raise ConfigurationError("dao.restrict_proposal_creation must be a boolean")
        if not isinstance(self.weights.quadratic_enabled, bool):
            raise ConfigurationError("weights.quadratic_enabled must be a boolean")
        self.verifier.validate()
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "dao": {
                "name": self.dao.name,
                "initial_member_root": hex(self.dao.initial_member_root),
                "restrict_proposal_creation": self.dao.restrict_proposal_creation,
                "log_level": self.dao.log_level,
            },
            "verifier": {
                "backend": self.verifier.backend,
                "timeout_seconds": self.verifier.timeout_seconds,
            },
            "weights": {
                "quadratic_enabled": self.weights.quadratic_enabled,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DAOConfig:
    """
    Load DAO configuration.

    Resolution order:
        1. Explicit *path* argument
        2. ZKDAO_CONFIG env var
        3. ZKDAO_CONFIG from .env, else ./zkdao.toml
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("ZKDAO_CONFIG", str(ZKDAO_CONFIG))

    return DAOConfig.from_file(path)
