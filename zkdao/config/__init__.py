"""
zkdao Unified Configuration

Loads all sections of zkdao.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DAOConfig,
    DAOSectionConfig,
    VerifierConfig,
    WeightsConfig,
    load_config,
    parse_root,
)

__all__ = [
    "DAOConfig",
    "DAOSectionConfig",
    "VerifierConfig",
    "WeightsConfig",
    "load_config",
    "parse_root",
]
