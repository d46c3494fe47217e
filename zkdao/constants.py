"""
zkdao Constants

Protocol constants shared with proof-generating clients, plus the
environment-driven settings read once from ``.env`` at import time.
Environment settings are exposed as ``ConfigString`` / ``ConfigBool`` so
callers can always fall back to the shipped default.
"""
from dotenv import dotenv_values


# ==================================================================================
# PROPOSAL PARAMETERS
# ==================================================================================
FIRST_PROPOSAL_ID = 1
MIN_PROPOSAL_OPTIONS = 2
MAX_PROPOSAL_DURATION_SECONDS = 365 * 86400  # one year


# WARNING: CLIENTS BUILD PROOFS AGAINST SIGNAL_PREFIX. CHANGING IT MAKES
# EVERY EXISTING PROOF FAIL THE SIGNAL CHECK.

# ==================================================================================
# VOTE BINDING
# ==================================================================================
# Signal bound into every proof: keccak256("VOTE_" + optionIndex)
SIGNAL_PREFIX = "VOTE_"


# ==================================================================================
# VERIFIER
# ==================================================================================
DEFAULT_VERIFY_TIMEOUT_SECONDS = 10.0
VERIFIER_BACKENDS = ("mock", "external")


# ==================================================================================
# LOG FILES
# ==================================================================================
LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB per file
LOG_BACKUP_COUNT = 5


# ==================================================================================
# ENVIRONMENT WRAPPERS
# ==================================================================================
class ConfigString(str):
    """A ``str`` read from the environment that remembers its shipped default."""

    def __new__(cls, value, default):
        self = super().__new__(cls, value)
        self._default = default
        return self

    def default(self):
        return self._default


class ConfigBool(int):
    """A flag read from the environment; behaves like ``bool`` and keeps its default."""

    def __new__(cls, value, default):
        self = super().__new__(cls, 1 if value else 0)
        self._default = default
        return self

    def default(self):
        return self._default

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__

    def __str__(self):
        return "True" if self else "False"

    __repr__ = __str__


def parse_bool(v):
    """
    ``"true"`` / ``"false"`` in any case (surrounding blanks ignored) become
    ``True`` / ``False``. Anything else is returned untouched.
    """
    if isinstance(v, str):
        word = v.strip().lower()
        if word == "true":
            return True
        if word == "false":
            return False
    return v


def _setting(env, key, default):
    raw = env.get(key)
    value = parse_bool(default if raw is None else raw)
    if isinstance(value, bool):
        return ConfigBool(value, parse_bool(default))
    return ConfigString(value, default)


# ==================================================================================
# ENVIRONMENT CONFIGURATION
# ==================================================================================
_env = dotenv_values(".env")

ZKDAO_CONFIG = _setting(_env, "ZKDAO_CONFIG", "zkdao.toml")
ZKDAO_NAME = _setting(_env, "ZKDAO_NAME", "privacy-voting-dao")

LOG_LEVEL = _setting(_env, "LOG_LEVEL", "INFO")
LOG_FORMAT = _setting(_env, "LOG_FORMAT", "%(asctime)s - %(levelname)s - %(name)s - %(message)s")
LOG_DATE_FORMAT = _setting(_env, "LOG_DATE_FORMAT", "%Y-%m-%dT%H:%M:%S")
LOG_CONSOLE_HIGHLIGHTING = _setting(_env, "LOG_CONSOLE_HIGHLIGHTING", "True")
LOG_FILE_OUTPUT = _setting(_env, "LOG_FILE_OUTPUT", "False")
