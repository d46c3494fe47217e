"""
zkdao Logging
=============

Process-wide logging setup for zkdao. Console output goes through a
``rich`` handler with governance-aware highlighting; an optional rotating
log file receives the same records. Every record passes through
``TerminalSafeFormatter`` because proposal titles and option labels are
caller-supplied text.

Vote handling logs only public values (proposal ids, option indices,
nullifier hashes, roots). Nothing that could link a ballot to a member
ever reaches a handler.

Usage:
    >>> from zkdao.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Proposal #1 created")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)


LOG_FILE_PATH = Path(__file__).resolve().parent.parent / "logs" / "zkdao.log"

# %(name)s style placeholders; a bare "(name)s" without the percent sign is a typo
_PLACEHOLDER_RE = re.compile(r"(%?)\(([A-Za-z_]\w*)\)[A-Za-z]")
_DATE_DIRECTIVE_RE = re.compile(r"%[-_0^#]*[EO]?[A-Za-z]")

ZKDAO_THEME = Theme({
    "zkdao.level_debug":    "bold dim",
    "zkdao.level_info":     "bold green",
    "zkdao.level_warning":  "bold yellow",
    "zkdao.level_error":    "bold red",
    "zkdao.level_critical": "bold red reverse",
    "zkdao.logger_name":    "magenta",
    "zkdao.timestamp":      "bold cyan",
    "zkdao.proposal":       "bold cyan",
    "zkdao.option":         "cyan",
    "zkdao.hash":           "dim",
    "zkdao.error_kind":     "bold red",
    "zkdao.winner":         "bold green",
    "zkdao.no_winner":      "bold yellow",
})


def _stderr_notice(message: str) -> None:
    # Logging is not up yet when this runs
    stamp = time.strftime("%Y-%m-%d %H:%M:%S")
    print(f"{stamp} - zkdao.logger - {message}", file=sys.stderr)


class LogManager:
    """
    One-time logging bootstrap shared by every zkdao module.

    ``LogManager()`` always returns the same object. ``configure`` installs
    handlers on the root logger the first time it is called and is a no-op
    afterwards; ``set_level`` may be called at any time.
    """

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._configured = False
                    cls._instance = instance
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    # ── Format checks ─────────────────────────────────────────────────

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Return *log_format* if it is a usable ``%``-style record format,
        otherwise the default from the environment constants.
        """
        fallback = str(LOG_FORMAT.default())
        if not log_format:
            return fallback
        log_format = str(log_format)

        placeholders = _PLACEHOLDER_RE.findall(log_format)
        if not placeholders or any(not percent for percent, _ in placeholders):
            _stderr_notice(f"Malformed log format {log_format!r}. Using default.")
            return fallback

        sample = logging.LogRecord("zkdao", logging.INFO, __file__, 0, "sample", (), None)
        try:
            logging.Formatter(fmt=log_format).format(sample)
        except (KeyError, ValueError, TypeError) as e:
            _stderr_notice(f"Log format rejected ({e}). Using default.")
            return fallback
        return log_format

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """Return *date_format* if it holds at least one strftime directive."""
        fallback = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return fallback
        date_format = str(date_format)
        if not _DATE_DIRECTIVE_RE.search(date_format.replace("%%", "")):
            _stderr_notice(f"Invalid date format {date_format!r}. Using default.")
            return fallback
        try:
            time.strftime(date_format, time.gmtime(0))
        except ValueError as e:
            _stderr_notice(f"Date format rejected ({e}). Using default.")
            return fallback
        return date_format

    # ── Setup ─────────────────────────────────────────────────────────

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the root logger.

        Args:
            log_level:      Level name; defaults to ``LOG_LEVEL``
            log_file:       Rotating log path; defaults to ``logs/zkdao.log``
            console_output: Attach the console handler
            file_output:    Attach the file handler; defaults to ``LOG_FILE_OUTPUT``
        """
        with self._lock:
            if self._configured:
                return

            level = _level_number(log_level or LOG_LEVEL)
            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()

            # UTC so timestamps line up with proposal close times
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(_console_handler(bool(LOG_CONSOLE_HIGHLIGHTING)))
            if LOG_FILE_OUTPUT if file_output is None else file_output:
                handlers.append(_file_handler(log_file or LOG_FILE_PATH))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    def set_level(self, log_level: str) -> None:
        """Change the level of the root logger and every attached handler."""
        level = _level_number(log_level)
        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


def _level_number(level_name) -> int:
    return getattr(logging, str(level_name).upper(), logging.INFO)


def _console_handler(highlighting: bool) -> logging.Handler:
    if not highlighting:
        return logging.StreamHandler(sys.stdout)
    return RichHandler(
        console=Console(theme=ZKDAO_THEME, highlight=False),
        highlighter=ZKDAOLogHighlighter(),
        keywords=[],
        markup=False,
        rich_tracebacks=True,
        show_time=False,
        show_level=False,
        show_path=False,
    )


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=str(path),
        maxBytes=LOG_MAX_FILE_SIZE,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips terminal escape sequences and control characters
    from the rendered record (CWE-117). Tabs and newlines survive.
    """

    _UNSAFE_RE = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"          # CSI sequences
        r"|\x1b[@-Z\\-_]"                   # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"        # C0 controls except \t and \n, plus DEL
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._UNSAFE_RE.sub("", text)

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class ZKDAOLogHighlighter(RegexHighlighter):
    """Colours proposal references, option indices, long hashes and rejection kinds."""

    base_style = "zkdao."
    highlights = [
        r"(?P<timestamp>^.*?UTC)",
        r"(?P<level_debug>\bDEBUG\b)|(?P<level_info>\bINFO\b)|(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\bERROR\b)|(?P<level_critical>\bCRITICAL\b)",
        r"-\s+[A-Z]+\s+-\s+(?P<logger_name>[\w.]+)\s+-",
        r"(?P<proposal>[Pp]roposal #\d+)",
        r"(?P<option>\boption=\d+\b)",
        r"(?P<hash>\b(?:0x)?[0-9a-fA-F]{16,}\b)",
        r"(?P<error_kind>\b(?:InvalidOptions?|OutOfBounds|NotFound|NullifierAlreadyUsed"
        r"|RootMismatch|SignalMismatch|ProofInvalid|InvalidWeight|MalformedSubmission|ProposalClosed"
        r"|AlreadyClosed|TooEarly|Unauthorized)\b)",
        r"(?P<winner>\bwinner=\d+\b)",
        r"(?P<no_winner>\bwinner=None\b)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring the logging system on first use."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    """Adjust the active log level (used when a config file overrides the env)."""
    _manager.set_level(log_level)


_manager.configure()
