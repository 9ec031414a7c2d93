"""
lcbridge Logging
================

Process-wide logging for the bridge engine. The root logger is configured
once, on import, from the ``LOG_*`` keys in ``.env``: a ``rich`` console
handler (or a plain stream handler when highlighting is off) and, if
enabled, a rotating file under ``logs/``.

Usage:
    >>> from lcbridge.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Lock 0x1f2e... amount=1000 'WETH' → chain=1")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "lcbridge.log"

BRIDGE_THEME = Theme({
    "lcbridge.amount":         "bold white",
    "lcbridge.chain":          "bold magenta",
    "lcbridge.event":          "bold blue",
    "lcbridge.hex_id":         "cyan",
    "lcbridge.level_critical": "bold red reverse",
    "lcbridge.level_debug":    "bold dim",
    "lcbridge.level_error":    "bold red",
    "lcbridge.level_info":     "bold green",
    "lcbridge.level_warning":  "bold yellow",
    "lcbridge.logger_name":    "magenta",
    "lcbridge.rejected":       "bold red",
    "lcbridge.timestamp":      "bold cyan",
})


def _numeric_level(level: str) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


class LogManager:
    """
    Singleton owning the root logger's handlers.

    ``configure`` runs at most once per process; ``set_level`` adjusts the
    level afterwards (e.g. from the ``[logging]`` section of bridge.toml).
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._configured = False
        return cls._instance

    @staticmethod
    def checked_formats(log_format: str, date_format: str) -> Tuple[str, str]:
        """
        Return the configured formats, or the defaults if they cannot
        format a sample record.
        """
        record = logging.LogRecord("lcbridge", logging.INFO, "", 0, "sample", (), None)
        try:
            logging.Formatter(fmt=str(log_format), datefmt=str(date_format)).format(record)
        except (ValueError, KeyError, TypeError) as e:
            print(f"lcbridge.logger - invalid LOG_FORMAT/LOG_DATE_FORMAT ({e}). Using defaults.", file=sys.stderr)
            return str(LOG_FORMAT.default()), str(LOG_DATE_FORMAT.default())
        return str(log_format), str(date_format)

    @staticmethod
    def _console_handler(formatter: logging.Formatter) -> logging.Handler:
        if LOG_CONSOLE_HIGHLIGHTING:
            handler = RichHandler(
                console=Console(theme=BRIDGE_THEME, highlight=False),
                highlighter=BridgeLogHighlighter(),
                keywords=[],
                rich_tracebacks=True,
                show_path=False,
                show_time=False,
                show_level=False,
                markup=False,
            )
        else:
            handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        return handler

    @staticmethod
    def _file_handler(formatter: logging.Formatter) -> logging.Handler:
        LOG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=str(LOG_FILE_PATH),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setFormatter(formatter)
        return handler

    def configure(self) -> None:
        """Install the console (and optional file) handler on the root logger."""
        with self._lock:
            if self._configured:
                return

            log_format, date_format = self.checked_formats(LOG_FORMAT, LOG_DATE_FORMAT)
            # Timestamps are UTC
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            root_logger = logging.getLogger()
            root_logger.handlers.clear()
            root_logger.addHandler(self._console_handler(formatter))
            if LOG_FILE_OUTPUT:
                root_logger.addHandler(self._file_handler(formatter))

            self._configured = True
        self.set_level(LOG_LEVEL)

    def set_level(self, log_level: str) -> None:
        """Adjust the level of the root logger and every attached handler."""
        numeric_level = _numeric_level(log_level)
        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)
        for handler in root_logger.handlers:
            handler.setLevel(numeric_level)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips ANSI escape sequences and control characters.

    Recipients and asset handles are opaque caller-supplied strings and end
    up in log lines verbatim (CWE-117).
    """

    # ANSI CSI sequences and two-byte ESC sequences
    _ansi_escape_re = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    # Control chars other than tab and newline, including CR and DEL
    _control_chars_re = re.compile(r"[\x00-\x08\x0B-\x1F\x7F]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._control_chars_re.sub("", cls._ansi_escape_re.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class BridgeLogHighlighter(RegexHighlighter):
    """
    Colors amounts, chain tags, event names and hex identifiers.

    Quoted values (recipients, asset handles) are caller-controlled and are
    left unstyled, so a crafted recipient cannot pose as an event or an id.
    """

    base_style = "lcbridge."
    highlights = [
        r"(?P<amount>\bamount=\d+\b)",
        r"(?P<chain>\bchain=\d+\b)",
        r"(?P<event>\b(Locked|Minted|Burned|Unlocked|LockRefunded|HTLCCreated|HTLCClaimed|HTLCRefunded|ChainAdded|ChainRemoved|Paused|Unpaused|FeeUpdated|FeesWithdrawn)\b)",
        r"(?P<hex_id>\b0x[0-9a-fA-F]{8,}\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<rejected>\brejected\b)",
        r"(?P<timestamp>^(.*?)UTC)",
    ]

    _quoted_value_re = re.compile(r"'[^']*'|\"[^\"]*\"")

    @classmethod
    def quoted_segments(cls, s: str) -> List[Tuple[int, int]]:
        return [(m.start(), m.end()) for m in cls._quoted_value_re.finditer(s)]

    def highlight(self, text) -> None:
        super().highlight(text)
        quoted = self.quoted_segments(text.plain)
        if quoted and text.spans:
            text.spans = [
                span for span in text.spans
                if not any(span.start < end and span.end > start for start, end in quoted)
            ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module logger; the root logger is configured on first use."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    """Change the active log level (used when a config file overrides `.env`)."""
    _manager.set_level(log_level)


_manager.configure()
