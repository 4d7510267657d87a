"""
Logging for every Elaina component.

``get_logger(name)`` hands out a DEBUG logger that writes coloured lines to
the terminal through prompt_toolkit and plain lines to one log file per
session under ``logs/`` (override with ``ELAINA_LOG_DIR``). Messages carry a
bracketed component tag by convention, e.g. ``[DISPATCH]``.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

LOGS_DIR = Path(os.getenv("ELAINA_LOG_DIR") or (Path(__file__).parents[3] / "logs")).resolve()

LINE_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
TIME_FORMAT = "%Y-%m-%d %H-%M-%S"

# A file touched this recently is treated as the same session (quick restart)
SESSION_REUSE_SECONDS = 60
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

LEVEL_COLOURS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[38;5;88m",
}
RESET = "\033[0m"

QUIET_LIBRARIES = (
    "discord", "discord.gateway", "discord.client", "discord.http",
    "websockets", "aiohttp", "aiosqlite",
    "openai", "openai._base_client", "httpx", "httpcore",
    "urllib3", "PIL",
)


class _ColourFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        colour = LEVEL_COLOURS.get(record.levelno)
        return f"{colour}{text}{RESET}" if colour else text


class ConsoleHandler(logging.Handler):
    """Writes records with ``print_formatted_text`` so they do not tear an active prompt."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


class _SessionLog:
    """Resolves, once per process, the file all loggers of this run share."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            self._path = self._pick()
        return self._path

    def _pick(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        now = datetime.now()
        todays = sorted(
            self.directory.glob(f"{now:%Y-%m-%d}*.log"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        if todays and now.timestamp() - todays[0].stat().st_mtime < SESSION_REUSE_SECONDS:
            return todays[0]
        return self.directory / f"{now.strftime(TIME_FORMAT)}.log"


_session = _SessionLog(LOGS_DIR)
_plain = logging.Formatter(LINE_FORMAT, datefmt=TIME_FORMAT)


def _console_formatter() -> logging.Formatter:
    try:
        tty = sys.stderr.isatty()
    except (AttributeError, ValueError):
        tty = False
    return _ColourFormatter(LINE_FORMAT, datefmt=TIME_FORMAT) if tty else _plain


def get_logger(name: str) -> logging.Logger:
    """Return the logger called ``name``, attaching Elaina's handlers on first use."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console = ConsoleHandler()
    console.setFormatter(_console_formatter())
    logger.addHandler(console)

    file_handler = RotatingFileHandler(_session.path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")
    file_handler.setFormatter(_plain)
    logger.addHandler(file_handler)
    return logger


def quiet_libraries(names=QUIET_LIBRARIES, level: int = logging.ERROR) -> None:
    """Raise third-party loggers to ``level`` and detach their handlers."""
    for name in names:
        lib_logger = logging.getLogger(name)
        lib_logger.setLevel(level)
        lib_logger.propagate = False
        lib_logger.handlers = []


def handle_exception(exc_type, exc_value, exc_traceback) -> None:
    """``sys.excepthook`` that logs uncaught exceptions; Ctrl+C keeps the default hook."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    get_logger("elaina").error("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


quiet_libraries()
