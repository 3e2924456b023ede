"""In-memory debug log shared by the ACP client and the ``logging`` hierarchy.

Entries from :data:`log` (the agent-side logger) and from any
``nanocode_acp.*`` logging record land in one ring buffer that a host can
render live or export with :func:`export_logs_to_file`.
"""

from __future__ import annotations

import logging
import time
import traceback
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from textual import log as textual_log

from nanocode_acp.limits import MAX_LOG_MESSAGE_LENGTH

MAX_LOG_LINES = 2000
TRUNCATION_MARKER = "... [truncated]"


class LogSource(Enum):
    """Where an entry came from."""

    AGENT = "agent"
    LOGGING = "python"


@dataclass(slots=True)
class LogEntry:
    level: str
    message: str
    created: float
    source: LogSource

    def render(self) -> str:
        stamp = datetime.fromtimestamp(self.created).isoformat(sep=" ", timespec="milliseconds")
        return f"{stamp} {self.level:<7} [{self.source.value}] {self.message}"


log_buffer: deque[LogEntry] = deque(maxlen=MAX_LOG_LINES)


def _truncate(text: str) -> str:
    if len(text) <= MAX_LOG_MESSAGE_LENGTH:
        return text
    return text[:MAX_LOG_MESSAGE_LENGTH] + TRUNCATION_MARKER


class NanocodeLogger:
    """Callable logger for agent activity.

    Positional arguments are joined with spaces and keyword arguments are
    appended as ``key=value`` pairs, so ``log.info("exited", code=2)``
    records ``exited code=2``. Entries also go to Textual's devtools log.
    """

    def __call__(self, *args: object, **kwargs: Any) -> None:
        self.info(*args, **kwargs)

    def record(self, level: str, *args: object, **kwargs: Any) -> None:
        parts = [str(arg) for arg in args]
        parts.extend(f"{key}={value!r}" for key, value in kwargs.items())
        text = _truncate(" ".join(parts))
        log_buffer.append(LogEntry(level, text, time.time(), LogSource.AGENT))
        textual_log(text)

    def debug(self, *args: object, **kwargs: Any) -> None:
        self.record("DEBUG", *args, **kwargs)

    def info(self, *args: object, **kwargs: Any) -> None:
        self.record("INFO", *args, **kwargs)

    def warning(self, *args: object, **kwargs: Any) -> None:
        self.record("WARNING", *args, **kwargs)

    def error(self, *args: object, **kwargs: Any) -> None:
        self.record("ERROR", *args, **kwargs)

    def exception(self, *args: object, **kwargs: Any) -> None:
        """Log at ERROR level with the active traceback appended."""
        self.record("ERROR", *args, traceback.format_exc(), **kwargs)


class DebugLogHandler(logging.Handler):
    """Logging handler that copies records into the debug buffer."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = _truncate(self.format(record))
        except Exception:
            self.handleError(record)
            return
        log_buffer.append(LogEntry(record.levelname, text, record.created, LogSource.LOGGING))


def setup_debug_logging(level: int = logging.INFO) -> None:
    """Route the ``nanocode_acp`` logger hierarchy into the debug buffer.

    Calling it again only updates the level.
    """
    package_logger = logging.getLogger("nanocode_acp")
    package_logger.setLevel(level)
    if any(isinstance(handler, DebugLogHandler) for handler in package_logger.handlers):
        return

    handler = DebugLogHandler()
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    package_logger.addHandler(handler)
    log.debug("Debug logging enabled", level=logging.getLevelName(level))


def clear_log_buffer() -> None:
    log_buffer.clear()


def export_logs_to_file(file_path: str | Path) -> int:
    """Write every buffered entry to ``file_path``.

    Returns:
        Number of entries written.
    """
    entries = list(log_buffer)
    output_path = Path(file_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"# nanocode-acp debug log ({len(entries)} entries)", ""]
    lines.extend(entry.render() for entry in entries)
    output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return len(entries)


log = NanocodeLogger()
