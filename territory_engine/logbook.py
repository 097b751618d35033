"""In-memory log book for on-device diagnostics.

Field testing happens away from a debugger, so the engine's log lines are
also kept in a bounded buffer the host can display or export as text.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
import logging
import threading
from typing import Deque, List, Optional

from .config import LOGBOOK_MAX_ENTRIES

_DISPLAY_FORMAT = "%H:%M:%S"
_EXPORT_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str


class LogBook(logging.Handler):
    """Logging handler retaining the most recent records."""

    def __init__(self, max_entries: int = LOGBOOK_MAX_ENTRIES, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._entries: Deque[LogEntry] = deque(maxlen=max(1, max_entries))
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created),
            level=record.levelname,
            message=message,
        )
        with self._entries_lock:
            self._entries.append(entry)

    @property
    def entries(self) -> List[LogEntry]:
        with self._entries_lock:
            return list(self._entries)

    @property
    def text(self) -> str:
        return "".join(
            f"[{e.timestamp.strftime(_DISPLAY_FORMAT)}] [{e.level}] {e.message}\n"
            for e in self.entries
        )

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()

    def export(self, now: Optional[datetime] = None) -> str:
        entries = self.entries
        exported_at = (now or datetime.now()).strftime(_EXPORT_FORMAT)
        lines = [
            "=== Territory engine log ===",
            f"Exported: {exported_at}",
            f"Entries: {len(entries)}",
            "",
        ]
        lines.extend(
            f"[{e.timestamp.strftime(_EXPORT_FORMAT)}] [{e.level}] {e.message}"
            for e in entries
        )
        return "\n".join(lines) + "\n"


def attach_logbook(
    logbook: Optional[LogBook] = None, logger_name: str = "territory_engine"
) -> LogBook:
    """Attach a log book to the engine's logger tree and return it.

    The logger level is lowered to the log book's level when needed so that
    info records reach the buffer without configuring the root logger.
    """

    logbook = logbook or LogBook()
    logger = logging.getLogger(logger_name)
    if logger.getEffectiveLevel() > logbook.level:
        logger.setLevel(logbook.level)
    logger.addHandler(logbook)
    return logbook


def detach_logbook(logbook: LogBook, logger_name: str = "territory_engine") -> None:
    logging.getLogger(logger_name).removeHandler(logbook)


__all__ = ["LogBook", "LogEntry", "attach_logbook", "detach_logbook"]
