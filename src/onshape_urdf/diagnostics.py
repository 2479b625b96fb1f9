"""Diagnostic event channel.

Library modules only emit ``logging`` records, with structured details in
``extra={"operation": ..., "context": {...}}``. Whoever wants to see them
attaches a handler: ``DiagnosticsHandler`` keeps the most recent events in
memory (for a UI log panel or an error report) and ``setup_console_logging``
prints them with rich.
"""

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "onshape_urdf"
MAX_EVENTS = 100
REDACTED = "***"


@dataclass(frozen=True)
class DiagnosticEvent:
    timestamp: str
    level: str
    logger: str
    message: str
    operation: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)


class DiagnosticsHandler(logging.Handler):
    """Keeps the last ``capacity`` records as DiagnosticEvents, newest first.

    Any string listed in ``redact`` is replaced by ``***`` in messages and
    context values.
    """

    def __init__(self, capacity: int = MAX_EVENTS, redact: Iterable[str] = (),
                 level: int = logging.DEBUG):
        super().__init__(level)
        self._events = deque(maxlen=capacity)
        self._redact = [s for s in redact if s]

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, str):
            for secret in self._redact:
                value = value.replace(secret, REDACTED)
            return value
        if isinstance(value, dict):
            return {k: self._scrub(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._scrub(v) for v in value]
        return value

    def emit(self, record: logging.LogRecord) -> None:
        try:
            context = getattr(record, "context", None)
            event = DiagnosticEvent(
                timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=self._scrub(record.getMessage()),
                operation=getattr(record, "operation", None),
                context=self._scrub(dict(context)) if isinstance(context, dict) else {},
            )
        except Exception:
            self.handleError(record)
            return
        self._events.appendleft(event)

    def events(self) -> List[DiagnosticEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def export_json(self) -> str:
        return json.dumps([asdict(e) for e in self._events], indent=2, default=str)


def attach_handler(handler: logging.Handler, level: int = logging.DEBUG) -> logging.Handler:
    """Subscribe ``handler`` to everything the package logs."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(min(logger.level or level, level))
    logger.addHandler(handler)
    return handler


def detach_handler(handler: logging.Handler) -> None:
    logging.getLogger(LOGGER_NAME).removeHandler(handler)


def setup_console_logging(level: str = "INFO", console: Optional[Console] = None) -> logging.Handler:
    """Print package log records to the terminal with rich."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
    )
    numeric = getattr(logging, level.upper())
    handler.setLevel(numeric)
    return attach_handler(handler, numeric)
