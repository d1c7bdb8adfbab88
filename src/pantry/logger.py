"""Structured logging for pantry.

All loggers live under the ``pantry`` tree and share one stderr handler
with a coloured, field-aware formatter. Extra context travels as
``extra={"fields": {...}}`` and renders as ``key=value`` pairs.

``EventLog`` sits on top: it turns server events into log records and fans
them out to sinks (an in-memory recorder, a plain-text file). Emitting an
event never raises.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import fields as dataclass_fields, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from pantry.events import ServerEvent


LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "OFF": logging.CRITICAL + 1,
}

_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[31m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_BLUE = "\033[34m"
_MAGENTA = "\033[35m"
_CYAN = "\033[36m"

_LEVEL_TAGS: dict[int, tuple[str, str]] = {
    logging.DEBUG: ("[DEBUG]", _MAGENTA),
    logging.INFO: ("[INFO]", _CYAN),
    logging.WARNING: ("[WARN]", _YELLOW + _BOLD),
    logging.ERROR: ("[ERROR]", _RED + _BOLD),
    logging.CRITICAL: ("[ERROR]", _RED + _BOLD),
}


class _Paint:
    """ANSI colouring that can be switched off."""

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled

    def __call__(self, text: str, code: str) -> str:
        return f"{code}{text}{_RESET}" if self.enabled else text

    def level(self, levelno: int) -> str:
        tag, code = _LEVEL_TAGS.get(levelno, ("[INFO]", _CYAN))
        return self(tag, code)

    def fields(self, fields: dict[str, Any]) -> str:
        parts = [
            f"{self(key, _DIM)}={self(repr(value), _GREEN) if isinstance(value, str) else value}"
            for key, value in fields.items()
        ]
        return "".join(f" {part}" for part in parts)


class FormatterFn(Protocol):
    def __call__(self, record: logging.LogRecord, paint: _Paint) -> str: ...


def verbose(record: logging.LogRecord, paint: _Paint) -> str:
    """``12:00:01.042 [WARN] pantry.events:emit:301 message key='value'``"""
    stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
    location = f"{record.name}:{record.funcName}:{record.lineno}"
    message = record.getMessage()
    if record.levelno >= logging.ERROR:
        message = paint(message, _RED)
    elif record.levelno >= logging.WARNING:
        message = paint(message, _YELLOW)
    return (
        f"{paint(stamp, _DIM)} {paint.level(record.levelno)} {paint(location, _BLUE)} "
        f"{message}{paint.fields(_fields_of(record))}"
    )


def compact(record: logging.LogRecord, paint: _Paint) -> str:
    stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
    return (
        f"{paint(stamp, _DIM)} {paint.level(record.levelno)} "
        f"{record.getMessage()}{paint.fields(_fields_of(record))}"
    )


def minimal(record: logging.LogRecord, paint: _Paint) -> str:
    return f"{paint.level(record.levelno)} {record.getMessage()}"


FORMATTERS: dict[str, FormatterFn] = {
    "verbose": verbose,
    "compact": compact,
    "minimal": minimal,
}


def _fields_of(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "fields", {})


class _PantryFormatter(logging.Formatter):
    def __init__(self, fn: FormatterFn, colors: bool) -> None:
        super().__init__()
        self.fn = fn
        self.paint = _Paint(colors)

    def format(self, record: logging.LogRecord) -> str:
        text = self.fn(record, self.paint)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


_logger = logging.getLogger("pantry")
_logger.setLevel(logging.INFO)
_logger.propagate = False

_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(_PantryFormatter(verbose, sys.stderr.isatty()))
_logger.addHandler(_handler)


def parse_level(name: str) -> int:
    try:
        return LEVELS[name.upper()]
    except KeyError:
        msg = f"Unknown log level: {name!r}"
        raise ValueError(msg) from None


def configure(
    *,
    level: int | str = logging.INFO,
    formatter: str = "verbose",
    colors: bool | None = None,
) -> None:
    """Apply level, console format and colours to the ``pantry`` logger.

    Parameters
    ----------
    level : int | str
        A ``logging`` level or one of ``LEVELS`` (``"OFF"`` silences pantry).
    formatter : str
        ``"verbose"``, ``"compact"`` or ``"minimal"``.
    colors : bool | None
        Force ANSI colours on or off; ``None`` colours only a TTY stderr.

    Raises
    ------
    ValueError
        If *level* or *formatter* is unknown.
    """
    levelno = parse_level(level) if isinstance(level, str) else level
    try:
        fn = FORMATTERS[formatter]
    except KeyError:
        msg = f"Unknown log format: {formatter!r}"
        raise ValueError(msg) from None
    _logger.setLevel(levelno)
    _handler.setFormatter(
        _PantryFormatter(fn, sys.stderr.isatty() if colors is None else colors)
    )


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"pantry.{component}")


type EventSink = Callable[[ServerEvent], None]


class EventRecorder:
    """Sink that keeps every event in memory.

    Examples
    --------
    >>> recorder = EventRecorder()
    >>> log = EventLog(sinks=[recorder])
    >>> recorder.events
    []
    """

    def __init__(self) -> None:
        self.events: list[ServerEvent] = []

    def __call__(self, event: ServerEvent) -> None:
        self.events.append(event)

    def of_type[E](self, kind: type[E]) -> list[E]:
        return [e for e in self.events if isinstance(e, kind)]

    def clear(self) -> None:
        self.events.clear()


class FileSink:
    """Sink that appends one timestamped line per event to a text file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def __call__(self, event: ServerEvent) -> None:
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"{stamp}: {event.describe()}\n")


class EventLog:
    """Fire-and-forget event emitter.

    Each event is logged on ``pantry.events`` at its own level and then
    handed to every sink. Sink failures are logged and swallowed.
    """

    def __init__(self, sinks: list[EventSink] | None = None) -> None:
        self._sinks: list[EventSink] = list(sinks or [])
        self._logger = get_logger("events")

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def emit(self, event: ServerEvent) -> None:
        fields = _event_fields(event)
        self._logger.log(event.level, event.describe(), extra={"fields": fields})
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception:
                self._logger.exception(
                    "Event sink failed",
                    extra={"fields": {"sink": repr(sink), "event": type(event).__name__}},
                )

    __call__ = emit


def _event_fields(event: ServerEvent) -> dict[str, Any]:
    if not is_dataclass(event):
        return {}
    return {
        f.name: str(getattr(event, f.name))
        for f in dataclass_fields(event)
        if f.name not in ("text", "recipe")
    }
