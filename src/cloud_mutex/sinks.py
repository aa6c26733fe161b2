"""Diagnostic sinks for progress lines written by the mutex.

A sink receives one line per event (attempt started, attempt failed, lock
object uploaded or deleted). Sinks are diagnostic only: a failing sink never
changes the outcome of ``lock()`` or ``unlock()``.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Protocol, TextIO, runtime_checkable


@runtime_checkable
class DiagnosticSink(Protocol):
    """Append-only text output."""

    def write_line(self, text: str) -> None:
        """Write one line of diagnostic text."""


class NullSink:
    """Discards every line. The default sink."""

    def write_line(self, text: str) -> None:
        del text


class StreamSink:
    """Writes lines to a text stream such as ``sys.stdout``."""

    def __init__(self, stream: TextIO):
        self.stream = stream

    def write_line(self, text: str) -> None:
        with contextlib.suppress(OSError, ValueError):
            self.stream.write(f"{text}\n")
            self.stream.flush()


class LoggerSink:
    """Forwards lines to a logger at a fixed level."""

    def __init__(self, logger: logging.Logger | logging.LoggerAdapter, level: int = logging.DEBUG):
        self.logger = logger
        self.level = level

    def write_line(self, text: str) -> None:
        self.logger.log(self.level, "%s", text)


class CollectingSink:
    """Keeps lines in memory; handy for tests and post-mortem inspection."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._lock = threading.Lock()

    def write_line(self, text: str) -> None:
        with self._lock:
            self._lines.append(text)

    @property
    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()


def as_sink(target: Any) -> DiagnosticSink:
    """Coerce ``target`` into a sink.

    Accepts ``None`` (discard), any object with ``write_line``, a logger or
    logger adapter, or a text stream with ``write``.
    """
    if target is None:
        return NullSink()
    if isinstance(target, (logging.Logger, logging.LoggerAdapter)):
        return LoggerSink(target)
    if isinstance(target, DiagnosticSink):
        return target
    if callable(getattr(target, "write", None)):
        return StreamSink(target)
    raise TypeError(f"cannot use {type(target).__name__} as a diagnostic sink")
