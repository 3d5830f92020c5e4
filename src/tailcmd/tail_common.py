"""
tail_common.py: Shared library for the tail command.

This module consolidates the reusable pieces the tail engine and its host
command depend on:
- Configuration (the immutable TailConfig record and its derived values).
- Error types (read, write and cancellation failures).
- Cooperative cancellation (CancelToken with optional deadline).
- Named input sources handed to the engine.
- Logging setup.
"""

import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

DEFAULT_LINE_COUNT = 10
LOG_LEVEL_ENV = "TAILCMD_LOG_LEVEL"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class TailConfig:
    """
    Immutable configuration for one tail invocation.

    Byte mode is active whenever `bytes` is non-zero; otherwise line mode is
    used with `lines`, or DEFAULT_LINE_COUNT when neither count is set.

    start_from_line, follow and follow_retry are accepted but have no effect.
    verbose/always_headers only matter to the host when deciding whether a
    single source gets a header.
    """
    lines: int = 0
    bytes: int = 0
    start_from_line: int = 0
    follow: bool = False
    follow_retry: bool = False
    quiet: bool = False
    suppress_headers: bool = False
    verbose: bool = False
    always_headers: bool = False

    def __post_init__(self):
        for field_name in ("lines", "bytes", "start_from_line"):
            value = getattr(self, field_name)
            if value < 0:
                raise ValueError(f"{field_name} must be non-negative, got {value}")

    @classmethod
    def from_args(cls, args) -> "TailConfig":
        """Build a TailConfig from a parsed argparse namespace."""
        return cls(
            lines=args.lines or 0,
            bytes=args.bytes or 0,
            follow=args.follow,
            follow_retry=args.follow_retry,
            quiet=args.quiet,
            verbose=args.verbose,
        )

    @property
    def byte_mode(self) -> bool:
        return self.bytes > 0

    @property
    def line_count(self) -> int:
        if self.lines == 0 and self.bytes == 0:
            return DEFAULT_LINE_COUNT
        return self.lines

    @property
    def headers_suppressed(self) -> bool:
        return self.quiet or self.suppress_headers

    @property
    def headers_forced(self) -> bool:
        return self.verbose or self.always_headers

    @property
    def follow_requested(self) -> bool:
        return self.follow or self.follow_retry


# =============================================================================
# ERRORS
# =============================================================================

class TailError(Exception):
    """Base class for failures while tailing a source."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source

    def __str__(self):
        message = super().__str__()
        if self.source:
            return f"{self.source}: {message}"
        return message


class ReadFailure(TailError):
    """The source stream raised while being scanned or bulk-read."""


class WriteFailure(TailError):
    """The output sink rejected a write."""


class Cancelled(TailError):
    """Cancellation was observed while processing a source."""

    def __init__(self, message: str = "operation cancelled", source: Optional[str] = None):
        super().__init__(message, source)
        # Set by tail_sources to the partial TailResult.
        self.result = None


# =============================================================================
# CANCELLATION
# =============================================================================

class CancelToken:
    """
    Cooperative cancellation signal shared between the caller and the engine.

    The engine polls check() at its natural suspension points; nothing is
    interrupted preemptively. A deadline (seconds from now) turns into a
    cancellation once it passes.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = False
        self._reason = "operation cancelled"
        self._deadline = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout

    def cancel(self, reason: str = "operation cancelled"):
        self._reason = reason
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "deadline exceeded"
            self._cancelled = True
        return self._cancelled

    def check(self, source: Optional[str] = None):
        """Raise Cancelled if cancellation has been requested."""
        if self.cancelled:
            raise Cancelled(self._reason, source)


# =============================================================================
# SOURCES
# =============================================================================

@dataclass
class Source:
    """A named, already-opened binary input stream. The engine never closes it."""
    name: str
    stream: BinaryIO


# =============================================================================
# LOGGING
# =============================================================================

def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None):
    """Configures Python's logging module. Output goes to stderr; stdout carries data."""
    log_level_str = (log_level or os.environ.get(LOG_LEVEL_ENV) or "WARNING").upper()

    numeric_level = getattr(logging, log_level_str, None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {log_level_str}')

    log_format = '%(asctime)s - %(levelname)s - %(message)s'

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=numeric_level, format=log_format, handlers=handlers, force=True)
    logging.debug(f"Logging setup with level {log_level_str}.")
