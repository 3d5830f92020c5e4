"""
tail.py: Display the last N lines (or bytes) of one or more inputs.

Mimics Unix 'tail' command:
  tail <file>             - Show last 10 lines
  tail -n 20 <file>       - Show last 20 lines
  tail -c 100 <file>      - Show last 100 bytes
  tail a.log b.log        - Show both, each under a '==> name <==' header
  tail -q a.log b.log     - Same, without headers

Reading is a single forward pass; nothing seeks. -f/-F are accepted but
following a growing file is not supported.
"""

import argparse
import contextlib
import logging
import signal
import sys
from collections import deque
from dataclasses import dataclass, field, replace
from typing import BinaryIO, Iterable, List, Optional

from .tail_common import (
    TailConfig,
    TailError,
    ReadFailure,
    WriteFailure,
    Cancelled,
    CancelToken,
    Source,
    setup_logging,
)

STDIN_NAME = "standard input"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


# =============================================================================
# TAIL SELECTION
# =============================================================================

def tail_window(total: int, count: int) -> range:
    """
    Return the index range of the last `count` units out of `total`.

    The window is [max(0, total - count), total). Short inputs are returned
    whole; nothing is padded.
    """
    if total < 0 or count < 0:
        raise ValueError(f"total and count must be non-negative (got {total}, {count})")
    return range(max(0, total - count), total)


def take_tail(units, count: int):
    """Return the trailing `count` units of a sequence, as the same sequence type."""
    window = tail_window(len(units), count)
    return units[window.start:window.stop]


# =============================================================================
# STREAM PROCESSING
# =============================================================================

def _decode_line(raw: bytes) -> str:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw.decode("utf-8", errors="surrogateescape")


def _read_lines(stream: BinaryIO, token: CancelToken, name: Optional[str]):
    """Yield decoded lines, polling the token before every record."""
    while True:
        token.check(name)
        try:
            raw = stream.readline()
        except Exception as e:
            raise ReadFailure(f"error reading: {e}", name) from e
        if not raw:
            break
        yield _decode_line(raw)
    token.check(name)


def _write(output: BinaryIO, data: bytes, name: Optional[str]):
    try:
        output.write(data)
    except Exception as e:
        raise WriteFailure(f"error writing: {e}", name) from e


def tail_lines(stream: BinaryIO, output: BinaryIO, num_lines: int,
               token: Optional[CancelToken] = None, name: Optional[str] = None) -> int:
    """
    Write the last `num_lines` lines of `stream` to `output`.

    The whole stream is consumed before anything is written. Only the most
    recent lines are kept, using a deque bounded to `num_lines`. Every line
    is written with a '\\n' terminator whatever the input used; other bytes,
    including invalid UTF-8, are written back unchanged.

    Returns the number of lines written.
    """
    token = token or CancelToken()
    window = deque(_read_lines(stream, token, name), maxlen=num_lines)
    for line in window:
        _write(output, line.encode("utf-8", errors="surrogateescape") + b"\n", name)
    return len(window)


def tail_bytes(stream: BinaryIO, output: BinaryIO, num_bytes: int,
               token: Optional[CancelToken] = None, name: Optional[str] = None) -> int:
    """Write the last `num_bytes` bytes of `stream` to `output`. Returns bytes written."""
    token = token or CancelToken()
    # The bulk read is not interruptible once started.
    token.check(name)
    try:
        data = stream.read()
    except Exception as e:
        raise ReadFailure(f"error reading: {e}", name) from e

    window = take_tail(data, num_bytes)
    if window:
        _write(output, window, name)
    return len(window)


def tail_stream(stream: BinaryIO, output: BinaryIO, config: TailConfig,
                token: Optional[CancelToken] = None, name: Optional[str] = None) -> int:
    """
    Tail one input according to `config`.

    Byte mode is used when config.bytes is set, line mode otherwise.

    Raises:
        ReadFailure: the stream raised while being read.
        WriteFailure: the output rejected a write.
        Cancelled: the token was cancelled before the read finished.
    """
    if config.byte_mode:
        logging.debug(f"Tailing last {config.bytes} bytes of {name}")
        return tail_bytes(stream, output, config.bytes, token, name)
    logging.debug(f"Tailing last {config.line_count} lines of {name}")
    return tail_lines(stream, output, config.line_count, token, name)


# =============================================================================
# MULTIPLE SOURCES
# =============================================================================

@dataclass
class SourceFailure:
    name: str
    error: TailError


@dataclass
class TailResult:
    """Outcome of tail_sources(): which sources succeeded and which failed, in order."""
    processed: List[str] = field(default_factory=list)
    failures: List[SourceFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def first_error(self) -> Optional[TailError]:
        if self.failures:
            return self.failures[0].error
        return None


def format_header(name: str) -> bytes:
    return f"==> {name} <==\n".encode("utf-8")


def tail_sources(sources: Iterable[Source], output: BinaryIO, config: TailConfig,
                 token: Optional[CancelToken] = None) -> TailResult:
    """
    Tail every source in turn, writing each under a '==> name <==' header.

    Headers are left out when config.headers_suppressed is set; the blank
    line between consecutive sources is written either way. A read or write
    failure is recorded and the next source is tried. Cancellation is
    recorded and re-raised at once with the partial TailResult attached as
    `result`; remaining sources are not attempted.
    """
    token = token or CancelToken()
    result = TailResult()
    show_headers = not config.headers_suppressed

    for index, source in enumerate(sources):
        try:
            token.check(source.name)
            if index > 0:
                _write(output, b"\n", source.name)
            if show_headers:
                _write(output, format_header(source.name), source.name)
            tail_stream(source.stream, output, config, token, source.name)
        except Cancelled as e:
            result.failures.append(SourceFailure(source.name, e))
            e.result = result
            raise
        except TailError as e:
            logging.warning(f"Failed to tail {source.name}: {e}")
            result.failures.append(SourceFailure(source.name, e))
            continue
        result.processed.append(source.name)
        logging.debug(f"Finished {source.name}")

    return result


# =============================================================================
# COMMAND LINE
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tail",
        description="Display the last part of one or more files.",
        usage="tail [-n NUM | -c NUM] [-q | -v] [file ...]"
    )
    parser.add_argument("files", nargs="*",
                        help="Files to display. With no file, or when file is -, read standard input.")
    parser.add_argument("-n", "--lines", type=int, default=None,
                        help="Number of lines to display (default: 10).")
    parser.add_argument("-c", "--bytes", type=int, default=None,
                        help="Number of bytes to display; overrides --lines.")
    parser.add_argument("-f", "--follow", action="store_true",
                        help="Accepted for compatibility; following is not supported.")
    parser.add_argument("-F", dest="follow_retry", action="store_true",
                        help="Accepted for compatibility; following is not supported.")
    parser.add_argument("-q", "--quiet", "--silent", action="store_true",
                        help="Never print headers.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Always print headers, even for a single file.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _open_sources(stack: contextlib.ExitStack, names: List[str]):
    """Open every named input. Returns (sources, open_errors)."""
    sources = []
    open_errors = 0
    for name in names:
        if name == "-":
            sources.append(Source(STDIN_NAME, sys.stdin.buffer))
            continue
        try:
            stream = stack.enter_context(open(name, "rb"))
        except FileNotFoundError:
            print(f"tail: cannot open '{name}' for reading: No such file or directory", file=sys.stderr)
            open_errors += 1
            continue
        except PermissionError:
            print(f"tail: cannot open '{name}' for reading: Permission denied", file=sys.stderr)
            open_errors += 1
            continue
        except OSError as e:
            print(f"tail: cannot open '{name}' for reading: {e.strerror or e}", file=sys.stderr)
            open_errors += 1
            continue
        sources.append(Source(name, stream))
    return sources, open_errors


def main(args_list=None):
    """
    Main entry point for the tail command.

    Args:
        args_list: Command line arguments (defaults to sys.argv[1:])

    Returns:
        int: 0 on success, 1 if any input failed, 130 if interrupted.
    """
    if args_list is None:
        args_list = sys.argv[1:]

    args = build_parser().parse_args(args_list)
    setup_logging("DEBUG" if args.debug else None)

    try:
        config = TailConfig.from_args(args)
    except ValueError as e:
        print(f"tail: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if config.follow_requested:
        logging.debug("Follow requested; ignoring.")
        print("tail: warning: following is not supported; ignoring --follow", file=sys.stderr)

    names = args.files or ["-"]
    if config.headers_suppressed or not (len(names) > 1 or config.headers_forced):
        config = replace(config, suppress_headers=True)

    token = CancelToken()
    output = sys.stdout.buffer
    previous_handler = signal.signal(signal.SIGINT, lambda sig, frame: token.cancel("interrupted"))
    try:
        with contextlib.ExitStack() as stack:
            sources, open_errors = _open_sources(stack, names)
            result = tail_sources(sources, output, config, token)
            try:
                output.flush()
            except OSError as e:
                print(f"tail: error writing: {e}", file=sys.stderr)
                return EXIT_FAILURE
    except Cancelled as e:
        if e.result is not None:
            for failure in e.result.failures:
                if failure.error is not e:
                    print(f"tail: {failure.error}", file=sys.stderr)
        print(f"tail: {e}", file=sys.stderr)
        return EXIT_CANCELLED
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    for failure in result.failures:
        print(f"tail: {failure.error}", file=sys.stderr)

    if open_errors or not result.ok:
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
