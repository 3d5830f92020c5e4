"""
Pytest configuration and shared fixtures for tail tests.

This module provides common fixtures used across multiple test files:
in-memory input streams, and stream/sink doubles that fail or cancel
part-way through.
"""

import io

import pytest


class FailingStream(io.RawIOBase):
    """Binary stream that yields `good_lines` lines and then raises OSError."""

    def __init__(self, good_lines=(), message="read failed"):
        super().__init__()
        self._lines = list(good_lines)
        self._message = message

    def readable(self):
        return True

    def readline(self, size=-1):
        if self._lines:
            return self._lines.pop(0)
        raise OSError(self._message)

    def read(self, size=-1):
        raise OSError(self._message)


class FailingSink(io.RawIOBase):
    """Binary sink whose writes always raise OSError."""

    def __init__(self, message="write failed"):
        super().__init__()
        self._message = message

    def writable(self):
        return True

    def write(self, data):
        raise OSError(self._message)


class CancellingStream(io.BytesIO):
    """BytesIO that cancels `token` once `after` lines have been read."""

    def __init__(self, data, token, after):
        super().__init__(data)
        self._token = token
        self._after = after
        self._read = 0

    def readline(self, size=-1):
        line = super().readline(size)
        if line:
            self._read += 1
            if self._read >= self._after:
                self._token.cancel()
        return line


@pytest.fixture
def make_stream():
    """Build a binary stream from a list of lines, each terminated with '\\n'."""
    def _make(lines, newline="\n"):
        text = "".join(f"{line}{newline}" for line in lines)
        return io.BytesIO(text.encode("utf-8"))
    return _make


@pytest.fixture
def numbered_lines():
    """Fifteen lines: '1' .. '15'."""
    return [str(i) for i in range(1, 16)]


@pytest.fixture
def output():
    """In-memory binary sink."""
    return io.BytesIO()


@pytest.fixture
def failing_stream():
    return FailingStream


@pytest.fixture
def failing_sink():
    return FailingSink


@pytest.fixture
def cancelling_stream():
    return CancellingStream


@pytest.fixture
def tail_test_file(tmp_path):
    """Create a temp file with 20 numbered lines."""
    test_file = tmp_path / "test.txt"
    test_file.write_text("\n".join(f"line {i}" for i in range(1, 21)) + "\n")
    return test_file


@pytest.fixture
def empty_file(tmp_path):
    """Create an empty temp file."""
    test_file = tmp_path / "empty.txt"
    test_file.write_text("")
    return test_file
