"""tailcmd: the tail command and its selection engine."""

from .tail_common import (
    TailConfig,
    TailError,
    ReadFailure,
    WriteFailure,
    Cancelled,
    CancelToken,
    Source,
)
from .tail import (
    tail_window,
    take_tail,
    tail_stream,
    tail_sources,
    TailResult,
    SourceFailure,
)

__version__ = "1.0.0"
