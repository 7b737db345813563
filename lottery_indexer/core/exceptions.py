"""
Application-level exceptions.

InvalidAddress is local to the parser boundary and degrades a signal to
"absent"; a malformed forward payload never raises (it decodes to None).
TraceSkipped suppresses output for one trace. FetchError, PersistenceError and CheckpointError are pipeline-fatal.
"""

from __future__ import annotations


class LotteryIndexerError(Exception):
    """Base class for all lottery indexer errors."""


class InvalidAddress(LotteryIndexerError, ValueError):
    """Raised when a string cannot be parsed as a TON account address."""

    def __init__(self, raw: object, reason: str = "unparsable address") -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(f"Invalid address {raw!r}: {reason}")


class TraceSkipped(LotteryIndexerError):
    """A trace is structurally unusable (no participant, no root hash, bad mint index)."""

    def __init__(self, trace_id: str | None, reason: str) -> None:
        self.trace_id = trace_id
        self.reason = reason
        super().__init__(f"Trace {trace_id or '?'} skipped: {reason}")


class ConfigurationError(LotteryIndexerError):
    """Invalid or missing configuration detected at startup."""


class FetchError(LotteryIndexerError):
    """The remote trace source failed after retries."""


class PersistenceError(LotteryIndexerError):
    """Appending records to the sink failed; the batch is not committed."""


class CheckpointError(LotteryIndexerError):
    """Reading or writing the checkpoint failed."""
