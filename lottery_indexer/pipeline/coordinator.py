"""
Checkpoint-driven batch coordinator: fetch -> classify -> validate -> persist -> checkpoint.

Responsibilities:
- Read the checkpoint once at startup; drop every trace whose logical time is
  not above it (re-delivered pages are expected, so this filter is required).
- Classify then validate each surviving trace, attaching the verdict.
- Persist each non-empty batch, then advance the checkpoint to the batch's
  max logical time, only if that exceeds the stored value.
- Any fetch, classification or persistence failure moves the state to
  failed and is re-raised; the checkpoint is never advanced past an
  unpersisted batch, so a restart re-delivers it (at-least-once).

Pages are processed strictly in source order; stop() takes effect between pages.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Iterable, Protocol

from lottery_indexer.adapters.base import ContractAdapter
from lottery_indexer.classifier.engine import LotteryTransaction
from lottery_indexer.classifier.validator import TransactionValidator
from lottery_indexer.core.exceptions import LotteryIndexerError
from lottery_indexer.lottery_logging import bind_trace, get_logger
from lottery_indexer.lottery_logging.logger import short
from lottery_indexer.ton.models import Trace

logger = get_logger(__name__)


class CoordinatorState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[CoordinatorState, frozenset[CoordinatorState]] = {
    CoordinatorState.IDLE: frozenset({CoordinatorState.FETCHING, CoordinatorState.FAILED}),
    CoordinatorState.FETCHING: frozenset(
        {CoordinatorState.CLASSIFYING, CoordinatorState.DONE, CoordinatorState.FAILED}
    ),
    CoordinatorState.CLASSIFYING: frozenset(
        {CoordinatorState.PERSISTING, CoordinatorState.FETCHING, CoordinatorState.FAILED}
    ),
    CoordinatorState.PERSISTING: frozenset({CoordinatorState.FETCHING, CoordinatorState.FAILED}),
    CoordinatorState.DONE: frozenset(),
    CoordinatorState.FAILED: frozenset(),
}


class InvalidStateTransition(LotteryIndexerError):
    """The coordinator was driven through a transition its state machine does not allow."""


class RecordSink(Protocol):
    def append(self, rows: Iterable[dict[str, Any]]) -> int: ...


class CheckpointStore(Protocol):
    def load(self) -> int | None: ...

    def save(self, lt: int) -> int: ...


@dataclass
class RunStats:
    """Counters for one run."""

    pages: int = 0
    traces_seen: int = 0
    traces_below_checkpoint: int = 0
    traces_unclassified: int = 0
    records_persisted: int = 0
    batches_persisted: int = 0
    fake_records: int = 0
    start_checkpoint: int | None = None
    checkpoint: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        # Logical times exceed 2**53; keep them exact in JSON logs
        for key in ("start_checkpoint", "checkpoint"):
            if data[key] is not None:
                data[key] = str(data[key])
        return data


class BatchCoordinator:
    def __init__(
        self,
        adapter: ContractAdapter,
        sink: RecordSink,
        checkpoints: CheckpointStore,
        validator: TransactionValidator | None = None,
    ) -> None:
        self.adapter = adapter
        self.sink = sink
        self.checkpoints = checkpoints
        self.validator = validator or TransactionValidator(adapter.contract_address)
        self.stats = RunStats()
        self._state = CoordinatorState.IDLE
        self._cursor: int | None = None
        self._stored: int | None = None
        self._stop_requested = False

    @property
    def state(self) -> CoordinatorState:
        return self._state

    def stop(self) -> None:
        """Request a stop after the current page is committed."""
        self._stop_requested = True

    def _transition(self, new: CoordinatorState) -> None:
        if new not in _TRANSITIONS[self._state]:
            raise InvalidStateTransition(f"{self._state.value} -> {new.value}")
        logger.debug("coordinator_state", previous=self._state.value, state=new.value)
        self._state = new

    async def run(self) -> RunStats:
        """One pass over the source from the stored checkpoint to the end."""
        self._transition(CoordinatorState.FETCHING)
        try:
            self._cursor = self.checkpoints.load()
            self._stored = self._cursor
            self.stats.start_checkpoint = self._cursor
            self.stats.checkpoint = self._cursor
            logger.info(
                "coordinator_started",
                checkpoint=str(self._cursor) if self._cursor is not None else None,
                **self.adapter.describe(),
            )
            async for page in self.adapter.iter_pages(start_lt=self._cursor):
                self.stats.pages += 1
                self._transition(CoordinatorState.CLASSIFYING)
                records = self.process_page(page.traces)
                if records:
                    self._transition(CoordinatorState.PERSISTING)
                    self.commit(records)
                self._transition(CoordinatorState.FETCHING)
                if self._stop_requested:
                    logger.info("coordinator_stop_requested", pages=self.stats.pages)
                    break
            self._transition(CoordinatorState.DONE)
        except Exception as e:
            previous = self._state
            self._state = CoordinatorState.FAILED
            logger.error(
                "coordinator_failed",
                during=previous.value,
                error=str(e),
                error_type=type(e).__name__,
                checkpoint=str(self._stored) if self._stored is not None else None,
            )
            raise
        logger.info("coordinator_done", **self.stats.to_dict())
        return self.stats

    def process_page(self, traces: Iterable[Trace]) -> list[LotteryTransaction]:
        """Filter by the startup checkpoint, classify and validate; noise traces are dropped."""
        records: list[LotteryTransaction] = []
        for trace in traces:
            self.stats.traces_seen += 1
            if self._cursor is not None and trace.start_lt <= self._cursor:
                self.stats.traces_below_checkpoint += 1
                continue
            with bind_trace(trace.trace_id, lt=trace.start_lt):
                record = self._classify_and_validate(trace)
            if record is not None:
                records.append(record)
        return records

    def _classify_and_validate(self, trace: Trace) -> LotteryTransaction | None:
        record = self.adapter.classify(trace)
        if record is None:
            self.stats.traces_unclassified += 1
            return None
        verdict = self.validator.validate_trace(trace, record.participant)
        record.attach_verdict(verdict)
        if verdict.is_fake:
            self.stats.fake_records += 1
            logger.info("coordinator_fake_record", reason=verdict.fake_reason, participant=short(record.participant))
        return record

    def commit(self, records: list[LotteryTransaction]) -> None:
        """Persist records, then move the checkpoint forward to their max logical time."""
        if not records:
            return
        written = self.sink.append([r.to_row() for r in records])
        batch_max = max(r.lt for r in records)
        if self._stored is None or batch_max > self._stored:
            self._stored = self.checkpoints.save(batch_max)
        self.stats.records_persisted += written
        self.stats.batches_persisted += 1
        self.stats.checkpoint = self._stored
        logger.info(
            "coordinator_batch_persisted",
            rows=written,
            batch_max_lt=str(batch_max),
            checkpoint=str(self._stored),
        )
