from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Generator, Sequence
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Any, Protocol

import numpy as np
from numpy.typing import NDArray

from .errors import (
    AttributeTypeMismatch,
    BenchmarkError,
    DimensionMismatch,
    IndexQueryFailure,
    MissingAttribute,
)
from .metrics import calculate_recall
from .report import write_report
from .search import DEFAULT_BLOCK_SIZE, flat_query
from .stats import summarize
from .tracking import PROGRESS_INTERVAL, NullTrackingSink, TrackingSink
from .types import AttributeKind, AttributeValue, BenchmarkReport, VectorSet

DATUM_ID = "datum_id"


class QueryResult(Protocol):
    def get_attribute(self, name: str) -> AttributeValue | None | Awaitable[AttributeValue | None]: ...


class VectorIndex(Protocol):
    def query(self, vector: NDArray[np.floating], k: int, nprobe: int) -> Sequence[QueryResult]: ...


class AsyncVectorIndex(Protocol):
    async def query(self, vector: NDArray[np.floating], k: int, nprobe: int) -> Sequence[QueryResult]: ...


def result_identifier(value: AttributeValue | None, name: str = DATUM_ID) -> int:
    if value is None:
        raise MissingAttribute(name)
    if not isinstance(value, AttributeValue) or value.kind is not AttributeKind.UINT64:
        raise AttributeTypeMismatch(name, value)
    return int(value.value)


@dataclass(slots=True)
class _IndexCall:
    query_index: int
    vector: NDArray[np.floating]


class QueryStatsRecorder:
    def __init__(self, k: int, nprobe: int):
        self.k = k
        self.nprobe = nprobe
        self.seconds: list[float] = []
        self.flat_seconds: list[float] = []
        self.recalls: list[np.float32] = []

    def add_record(self, seconds: float, flat_seconds: float, recall: np.float32) -> None:
        self.seconds.append(seconds)
        self.flat_seconds.append(flat_seconds)
        self.recalls.append(recall)

    def finish(self) -> BenchmarkReport:
        return BenchmarkReport(
            k=self.k,
            nprobe=self.nprobe,
            num_queries=len(self.seconds),
            seconds=summarize(np.asarray(self.seconds, dtype=np.float64)),
            flat_seconds=summarize(np.asarray(self.flat_seconds, dtype=np.float64)),
            recalls=summarize(np.asarray(self.recalls, dtype=np.float32)),
        )


class BenchmarkHarness:
    """Measures an index against exact search; blocking and cooperative runs share one loop."""

    def __init__(
        self,
        data: VectorSet,
        queries: VectorSet,
        *,
        k: int,
        nprobe: int,
        limit: int | None = None,
        tracking: TrackingSink | None = None,
        clock: Callable[[], float] = perf_counter,
        id_attribute: str = DATUM_ID,
        block_size: int = DEFAULT_BLOCK_SIZE,
    ):
        if k < 1:
            raise ValueError("k must be positive")
        if nprobe < 1:
            raise ValueError("nprobe must be positive")
        if limit is not None and limit < 0:
            raise ValueError("limit must not be negative")
        if queries.dimension != data.dimension:
            raise DimensionMismatch(data.dimension, queries.dimension, what="query set")
        self.data = data
        self.queries = queries
        self.k = k
        self.nprobe = nprobe
        self.limit = limit
        self.tracking = tracking or NullTrackingSink()
        self.clock = clock
        self.id_attribute = id_attribute
        self.block_size = block_size

    @property
    def num_queries(self) -> int:
        if self.limit is None:
            return len(self.queries)
        return min(self.limit, len(self.queries))

    def _steps(self) -> Generator[_IndexCall, list[int], BenchmarkReport]:
        recorder = QueryStatsRecorder(self.k, self.nprobe)
        total = self.num_queries
        for qi in range(total):
            if qi % PROGRESS_INTERVAL == 0:
                self.tracking.on_progress(index=qi, total=total)
            vector = self.queries.get(qi)
            try:
                start = self.clock()
                results = yield _IndexCall(qi, vector)
                seconds = self.clock() - start

                start = self.clock()
                flat_results = flat_query(self.data, vector, self.k, block_size=self.block_size)
                flat_seconds = self.clock() - start

                recall = calculate_recall(flat_results, results)
            except BenchmarkError as exc:
                if exc.query_index is None:
                    exc.query_index = qi
                raise
            recorder.add_record(seconds, flat_seconds, recall)
        return recorder.finish()

    def _identifiers(self, results: Sequence[QueryResult]) -> list[int]:
        return [result_identifier(result.get_attribute(self.id_attribute), self.id_attribute) for result in results]

    def _issue(self, index: VectorIndex, call: _IndexCall) -> list[int]:
        try:
            return self._identifiers(index.query(call.vector, self.k, self.nprobe))
        except BenchmarkError as exc:
            exc.query_index = call.query_index
            raise
        except Exception as exc:
            raise IndexQueryFailure(call.query_index, exc) from exc

    async def _issue_async(self, index: AsyncVectorIndex | VectorIndex, call: _IndexCall) -> list[int]:
        try:
            results = index.query(call.vector, self.k, self.nprobe)
            if inspect.isawaitable(results):
                results = await results
            identifiers: list[int] = []
            for result in results:
                value = result.get_attribute(self.id_attribute)
                if inspect.isawaitable(value):
                    value = await value
                identifiers.append(result_identifier(value, self.id_attribute))
            return identifiers
        except BenchmarkError as exc:
            exc.query_index = call.query_index
            raise
        except Exception as exc:
            raise IndexQueryFailure(call.query_index, exc) from exc

    def _complete(self, report: BenchmarkReport, report_path: str | Path | None) -> BenchmarkReport:
        self.tracking.log_report(report=report)
        if report_path is not None:
            write_report(report, report_path)
        return report

    def run(self, index: VectorIndex, *, report_path: str | Path | None = None) -> BenchmarkReport:
        steps = self._steps()
        try:
            call = next(steps)
            while True:
                call = steps.send(self._issue(index, call))
        except StopIteration as stop:
            report = stop.value
        finally:
            steps.close()
        return self._complete(report, report_path)

    async def run_async(
        self,
        index: AsyncVectorIndex | VectorIndex | Awaitable[Any],
        *,
        report_path: str | Path | None = None,
    ) -> BenchmarkReport:
        if inspect.isawaitable(index):
            index = await index
        steps = self._steps()
        try:
            call = next(steps)
            while True:
                call = steps.send(await self._issue_async(index, call))
        except StopIteration as stop:
            report = stop.value
        finally:
            steps.close()
        return self._complete(report, report_path)


__all__ = [
    "AsyncVectorIndex",
    "BenchmarkHarness",
    "DATUM_ID",
    "QueryResult",
    "QueryStatsRecorder",
    "VectorIndex",
    "result_identifier",
]
