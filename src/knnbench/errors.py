from __future__ import annotations

from enum import Enum
from typing import Any


class BenchmarkError(Exception):
    # Set by the harness when the failure belongs to a specific query.
    query_index: int | None = None


class FormatErrorKind(str, Enum):
    TRUNCATED = "truncated"
    DIMENSION_MISMATCH = "dimension_mismatch"
    INVALID_DIMENSION = "invalid_dimension"


class FormatError(BenchmarkError, ValueError):
    def __init__(
        self,
        kind: FormatErrorKind,
        message: str,
        *,
        source: str | None = None,
        record: int | None = None,
    ):
        self.kind = kind
        self.source = source
        self.record = record
        prefix = f"{source}: " if source else ""
        super().__init__(f"{prefix}{message}")


class DimensionMismatch(BenchmarkError, ValueError):
    def __init__(self, expected: int, actual: int, *, what: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what} dimension mismatch: expected {expected} but got {actual}")


class NumericError(BenchmarkError, ArithmeticError):
    pass


class LengthMismatch(BenchmarkError, ValueError):
    def __init__(self, reference_length: int, results_length: int):
        self.reference_length = reference_length
        self.results_length = results_length
        super().__init__(
            f"result length mismatch: reference has {reference_length} but results have {results_length}"
        )


class EmptyInput(BenchmarkError, ValueError):
    pass


class InsufficientSamples(BenchmarkError, ValueError):
    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(f"at least {required} samples are required but got {actual}")


class MissingAttribute(BenchmarkError, LookupError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"missing {name}")


class AttributeTypeMismatch(BenchmarkError, TypeError):
    def __init__(self, name: str, value: Any):
        self.name = name
        self.value = value
        super().__init__(f"{name} is not a u64 but {value!r}")


class IndexQueryFailure(BenchmarkError):
    def __init__(self, query_index: int, cause: BaseException):
        self.query_index = query_index
        super().__init__(f"index query failed at query {query_index}: {cause}")


class ReportPersistenceError(BenchmarkError):
    """Saving a report failed; the computed report stays available as ``report``."""

    def __init__(self, path: str, report: Any, cause: BaseException):
        self.path = path
        self.report = report
        super().__init__(f"failed to write stats to file: {path}: {cause}")


__all__ = [
    "AttributeTypeMismatch",
    "BenchmarkError",
    "DimensionMismatch",
    "EmptyInput",
    "FormatError",
    "FormatErrorKind",
    "IndexQueryFailure",
    "InsufficientSamples",
    "LengthMismatch",
    "MissingAttribute",
    "NumericError",
    "ReportPersistenceError",
]
