from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .errors import DimensionMismatch

SUPPORTED_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))

_UINT64_MAX = (1 << 64) - 1


@dataclass(frozen=True, slots=True)
class VectorSet:
    vectors: NDArray[np.floating]

    def __post_init__(self) -> None:
        array = np.asarray(self.vectors)
        if array.ndim != 2:
            raise ValueError(f"vectors must be a 2-D array, got {array.ndim}-D")
        if array.dtype not in SUPPORTED_DTYPES:
            raise ValueError(f"unsupported vector dtype: {array.dtype}")
        view = np.ascontiguousarray(array).view()
        view.setflags(write=False)
        object.__setattr__(self, "vectors", view)

    @property
    def dimension(self) -> int:
        return int(self.vectors.shape[1])

    @property
    def dtype(self) -> np.dtype:
        return self.vectors.dtype

    def __len__(self) -> int:
        return int(self.vectors.shape[0])

    def get(self, i: int) -> NDArray[np.floating]:
        return self.vectors[i]

    def check_query(self, query: Any) -> NDArray[np.floating]:
        q = np.asarray(query, dtype=self.dtype).reshape(-1)
        if q.shape[0] != self.dimension:
            raise DimensionMismatch(self.dimension, q.shape[0], what="query vector")
        return q


class AttributeKind(str, Enum):
    UINT64 = "uint64"
    INT64 = "int64"
    FLOAT64 = "float64"
    STRING = "string"


@dataclass(frozen=True, slots=True)
class AttributeValue:
    kind: AttributeKind
    value: Any

    @classmethod
    def uint64(cls, value: int) -> AttributeValue:
        value = int(value)
        if not 0 <= value <= _UINT64_MAX:
            raise ValueError(f"value out of u64 range: {value}")
        return cls(AttributeKind.UINT64, value)

    @classmethod
    def int64(cls, value: int) -> AttributeValue:
        return cls(AttributeKind.INT64, int(value))

    @classmethod
    def float64(cls, value: float) -> AttributeValue:
        return cls(AttributeKind.FLOAT64, float(value))

    @classmethod
    def string(cls, value: str) -> AttributeValue:
        return cls(AttributeKind.STRING, str(value))


@dataclass(frozen=True, slots=True)
class StatsSummary:
    mean: np.floating
    std: np.floating
    median: np.floating
    min: np.floating
    max: np.floating
    q1: np.floating
    q3: np.floating


@dataclass(frozen=True, slots=True)
class BenchmarkReport:
    k: int
    nprobe: int
    num_queries: int
    seconds: StatsSummary
    flat_seconds: StatsSummary
    recalls: StatsSummary


__all__ = [
    "AttributeKind",
    "AttributeValue",
    "BenchmarkReport",
    "StatsSummary",
    "SUPPORTED_DTYPES",
    "VectorSet",
]
