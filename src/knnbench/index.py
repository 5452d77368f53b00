from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .harness import DATUM_ID
from .types import AttributeValue, VectorSet


@dataclass(frozen=True, slots=True)
class IndexResult:
    owner: FaissIVFIndex
    position: int
    distance: float

    def get_attribute(self, name: str) -> AttributeValue | None:
        return self.owner.get_attribute_at(self.position, name)


class FaissIVFIndex:
    def __init__(self, index: Any, attributes: dict[str, NDArray[np.uint64]] | None = None):
        self._index = index
        self._attributes: dict[str, NDArray[np.uint64]] = dict(attributes or {})

    @classmethod
    def build(cls, data: VectorSet, *, n_list: int, num_threads: int | None = 1) -> FaissIVFIndex:
        import faiss

        if n_list < 1:
            raise ValueError("n_list must be positive")
        if num_threads is not None:
            faiss.omp_set_num_threads(num_threads)
        x = np.array(data.vectors, dtype=np.float32, order="C")
        n_list = min(n_list, len(data))
        quantizer = faiss.IndexFlatL2(data.dimension)
        index = faiss.IndexIVFFlat(quantizer, data.dimension, n_list, faiss.METRIC_L2)
        index.train(x)
        index.add(x)
        built = cls(index)
        built.set_attribute_column(DATUM_ID, np.arange(len(data), dtype=np.uint64))
        return built

    @classmethod
    def load(cls, path: str | Path) -> FaissIVFIndex:
        import faiss

        index = faiss.read_index(str(path))
        loaded = cls(index)
        loaded.set_attribute_column(DATUM_ID, np.arange(index.ntotal, dtype=np.uint64))
        return loaded

    def save(self, path: str | Path) -> None:
        import faiss

        faiss.write_index(self._index, str(path))

    @property
    def ntotal(self) -> int:
        return int(self._index.ntotal)

    def set_attribute_column(self, name: str, values: NDArray[np.uint64]) -> None:
        column = np.asarray(values)
        if column.dtype != np.uint64:
            raise TypeError(f"attribute column '{name}' must be uint64, got {column.dtype}")
        if column.shape != (self.ntotal,):
            raise ValueError(f"attribute column '{name}' must have {self.ntotal} values")
        self._attributes[name] = column

    def get_attribute_at(self, position: int, name: str) -> AttributeValue | None:
        column = self._attributes.get(name)
        if column is None:
            return None
        return AttributeValue.uint64(int(column[position]))

    def query(self, vector: NDArray[np.floating], k: int, nprobe: int) -> list[IndexResult]:
        q = np.array(vector, dtype=np.float32).reshape(1, -1)
        self._index.nprobe = int(nprobe)
        distances, ids = self._index.search(q, int(k))
        # faiss pads with -1 when the probed lists hold fewer than k vectors.
        return [
            IndexResult(self, int(i), float(d))
            for d, i in zip(distances[0], ids[0])
            if i >= 0
        ]


class AsyncFaissIVFIndex:
    """Suspend-capable wrapper running index work on a worker thread."""

    def __init__(self, index: FaissIVFIndex):
        self._index = index

    @classmethod
    async def load(cls, path: str | Path) -> AsyncFaissIVFIndex:
        return cls(await asyncio.to_thread(FaissIVFIndex.load, path))

    @classmethod
    async def build(cls, data: VectorSet, *, n_list: int) -> AsyncFaissIVFIndex:
        return cls(await asyncio.to_thread(FaissIVFIndex.build, data, n_list=n_list))

    @property
    def index(self) -> FaissIVFIndex:
        return self._index

    async def query(self, vector: NDArray[np.floating], k: int, nprobe: int) -> list[IndexResult]:
        return await asyncio.to_thread(self._index.query, vector, k, nprobe)


__all__ = ["AsyncFaissIVFIndex", "FaissIVFIndex", "IndexResult"]
