from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray

from .errors import NumericError
from .types import VectorSet

# Rows scanned per distance batch in ``flat_query``.
DEFAULT_BLOCK_SIZE = 65536


def _k_smallest(
    distances: NDArray[np.floating],
    ids: NDArray[np.int64],
    k: int,
) -> tuple[NDArray[np.floating], NDArray[np.int64]]:
    if distances.shape[0] <= k:
        return distances, ids
    kth = np.partition(distances, k - 1)[k - 1]
    below = np.flatnonzero(distances < kth)
    # Entries tied with the k-th distance are admitted by ascending identifier.
    tied = np.flatnonzero(distances == kth)
    tied = tied[np.argsort(ids[tied], kind="stable")][: k - below.shape[0]]
    keep = np.concatenate([below, tied])
    return distances[keep], ids[keep]


class BoundedTopK:
    """Keeps the ``k`` smallest (distance, id) pairs; equal distances order by id."""

    def __init__(self, k: int, dtype: Any = np.float32):
        if k < 1:
            raise ValueError("k must be positive")
        self.k = k
        self._distances: NDArray[np.floating] = np.empty((0,), dtype=dtype)
        self._ids: NDArray[np.int64] = np.empty((0,), dtype=np.int64)

    def __len__(self) -> int:
        return int(self._ids.shape[0])

    def push(self, distances: NDArray[np.floating], ids: NDArray[np.int64]) -> None:
        distances = np.asarray(distances, dtype=self._distances.dtype).reshape(-1)
        ids = np.asarray(ids, dtype=np.int64).reshape(-1)
        if distances.shape[0] != ids.shape[0]:
            raise ValueError("distances and ids must have equal length")
        bad = np.flatnonzero(~np.isfinite(distances))
        if bad.size > 0:
            i = int(bad[0])
            raise NumericError(f"non-finite distance {distances[i]} for identifier {int(ids[i])}")
        merged_distances = np.concatenate([self._distances, distances])
        merged_ids = np.concatenate([self._ids, ids])
        self._distances, self._ids = _k_smallest(merged_distances, merged_ids, self.k)

    def items(self) -> list[tuple[Any, int]]:
        order = np.lexsort((self._ids, self._distances))
        return [(self._distances[i], int(self._ids[i])) for i in order]

    def ids(self) -> list[int]:
        order = np.lexsort((self._ids, self._distances))
        return [int(i) for i in self._ids[order]]


def squared_distances(vectors: NDArray[np.floating], query: NDArray[np.floating]) -> NDArray[np.floating]:
    # Squared Euclidean distance; the square root does not change the ranking.
    diff = vectors - query
    return np.einsum("ij,ij->i", diff, diff)


def flat_query(
    vectors: VectorSet,
    query: Any,
    k: int,
    *,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> list[int]:
    if k < 1:
        raise ValueError("k must be positive")
    if block_size < 1:
        raise ValueError("block_size must be positive")
    q = vectors.check_query(query)
    top = BoundedTopK(k, dtype=vectors.dtype)
    data = vectors.vectors
    for start in range(0, len(vectors), block_size):
        end = min(start + block_size, len(vectors))
        top.push(squared_distances(data[start:end], q), np.arange(start, end, dtype=np.int64))
    return top.ids()


__all__ = ["BoundedTopK", "DEFAULT_BLOCK_SIZE", "flat_query", "squared_distances"]
