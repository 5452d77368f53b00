from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .errors import InsufficientSamples
from .types import StatsSummary


def _as_samples(samples: Iterable[Any] | NDArray[Any], dtype: Any) -> NDArray[np.floating]:
    if isinstance(samples, np.ndarray):
        array = samples
    else:
        array = np.asarray(list(samples))
    if dtype is not None:
        array = array.astype(dtype, copy=False)
    elif not np.issubdtype(array.dtype, np.floating):
        array = array.astype(np.float64)
    return array.reshape(-1)


def nearest_rank(sorted_samples: NDArray[np.floating], numerator: int, denominator: int) -> np.floating:
    n = sorted_samples.shape[0]
    if n < 1:
        raise InsufficientSamples(1, n)
    return sorted_samples[n * numerator // denominator]


def sample_std(samples: Iterable[Any] | NDArray[Any], dtype: Any = None) -> np.floating:
    array = _as_samples(samples, dtype)
    return _sample_std(array)


def _sample_std(array: NDArray[np.floating]) -> np.floating:
    n = array.shape[0]
    if n < 2:
        raise InsufficientSamples(2, n)
    count = array.dtype.type(n)
    mean = array.sum(dtype=array.dtype) / count
    squared_sum = np.dot(array, array)
    var = (squared_sum - count * mean * mean) / array.dtype.type(n - 1)
    # Rounding can push the variance of near-constant series slightly below zero.
    return np.sqrt(max(var, array.dtype.type(0)))


def summarize(samples: Iterable[Any] | NDArray[Any], dtype: Any = None) -> StatsSummary:
    # Nearest-rank quartiles; every statistic keeps the samples' dtype.
    array = np.sort(_as_samples(samples, dtype))
    n = array.shape[0]
    if n < 2:
        raise InsufficientSamples(2, n)
    if np.isnan(array).any():
        raise ValueError("samples must not contain NaN")
    return StatsSummary(
        mean=array.sum(dtype=array.dtype) / array.dtype.type(n),
        std=_sample_std(array),
        median=nearest_rank(array, 1, 2),
        min=array[0],
        max=array[-1],
        q1=nearest_rank(array, 1, 4),
        q3=nearest_rank(array, 3, 4),
    )


__all__ = ["nearest_rank", "sample_std", "summarize"]
