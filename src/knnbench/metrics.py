from __future__ import annotations

from collections.abc import Hashable, Sequence

import numpy as np

from .errors import EmptyInput, LengthMismatch


def _check_lengths(reference: Sequence[Hashable], results: Sequence[Hashable]) -> None:
    if len(reference) != len(results):
        raise LengthMismatch(len(reference), len(results))
    if len(reference) == 0:
        raise EmptyInput("recall is undefined for an empty reference result")


def recall_hits(reference: Sequence[Hashable], results: Sequence[Hashable]) -> int:
    _check_lengths(reference, results)
    return len(set(results) & set(reference))


def calculate_recall(reference: Sequence[Hashable], results: Sequence[Hashable]) -> np.float32:
    hits = recall_hits(reference, results)
    return np.float32(hits) / np.float32(len(reference))


__all__ = ["calculate_recall", "recall_hits"]
