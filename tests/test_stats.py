import numpy as np
import pytest

from knnbench.errors import InsufficientSamples
from knnbench.stats import nearest_rank, sample_std, summarize


def test_summarize_nearest_rank_statistics():
    summary = summarize([1.0, 2.0, 3.0, 4.0])
    assert summary.mean == pytest.approx(2.5)
    assert summary.median == 3.0
    assert summary.q1 == 2.0
    assert summary.q3 == 4.0
    assert summary.min == 1.0
    assert summary.max == 4.0


def test_summarize_sorts_its_input():
    summary = summarize([4.0, 1.0, 3.0, 2.0])
    assert summary.median == 3.0
    assert summary.min == 1.0


def test_sample_std_is_bessel_corrected():
    assert sample_std([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.1380899, rel=1e-6)
    assert summarize([2, 4, 4, 4, 5, 5, 7, 9]).std == pytest.approx(2.1380899, rel=1e-6)


def test_summarize_keeps_dtype():
    summary32 = summarize(np.array([0.5, 1.0, 1.0], dtype=np.float32))
    assert isinstance(summary32.mean, np.float32)
    assert isinstance(summary32.std, np.float32)
    assert isinstance(summary32.q3, np.float32)
    summary64 = summarize(np.array([0.5, 1.0, 1.0], dtype=np.float64))
    assert isinstance(summary64.mean, np.float64)
    assert isinstance(summarize([0.5, 1.0], dtype=np.float32).median, np.float32)


def test_summarize_constant_series_has_zero_std():
    summary = summarize(np.full((7,), 0.1, dtype=np.float32))
    assert summary.std >= 0.0
    assert summary.std == pytest.approx(0.0, abs=1e-3)


def test_summarize_requires_two_samples():
    with pytest.raises(InsufficientSamples):
        summarize([1.0])
    with pytest.raises(InsufficientSamples):
        summarize([])


def test_nearest_rank_uses_floor_index():
    values = np.array([10.0, 20.0, 30.0, 40.0, 50.0])
    assert nearest_rank(values, 1, 2) == 30.0
    assert nearest_rank(values, 1, 4) == 20.0
    assert nearest_rank(values, 3, 4) == 40.0
    assert nearest_rank(np.array([7.0]), 1, 2) == 7.0
