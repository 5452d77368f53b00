import io

import h5py
import numpy as np
import pytest

from knnbench.dataset import load_vector_set, read_fvecs, read_fvecs_file, write_fvecs_file
from knnbench.errors import FormatError, FormatErrorKind


def _record(values, dimension=None) -> bytes:
    values = np.asarray(values, dtype="<f4")
    d = values.shape[0] if dimension is None else dimension
    return np.array([d], dtype="<u4").tobytes() + values.tobytes()


class _TrickleStream(io.RawIOBase):
    """Returns at most three bytes per read."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def readable(self) -> bool:
        return True

    def read(self, size=-1):
        if size is None or size < 0:
            size = len(self._data)
        part = self._data[self._pos : self._pos + min(size, 3)]
        self._pos += len(part)
        return part


def test_read_fvecs_parses_records_at_raw_offsets():
    rng = np.random.default_rng(7)
    expected = rng.normal(size=(5, 3)).astype(np.float32)
    data = b"".join(_record(row) for row in expected)

    vs = read_fvecs(io.BytesIO(data))
    assert len(vs) == 5
    assert vs.dimension == 3
    assert vs.dtype == np.float32
    d = 3
    for i in range(5):
        for j in range(d):
            offset = 4 + i * (4 + 4 * d) + 4 * j
            raw = np.frombuffer(data[offset : offset + 4], dtype="<f4")[0]
            assert vs.get(i)[j] == raw


def test_read_fvecs_is_independent_of_chunking_and_short_reads():
    rng = np.random.default_rng(11)
    expected = rng.normal(size=(7, 4)).astype(np.float32)
    data = b"".join(_record(row) for row in expected)

    for chunk_records in (1, 2, 3, 7, 100):
        vs = read_fvecs(io.BytesIO(data), chunk_records=chunk_records)
        np.testing.assert_array_equal(vs.vectors, expected)
    vs = read_fvecs(_TrickleStream(data), chunk_records=2)
    np.testing.assert_array_equal(vs.vectors, expected)


def test_read_fvecs_truncated_payload():
    data = np.array([128], dtype="<u4").tobytes() + np.zeros(50, dtype="<f4").tobytes()
    with pytest.raises(FormatError) as excinfo:
        read_fvecs(io.BytesIO(data))
    assert excinfo.value.kind is FormatErrorKind.TRUNCATED
    assert excinfo.value.record == 0


def test_read_fvecs_truncated_header_after_complete_records():
    data = _record([1.0, 2.0]) + _record([3.0, 4.0]) + b"\x02\x00"
    with pytest.raises(FormatError) as excinfo:
        read_fvecs(io.BytesIO(data), chunk_records=1)
    assert excinfo.value.kind is FormatErrorKind.TRUNCATED
    assert excinfo.value.record == 2
    assert "header" in str(excinfo.value)


def test_read_fvecs_empty_stream_is_truncated():
    with pytest.raises(FormatError) as excinfo:
        read_fvecs(io.BytesIO(b""))
    assert excinfo.value.kind is FormatErrorKind.TRUNCATED


def test_read_fvecs_inconsistent_dimension():
    data = _record([1.0, 2.0]) + _record([3.0, 4.0]) + _record([5.0, 6.0, 7.0]) + _record([8.0, 9.0])
    with pytest.raises(FormatError) as excinfo:
        read_fvecs(io.BytesIO(data))
    assert excinfo.value.kind is FormatErrorKind.DIMENSION_MISMATCH
    assert excinfo.value.record == 2
    assert "expected 2 but got 3" in str(excinfo.value)


def test_read_fvecs_mismatched_header_in_trailing_partial_record():
    data = _record([1.0, 2.0]) + np.array([5], dtype="<u4").tobytes() + b"\x00\x00"
    with pytest.raises(FormatError) as excinfo:
        read_fvecs(io.BytesIO(data))
    assert excinfo.value.kind is FormatErrorKind.DIMENSION_MISMATCH
    assert excinfo.value.record == 1


def test_read_fvecs_rejects_zero_dimension():
    with pytest.raises(FormatError) as excinfo:
        read_fvecs(io.BytesIO(np.array([0], dtype="<u4").tobytes()))
    assert excinfo.value.kind is FormatErrorKind.INVALID_DIMENSION


def test_read_fvecs_expected_dimension():
    data = _record([1.0, 2.0, 3.0])
    assert read_fvecs(io.BytesIO(data), expected_dimension=3).dimension == 3
    with pytest.raises(FormatError) as excinfo:
        read_fvecs(io.BytesIO(data), expected_dimension=128)
    assert excinfo.value.kind is FormatErrorKind.DIMENSION_MISMATCH
    assert "invalid vector size: expected 128 but got 3" in str(excinfo.value)


def test_read_fvecs_file_reports_path(tmp_path):
    path = tmp_path / "broken.fvecs"
    path.write_bytes(_record([1.0, 2.0])[:-2])
    with pytest.raises(FormatError) as excinfo:
        read_fvecs_file(path)
    assert excinfo.value.source == str(path)
    assert str(path) in str(excinfo.value)


def test_vector_set_is_read_only(tmp_path):
    path = tmp_path / "base.fvecs"
    vectors = np.arange(12, dtype=np.float32).reshape(4, 3)
    write_fvecs_file(path, vectors)
    vs = read_fvecs_file(path)
    np.testing.assert_array_equal(vs.vectors, vectors)
    with pytest.raises(ValueError):
        vs.vectors[0, 0] = 1.0


def test_load_vector_set_dispatches_on_suffix(tmp_path):
    vectors = np.arange(8, dtype=np.float32).reshape(4, 2)

    npy_path = tmp_path / "base.npy"
    np.save(npy_path, vectors)
    np.testing.assert_array_equal(load_vector_set(npy_path).vectors, vectors)

    h5_path = tmp_path / "ann.hdf5"
    with h5py.File(h5_path, "w") as f:
        f["train"] = vectors
        f["test"] = vectors[:2]
    assert len(load_vector_set(h5_path)) == 4
    assert len(load_vector_set(h5_path, key="test")) == 2

    with pytest.raises(ValueError):
        load_vector_set(tmp_path / "base.csv")
