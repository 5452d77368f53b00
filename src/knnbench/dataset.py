from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

import h5py
import numpy as np
from numpy.typing import NDArray

from .errors import FormatError, FormatErrorKind
from .types import VectorSet

HEADER_SIZE = 4
# Number of records decoded per read; bounds the transient buffer size.
DEFAULT_CHUNK_RECORDS = 8192

_HEADER_DTYPE = np.dtype("<u4")
_VALUE_DTYPE = np.dtype("<f4")


def _read_up_to(stream: BinaryIO, size: int) -> bytes:
    # Raw streams and sockets may return short reads before end-of-stream.
    parts: list[bytes] = []
    remaining = size
    while remaining > 0:
        part = stream.read(remaining)
        if not part:
            break
        parts.append(part)
        remaining -= len(part)
    return b"".join(parts)


def _decode_records(
    pending: bytes,
    dimension: int,
    first_record: int,
    source: str | None,
) -> NDArray[np.float32]:
    record_size = HEADER_SIZE * (dimension + 1)
    count = len(pending) // record_size
    rows = np.frombuffer(pending, dtype=_VALUE_DTYPE, count=count * (dimension + 1))
    rows = rows.reshape(count, dimension + 1)
    headers = rows[:, 0].view(_HEADER_DTYPE)
    bad = np.flatnonzero(headers != dimension)
    if bad.size > 0:
        i = int(bad[0])
        raise FormatError(
            FormatErrorKind.DIMENSION_MISMATCH,
            f"inconsistent vector size at record {first_record + i}: "
            f"expected {dimension} but got {int(headers[i])}",
            source=source,
            record=first_record + i,
        )
    return rows[:, 1:].astype(np.float32)


def read_fvecs(
    stream: BinaryIO,
    *,
    expected_dimension: int | None = None,
    chunk_records: int = DEFAULT_CHUNK_RECORDS,
    source: str | None = None,
) -> VectorSet:
    """Reads little-endian ``fvecs`` records; the first record fixes the dimension."""
    if chunk_records <= 0:
        raise ValueError("chunk_records must be positive")

    header = _read_up_to(stream, HEADER_SIZE)
    if len(header) < HEADER_SIZE:
        raise FormatError(
            FormatErrorKind.TRUNCATED,
            "unexpected end of stream in the header of record 0",
            source=source,
            record=0,
        )
    dimension = int(np.frombuffer(header, dtype=_HEADER_DTYPE)[0])
    if dimension == 0:
        raise FormatError(
            FormatErrorKind.INVALID_DIMENSION,
            "vector size must be positive",
            source=source,
            record=0,
        )
    if expected_dimension is not None and dimension != expected_dimension:
        raise FormatError(
            FormatErrorKind.DIMENSION_MISMATCH,
            f"invalid vector size: expected {expected_dimension} but got {dimension}",
            source=source,
            record=0,
        )

    record_size = HEADER_SIZE * (dimension + 1)
    blocks: list[NDArray[np.float32]] = []
    num_records = 0
    pending = header
    while True:
        chunk = _read_up_to(stream, chunk_records * record_size)
        pending += chunk
        complete = len(pending) // record_size
        if complete > 0:
            blocks.append(_decode_records(pending, dimension, num_records, source))
            num_records += complete
            pending = pending[complete * record_size :]
        if len(chunk) < chunk_records * record_size:
            break

    if pending:
        if len(pending) >= HEADER_SIZE:
            declared = int(np.frombuffer(pending[:HEADER_SIZE], dtype=_HEADER_DTYPE)[0])
            if declared != dimension:
                raise FormatError(
                    FormatErrorKind.DIMENSION_MISMATCH,
                    f"inconsistent vector size at record {num_records}: "
                    f"expected {dimension} but got {declared}",
                    source=source,
                    record=num_records,
                )
            where = "values"
        else:
            where = "header"
        raise FormatError(
            FormatErrorKind.TRUNCATED,
            f"unexpected end of stream in the {where} of record {num_records} "
            f"({len(pending)} of {record_size} bytes)",
            source=source,
            record=num_records,
        )

    return VectorSet(np.concatenate(blocks, axis=0) if len(blocks) > 1 else blocks[0])


def read_fvecs_file(path: str | Path, *, expected_dimension: int | None = None) -> VectorSet:
    source = Path(path)
    with source.open("rb") as f:
        return read_fvecs(f, expected_dimension=expected_dimension, source=str(source))


def write_fvecs(stream: BinaryIO, vectors: VectorSet | NDArray[np.floating]) -> None:
    array = vectors.vectors if isinstance(vectors, VectorSet) else np.asarray(vectors)
    if array.ndim != 2:
        raise ValueError("vectors must be a 2-D array")
    n, d = array.shape
    if d == 0:
        raise ValueError("vectors must have a positive dimension")
    rows = np.empty((n, d + 1), dtype=_HEADER_DTYPE)
    rows[:, 0] = d
    rows[:, 1:] = np.ascontiguousarray(array, dtype=_VALUE_DTYPE).view(_HEADER_DTYPE)
    stream.write(rows.tobytes())


def write_fvecs_file(path: str | Path, vectors: VectorSet | NDArray[np.floating]) -> None:
    with Path(path).open("wb") as f:
        write_fvecs(f, vectors)


def load_vector_set(path: str | Path, key: str | None = None) -> VectorSet:
    source = Path(path)
    suffix = source.suffix.lower()
    if suffix == ".fvecs":
        return read_fvecs_file(source)
    if suffix == ".npy":
        array = np.load(source)
        if array.ndim != 2:
            raise ValueError("NPY dataset must be a 2-D array of vectors")
        return VectorSet(np.asarray(array, dtype=np.float32))
    if suffix in {".hdf5", ".h5"}:
        name = key or "train"
        with h5py.File(source, "r") as f:
            if name not in f:
                raise ValueError(f"HDF5 dataset must contain '{name}'")
            return VectorSet(np.asarray(f[name], dtype=np.float32))
    raise ValueError(f"Unsupported dataset format: {suffix}")


__all__ = [
    "DEFAULT_CHUNK_RECORDS",
    "load_vector_set",
    "read_fvecs",
    "read_fvecs_file",
    "write_fvecs",
    "write_fvecs_file",
]
