from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from .errors import ReportPersistenceError
from .types import BenchmarkReport, StatsSummary

_SUMMARY_FIELDS = ("mean", "std", "median", "min", "max", "q1", "q3")

# s -> ms
TIME_UNIT = 1_000.0


def _to_builtin(value: Any) -> float:
    if isinstance(value, np.float32):
        # Shortest repr that round-trips as f32, not the widened f64 digits.
        return float(str(value))
    return float(value)


def serialize_summary(summary: StatsSummary) -> dict[str, float]:
    return {name: _to_builtin(getattr(summary, name)) for name in _SUMMARY_FIELDS}


def serialize_report(report: BenchmarkReport) -> dict[str, Any]:
    return {
        "k": int(report.k),
        "nprobe": int(report.nprobe),
        "num_queries": int(report.num_queries),
        "seconds": serialize_summary(report.seconds),
        "flat_seconds": serialize_summary(report.flat_seconds),
        "recalls": serialize_summary(report.recalls),
    }


def dumps_report(report: BenchmarkReport) -> str:
    return json.dumps(serialize_report(report), indent=2, ensure_ascii=False)


def write_report(report: BenchmarkReport, path: str | Path) -> Path:
    output = Path(path)
    try:
        output.write_text(dumps_report(report), encoding="utf-8")
    except OSError as exc:
        raise ReportPersistenceError(str(output), report, exc) from exc
    return output


def _fmt_summary(summary: StatsSummary, scale: float, decimals: int) -> str:
    values = {name: float(getattr(summary, name)) * scale for name in _SUMMARY_FIELDS}
    return (
        f"{values['mean']:.{decimals}f}±{values['std']:.{decimals}f}, "
        f"median={values['median']:.{decimals}f}, "
        f"q1={values['q1']:.{decimals}f}, "
        f"q3={values['q3']:.{decimals}f}, "
        f"min={values['min']:.{decimals}f}, "
        f"max={values['max']:.{decimals}f}"
    )


def summary_lines(report: BenchmarkReport) -> list[str]:
    return [
        "Statistics",
        f"k: {report.k}",
        f"nprobe: {report.nprobe}",
        f"indexed time (ms): {_fmt_summary(report.seconds, TIME_UNIT, 3)}",
        f"flat time (ms): {_fmt_summary(report.flat_seconds, TIME_UNIT, 3)}",
        f"recall (%): {_fmt_summary(report.recalls, 100.0, 1)}",
    ]


__all__ = [
    "TIME_UNIT",
    "dumps_report",
    "serialize_report",
    "serialize_summary",
    "summary_lines",
    "write_report",
]
