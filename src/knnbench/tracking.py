from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, TextIO

from .report import serialize_report
from .types import BenchmarkReport

# Queries between two progress events.
PROGRESS_INTERVAL = 100


def _flatten_dict(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flattened: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flattened.update(_flatten_dict(value, prefix=full_key))
        else:
            flattened[full_key] = value
    return flattened


class TrackingSink:
    """Observer of a benchmark run. Every hook is a no-op by default."""

    def on_progress(self, *, index: int, total: int) -> None:
        del index, total

    def log_report(self, *, report: BenchmarkReport) -> None:
        del report

    def finish(self) -> None:
        return


class NullTrackingSink(TrackingSink):
    pass


class ConsoleTrackingSink(TrackingSink):
    def __init__(self, stream: TextIO | None = None):
        self._stream = stream

    def on_progress(self, *, index: int, total: int) -> None:
        print(f"processing query vector:\t{index}/{total}", file=self._stream)


@dataclass(slots=True)
class WandbConfig:
    enabled: bool = False
    project: str | None = None
    entity: str | None = None
    run_name: str | None = None
    group: str | None = None
    job_type: str | None = None
    tags: list[str] | None = None
    mode: str | None = None


class WandbTrackingSink(TrackingSink):
    def __init__(
        self,
        *,
        config: WandbConfig,
        runtime: dict[str, Any],
    ):
        try:
            import wandb
        except Exception as exc:  # pragma: no cover - depends on env
            raise RuntimeError(
                "WandB is enabled but 'wandb' is not installed. "
                "Install with: pip install -e '.[wandb]'"
            ) from exc

        if not config.project:
            raise ValueError("WandB is enabled but project is missing")

        self._wandb = wandb
        self._run = wandb.init(
            project=config.project,
            entity=config.entity,
            name=config.run_name,
            group=config.group,
            job_type=config.job_type,
            tags=config.tags,
            mode=config.mode,
            config={"runtime": runtime},
        )

    def on_progress(self, *, index: int, total: int) -> None:
        self._wandb.log({"progress/query_index": index, "progress/total": total})

    def log_report(self, *, report: BenchmarkReport) -> None:
        payload = _flatten_dict(serialize_report(report), prefix="report")
        self._wandb.log(payload)
        for key, value in payload.items():
            self._run.summary[key] = value
        self._run.summary["report_json"] = json.dumps(serialize_report(report), ensure_ascii=False)

    def finish(self) -> None:
        self._run.finish()


def build_tracking_sink(*, runtime: dict[str, Any]) -> TrackingSink:
    wandb_cfg_raw = dict(runtime.get("wandb", {}))
    config = WandbConfig(
        enabled=bool(wandb_cfg_raw.get("enabled", False)),
        project=wandb_cfg_raw.get("project"),
        entity=wandb_cfg_raw.get("entity"),
        run_name=wandb_cfg_raw.get("run_name"),
        group=wandb_cfg_raw.get("group"),
        job_type=wandb_cfg_raw.get("job_type"),
        tags=list(wandb_cfg_raw.get("tags", [])) if wandb_cfg_raw.get("tags") else None,
        mode=wandb_cfg_raw.get("mode"),
    )
    if config.enabled:
        return WandbTrackingSink(config=config, runtime=runtime)
    if runtime.get("progress", True):
        return ConsoleTrackingSink()
    return NullTrackingSink()


__all__ = [
    "ConsoleTrackingSink",
    "NullTrackingSink",
    "PROGRESS_INTERVAL",
    "TrackingSink",
    "WandbConfig",
    "WandbTrackingSink",
    "build_tracking_sink",
]
