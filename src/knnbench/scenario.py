from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


DEFAULT_RUNTIME: dict[str, Any] = {
    "dataset": None,
    "queries": None,
    "dataset_key": "train",
    "queries_key": "test",
    "index_path": None,
    "n_list": 2048,
    "k": 100,
    "nprobe": 10,
    "limit": None,
    "async": False,
    "stats_path": None,
    "progress": True,
    "wandb": {
        "enabled": False,
        "project": None,
        "entity": None,
        "run_name": None,
        "group": None,
        "job_type": None,
        "tags": [],
        "mode": None,
    },
}


def _as_dict(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"scenario: '{name}' must be a mapping")
    return dict(value)


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)


def _normalize_wandb(raw: dict[str, Any]) -> dict[str, Any]:
    cfg = {
        "enabled": bool(raw.get("enabled", False)),
        "project": raw.get("project"),
        "entity": raw.get("entity"),
        "run_name": raw.get("run_name"),
        "group": raw.get("group"),
        "job_type": raw.get("job_type"),
        "mode": raw.get("mode"),
    }
    tags = raw.get("tags")
    if tags is None:
        cfg["tags"] = []
    elif isinstance(tags, list):
        cfg["tags"] = [str(x) for x in tags]
    else:
        raise ValueError("scenario: 'wandb.tags' must be a list")
    return cfg


def load_scenario(path: str | Path) -> dict[str, Any]:
    scenario_path = Path(path)
    raw_loaded = yaml.safe_load(scenario_path.read_text(encoding="utf-8"))
    raw = _as_dict(raw_loaded, name="root")

    dataset = _as_dict(raw.get("dataset"), name="dataset")
    if "path" not in dataset:
        raise ValueError("scenario: dataset.path is required")
    if "queries" not in dataset:
        raise ValueError("scenario: dataset.queries is required")

    index = _as_dict(raw.get("index"), name="index")
    evaluation = _as_dict(raw.get("evaluation"), name="evaluation")
    output = _as_dict(raw.get("output"), name="output")
    wandb = _as_dict(raw.get("wandb"), name="wandb")

    cfg = dict(DEFAULT_RUNTIME)
    cfg.update(
        {
            "dataset": str(dataset["path"]),
            "queries": str(dataset["queries"]),
            "dataset_key": str(dataset.get("key", cfg["dataset_key"])),
            "queries_key": str(dataset.get("queries_key", cfg["queries_key"])),
            "index_path": str(index["path"]) if index.get("path") is not None else cfg["index_path"],
            "n_list": int(index.get("n_list", cfg["n_list"])),
            "k": int(evaluation.get("k", cfg["k"])),
            "nprobe": int(evaluation.get("nprobe", cfg["nprobe"])),
            "limit": _optional_int(evaluation.get("limit", cfg["limit"])),
            "async": bool(evaluation.get("async", cfg["async"])),
            "stats_path": str(output["stats_path"]) if output.get("stats_path") is not None else cfg["stats_path"],
            "progress": bool(output.get("progress", cfg["progress"])),
            "wandb": _normalize_wandb(wandb),
            "scenario_path": str(scenario_path.resolve()),
            "scenario_name": str(raw.get("name", scenario_path.stem)),
            "scenario_version": int(raw.get("version", 1)),
        }
    )
    return cfg


__all__ = ["DEFAULT_RUNTIME", "load_scenario"]
