from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from time import perf_counter
from typing import Any

import numpy as np

from .dataset import load_vector_set
from .harness import BenchmarkHarness, result_identifier
from .index import AsyncFaissIVFIndex, FaissIVFIndex
from .metrics import recall_hits
from .report import summary_lines, write_report
from .scenario import DEFAULT_RUNTIME, load_scenario
from .search import flat_query
from .tracking import build_tracking_sink
from .types import VectorSet


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("dataset", nargs="?", default=None, help="Dataset path (.fvecs/.npy/.hdf5/.h5)")
    parser.add_argument("queries", nargs="?", default=None, help="Query vector set path (.fvecs/.npy/.hdf5/.h5)")
    parser.add_argument("--scenario", default=None, help="Scenario YAML file path")
    parser.add_argument("--dataset-key", default=None, help="HDF5 dataset holding the data vectors (default: train)")
    parser.add_argument("--queries-key", default=None, help="HDF5 dataset holding the query vectors (default: test)")
    parser.add_argument(
        "--index-path",
        default=None,
        help="faiss index file; loaded when it exists, otherwise built and saved there",
    )
    parser.add_argument("--n-list", type=int, default=None, help="Number of IVF partitions when building")
    parser.add_argument("-k", "--k", type=int, default=None, help="Number of nearest neighbors to return")
    parser.add_argument("-p", "--nprobe", type=int, default=None, help="Number of partitions to search in")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="knnbench",
        description="Measure ANN index recall and latency against exact brute-force search",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    query = commands.add_parser("query", help="Query the index with a single query vector")
    _add_common_arguments(query)
    query.add_argument(
        "-q",
        "--query-index",
        type=int,
        default=None,
        help="Index of the query to evaluate. Randomly chosen if omitted.",
    )

    batch = commands.add_parser("batch", help="Query the index with every query vector")
    _add_common_arguments(batch)
    batch.add_argument("-s", "--stats-path", default=None, help="Output path of the statistics (JSON)")
    batch.add_argument("-l", "--limit", type=int, default=None, help="Limits the number of queries")
    batch.add_argument("-a", "--async", dest="run_async", action="store_true", help="Run the cooperative model")
    batch.add_argument("--no-progress", action="store_true", help="Do not print progress lines")
    batch.add_argument("--wandb", action="store_true", help="Enable Weights & Biases tracking")
    batch.add_argument("--wandb-project", default=None, help="WandB project name")
    batch.add_argument("--wandb-run-name", default=None, help="WandB run name")
    batch.add_argument("--wandb-mode", default=None, help="WandB mode (online/offline/disabled)")
    return parser.parse_args(argv)


def _build_runtime_config(args: argparse.Namespace) -> dict[str, Any]:
    if args.scenario:
        runtime = load_scenario(args.scenario)
    else:
        runtime = dict(DEFAULT_RUNTIME)

    if args.dataset is not None:
        runtime["dataset"] = args.dataset
    if args.queries is not None:
        runtime["queries"] = args.queries
    if args.dataset_key is not None:
        runtime["dataset_key"] = args.dataset_key
    if args.queries_key is not None:
        runtime["queries_key"] = args.queries_key
    if args.index_path is not None:
        runtime["index_path"] = args.index_path
    if args.n_list is not None:
        runtime["n_list"] = int(args.n_list)
    if args.k is not None:
        runtime["k"] = int(args.k)
    if args.nprobe is not None:
        runtime["nprobe"] = int(args.nprobe)

    if args.command == "batch":
        if args.stats_path is not None:
            runtime["stats_path"] = str(args.stats_path)
        if args.limit is not None:
            runtime["limit"] = int(args.limit)
        if args.run_async:
            runtime["async"] = True
        if args.no_progress:
            runtime["progress"] = False

        wandb_cfg = dict(runtime.get("wandb", {}))
        if args.wandb:
            wandb_cfg["enabled"] = True
        if args.wandb_project is not None:
            wandb_cfg["project"] = args.wandb_project
        if args.wandb_run_name is not None:
            wandb_cfg["run_name"] = args.wandb_run_name
        if args.wandb_mode is not None:
            wandb_cfg["mode"] = args.wandb_mode
        runtime["wandb"] = wandb_cfg

    if not runtime.get("dataset") or not runtime.get("queries"):
        raise ValueError("dataset and queries are required. Pass them or set dataset.* in --scenario.")
    return runtime


def _load_vectors(kind: str, path: str, key: str | None = None) -> VectorSet:
    print(f"loading {kind}: {path}")
    time = perf_counter()
    vectors = load_vector_set(path, key=key)
    print(f"loaded {kind} in {perf_counter() - time:.3f} s")
    print(f"vector size: {vectors.dimension}")
    print(f"number of vectors: {len(vectors)}")
    return vectors


def _load_index(runtime: dict[str, Any], data: VectorSet) -> FaissIVFIndex:
    index_path = runtime.get("index_path")
    time = perf_counter()
    if index_path and Path(index_path).exists():
        print(f"loading index: {index_path}")
        index = FaissIVFIndex.load(index_path)
        print(f"loaded index in {perf_counter() - time:.3f} s")
        return index
    print(f"building index: n_list={runtime['n_list']}")
    index = FaissIVFIndex.build(data, n_list=runtime["n_list"])
    print(f"built index in {perf_counter() - time:.3f} s")
    if index_path:
        print(f"saving index: {index_path}")
        index.save(index_path)
    return index


async def _load_index_async(runtime: dict[str, Any], data: VectorSet) -> AsyncFaissIVFIndex:
    index = await asyncio.to_thread(_load_index, runtime, data)
    return AsyncFaissIVFIndex(index)


def _do_query(runtime: dict[str, Any], query_index: int | None) -> None:
    data = _load_vectors("dataset", runtime["dataset"], runtime.get("dataset_key"))
    queries = _load_vectors("query vectors", runtime["queries"], runtime.get("queries_key"))
    index = _load_index(runtime, data)

    if query_index is None:
        query_index = int(np.random.default_rng().integers(len(queries)))
    print(f"query vector index: {query_index}")
    if not 0 <= query_index < len(queries):
        raise IndexError(f"query index out of bounds: {query_index} ≥ {len(queries)}")
    k = int(runtime["k"])
    print(f"k: {k}")
    print(f"nprobe: {runtime['nprobe']}")

    vector = queries.get(query_index)
    time = perf_counter()
    results = [result_identifier(r.get_attribute("datum_id")) for r in index.query(vector, k, runtime["nprobe"])]
    print(f"queried k-NN in {perf_counter() - time:.6f} s")
    print(f"selected datum IDs: {results}")

    time = perf_counter()
    flat_results = flat_query(data, vector, k)
    print(f"flat-queried k-NN in {perf_counter() - time:.6f} s")
    hits = recall_hits(flat_results, results)
    print(f"recall: {hits}/{len(flat_results)} ({hits / len(flat_results) * 100.0:.0f}%)")


def _do_batch(runtime: dict[str, Any]) -> None:
    data = _load_vectors("dataset", runtime["dataset"], runtime.get("dataset_key"))
    queries = _load_vectors("query vectors", runtime["queries"], runtime.get("queries_key"))

    tracking_sink = build_tracking_sink(runtime=runtime)
    try:
        harness = BenchmarkHarness(
            data,
            queries,
            k=int(runtime["k"]),
            nprobe=int(runtime["nprobe"]),
            limit=runtime.get("limit"),
            tracking=tracking_sink,
        )
        if runtime.get("async"):
            report = asyncio.run(harness.run_async(_load_index_async(runtime, data)))
        else:
            report = harness.run(_load_index(runtime, data))

        for line in summary_lines(report):
            print(line)
        stats_path = runtime.get("stats_path")
        if stats_path:
            print(f"saving stats: {stats_path}")
            write_report(report, stats_path)
    finally:
        tracking_sink.finish()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    runtime = _build_runtime_config(args)
    if args.command == "query":
        _do_query(runtime, args.query_index)
    else:
        _do_batch(runtime)


if __name__ == "__main__":
    main()
