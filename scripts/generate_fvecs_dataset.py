from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np

from knnbench.dataset import write_fvecs_file


def _make_dataset(
    *,
    train_size: int,
    query_size: int,
    dim: int,
    n_centers: int,
    cluster_noise: float,
    seed: int,
) -> tuple[np.ndarray, np.ndarray]:
    if train_size < 1:
        raise ValueError("train_size must be >= 1")
    if query_size < 1:
        raise ValueError("query_size must be >= 1")
    if dim < 1:
        raise ValueError("dim must be >= 1")
    if n_centers < 1:
        raise ValueError("n_centers must be >= 1")
    if cluster_noise <= 0.0:
        raise ValueError("cluster_noise must be > 0")

    rng = np.random.default_rng(seed)

    # Clustered data gives IVF partitions something to separate.
    centers = rng.normal(scale=4.0, size=(n_centers, dim)).astype(np.float32)
    train_assign = rng.integers(0, n_centers, size=train_size)
    query_assign = rng.integers(0, n_centers, size=query_size)

    train = centers[train_assign] + rng.normal(scale=cluster_noise, size=(train_size, dim))
    queries = centers[query_assign] + rng.normal(scale=cluster_noise * 1.1, size=(query_size, dim))
    return train.astype(np.float32), queries.astype(np.float32)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a clustered base/query pair of .fvecs files."
    )
    parser.add_argument("--output-dir", required=True, help="Directory for base.fvecs and query.fvecs")
    parser.add_argument("--train-size", type=int, default=100_000)
    parser.add_argument("--query-size", type=int, default=1_000)
    parser.add_argument("--dim", type=int, default=128)
    parser.add_argument("--n-centers", type=int, default=256)
    parser.add_argument("--cluster-noise", type=float, default=1.0)
    parser.add_argument("--seed", type=int, default=42)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    train, queries = _make_dataset(
        train_size=args.train_size,
        query_size=args.query_size,
        dim=args.dim,
        n_centers=args.n_centers,
        cluster_noise=args.cluster_noise,
        seed=args.seed,
    )

    base_path = output_dir / "base.fvecs"
    query_path = output_dir / "query.fvecs"
    write_fvecs_file(base_path, train)
    write_fvecs_file(query_path, queries)

    print(f"written: {base_path.resolve()}")
    print(f"written: {query_path.resolve()}")
    print(f"train={train.shape}, queries={queries.shape}")


if __name__ == "__main__":
    main()
