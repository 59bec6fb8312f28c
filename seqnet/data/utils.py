"""Utility helpers for dataset loaders."""

from __future__ import annotations

import os
import random
from pathlib import Path

import numpy as np

DEFAULT_DATA_SUBDIR = Path.home() / ".cache" / "seqnet"


def resolve_data_dir(data_dir: str | Path | None = None) -> Path:
    """Resolve the directory holding dataset archives."""

    env_dir = os.environ.get("SEQNET_DATA_DIR") or os.environ.get("SEQNET_CACHE_DIR")
    return Path(data_dir or env_dir or DEFAULT_DATA_SUBDIR)


def seed_everything(seed: int) -> np.random.Generator:
    """Seed Python and NumPy RNGs and return a generator."""

    random.seed(seed)
    np.random.seed(seed % (2**32 - 1))
    return np.random.default_rng(seed)


def one_hot(labels: np.ndarray, num_classes: int) -> np.ndarray:
    labels = np.asarray(labels).reshape(-1).astype(np.int64)
    return np.eye(num_classes, dtype=np.float32)[labels]


__all__ = ["one_hot", "resolve_data_dir", "seed_everything"]
