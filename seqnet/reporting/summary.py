"""Deterministic run summaries built from batch and epoch records."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..core.types import TrainingHistory
from .metrics import batch_record, epoch_record

_NON_SERIES_KEYS = {"split", "seed", "sha", "epoch", "batch"}


def curve_area(values: Sequence[float]) -> float:
    """Trapezoidal area under ``values``, one unit between consecutive batches."""

    y = np.asarray(values, dtype=np.float64)
    if y.size < 2:
        return 0.0
    return float(np.sum(y[1:] + y[:-1]) / 2.0)


def _batch_series(records: Iterable[Mapping[str, Any]]) -> Dict[str, List[float]]:
    series: Dict[str, List[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _NON_SERIES_KEYS or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append(float(value))
    return series


def _series_stats(values: Sequence[float], tail: int) -> Dict[str, float]:
    arr = np.asarray(values, dtype=np.float64)
    window = arr[-tail:]
    return {
        "first": float(arr[0]),
        "last": float(arr[-1]),
        "min": float(arr.min()),
        "max": float(arr.max()),
        "tail_mean": float(window.mean()),
        "tail_area": curve_area(window),
    }


def _best_epoch(epochs: Sequence[Mapping[str, Any]]) -> int | None:
    if not epochs:
        return None
    key = "val_loss" if all("val_loss" in e for e in epochs) else "loss"
    return int(min(epochs, key=lambda e: float(e[key]))["epoch"])


def build_summary(
    batches: Sequence[Mapping[str, Any]],
    epochs: Sequence[Mapping[str, Any]],
    *,
    tail: int = 32,
) -> Dict[str, Any]:
    """Summarise per-batch curves over the last ``tail`` batches and the epoch table."""

    tail_window = min(max(tail, 0), len(batches))
    metrics = (
        {name: _series_stats(values, tail_window) for name, values in _batch_series(batches).items()}
        if tail_window
        else {}
    )
    final = {k: v for k, v in epochs[-1].items() if k not in {"split", "seed", "sha"}} if epochs else None
    return {
        "version": 1,
        "records": len(batches),
        "tail_window": tail_window,
        "metrics": metrics,
        "epochs": len(epochs),
        "best_epoch": _best_epoch(epochs),
        "final_epoch": final,
    }


def summarize_history(history: TrainingHistory, *, tail: int = 32) -> Dict[str, Any]:
    return build_summary(
        [batch_record(event) for event in history.batch_history],
        [epoch_record(event) for event in history.epoch_history],
        tail=tail,
    )


def write_summary(
    metrics_jsonl: str | Path, out_summary_json: str | Path, *, tail: int = 32
) -> str:
    """Summarise the records of a :class:`~seqnet.reporting.metrics.JsonlSink` file."""

    batches: List[Mapping[str, Any]] = []
    epochs: List[Mapping[str, Any]] = []
    metrics_path = Path(metrics_jsonl)
    if metrics_path.exists():
        for line in metrics_path.read_text().splitlines():
            if not line.strip():
                continue
            record = json.loads(line)
            if record.get("split") == "train":
                batches.append(record)
            elif record.get("split") == "epoch":
                epochs.append(record)

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = build_summary(batches, epochs, tail=tail)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["build_summary", "curve_area", "summarize_history", "write_summary"]
