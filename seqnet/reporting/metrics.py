"""Metric sinks that plug into ``Sequential.fit`` as callbacks."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, Mapping

from ..core.types import BatchEvent, EpochEvent
from .artifacts import git_revision


def batch_record(event: BatchEvent) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "epoch": event.epoch_index,
        "batch": event.batch_index,
        "loss": float(event.loss_value),
    }
    record.update({k: float(v) for k, v in event.metric_values.items()})
    return record


def epoch_record(event: EpochEvent) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "epoch": event.epoch_index,
        "loss": float(event.loss_value),
        "metric": float(event.metric_value),
    }
    if event.val_loss_value is not None:
        record["val_loss"] = float(event.val_loss_value)
    if event.val_metric_value is not None:
        record["val_metric"] = float(event.val_metric_value)
    return record


class JsonlSink:
    """Append-only JSONL writer for batch and epoch events."""

    def __init__(
        self,
        path: str | Path,
        *,
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed
        self.sha = sha or git_revision() or "unknown"

    def _write(self, split: str, values: Mapping[str, Any]) -> None:
        record = {"split": split, "seed": self.seed, "sha": self.sha}
        record.update(values)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def on_batch_end(self, event: BatchEvent) -> None:
        self._write("train", batch_record(event))

    def on_epoch_end(self, event: EpochEvent) -> None:
        self._write("epoch", epoch_record(event))


class CsvSink:
    """Write per-epoch metrics to CSV with a stable schema."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")

    def on_epoch_end(self, event: EpochEvent) -> None:
        row = {"val_loss": "", "val_metric": ""}
        row.update(epoch_record(event))
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=sorted(row.keys()))
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)


__all__ = ["CsvSink", "JsonlSink", "batch_record", "epoch_record"]
