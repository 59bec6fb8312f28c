"""Core typing contracts for seqnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

import numpy as np

Array = np.ndarray
Shape = Tuple[int, ...]
Gradients = Dict[str, Dict[str, Array]]

UNKNOWN_DIM = -1


@dataclass(frozen=True)
class Batch:
    """A single mini-batch of data."""

    inputs: Array
    targets: Array

    def __len__(self) -> int:
        return int(self.inputs.shape[0])


@dataclass(frozen=True)
class BatchEvent:
    """Loss and metric values recorded after one optimisation step."""

    epoch_index: int
    batch_index: int
    loss_value: float
    metric_value: float
    metric_values: Mapping[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class EpochEvent:
    """Per-epoch aggregate, including validation results when available."""

    epoch_index: int
    loss_value: float
    metric_value: float
    val_loss_value: float | None = None
    val_metric_value: float | None = None


@dataclass
class TrainingHistory:
    """Append-only record of a ``fit`` call."""

    batch_history: List[BatchEvent] = field(default_factory=list)
    epoch_history: List[EpochEvent] = field(default_factory=list)

    def append_batch(self, event: BatchEvent) -> None:
        self.batch_history.append(event)

    def append_epoch(self, event: EpochEvent) -> None:
        self.epoch_history.append(event)

    def last_epoch(self) -> EpochEvent | None:
        return self.epoch_history[-1] if self.epoch_history else None


@dataclass(frozen=True)
class EvaluationResult:
    """Mean loss and metric values computed by ``Sequential.evaluate``."""

    loss_value: float
    metrics: Mapping[str, float]


@dataclass(frozen=True)
class RunResult:
    """Outputs of a pipeline run."""

    history: TrainingHistory
    evaluation: EvaluationResult
    run_dir: str
    metrics_path: str
    csv_path: str
    manifest_path: str
    summary_path: str
    model_path: str | None = None
    plot_path: str | None = None

    @property
    def steps(self) -> int:
        return len(self.history.batch_history)


__all__ = [
    "Array",
    "Batch",
    "BatchEvent",
    "EpochEvent",
    "EvaluationResult",
    "Gradients",
    "RunResult",
    "Shape",
    "TrainingHistory",
    "UNKNOWN_DIM",
]
