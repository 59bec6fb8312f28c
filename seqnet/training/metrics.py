"""Metric registry for training and evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..core.types import Array
from ..errors import ArgumentError

MetricFn = Callable[[Array, Array], float]

ACCURACY = "accuracy"


@dataclass(frozen=True)
class Metric:
    """Named scalar score over a (predictions, targets) batch."""

    name: str
    fn: MetricFn

    def __call__(self, predictions: Array, targets: Array) -> float:
        return float(self.fn(predictions, targets))


def _class_indices(targets: Array) -> Array:
    if targets.ndim == 2 and targets.shape[1] > 1:
        return np.argmax(targets, axis=1)
    return targets.reshape(-1).astype(int)


def _accuracy(preds: Array, targs: Array) -> float:
    if preds.ndim == 2 and preds.shape[1] == 1:
        # Single logit column: positive class when the logit is above zero.
        pred_idx = (preds[:, 0] > 0).astype(int)
    else:
        pred_idx = np.argmax(preds, axis=1)
    return float(np.mean(pred_idx == _class_indices(targs)))


def _mae(preds: Array, targs: Array) -> float:
    return float(np.mean(np.abs(preds - targs)))


def _mse(preds: Array, targs: Array) -> float:
    return float(np.mean((preds - targs) ** 2))


def _rmse(preds: Array, targs: Array) -> float:
    return float(np.sqrt(np.mean((preds - targs) ** 2)))


_REGISTRY: Dict[str, Metric] = {}


def register(name: str, fn: MetricFn) -> Metric:
    metric = Metric(name, fn)
    _REGISTRY[name] = metric
    return metric


def get(name: str | Metric) -> Metric:
    if isinstance(name, Metric):
        return name
    key = str(name).lower()
    if key not in _REGISTRY:
        raise KeyError(f"Unknown metric: {name}")
    return _REGISTRY[key]


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


def resolve_metrics(metrics: str | Metric | Sequence[str | Metric]) -> List[Metric]:
    """Normalise a metric, a name, or a sequence of either into a list."""

    if isinstance(metrics, (str, Metric)):
        metrics = [metrics]
    resolved = [get(m) for m in metrics]
    if not resolved:
        raise ArgumentError("At least one metric is required")
    return resolved


def compute_metrics(
    metrics: Iterable[Metric], predictions: Array, targets: Array
) -> Mapping[str, float]:
    return {metric.name: metric(predictions, targets) for metric in metrics}


Accuracy = register(ACCURACY, _accuracy)
MAE = register("mae", _mae)
MSE = register("mse", _mse)
RMSE = register("rmse", _rmse)

__all__ = [
    "ACCURACY",
    "Accuracy",
    "MAE",
    "MSE",
    "Metric",
    "RMSE",
    "compute_metrics",
    "get",
    "names",
    "register",
    "resolve_metrics",
]
