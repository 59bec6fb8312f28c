"""Loss registry used by the training loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core import activations
from ..core.activations import sigmoid, softmax
from ..core.types import Array

LossFn = Callable[[Array, Array], tuple[float, Array]]


@dataclass(frozen=True)
class Loss:
    """Loss wrapper returning both the scalar batch mean and dL/dpredictions."""

    name: str
    fn: LossFn
    output: str = "linear"

    def __call__(self, predictions: Array, targets: Array) -> tuple[float, Array]:
        return self.fn(predictions, targets)

    def activate(self, outputs: Array) -> Array:
        """Map raw model outputs to the scores this loss treats as predictions."""

        return activations.get(self.output)(outputs)


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, fn: LossFn, output: str = "linear") -> None:
        self._registry[name] = Loss(name, fn, output)

    def get(self, name: str) -> Loss:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, loss: str | Loss) -> Loss:
        if isinstance(loss, Loss):
            return loss
        return self.get(str(loss).lower())


REGISTRY = LossRegistry()


def _mse(pred: Array, target: Array) -> tuple[float, Array]:
    diff = pred - target
    loss = float(np.mean(np.square(diff)))
    return loss, 2.0 * diff / diff.size


def _mae(pred: Array, target: Array) -> tuple[float, Array]:
    diff = pred - target
    loss = float(np.mean(np.abs(diff)))
    return loss, np.sign(diff) / diff.size


def _huber(pred: Array, target: Array, delta: float = 1.0) -> tuple[float, Array]:
    diff = pred - target
    abs_diff = np.abs(diff)
    quadratic = np.minimum(abs_diff, delta)
    linear = abs_diff - quadratic
    loss = float(np.mean(0.5 * quadratic**2 + delta * linear))
    grad = np.where(abs_diff <= delta, diff, delta * np.sign(diff))
    return loss, grad / diff.size


def _ensure_one_hot(target: Array, num_classes: int) -> Array:
    if target.ndim == 2 and target.shape[1] == num_classes:
        return target.astype(np.float32)
    indices = target.reshape(-1).astype(int)
    eye = np.eye(num_classes, dtype=np.float32)
    return eye[indices]


def _softmax_cross_entropy(logits: Array, target: Array) -> tuple[float, Array]:
    n, num_classes = logits.shape
    one_hot = _ensure_one_hot(target, num_classes)
    probs = softmax(logits)
    eps = 1e-9
    loss = float(-np.mean(np.sum(one_hot * np.log(probs + eps), axis=1)))
    return loss, (probs - one_hot) / n


def _sigmoid_cross_entropy(logits: Array, target: Array) -> tuple[float, Array]:
    target = target.astype(np.float32)
    probs = sigmoid(logits)
    eps = 1e-9
    loss = float(-np.mean(target * np.log(probs + eps) + (1 - target) * np.log(1 - probs + eps)))
    return loss, (probs - target) / target.size


REGISTRY.register("softmax_cross_entropy_with_logits", _softmax_cross_entropy, "softmax")
REGISTRY.register("ce", _softmax_cross_entropy, "softmax")
REGISTRY.register("sigmoid_cross_entropy_with_logits", _sigmoid_cross_entropy, "sigmoid")
REGISTRY.register("bce", _sigmoid_cross_entropy, "sigmoid")
REGISTRY.register("mse", _mse)
REGISTRY.register("mae", _mae)
REGISTRY.register("huber", _huber)

SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS = REGISTRY.get("softmax_cross_entropy_with_logits")
SIGMOID_CROSS_ENTROPY_WITH_LOGITS = REGISTRY.get("sigmoid_cross_entropy_with_logits")
MSE = REGISTRY.get("mse")
MAE = REGISTRY.get("mae")
HUBER = REGISTRY.get("huber")

__all__ = [
    "HUBER",
    "Loss",
    "LossRegistry",
    "MAE",
    "MSE",
    "REGISTRY",
    "SIGMOID_CROSS_ENTROPY_WITH_LOGITS",
    "SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS",
]
