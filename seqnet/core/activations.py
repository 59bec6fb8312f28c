"""Activation functions fused into Dense and Conv2D layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .types import Array


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def softmax(z: Array) -> Array:
    """Row-wise softmax over the last axis."""

    shifted = z - np.max(z, axis=-1, keepdims=True)
    e = np.exp(shifted)
    return e / np.sum(e, axis=-1, keepdims=True)


def _relu_backward(z: Array, out: Array, grad: Array) -> Array:
    return grad * (z > 0)


def _linear_backward(z: Array, out: Array, grad: Array) -> Array:
    return grad


def _sigmoid_backward(z: Array, out: Array, grad: Array) -> Array:
    return grad * out * (1.0 - out)


def _tanh_backward(z: Array, out: Array, grad: Array) -> Array:
    return grad * (1.0 - out**2)


def _softmax_backward(z: Array, out: Array, grad: Array) -> Array:
    # Jacobian-vector product of the softmax along the last axis.
    dot = np.sum(grad * out, axis=-1, keepdims=True)
    return out * (grad - dot)


BackwardFn = Callable[[Array, Array, Array], Array]


@dataclass(frozen=True)
class Activation:
    """Named activation with its backward rule."""

    name: str
    fn: Callable[[Array], Array]
    backward_fn: BackwardFn

    def __call__(self, z: Array) -> Array:
        return self.fn(z)

    def backward(self, z: Array, out: Array, grad: Array) -> Array:
        return self.backward_fn(z, out, grad)


_REGISTRY: Dict[str, Activation] = {}


def register(name: str, fn: Callable[[Array], Array], backward_fn: BackwardFn) -> None:
    _REGISTRY[name] = Activation(name, fn, backward_fn)


def get(name: str | Activation) -> Activation:
    if isinstance(name, Activation):
        return name
    key = str(name).lower()
    if key not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown activation {name!r}. Available activations: {available}")
    return _REGISTRY[key]


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


register("relu", relu, _relu_backward)
register("linear", lambda z: z, _linear_backward)
register("sigmoid", sigmoid, _sigmoid_backward)
register("tanh", np.tanh, _tanh_backward)
register("softmax", softmax, _softmax_backward)

__all__ = ["Activation", "get", "names", "register", "relu", "sigmoid", "softmax"]
