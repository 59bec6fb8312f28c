"""Gradient-based update rules.

Every optimizer owns its slot state (momentum buffers, moment estimates)
keyed by ``"<layer>/<variable>"``. The state survives across batches and
``fit`` calls and is cleared by :meth:`Optimizer.prepare`, which
``Sequential.compile`` invokes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Dict, Mapping

import numpy as np

from ..core.types import Array, Gradients
from ..errors import ArgumentError

if TYPE_CHECKING:
    from ..model.graph import Graph


@dataclass
class Optimizer:
    """Base optimizer applying :meth:`update` to every variable with a gradient."""

    learning_rate: float = 0.01
    iterations: int = field(default=0, init=False, repr=False)
    _slots: Dict[str, Dict[str, Array]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.learning_rate <= 0:
            raise ArgumentError(f"learning_rate must be positive, got {self.learning_rate}")

    def prepare(self) -> None:
        self.iterations = 0
        self._slots = {}

    def apply_gradients(self, graph: "Graph", grads: Gradients) -> None:
        self.iterations += 1
        for layer_name, layer_grads in grads.items():
            variables = graph.variables(layer_name)
            for name, grad in layer_grads.items():
                key = f"{layer_name}/{name}"
                updated = self.update(key, variables[name], np.asarray(grad, dtype=np.float32))
                graph.assign(layer_name, name, updated)

    def update(self, key: str, param: Array, grad: Array) -> Array:
        raise NotImplementedError

    def _slot(self, key: str, name: str, like: Array, fill: float = 0.0) -> Array:
        slots = self._slots.setdefault(key, {})
        if name not in slots:
            slots[name] = np.full_like(like, fill, dtype=np.float32)
        return slots[name]

    # ------------------------------------------------------------------
    # Persistence

    def get_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {"name": _NAMES[type(self)]}
        for item in fields(self):
            if item.init:
                config[item.name] = getattr(self, item.name)
        return config

    def state_dict(self) -> Dict[str, Array]:
        state = {
            f"{key}/{slot}": value.copy()
            for key, slots in self._slots.items()
            for slot, value in slots.items()
        }
        state["iterations"] = np.asarray(self.iterations, dtype=np.int64)
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        self.prepare()
        for name, value in state.items():
            if name == "iterations":
                self.iterations = int(value)
                continue
            key, slot = name.rsplit("/", 1)
            self._slots.setdefault(key, {})[slot] = np.asarray(value, dtype=np.float32)


@dataclass
class SGD(Optimizer):
    """Vanilla stochastic gradient descent."""

    learning_rate: float = 0.2

    def update(self, key: str, param: Array, grad: Array) -> Array:
        return param - self.learning_rate * grad


@dataclass
class Momentum(Optimizer):
    learning_rate: float = 0.001
    momentum: float = 0.99
    use_nesterov: bool = False

    def update(self, key: str, param: Array, grad: Array) -> Array:
        velocity = self._slot(key, "momentum", param)
        velocity[...] = self.momentum * velocity + grad
        if self.use_nesterov:
            return param - self.learning_rate * (grad + self.momentum * velocity)
        return param - self.learning_rate * velocity


@dataclass
class AdaGrad(Optimizer):
    learning_rate: float = 0.1
    initial_accumulator_value: float = 0.01

    def update(self, key: str, param: Array, grad: Array) -> Array:
        accumulator = self._slot(key, "accumulator", param, self.initial_accumulator_value)
        accumulator += grad**2
        return param - self.learning_rate * grad / np.sqrt(accumulator)


@dataclass
class RMSProp(Optimizer):
    learning_rate: float = 0.001
    decay: float = 0.9
    momentum: float = 0.0
    epsilon: float = 1e-10

    def update(self, key: str, param: Array, grad: Array) -> Array:
        rms = self._slot(key, "rms", param)
        rms[...] = self.decay * rms + (1.0 - self.decay) * grad**2
        step = self.learning_rate * grad / (np.sqrt(rms) + self.epsilon)
        if self.momentum:
            velocity = self._slot(key, "momentum", param)
            velocity[...] = self.momentum * velocity + step
            step = velocity
        return param - step


@dataclass
class Adam(Optimizer):
    learning_rate: float = 0.001
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-07

    def update(self, key: str, param: Array, grad: Array) -> Array:
        m = self._slot(key, "m", param)
        v = self._slot(key, "v", param)
        m[...] = self.beta1 * m + (1.0 - self.beta1) * grad
        v[...] = self.beta2 * v + (1.0 - self.beta2) * grad**2
        t = self.iterations
        lr_t = self.learning_rate * np.sqrt(1.0 - self.beta2**t) / (1.0 - self.beta1**t)
        return param - lr_t * m / (np.sqrt(v) + self.epsilon)


_CLASSES = {
    "sgd": SGD,
    "momentum": Momentum,
    "adagrad": AdaGrad,
    "rmsprop": RMSProp,
    "adam": Adam,
}
_NAMES = {cls: name for name, cls in _CLASSES.items()}


def get(config: str | Mapping[str, Any] | Optimizer) -> Optimizer:
    """Return an optimizer from an instance, a name, or a ``{"name": ...}`` mapping."""

    if isinstance(config, Optimizer):
        return config
    if isinstance(config, str):
        config = {"name": config}
    options = dict(config)
    name = str(options.pop("name", "sgd")).lower()
    if name not in _CLASSES:
        available = ", ".join(sorted(_CLASSES))
        raise KeyError(f"Unknown optimizer {name!r}. Available optimizers: {available}")
    return _CLASSES[name](**options)


__all__ = ["AdaGrad", "Adam", "Momentum", "Optimizer", "RMSProp", "SGD", "get"]
