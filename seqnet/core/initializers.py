"""Seeded variable initializers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

import numpy as np

from .types import Array, Shape


@dataclass(frozen=True)
class Initializer:
    """Base initializer: ``initializer(shape, fan_in, fan_out)`` returns an array."""

    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        raise NotImplementedError

    def get_config(self) -> Dict[str, Any]:
        return {"class_name": type(self).__name__, "config": asdict(self)}


@dataclass(frozen=True)
class Zeros(Initializer):
    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        return np.zeros(shape, dtype=np.float32)


@dataclass(frozen=True)
class Ones(Initializer):
    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        return np.ones(shape, dtype=np.float32)


@dataclass(frozen=True)
class Constant(Initializer):
    value: float = 0.0

    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        return np.full(shape, self.value, dtype=np.float32)


@dataclass(frozen=True)
class RandomNormal(Initializer):
    mean: float = 0.0
    stddev: float = 0.05
    seed: int = 0

    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        rng = np.random.default_rng(self.seed)
        return rng.normal(self.mean, self.stddev, size=shape).astype(np.float32)


@dataclass(frozen=True)
class HeNormal(Initializer):
    seed: int = 0

    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        rng = np.random.default_rng(self.seed)
        std = np.sqrt(2.0 / max(1, fan_in))
        return (rng.standard_normal(shape) * std).astype(np.float32)


@dataclass(frozen=True)
class HeUniform(Initializer):
    seed: int = 0

    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        rng = np.random.default_rng(self.seed)
        limit = np.sqrt(6.0 / max(1, fan_in))
        return rng.uniform(-limit, limit, size=shape).astype(np.float32)


@dataclass(frozen=True)
class GlorotNormal(Initializer):
    seed: int = 0

    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        rng = np.random.default_rng(self.seed)
        std = np.sqrt(2.0 / max(1, fan_in + fan_out))
        return (rng.standard_normal(shape) * std).astype(np.float32)


@dataclass(frozen=True)
class GlorotUniform(Initializer):
    seed: int = 0

    def __call__(self, shape: Shape, fan_in: int, fan_out: int) -> Array:
        rng = np.random.default_rng(self.seed)
        limit = np.sqrt(6.0 / max(1, fan_in + fan_out))
        return rng.uniform(-limit, limit, size=shape).astype(np.float32)


_CLASSES = {
    cls.__name__: cls
    for cls in (Zeros, Ones, Constant, RandomNormal, HeNormal, HeUniform, GlorotNormal, GlorotUniform)
}


def deserialize(config: Mapping[str, Any] | Initializer | str) -> Initializer:
    """Rebuild an initializer from ``get_config`` output or a class name."""

    if isinstance(config, Initializer):
        return config
    if isinstance(config, str):
        config = {"class_name": config, "config": {}}
    name = str(config["class_name"])
    if name not in _CLASSES:
        raise KeyError(f"Unknown initializer: {name}")
    return _CLASSES[name](**dict(config.get("config", {})))


__all__ = [
    "Constant",
    "GlorotNormal",
    "GlorotUniform",
    "HeNormal",
    "HeUniform",
    "Initializer",
    "Ones",
    "RandomNormal",
    "Zeros",
    "deserialize",
]
