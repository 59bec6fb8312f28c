"""Shape helpers for tensors whose leading batch dimension may be unknown."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..errors import ArgumentError
from .types import Shape


def make_shape(dims: Iterable[int]) -> Shape:
    return tuple(int(d) for d in dims)


def num_elements(shape: Sequence[int]) -> int:
    """Product of the absolute dimension sizes.

    An unknown dimension is encoded as ``-1`` so it contributes a factor of one.
    """

    total = 1
    for dim in shape:
        total *= abs(int(dim))
    return total


def format_shape(shape: Sequence[int]) -> str:
    return "(" + ", ".join("None" if int(d) < 0 else str(int(d)) for d in shape) + ")"


def as_pair(value: int | Sequence[int], name: str) -> tuple[int, int]:
    """Normalise an int, a ``(h, w)`` pair or an NHWC ``(1, h, w, 1)`` quadruple."""

    if isinstance(value, int):
        return value, value
    values = [int(v) for v in value]
    if len(values) == 2:
        return values[0], values[1]
    if len(values) == 4:
        return values[1], values[2]
    raise ArgumentError(f"{name} must be an int, a pair or an NHWC quadruple, got {value!r}")


__all__ = ["as_pair", "format_shape", "make_shape", "num_elements"]
