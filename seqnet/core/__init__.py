"""Core numerical primitives for seqnet."""

from . import activations, initializers, shape, types

__all__ = ["activations", "initializers", "shape", "types"]
