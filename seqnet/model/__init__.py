"""Model assembly, training orchestration and inference."""

from .graph import Graph, assemble
from .sequential import Sequential
from .inference import InferenceModel

__all__ = ["Graph", "InferenceModel", "Sequential", "assemble"]
