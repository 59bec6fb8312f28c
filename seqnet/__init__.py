"""seqnet public API."""

from .core import activations, initializers  # noqa: F401
from .core.types import BatchEvent, EpochEvent, EvaluationResult, RunResult, TrainingHistory
from .data import Dataset
from .errors import ArgumentError, SeqnetError, ShapeMismatchError, StateError
from .layers import AvgPool2D, Conv2D, Dense, Flatten, Input, MaxPool2D
from .model import InferenceModel, Sequential
from .training import losses, metrics, optimizers  # noqa: F401

__all__ = [
    "ArgumentError",
    "AvgPool2D",
    "BatchEvent",
    "Conv2D",
    "Dataset",
    "Dense",
    "EpochEvent",
    "EvaluationResult",
    "Flatten",
    "InferenceModel",
    "Input",
    "MaxPool2D",
    "RunResult",
    "SeqnetError",
    "Sequential",
    "ShapeMismatchError",
    "StateError",
    "TrainingHistory",
    "activations",
    "initializers",
    "losses",
    "metrics",
    "optimizers",
]
