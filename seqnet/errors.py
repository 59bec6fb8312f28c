"""Exception taxonomy shared by the model, dataset and training modules."""

from __future__ import annotations

NOT_COMPILED_MESSAGE = "The model is not compiled yet. Compile the model to use this method."
CLOSED_MESSAGE = "The model is closed."
BATCH_MULTIPLE_MESSAGE = "The amount of images must be a multiple of batch size."


class SeqnetError(Exception):
    """Base class for all library errors."""


class StateError(SeqnetError, RuntimeError):
    """Raised when an operation is invoked before the required state is reached."""


class ShapeMismatchError(SeqnetError, ValueError):
    """Raised when a computed shape disagrees with the shape of the data."""


class ArgumentError(SeqnetError, ValueError):
    """Raised when a caller-supplied argument violates a precondition."""


__all__ = [
    "ArgumentError",
    "BATCH_MULTIPLE_MESSAGE",
    "CLOSED_MESSAGE",
    "NOT_COMPILED_MESSAGE",
    "SeqnetError",
    "ShapeMismatchError",
    "StateError",
]
