"""Input, Flatten and Dense layers."""

from __future__ import annotations

from typing import Any, Dict, Tuple

import numpy as np

from ..core import activations, initializers
from ..core.initializers import Initializer
from ..core.shape import format_shape, make_shape, num_elements
from ..core.types import UNKNOWN_DIM, Array, Shape
from ..errors import ArgumentError, ShapeMismatchError
from .base import Layer, Variables


class Input(Layer):
    """Entry point of a model; reshapes incoming batches to ``(-1, *dims)``."""

    def __init__(self, *dims: int, name: str = "") -> None:
        super().__init__(name)
        if not dims or any(int(d) <= 0 for d in dims):
            raise ArgumentError(f"Input dimensions must be positive, got {dims!r}")
        self.dims = make_shape(dims)

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        return (UNKNOWN_DIM,) + self.dims

    def _create_variables(self, graph, input_shape: Shape) -> None:
        self.fan_in = num_elements(self.dims)
        self.fan_out = self.fan_in

    def forward(self, variables: Variables, inputs: Array) -> Tuple[Array, Any]:
        inputs = np.asarray(inputs, dtype=np.float32)
        if inputs.size % num_elements(self.dims):
            raise ShapeMismatchError(
                f"Input of {inputs.size} elements cannot be reshaped to "
                f"{format_shape(self.compute_output_shape(()))}"
            )
        return inputs.reshape((-1,) + self.dims), None

    def backward(self, variables: Variables, cache: Any, grad: Array):
        return grad, {}

    def get_config(self) -> Dict[str, Any]:
        return {"class_name": "Input", "config": {"name": self.name, "dims": list(self.dims)}}


class Flatten(Layer):
    """Collapse every non-batch dimension into one; owns no parameters."""

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        return (int(input_shape[0]), num_elements(input_shape) // abs(int(input_shape[0])))

    def _create_variables(self, graph, input_shape: Shape) -> None:
        self.fan_in = num_elements(input_shape)
        self.fan_out = num_elements(input_shape) // abs(int(input_shape[0]))

    def forward(self, variables: Variables, inputs: Array) -> Tuple[Array, Any]:
        return inputs.reshape(-1, self.fan_out), inputs.shape

    def backward(self, variables: Variables, cache: Any, grad: Array):
        return grad.reshape(cache), {}


class Dense(Layer):
    """Fully connected layer ``activation(x @ kernel + bias)``."""

    def __init__(
        self,
        output_size: int = 128,
        activation: str = "relu",
        kernel_initializer: Initializer | None = None,
        bias_initializer: Initializer | None = None,
        name: str = "",
    ) -> None:
        super().__init__(name)
        if output_size <= 0:
            raise ArgumentError(f"output_size must be positive, got {output_size}")
        self.output_size = int(output_size)
        self.activation = activations.get(activation)
        self.kernel_initializer = kernel_initializer or initializers.GlorotUniform()
        self.bias_initializer = bias_initializer or initializers.Zeros()

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        if len(input_shape) != 2:
            raise ShapeMismatchError(
                f"Dense layer {self.name!r} expects a 2-D input but received "
                f"{format_shape(input_shape)}; add a Flatten layer before it."
            )
        return (int(input_shape[0]), self.output_size)

    def _create_variables(self, graph, input_shape: Shape) -> None:
        self.fan_in = int(input_shape[-1])
        self.fan_out = self.output_size
        self._add_variable(graph, "kernel", (self.fan_in, self.output_size), self.kernel_initializer)
        self._add_variable(graph, "bias", (self.output_size,), self.bias_initializer)

    def forward(self, variables: Variables, inputs: Array) -> Tuple[Array, Any]:
        z = inputs @ variables["kernel"] + variables["bias"]
        out = self.activation(z)
        return out, (inputs, z, out)

    def backward(self, variables: Variables, cache: Any, grad: Array):
        inputs, z, out = cache
        dz = self.activation.backward(z, out, grad)
        grads = {"kernel": inputs.T @ dz, "bias": dz.sum(axis=0)}
        return dz @ variables["kernel"].T, grads

    def has_activation(self) -> bool:
        return True

    def get_config(self) -> Dict[str, Any]:
        return {
            "class_name": "Dense",
            "config": {
                "name": self.name,
                "output_size": self.output_size,
                "activation": self.activation.name,
                "kernel_initializer": self.kernel_initializer.get_config(),
                "bias_initializer": self.bias_initializer.get_config(),
            },
        }


__all__ = ["Dense", "Flatten", "Input"]
