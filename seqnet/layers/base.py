"""Shared layer contract."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Tuple

import numpy as np

from ..core.initializers import Initializer
from ..core.shape import make_shape, num_elements
from ..core.types import Array, Shape
from ..errors import StateError

if TYPE_CHECKING:
    from ..model.graph import Graph

Variables = Mapping[str, Array]


class Layer:
    """Base class of every layer in a :class:`~seqnet.model.sequential.Sequential` stack.

    A layer is configuration only until :meth:`define_variables` runs; that
    call records the resolved input/output shapes and fan sizes and creates the
    layer's variables inside a :class:`~seqnet.model.graph.Graph`. The forward
    and backward rules are pure functions of the variables passed in.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.fan_in = 0
        self.fan_out = 0
        self.input_shape: Shape | None = None
        self.output_shape: Shape | None = None
        self._variable_shapes: Dict[str, Shape] = {}

    @property
    def built(self) -> bool:
        return self.output_shape is not None

    # ------------------------------------------------------------------
    # Shape and variable contract

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        raise NotImplementedError

    def define_variables(self, graph: "Graph", input_shape: Shape) -> None:
        """Create this layer's variables for ``input_shape``; allowed once per build."""

        if self.built:
            raise StateError(f"Variables of layer {self.name!r} are already defined.")
        input_shape = make_shape(input_shape)
        output_shape = self.compute_output_shape(input_shape)
        self._create_variables(graph, input_shape)
        self.input_shape = input_shape
        self.output_shape = output_shape

    def reset(self) -> None:
        """Forget build information so the layer can join a fresh graph."""

        self.fan_in = 0
        self.fan_out = 0
        self.input_shape = None
        self.output_shape = None
        self._variable_shapes = {}

    def _create_variables(self, graph: "Graph", input_shape: Shape) -> None:
        self.fan_in = num_elements(input_shape[1:])
        self.fan_out = self.fan_in

    def _add_variable(
        self,
        graph: "Graph",
        name: str,
        shape: Shape,
        initializer: Initializer,
    ) -> Array:
        value = initializer(shape, self.fan_in, self.fan_out)
        self._variable_shapes[name] = tuple(shape)
        return graph.add_variable(self.name, name, value)

    # ------------------------------------------------------------------
    # Computation

    def forward(self, variables: Variables, inputs: Array) -> Tuple[Array, Any]:
        """Return the layer output and a cache consumed by :meth:`backward`."""

        raise NotImplementedError

    def backward(
        self, variables: Variables, cache: Any, grad: Array
    ) -> Tuple[Array, Dict[str, Array]]:
        """Return ``dL/dinputs`` and the gradients of this layer's variables."""

        raise NotImplementedError

    def transform_input(self, variables: Variables, inputs: Array) -> Array:
        outputs, _ = self.forward(variables, inputs)
        return outputs

    # ------------------------------------------------------------------
    # Introspection

    def get_weights(self, graph: "Graph") -> List[Array]:
        return [value.copy() for value in graph.variables(self.name).values()]

    def get_params(self) -> int:
        return int(sum(int(np.prod(shape)) for shape in self._variable_shapes.values()))

    def has_activation(self) -> bool:
        return False

    def get_config(self) -> Dict[str, Any]:
        return {"class_name": type(self).__name__, "config": {"name": self.name}}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


__all__ = ["Layer", "Variables"]
