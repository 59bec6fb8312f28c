"""Parameter store and assembly of a linear layer stack."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

import numpy as np

from ..core.shape import format_shape
from ..core.types import Array, Shape
from ..errors import ArgumentError, StateError
from ..layers.base import Layer
from ..layers.core import Input

logger = logging.getLogger(__name__)


class Graph:
    """Holds every layer's variables, keyed by layer name then variable name.

    A graph is populated exactly once by :func:`assemble` and released by
    :meth:`close`; released graphs refuse further access.
    """

    def __init__(self) -> None:
        self._variables: Dict[str, Dict[str, Array]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def add_variable(self, layer_name: str, name: str, value: Array) -> Array:
        self._check_open()
        slot = self._variables.setdefault(layer_name, {})
        if name in slot:
            raise StateError(f"Variable {layer_name}/{name} is already defined.")
        slot[name] = np.asarray(value, dtype=np.float32)
        return slot[name]

    def variables(self, layer_name: str) -> Mapping[str, Array]:
        self._check_open()
        return self._variables.get(layer_name, {})

    def assign(self, layer_name: str, name: str, value: Array) -> None:
        self._check_open()
        current = self._variables.get(layer_name, {}).get(name)
        if current is None:
            raise KeyError(f"Unknown variable {layer_name}/{name}")
        value = np.asarray(value, dtype=np.float32)
        if value.shape != current.shape:
            raise ArgumentError(
                f"Cannot assign shape {value.shape} to variable {layer_name}/{name} "
                f"of shape {current.shape}"
            )
        self._variables[layer_name][name] = value

    def items(self) -> Iterator[Tuple[str, str, Array]]:
        self._check_open()
        for layer_name, slot in self._variables.items():
            for name, value in slot.items():
                yield layer_name, name, value

    def num_parameters(self) -> int:
        return int(sum(value.size for _, _, value in self.items()))

    def state_dict(self) -> Mapping[str, Array]:
        return {f"{layer}/{name}": value.copy() for layer, name, value in self.items()}

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for layer, name, _ in list(self.items()):
            key = f"{layer}/{name}"
            if key not in state:
                raise KeyError(f"Missing weight {key} in state dict")
            self.assign(layer, name, state[key])

    def close(self) -> None:
        self._variables.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise StateError("The graph has been released.")


def validate_layers(layers: Sequence[Layer]) -> None:
    if not layers:
        raise ArgumentError("The model must contain at least one layer.")
    if not isinstance(layers[0], Input):
        raise ArgumentError(
            f"The first layer must be an Input layer, got {type(layers[0]).__name__}."
        )
    for layer in layers[1:]:
        if isinstance(layer, Input):
            raise ArgumentError("Only the first layer may be an Input layer.")
    seen = set()
    for layer in layers:
        if layer.name in seen:
            raise ArgumentError(f"Duplicate layer name: {layer.name!r}")
        seen.add(layer.name)


def infer_shapes(layers: Sequence[Layer]) -> List[Shape]:
    """Return the output shape of every layer without building anything."""

    validate_layers(layers)
    shapes: List[Shape] = []
    shape = layers[0].compute_output_shape(())
    for layer in layers:
        shape = layer.compute_output_shape(shape)
        shapes.append(shape)
    return shapes


def assemble(layers: Sequence[Layer], graph: Graph) -> List[Shape]:
    """Propagate shapes through ``layers`` and define each layer's variables.

    Returns the output shape of every layer, in order.
    """

    infer_shapes(layers)
    shapes: List[Shape] = []
    input_shape = layers[0].compute_output_shape(())
    for layer in layers:
        layer.define_variables(graph, input_shape)
        output_shape = layer.output_shape
        logger.debug(
            "Built %s (%s): %s -> %s",
            layer.name,
            type(layer).__name__,
            format_shape(input_shape),
            format_shape(output_shape),
        )
        shapes.append(output_shape)
        input_shape = output_shape
    return shapes


def propagate(layers: Sequence[Layer], graph: Graph, inputs: Array) -> List[Array]:
    """Run ``inputs`` through every layer and return each layer's output."""

    outputs: List[Array] = []
    for layer in layers:
        inputs = layer.transform_input(graph.variables(layer.name), inputs)
        outputs.append(inputs)
    return outputs


__all__ = ["Graph", "assemble", "infer_shapes", "propagate", "validate_layers"]
