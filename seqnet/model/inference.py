"""Predict-only model restored from a saved bundle."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List

import numpy as np

from ..core.types import Array
from ..errors import CLOSED_MESSAGE, StateError
from ..layers import Layer
from ..training import losses
from ..training.losses import Loss
from ..training.optimizers import Optimizer
from . import persistence
from .graph import Graph, propagate

logger = logging.getLogger(__name__)

ReshapeFn = Callable[[Array], Array]


class InferenceModel:
    """Forward-only view over persisted layers and weights.

    Use :meth:`load` to build one; inputs pass through the hook set with
    :meth:`reshape` before the forward pass.
    """

    def __init__(
        self,
        layers: List[Layer],
        graph: Graph,
        loss: Loss,
        optimizer: Optimizer | None = None,
    ) -> None:
        self.layers = layers
        self.loss = loss
        self.optimizer = optimizer
        self._graph: Graph | None = graph
        self._reshape: ReshapeFn | None = None

    @classmethod
    def load(cls, path: str | Path, load_optimizer_state: bool = False) -> "InferenceModel":
        """Load a bundle written by :meth:`Sequential.save`.

        With ``load_optimizer_state`` the saved optimizer, including its slot
        state, is restored as :attr:`optimizer`.
        """

        bundle = persistence.load_bundle(path, load_optimizer_state=load_optimizer_state)
        optimizer = bundle.build_optimizer() if load_optimizer_state else None
        model = cls(bundle.layers, bundle.build_graph(), losses.REGISTRY.resolve(bundle.loss), optimizer)
        logger.info("Loaded inference model from %s", path)
        return model

    def reshape(self, fn: ReshapeFn) -> None:
        """Set the hook applied to every input before prediction."""

        self._reshape = fn

    def _outputs(self, x: Array) -> Array:
        if self._graph is None:
            raise StateError(CLOSED_MESSAGE)
        x = np.asarray(x, dtype=np.float32)
        if self._reshape is not None:
            x = np.asarray(self._reshape(x), dtype=np.float32)
        return propagate(self.layers, self._graph, x)[-1]

    def predict(self, x: Array) -> int:
        return int(np.argmax(self._outputs(x)[0]))

    def predict_softly(self, x: Array) -> Array:
        return self.loss.activate(self._outputs(x))[0]

    def close(self) -> None:
        if self._graph is not None:
            self._graph.close()
        self._graph = None

    def __enter__(self) -> "InferenceModel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["InferenceModel"]
