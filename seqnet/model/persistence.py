"""Directory bundles holding a model's layers, weights and compile settings.

A bundle directory contains:

``model.json``
    Layer configs, per-layer output shapes and the compile settings.
``variables.npz``
    Every variable keyed ``"<layer>/<variable>"``.
``optimizer.npz``
    Optional optimizer slot state, written when requested.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

from ..core.shape import format_shape
from ..core.types import Array
from ..layers import Layer, deserialize
from ..training import optimizers
from ..training.optimizers import Optimizer
from .graph import Graph, assemble

logger = logging.getLogger(__name__)

MODEL_FILE = "model.json"
VARIABLES_FILE = "variables.npz"
OPTIMIZER_FILE = "optimizer.npz"
FORMAT_VERSION = 1


@dataclass
class ModelBundle:
    layers: List[Layer]
    variables: Dict[str, Array]
    loss: str
    metrics: List[str]
    optimizer_config: Dict[str, Any] | None = None
    optimizer_state: Dict[str, Array] | None = field(default=None, repr=False)

    def build_graph(self) -> Graph:
        """Assemble a fresh graph for :attr:`layers` and load the saved weights."""

        graph = Graph()
        assemble(self.layers, graph)
        graph.load_state_dict(self.variables)
        return graph

    def build_optimizer(self) -> Optimizer | None:
        if self.optimizer_config is None:
            return None
        optimizer = optimizers.get(self.optimizer_config)
        if self.optimizer_state is not None:
            optimizer.load_state_dict(self.optimizer_state)
        return optimizer


def save_bundle(
    path: str | Path,
    *,
    layers: Sequence[Layer],
    graph: Graph,
    loss: str,
    metrics: Sequence[str],
    optimizer: Optimizer | None = None,
    save_optimizer_state: bool = False,
) -> Path:
    """Write a bundle for an assembled model into ``path`` and return it."""

    root = Path(path)
    root.mkdir(parents=True, exist_ok=True)
    document = {
        "format_version": FORMAT_VERSION,
        "layers": [layer.get_config() for layer in layers],
        "shapes": [format_shape(layer.output_shape) for layer in layers],
        "num_parameters": graph.num_parameters(),
        "compile": {
            "loss": loss,
            "metrics": list(metrics),
            "optimizer": optimizer.get_config() if optimizer is not None else None,
        },
    }
    (root / MODEL_FILE).write_text(json.dumps(document, indent=2, sort_keys=True))
    np.savez_compressed(root / VARIABLES_FILE, **graph.state_dict())
    if save_optimizer_state:
        if optimizer is None:
            raise ValueError("save_optimizer_state requires a bound optimizer")
        np.savez_compressed(root / OPTIMIZER_FILE, **optimizer.state_dict())
    logger.info("Saved model with %d parameters to %s", document["num_parameters"], root)
    return root


def _read_npz(path: Path) -> Dict[str, Array]:
    with np.load(path) as archive:
        return {key: archive[key] for key in archive.files}


def load_bundle(path: str | Path, *, load_optimizer_state: bool = False) -> ModelBundle:
    """Read a bundle written by :func:`save_bundle`."""

    root = Path(path)
    model_file = root / MODEL_FILE
    if not model_file.exists():
        raise FileNotFoundError(f"No {MODEL_FILE} found in {root}")
    document: Mapping[str, Any] = json.loads(model_file.read_text())
    version = document.get("format_version")
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported bundle format version: {version!r}")

    compile_config = document.get("compile", {})
    optimizer_state = None
    if load_optimizer_state:
        optimizer_file = root / OPTIMIZER_FILE
        if not optimizer_file.exists():
            raise FileNotFoundError(
                f"No optimizer state in {root}; save the model with save_optimizer_state=True"
            )
        optimizer_state = _read_npz(optimizer_file)

    bundle = ModelBundle(
        layers=[deserialize(config) for config in document["layers"]],
        variables=_read_npz(root / VARIABLES_FILE),
        loss=str(compile_config.get("loss", "softmax_cross_entropy_with_logits")),
        metrics=list(compile_config.get("metrics", [])),
        optimizer_config=compile_config.get("optimizer"),
        optimizer_state=optimizer_state,
    )
    logger.debug("Loaded bundle from %s with %d layers", root, len(bundle.layers))
    return bundle


__all__ = [
    "FORMAT_VERSION",
    "MODEL_FILE",
    "ModelBundle",
    "OPTIMIZER_FILE",
    "VARIABLES_FILE",
    "load_bundle",
    "save_bundle",
]
