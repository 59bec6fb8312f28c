"""Linear stack of layers with compile / fit / evaluate / predict."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

from ..core.shape import format_shape, num_elements
from ..core.types import (
    Array,
    Batch,
    BatchEvent,
    EpochEvent,
    EvaluationResult,
    Gradients,
    Shape,
    TrainingHistory,
)
from ..data.dataset import Dataset
from ..errors import (
    BATCH_MULTIPLE_MESSAGE,
    CLOSED_MESSAGE,
    NOT_COMPILED_MESSAGE,
    ArgumentError,
    ShapeMismatchError,
    StateError,
)
from ..layers import Input, Layer
from ..training import losses, metrics as metrics_module, optimizers
from ..training.callbacks import CallbackList
from ..training.losses import Loss
from ..training.metrics import Metric
from ..training.optimizers import Optimizer
from . import persistence
from .graph import Graph, assemble, infer_shapes, propagate

logger = logging.getLogger(__name__)

LABEL_SHAPE_MESSAGE = (
    "The calculated [from the Sequential model] label batch shape [{batch}, {classes}] "
    "doesn't match actual data buffer size {actual}. \n"
    "Please, check the input label data or correct amount of classes [amount of neurons] "
    "in last Dense layer, if you have a classification problem.\n"
    "Highly likely, you have different amount of classes presented in data and described "
    "in model as desired output."
)


class Sequential:
    """A model made of layers applied one after another.

    The first layer must be an :class:`~seqnet.layers.Input`. Layers without a
    name are named ``<type>_<position>``. The model must be compiled before it
    can be trained or used for prediction; :meth:`close` (or leaving a ``with``
    block) releases the parameter graph.

    Example::

        with Sequential(Input(28, 28, 1), Flatten(), Dense(10, "linear")) as model:
            model.compile(optimizer=SGD(0.3), loss="ce", metric="accuracy")
            history = model.fit(train, epochs=1, batch_size=1000)
    """

    def __init__(self, *layers: Layer) -> None:
        self.layers: List[Layer] = list(layers)
        for index, layer in enumerate(self.layers):
            if not layer.name:
                layer.name = f"{type(layer).__name__.lower()}_{index + 1}"
        self.optimizer: Optimizer | None = None
        self.loss: Loss | None = None
        self.metrics: List[Metric] = []
        self._graph: Graph | None = None
        self._compiled = False
        self._closed = False

    @classmethod
    def of(cls, *layers: Layer) -> "Sequential":
        return cls(*layers)

    @classmethod
    def load(cls, path: str | Path, load_optimizer_state: bool = False) -> "Sequential":
        """Rebuild a compiled model from a bundle written by :meth:`save`."""

        bundle = persistence.load_bundle(path, load_optimizer_state=load_optimizer_state)
        model = cls(*bundle.layers)
        optimizer = bundle.build_optimizer() or optimizers.SGD()
        model._bind(optimizer, bundle.loss, bundle.metrics or [metrics_module.ACCURACY])
        model._graph = bundle.build_graph()
        model._compiled = True
        return model

    # ------------------------------------------------------------------
    # State

    @property
    def is_compiled(self) -> bool:
        return self._compiled and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def input_layer(self) -> Input:
        return self.layers[0]  # type: ignore[return-value]

    @property
    def graph(self) -> Graph:
        self._check_ready()
        assert self._graph is not None
        return self._graph

    def _check_open(self) -> None:
        if self._closed:
            raise StateError(CLOSED_MESSAGE)

    def _check_ready(self) -> None:
        # A model that never compiled reports that first, even after close.
        if not self._compiled:
            raise StateError(NOT_COMPILED_MESSAGE)
        self._check_open()

    # ------------------------------------------------------------------
    # Compilation

    def compile(
        self,
        optimizer: str | Mapping[str, Any] | Optimizer = "adam",
        loss: str | Loss = losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS,
        metric: str | Metric | Sequence[str | Metric] = metrics_module.ACCURACY,
    ) -> None:
        """Build every layer's variables and bind the training components.

        Recompiling discards the current weights and the optimizer state.
        """

        self._check_open()
        shapes = infer_shapes(self.layers)
        self._bind(optimizers.get(optimizer), loss, metric)

        if self._graph is not None:
            self._graph.close()
        for layer in self.layers:
            layer.reset()
        self._graph = Graph()
        assemble(self.layers, self._graph)
        assert self.optimizer is not None
        self.optimizer.prepare()
        self._compiled = True
        logger.info(
            "Compiled %d layers (%d parameters), output %s, optimizer=%s, loss=%s, metrics=%s",
            len(self.layers),
            self._graph.num_parameters(),
            format_shape(shapes[-1]),
            type(self.optimizer).__name__,
            self.loss.name if self.loss else None,
            [m.name for m in self.metrics],
        )

    def _bind(
        self,
        optimizer: Optimizer,
        loss: str | Loss,
        metric: str | Metric | Sequence[str | Metric],
    ) -> None:
        resolved_loss = losses.REGISTRY.resolve(loss)
        resolved_metrics = metrics_module.resolve_metrics(metric)
        self.optimizer = optimizer
        self.loss = resolved_loss
        self.metrics = resolved_metrics

    # ------------------------------------------------------------------
    # Training

    def fit(
        self,
        dataset: Dataset | None = None,
        epochs: int = 5,
        batch_size: int = 32,
        verbose: bool = True,
        *,
        training_dataset: Dataset | None = None,
        validation_dataset: Dataset | None = None,
        train_batch_size: int | None = None,
        validation_batch_size: int | None = None,
        callbacks: Iterable[object] = (),
    ) -> TrainingHistory:
        """Train on ``dataset`` (or ``training_dataset``) for ``epochs`` epochs.

        Each epoch walks the training data in order in batches of
        ``batch_size`` examples; a trailing incomplete batch is skipped, so an
        epoch performs ``floor(len(dataset) / batch_size)`` updates. When a
        validation dataset is given it is evaluated after every epoch, including
        its trailing partial batch, and the result is stored on the epoch event.
        """

        self._check_ready()
        if dataset is not None and training_dataset is not None:
            raise ArgumentError("Pass either dataset or training_dataset, not both.")
        train = training_dataset if training_dataset is not None else dataset
        if train is None:
            raise ArgumentError("A training dataset is required.")
        batch_size = int(train_batch_size if train_batch_size is not None else batch_size)
        if epochs < 1:
            raise ArgumentError(f"epochs must be at least 1, got {epochs}")
        if batch_size < 1:
            raise ArgumentError(f"batch_size must be positive, got {batch_size}")
        if batch_size > train.x_size():
            raise ArgumentError(
                f"batch_size {batch_size} exceeds the training set size {train.x_size()}"
            )
        self._check_data(train, batch_size)
        val_batch_size = int(
            validation_batch_size if validation_batch_size is not None else batch_size
        )
        if validation_dataset is not None:
            if val_batch_size < 1:
                raise ArgumentError(f"validation_batch_size must be positive, got {val_batch_size}")
            self._check_data(validation_dataset, val_batch_size)

        log = logger.info if verbose else logger.debug
        dispatcher = CallbackList(callbacks)
        history = TrainingHistory()
        primary = self.metrics[0].name
        num_batches = train.num_batches(batch_size, drop_remainder=True)
        log("Training on %d examples: %d epochs x %d batches", train.x_size(), epochs, num_batches)

        for epoch in range(1, epochs + 1):
            losses_seen: List[float] = []
            metrics_seen: List[float] = []
            for batch_index, batch in enumerate(train.batches(batch_size, drop_remainder=True)):
                loss_value, metric_values = self._train_step(batch)
                if not math.isfinite(loss_value):
                    logger.warning(
                        "Non-finite loss %s at epoch %d batch %d", loss_value, epoch, batch_index
                    )
                event = BatchEvent(
                    epoch_index=epoch,
                    batch_index=batch_index,
                    loss_value=loss_value,
                    metric_value=metric_values[primary],
                    metric_values=dict(metric_values),
                )
                history.append_batch(event)
                dispatcher.on_batch_end(event)
                losses_seen.append(loss_value)
                metrics_seen.append(metric_values[primary])
                log(
                    "epoch %d batch %d/%d loss=%.6f %s=%.4f",
                    epoch,
                    batch_index + 1,
                    num_batches,
                    loss_value,
                    primary,
                    metric_values[primary],
                )

            val_loss = val_metric = None
            if validation_dataset is not None:
                validation = self._evaluate(validation_dataset, val_batch_size)
                val_loss = validation.loss_value
                val_metric = validation.metrics[primary]

            epoch_event = EpochEvent(
                epoch_index=epoch,
                loss_value=float(np.mean(losses_seen)),
                metric_value=float(np.mean(metrics_seen)),
                val_loss_value=val_loss,
                val_metric_value=val_metric,
            )
            history.append_epoch(epoch_event)
            dispatcher.on_epoch_end(epoch_event)
            if val_loss is None:
                log(
                    "epoch %d done: loss=%.6f %s=%.4f",
                    epoch,
                    epoch_event.loss_value,
                    primary,
                    epoch_event.metric_value,
                )
            else:
                log(
                    "epoch %d done: loss=%.6f %s=%.4f val_loss=%.6f val_%s=%.4f",
                    epoch,
                    epoch_event.loss_value,
                    primary,
                    epoch_event.metric_value,
                    val_loss,
                    primary,
                    val_metric,
                )

        dispatcher.on_train_end(history)
        return history

    def _train_step(self, batch: Batch) -> Tuple[float, Mapping[str, float]]:
        assert self._graph is not None and self.loss is not None and self.optimizer is not None
        caches = []
        outputs = batch.inputs
        for layer in self.layers:
            outputs, cache = layer.forward(self._graph.variables(layer.name), outputs)
            caches.append(cache)

        loss_value, grad = self.loss(outputs, batch.targets)
        metric_values = metrics_module.compute_metrics(self.metrics, outputs, batch.targets)

        grads: Gradients = {}
        for layer, cache in zip(reversed(self.layers), reversed(caches)):
            grad, layer_grads = layer.backward(self._graph.variables(layer.name), cache, grad)
            if layer_grads:
                grads[layer.name] = layer_grads
        self.optimizer.apply_gradients(self._graph, grads)
        return float(loss_value), metric_values

    def _check_data(self, dataset: Dataset, batch_size: int) -> None:
        """Validate feature and label sizes against the model before touching weights."""

        features = num_elements(dataset.x.shape[1:])
        expected_features = num_elements(self.input_layer.dims)
        if features != expected_features:
            raise ShapeMismatchError(
                f"Each example has {features} features but the Input layer expects "
                f"{format_shape((-1,) + self.input_layer.dims)} ({expected_features} features)."
            )
        output_shape: Shape = self.layers[-1].output_shape or ()
        classes = num_elements(output_shape[1:])
        if dataset.num_classes != classes:
            raise ShapeMismatchError(
                LABEL_SHAPE_MESSAGE.format(
                    batch=batch_size,
                    classes=classes,
                    actual=batch_size * dataset.num_classes,
                )
            )

    # ------------------------------------------------------------------
    # Evaluation and inference

    def evaluate(self, dataset: Dataset, batch_size: int = 256) -> EvaluationResult:
        """Return the example-weighted mean loss and metrics over ``dataset``."""

        self._check_ready()
        if batch_size < 1:
            raise ArgumentError(f"batch_size must be positive, got {batch_size}")
        self._check_data(dataset, batch_size)
        result = self._evaluate(dataset, batch_size)
        logger.info("Evaluation: %s", ", ".join(f"{k}={v:.6f}" for k, v in result.metrics.items()))
        return result

    def _evaluate(self, dataset: Dataset, batch_size: int) -> EvaluationResult:
        assert self.loss is not None
        totals: Dict[str, float] = {"loss": 0.0}
        seen = 0
        for batch in dataset.batches(batch_size):
            outputs = self._forward(batch.inputs)
            count = len(batch)
            loss_value, _ = self.loss(outputs, batch.targets)
            totals["loss"] += float(loss_value) * count
            for name, value in metrics_module.compute_metrics(
                self.metrics, outputs, batch.targets
            ).items():
                totals[name] = totals.get(name, 0.0) + float(value) * count
            seen += count
        means = {name: total / max(seen, 1) for name, total in totals.items()}
        return EvaluationResult(loss_value=means["loss"], metrics=means)

    def _forward(self, inputs: Array) -> Array:
        return propagate(self.layers, self.graph, inputs)[-1]

    def _single(self, x: Array) -> Array:
        x = np.asarray(x, dtype=np.float32)
        expected = num_elements(self.input_layer.dims)
        if x.size != expected:
            raise ShapeMismatchError(
                f"Expected a single example of {expected} elements "
                f"{format_shape(self.input_layer.dims)}, got shape {x.shape}"
            )
        return x.reshape((1,) + self.input_layer.dims)

    def predict(self, x: Array) -> int:
        """Return the arg-max class index for a single example."""

        self._check_ready()
        return int(np.argmax(self._forward(self._single(x))[0]))

    def predict_softly(self, x: Array) -> Array:
        """Return the output score vector for a single example."""

        self._check_ready()
        assert self.loss is not None
        return self.loss.activate(self._forward(self._single(x)))[0]

    def predict_all(self, dataset: Dataset, batch_size: int) -> Array:
        """Return class indices for every example of ``dataset`` in order."""

        if batch_size < 1 or dataset.x_size() % batch_size:
            raise ArgumentError(BATCH_MULTIPLE_MESSAGE)
        self._check_ready()
        predictions = [
            np.argmax(self._forward(batch.inputs), axis=1)
            for batch in dataset.batches(batch_size)
        ]
        if not predictions:
            return np.zeros((0,), dtype=np.int64)
        return np.concatenate(predictions).astype(np.int64)

    def predict_and_get_activations(self, x: Array) -> Tuple[int, List[Array]]:
        """Return the predicted class and the output of every layer, in layer order."""

        self._check_ready()
        activations = propagate(self.layers, self.graph, self._single(x))
        return int(np.argmax(activations[-1][0])), activations

    # ------------------------------------------------------------------
    # Introspection and persistence

    def get_layer(self, name: str) -> Layer:
        for layer in self.layers:
            if layer.name == name:
                return layer
        raise KeyError(f"No layer named {name!r}")

    def get_weights(self, layer_name: str) -> Dict[str, Array]:
        self.get_layer(layer_name)
        return {name: value.copy() for name, value in self.graph.variables(layer_name).items()}

    def num_parameters(self) -> int:
        return self.graph.num_parameters()

    def summary(self) -> List[Dict[str, Any]]:
        """Log and return one row per layer: name, type, output shape and parameter count."""

        self._check_ready()
        rows = [
            {
                "name": layer.name,
                "type": type(layer).__name__,
                "output_shape": format_shape(layer.output_shape or ()),
                "params": layer.get_params(),
            }
            for layer in self.layers
        ]
        logger.info("%-20s %-12s %-22s %10s", "Layer", "Type", "Output shape", "Params")
        for row in rows:
            logger.info(
                "%-20s %-12s %-22s %10d", row["name"], row["type"], row["output_shape"], row["params"]
            )
        logger.info("Total params: %d", sum(row["params"] for row in rows))
        return rows

    def save(self, path: str | Path, save_optimizer_state: bool = False) -> Path:
        self._check_ready()
        assert self.loss is not None
        return persistence.save_bundle(
            path,
            layers=self.layers,
            graph=self.graph,
            loss=self.loss.name,
            metrics=[metric.name for metric in self.metrics],
            optimizer=self.optimizer,
            save_optimizer_state=save_optimizer_state,
        )

    # ------------------------------------------------------------------
    # Resource management

    def close(self) -> None:
        if self._graph is not None:
            self._graph.close()
        self._graph = None
        self._closed = True

    def __enter__(self) -> "Sequential":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        names = ", ".join(layer.name for layer in self.layers)
        state = "closed" if self._closed else ("compiled" if self._compiled else "uncompiled")
        return f"Sequential([{names}], {state})"


__all__ = ["LABEL_SHAPE_MESSAGE", "Sequential"]
