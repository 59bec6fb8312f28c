import logging

import numpy as np
import pytest

from seqnet import Dataset, Dense, Flatten, Input, Sequential
from seqnet.core.types import BatchEvent, EpochEvent
from seqnet.data.utils import one_hot
from seqnet.training import optimizers
from seqnet.training.callbacks import Callback


def _random_dataset(n, features=4, classes=10, seed=0):
    rng = np.random.default_rng(seed)
    return Dataset(
        rng.standard_normal((n, features)).astype(np.float32),
        one_hot(rng.integers(0, classes, size=n), classes),
    )


def _blobs(n=300, seed=0):
    rng = np.random.default_rng(seed)
    centers = np.array([[0.0, 5.0], [5.0, 0.0], [-5.0, -5.0]])
    labels = rng.integers(0, 3, size=n)
    x = centers[labels] + 0.5 * rng.standard_normal((n, 2))
    return Dataset(x.astype(np.float32), one_hot(labels, 3))


def _linear_model():
    return Sequential(Input(4), Dense(10, "linear"))


def test_sixty_batches_per_epoch():
    data = _random_dataset(60000)
    with _linear_model() as model:
        model.compile(optimizers.SGD(0.1), "ce", "accuracy")
        history = model.fit(data, epochs=1, batch_size=1000, verbose=False)
    assert len(history.batch_history) == 60
    first = history.batch_history[0]
    assert (first.epoch_index, first.batch_index) == (1, 0)
    assert history.batch_history[-1].batch_index == 59
    assert len(history.epoch_history) == 1


def test_split_then_fit_with_validation():
    data = _random_dataset(60000, seed=1)
    train, validation = data.split(0.95)
    assert (train.x_size(), validation.x_size()) == (57000, 3000)
    with _linear_model() as model:
        model.compile(optimizers.Adam(), "ce", "accuracy")
        history = model.fit(
            training_dataset=train,
            validation_dataset=validation,
            epochs=1,
            train_batch_size=1000,
            validation_batch_size=100,
            verbose=False,
        )
    assert len(history.batch_history) == 57
    epoch = history.last_epoch()
    assert epoch is not None
    assert epoch.val_loss_value is not None and np.isfinite(epoch.val_loss_value)
    assert 0.0 <= epoch.val_metric_value <= 1.0


def test_trailing_partial_batch_is_dropped():
    data = _random_dataset(10)
    with _linear_model() as model:
        model.compile()
        history = model.fit(data, epochs=2, batch_size=4, verbose=False)
    assert len(history.batch_history) == 2 * 2
    assert {event.epoch_index for event in history.batch_history} == {1, 2}
    assert {event.batch_index for event in history.batch_history} == {0, 1}


def test_training_reduces_loss_and_classifies_blobs():
    data = _blobs()
    with Sequential(Input(2), Dense(16), Dense(3, "linear")) as model:
        model.compile(optimizers.Adam(learning_rate=0.01), "ce", ["accuracy", "mse"])
        history = model.fit(data, epochs=10, batch_size=30, verbose=False)
        result = model.evaluate(data, batch_size=64)
    assert history.epoch_history[-1].loss_value < history.epoch_history[0].loss_value
    assert set(history.batch_history[0].metric_values) == {"accuracy", "mse"}
    assert result.metrics["accuracy"] >= 0.9
    assert result.metrics["loss"] == result.loss_value


def test_evaluate_weights_partial_batches_by_example_count():
    data = _blobs(n=50, seed=3)
    with Sequential(Input(2), Dense(3, "linear")) as model:
        model.compile("sgd", "ce", "accuracy")
        full = model.evaluate(data, batch_size=50)
        chunked = model.evaluate(data, batch_size=7)
    assert chunked.loss_value == pytest.approx(full.loss_value, rel=1e-5)
    assert chunked.metrics["accuracy"] == pytest.approx(full.metrics["accuracy"])


def test_predictions_are_consistent():
    data = _blobs(n=12, seed=4)
    with Sequential(Input(2), Dense(5), Dense(3, "linear")) as model:
        model.compile()
        model.fit(data, epochs=2, batch_size=4, verbose=False)
        batched = model.predict_all(data, 4)
        single = [model.predict(data.get_x(i)) for i in range(data.x_size())]
        soft = model.predict_softly(data.get_x(0))
        label, activations = model.predict_and_get_activations(data.get_x(0))
    assert batched.tolist() == single
    assert soft.shape == (3,)
    assert soft.sum() == pytest.approx(1.0, rel=1e-5)
    assert label == single[0] == int(np.argmax(soft))
    assert [a.shape for a in activations] == [(1, 2), (1, 5), (1, 3)]


def test_flat_features_feed_image_input():
    rng = np.random.default_rng(5)
    data = Dataset(rng.uniform(size=(8, 16)).astype(np.float32), one_hot(np.arange(8) % 2, 2))
    with Sequential(Input(4, 4, 1), Flatten(), Dense(2, "linear")) as model:
        model.compile()
        _, activations = model.predict_and_get_activations(data.get_x(0))
    assert activations[0].shape == (1, 4, 4, 1)
    assert activations[1].shape == (1, 16)


def test_optimizer_state_survives_fit_and_resets_on_recompile():
    data = _blobs(n=40, seed=6)
    optimizer = optimizers.Adam(learning_rate=0.01)
    with Sequential(Input(2), Dense(3, "linear")) as model:
        model.compile(optimizer, "ce", "accuracy")
        initial = model.get_weights("dense_2")["kernel"]
        model.fit(data, epochs=1, batch_size=10, verbose=False)
        model.fit(data, epochs=1, batch_size=10, verbose=False)
        assert optimizer.iterations == 8
        assert not np.array_equal(initial, model.get_weights("dense_2")["kernel"])

        model.compile(optimizer, "ce", "accuracy")
        assert optimizer.iterations == 0
        np.testing.assert_array_equal(initial, model.get_weights("dense_2")["kernel"])


def test_callbacks_receive_events():
    class Recorder(Callback):
        def __init__(self):
            self.batches = []
            self.epochs = []
            self.finished = None

        def on_batch_end(self, event):
            self.batches.append(event)

        def on_epoch_end(self, event):
            self.epochs.append(event)

        def on_train_end(self, history):
            self.finished = history

    class EpochOnly:
        def __init__(self):
            self.count = 0

        def on_epoch_end(self, event):
            self.count += 1

    recorder, epoch_only = Recorder(), EpochOnly()
    data = _blobs(n=20)
    with Sequential(Input(2), Dense(3, "linear")) as model:
        model.compile()
        history = model.fit(data, epochs=3, batch_size=5, verbose=False, callbacks=[recorder, epoch_only])
    assert len(recorder.batches) == 12
    assert all(isinstance(event, BatchEvent) for event in recorder.batches)
    assert all(isinstance(event, EpochEvent) for event in recorder.epochs)
    assert epoch_only.count == 3
    assert recorder.finished is history


def test_non_finite_loss_is_recorded_and_logged(caplog):
    data = Dataset(np.full((4, 4), np.inf, dtype=np.float32), one_hot(np.arange(4) % 10, 10))
    with _linear_model() as model:
        model.compile(optimizers.SGD(0.1), "ce", "accuracy")
        with caplog.at_level(logging.WARNING, logger="seqnet.model.sequential"):
            history = model.fit(data, epochs=1, batch_size=2, verbose=False)
    assert len(history.batch_history) == 2
    assert not np.isfinite(history.batch_history[0].loss_value)
    assert "Non-finite loss" in caplog.text


def test_summary_rows():
    with Sequential(Input(28, 28, 1), Flatten(), Dense(128), Dense(10, "linear")) as model:
        model.compile()
        rows = model.summary()
    assert [row["type"] for row in rows] == ["Input", "Flatten", "Dense", "Dense"]
    assert rows[1]["output_shape"] == "(None, 784)"
    assert rows[2]["params"] == 784 * 128 + 128
    assert rows[0]["params"] == 0
