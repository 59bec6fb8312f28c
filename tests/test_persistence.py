import json

import numpy as np
import pytest

from seqnet import Conv2D, Dataset, Dense, Flatten, InferenceModel, Input, MaxPool2D, Sequential
from seqnet.data.utils import one_hot
from seqnet.errors import StateError
from seqnet.model import persistence
from seqnet.training import optimizers


def _data(n=16, seed=0):
    rng = np.random.default_rng(seed)
    return Dataset(rng.uniform(size=(n, 36)).astype(np.float32), one_hot(rng.integers(0, 3, n), 3))


def _trained(tmp_path, save_optimizer_state=False):
    data = _data()
    model = Sequential(
        Input(6, 6, 1),
        Conv2D(filters=2, kernel_size=3),
        MaxPool2D(),
        Flatten(),
        Dense(3, "linear"),
    )
    model.compile(optimizers.Adam(learning_rate=0.01), "ce", ["accuracy"])
    model.fit(data, epochs=2, batch_size=4, verbose=False)
    path = model.save(tmp_path / "bundle", save_optimizer_state=save_optimizer_state)
    return model, data, path


def test_bundle_layout(tmp_path):
    model, _, path = _trained(tmp_path)
    model.close()
    assert (path / persistence.MODEL_FILE).exists()
    assert (path / persistence.VARIABLES_FILE).exists()
    assert not (path / persistence.OPTIMIZER_FILE).exists()
    document = json.loads((path / persistence.MODEL_FILE).read_text())
    assert document["format_version"] == persistence.FORMAT_VERSION
    assert [layer["class_name"] for layer in document["layers"]] == [
        "Input",
        "Conv2D",
        "MaxPool2D",
        "Flatten",
        "Dense",
    ]
    assert document["shapes"][-1] == "(None, 3)"
    assert document["compile"]["loss"] == "ce"
    assert document["compile"]["optimizer"]["name"] == "adam"


def test_inference_model_matches_trained_model(tmp_path):
    model, data, path = _trained(tmp_path)
    with model, InferenceModel.load(path) as inference:
        for i in range(data.x_size()):
            x = data.get_x(i)
            assert inference.predict(x) == model.predict(x)
            np.testing.assert_allclose(
                inference.predict_softly(x), model.predict_softly(x), rtol=1e-6, atol=1e-7
            )
        assert inference.optimizer is None


def test_inference_reshape_hook(tmp_path):
    model, data, path = _trained(tmp_path)
    model.close()
    calls = []

    def reshape(x):
        calls.append(x.shape)
        return x.reshape(1, 6, 6, 1)

    with InferenceModel.load(path) as inference:
        inference.reshape(reshape)
        inference.predict(data.get_x(0))
    assert calls == [(36,)]


def test_closed_inference_model(tmp_path):
    model, data, path = _trained(tmp_path)
    model.close()
    inference = InferenceModel.load(path)
    inference.close()
    with pytest.raises(StateError):
        inference.predict(data.get_x(0))


def test_optimizer_state_round_trip(tmp_path):
    model, data, path = _trained(tmp_path, save_optimizer_state=True)
    iterations = model.optimizer.iterations
    model.close()

    with pytest.raises(FileNotFoundError):
        InferenceModel.load(tmp_path / "missing")

    inference = InferenceModel.load(path, load_optimizer_state=True)
    assert inference.optimizer.iterations == iterations
    inference.close()

    with Sequential.load(path, load_optimizer_state=True) as resumed:
        assert resumed.is_compiled
        assert resumed.optimizer.iterations == iterations
        history = resumed.fit(data, epochs=1, batch_size=4, verbose=False)
        assert len(history.batch_history) == 4
        assert resumed.optimizer.iterations == iterations + 4


def test_missing_optimizer_state(tmp_path):
    model, _, path = _trained(tmp_path)
    model.close()
    with pytest.raises(FileNotFoundError):
        InferenceModel.load(path, load_optimizer_state=True)
