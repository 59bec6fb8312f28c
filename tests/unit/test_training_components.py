import numpy as np
import pytest

from seqnet.core import activations, initializers
from seqnet.errors import ArgumentError
from seqnet.model.graph import Graph
from seqnet.training import losses, metrics, optimizers


def _numeric_grad(fn, pred, eps=1e-6):
    grad = np.zeros_like(pred)
    for idx in np.ndindex(pred.shape):
        plus = pred.copy()
        minus = pred.copy()
        plus[idx] += eps
        minus[idx] -= eps
        grad[idx] = (fn(plus)[0] - fn(minus)[0]) / (2 * eps)
    return grad


@pytest.mark.parametrize(
    "name", ["softmax_cross_entropy_with_logits", "sigmoid_cross_entropy_with_logits", "mse", "mae", "huber"]
)
def test_loss_gradients_match_numeric(name):
    rng = np.random.default_rng(0)
    loss = losses.REGISTRY.get(name)
    pred = rng.standard_normal((4, 3))
    target = np.eye(3)[[0, 2, 1, 1]]
    value, grad = loss(pred, target)
    assert np.isfinite(value)
    numeric = _numeric_grad(lambda p: loss(p, target), pred)
    np.testing.assert_allclose(grad, numeric, rtol=1e-3, atol=1e-6)


def test_loss_registry():
    assert losses.REGISTRY.resolve("CE") is losses.REGISTRY.get("ce")
    assert losses.REGISTRY.resolve(losses.MSE) is losses.MSE
    assert "huber" in losses.REGISTRY.names()
    with pytest.raises(KeyError):
        losses.REGISTRY.get("hinge")


def test_loss_activation_for_predictions():
    logits = np.array([[1.0, 2.0, 3.0]])
    probs = losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS.activate(logits)
    np.testing.assert_allclose(probs.sum(), 1.0)
    np.testing.assert_array_equal(losses.MSE.activate(logits), logits)


def test_metrics():
    preds = np.array([[0.1, 0.9], [0.8, 0.2], [0.3, 0.7]])
    targets = np.array([[0.0, 1.0], [0.0, 1.0], [0.0, 1.0]])
    assert metrics.Accuracy(preds, targets) == pytest.approx(2 / 3)
    assert metrics.get("MSE")(preds, targets) == pytest.approx(np.mean((preds - targets) ** 2))
    assert metrics.RMSE(preds, targets) == pytest.approx(np.sqrt(np.mean((preds - targets) ** 2)))
    values = metrics.compute_metrics(metrics.resolve_metrics(["accuracy", "mae"]), preds, targets)
    assert set(values) == {"accuracy", "mae"}
    with pytest.raises(ArgumentError):
        metrics.resolve_metrics([])
    with pytest.raises(KeyError):
        metrics.get("f1")


def test_accuracy_thresholds_single_logit_column():
    preds = np.array([[2.0], [-2.0], [3.0], [-1.0]])
    targets = np.array([[1.0], [0.0], [1.0], [0.0]])
    assert metrics.Accuracy(preds, targets) == pytest.approx(1.0)
    assert metrics.Accuracy(-preds, targets) == pytest.approx(0.0)


def test_activations_registry():
    assert set(activations.names()) >= {"relu", "linear", "sigmoid", "tanh", "softmax"}
    relu = activations.get("relu")
    z = np.array([-1.0, 2.0])
    np.testing.assert_array_equal(relu(z), [0.0, 2.0])
    np.testing.assert_array_equal(relu.backward(z, relu(z), np.ones(2)), [0.0, 1.0])
    with pytest.raises(KeyError):
        activations.get("swish")


def test_initializers_are_seeded():
    first = initializers.GlorotUniform(seed=4)((3, 5), 3, 5)
    second = initializers.GlorotUniform(seed=4)((3, 5), 3, 5)
    np.testing.assert_array_equal(first, second)
    limit = np.sqrt(6.0 / 8)
    assert np.all(np.abs(first) <= limit)
    assert np.all(initializers.Constant(0.5)((2,), 1, 1) == 0.5)
    rebuilt = initializers.deserialize(initializers.HeUniform(seed=2).get_config())
    assert rebuilt == initializers.HeUniform(seed=2)
    assert isinstance(initializers.deserialize("Zeros"), initializers.Zeros)


def _graph():
    graph = Graph()
    graph.add_variable("dense", "kernel", np.ones((2, 2), dtype=np.float32))
    return graph


@pytest.mark.parametrize("name", ["sgd", "momentum", "adagrad", "rmsprop", "adam"])
def test_optimizers_descend(name):
    graph = _graph()
    optimizer = optimizers.get({"name": name, "learning_rate": 0.1})
    optimizer.prepare()
    grads = {"dense": {"kernel": np.ones((2, 2), dtype=np.float32)}}
    optimizer.apply_gradients(graph, grads)
    assert np.all(graph.variables("dense")["kernel"] < 1.0)
    assert optimizer.iterations == 1


def test_optimizer_state_persists_and_resets():
    graph = _graph()
    optimizer = optimizers.Momentum(learning_rate=0.1, momentum=0.9)
    grads = {"dense": {"kernel": np.ones((2, 2), dtype=np.float32)}}
    optimizer.apply_gradients(graph, grads)
    optimizer.apply_gradients(graph, grads)
    state = optimizer.state_dict()
    np.testing.assert_allclose(state["dense/kernel/momentum"], np.full((2, 2), 1.9))
    assert int(state["iterations"]) == 2

    restored = optimizers.Momentum(learning_rate=0.1, momentum=0.9)
    restored.load_state_dict(state)
    assert restored.iterations == 2
    np.testing.assert_allclose(restored.state_dict()["dense/kernel/momentum"], 1.9)

    optimizer.prepare()
    assert optimizer.iterations == 0
    assert list(optimizer.state_dict()) == ["iterations"]


def test_optimizer_config_and_validation():
    adam = optimizers.get("adam")
    config = adam.get_config()
    assert config["name"] == "adam"
    assert config["beta1"] == 0.9
    assert isinstance(optimizers.get(config), optimizers.Adam)
    with pytest.raises(ArgumentError):
        optimizers.SGD(learning_rate=0.0)
    with pytest.raises(KeyError):
        optimizers.get("lbfgs")
