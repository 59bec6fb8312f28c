import numpy as np
import pytest

from seqnet.data import Dataset, available_datasets, get_dataset
from seqnet.data.utils import one_hot, resolve_data_dir
from seqnet.errors import ArgumentError


def _dataset(n=10, features=4, classes=3):
    x = np.arange(n * features, dtype=np.float32).reshape(n, features)
    y = one_hot(np.arange(n) % classes, classes)
    return Dataset(x, y)


def test_dataset_accessors():
    dataset = _dataset()
    assert dataset.x_size() == len(dataset) == 10
    assert dataset.num_classes == 3
    np.testing.assert_array_equal(dataset.get_x(2), [8, 9, 10, 11])
    assert dataset.get_label(4) == 1
    assert dataset.get_x_batch(8, 5).shape == (2, 4)
    assert dataset.get_y_batch(0, 3).shape == (3, 3)


def test_dataset_is_read_only():
    dataset = _dataset()
    with pytest.raises(ValueError):
        dataset.x[0, 0] = 1.0


def test_dataset_rejects_mismatched_lengths():
    with pytest.raises(ArgumentError):
        Dataset(np.zeros((3, 2)), np.zeros((4, 1)))


@pytest.mark.parametrize("n,ratio", [(10, 0.5), (7, 0.3), (60000, 0.95), (3, 0.99)])
def test_split_partitions_without_overlap(n, ratio):
    dataset = _dataset(n=n)
    first, second = dataset.split(ratio)
    cut = int(np.floor(n * ratio + 1e-9))
    assert first.x_size() == cut
    assert second.x_size() == n - cut
    np.testing.assert_array_equal(np.concatenate([first.x, second.x]), dataset.x)
    assert dataset.x_size() == n


@pytest.mark.parametrize("ratio", [0.0, 1.0, -0.1, 1.5])
def test_split_rejects_bad_ratio(ratio):
    with pytest.raises(ArgumentError):
        _dataset().split(ratio)


def test_batches_keep_order_and_remainder_policy():
    dataset = _dataset(n=10)
    batches = list(dataset.batches(4))
    assert [len(batch) for batch in batches] == [4, 4, 2]
    assert [len(batch) for batch in dataset.batches(4, drop_remainder=True)] == [4, 4]
    assert dataset.num_batches(4) == 3
    assert dataset.num_batches(4, drop_remainder=True) == 2
    np.testing.assert_array_equal(np.concatenate([b.inputs for b in batches]), dataset.x)
    with pytest.raises(ArgumentError):
        list(dataset.batches(0))


def test_shuffle_is_seeded():
    dataset = _dataset(n=20)
    first = dataset.shuffle(seed=3)
    second = dataset.shuffle(seed=3)
    np.testing.assert_array_equal(first.x, second.x)
    assert sorted(first.x[:, 0].tolist()) == sorted(dataset.x[:, 0].tolist())


def test_create_train_and_test_datasets_uses_extractors():
    def features(source):
        return np.full((source, 2), 0.5, dtype=np.float32)

    def labels(source, num_classes):
        return one_hot(np.zeros(source), num_classes)

    train, test = Dataset.create_train_and_test_datasets(6, 6, 2, 2, 4, features, labels)
    assert train.x_size() == 6 and test.x_size() == 2
    assert train.num_classes == 4


def test_offline_registry_is_deterministic():
    assert {"mnist", "fashion_mnist"} <= set(available_datasets())
    first = get_dataset("mnist", train_size=32, test_size=8)
    second = get_dataset("mnist", train_size=32, test_size=8)
    assert first.splits == {"train": 32, "test": 8}
    assert first.input_shape == (28, 28, 1)
    assert first.provenance["mode"] == "offline"
    np.testing.assert_array_equal(first.train.x, second.train.x)
    assert first.train.x.shape == (32, 784)
    assert first.train.y.shape == (32, 10)


def test_unknown_dataset():
    with pytest.raises(KeyError):
        get_dataset("cifar-1000")


def test_resolve_data_dir_prefers_argument(tmp_path, monkeypatch):
    monkeypatch.setenv("SEQNET_DATA_DIR", str(tmp_path / "env"))
    assert resolve_data_dir() == tmp_path / "env"
    assert resolve_data_dir(tmp_path / "arg") == tmp_path / "arg"
