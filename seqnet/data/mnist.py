"""MNIST-style datasets from local IDX archives or an offline fixture."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from . import handlers
from .dataset import Dataset
from .registry import DatasetSpec, register_dataset
from .utils import one_hot, resolve_data_dir

_FASHION_PREFIX = "fashion"


def _offline_dataset(num_samples: int, num_classes: int, seed: int) -> tuple[np.ndarray, np.ndarray]:
    """Return a deterministic, learnable MNIST-like dataset.

    Each class draws noisy images around its own random template.
    """

    rng = np.random.default_rng(seed)
    pixels = handlers.IMAGE_SIZE * handlers.IMAGE_SIZE
    templates = rng.uniform(0.0, 1.0, size=(num_classes, pixels)).astype(np.float32)
    labels = rng.integers(0, num_classes, size=(num_samples,), dtype=np.int64)
    noise = 0.25 * rng.standard_normal((num_samples, pixels)).astype(np.float32)
    images = np.clip(templates[labels] + noise, 0.0, 1.0)
    return images, labels


def _limit(dataset: Dataset, max_items: int | None) -> Dataset:
    if max_items is None or max_items >= dataset.x_size():
        return dataset
    return Dataset(dataset.x[:max_items], dataset.y[:max_items])


def _build(
    name: str,
    *,
    offline: bool,
    data_dir: str | Path | None,
    prefix: str,
    num_classes: int,
    train_size: int,
    test_size: int,
    max_items: int | None,
    seed: int,
) -> DatasetSpec:
    if offline:
        images, labels = _offline_dataset(train_size + test_size, num_classes, seed)
        targets = one_hot(labels, num_classes)
        train = Dataset(images[:train_size], targets[:train_size])
        test = Dataset(images[train_size:], targets[train_size:])
        provenance: dict[str, object] = {"mode": "offline", "source": "synthetic", "seed": seed}
    else:
        root = resolve_data_dir(data_dir)
        archives = [
            root / f"{prefix}{archive}"
            for archive in (
                handlers.TRAIN_IMAGES_ARCHIVE,
                handlers.TRAIN_LABELS_ARCHIVE,
                handlers.TEST_IMAGES_ARCHIVE,
                handlers.TEST_LABELS_ARCHIVE,
            )
        ]
        missing = [str(path) for path in archives if not path.exists()]
        if missing:
            raise FileNotFoundError(f"Missing {name} archives: {', '.join(missing)}")
        train, test = Dataset.create_train_and_test_datasets(
            *archives,
            num_classes,
            handlers.extract_images,
            handlers.extract_labels,
        )
        provenance = {"mode": "local", "source": str(root)}

    return DatasetSpec(
        name=name,
        train=_limit(train, max_items),
        test=_limit(test, max_items),
        num_classes=num_classes,
        input_shape=(handlers.IMAGE_SIZE, handlers.IMAGE_SIZE, handlers.NUM_CHANNELS),
        provenance=provenance,
    )


@register_dataset("mnist")
def build_mnist(
    *,
    offline: bool = True,
    data_dir: str | Path | None = None,
    train_size: int = 1024,
    test_size: int = 256,
    max_items: int | None = None,
    seed: int = 0,
) -> DatasetSpec:
    """Create a :class:`DatasetSpec` for MNIST handwritten digits."""

    return _build(
        "mnist",
        offline=offline,
        data_dir=data_dir,
        prefix="",
        num_classes=handlers.NUMBER_OF_CLASSES,
        train_size=train_size,
        test_size=test_size,
        max_items=max_items,
        seed=seed,
    )


@register_dataset("fashion_mnist")
def build_fashion_mnist(
    *,
    offline: bool = True,
    data_dir: str | Path | None = None,
    train_size: int = 1024,
    test_size: int = 256,
    max_items: int | None = None,
    seed: int = 1,
) -> DatasetSpec:
    """Create a :class:`DatasetSpec` for Fashion-MNIST (archives prefixed ``fashion-``)."""

    return _build(
        "fashion_mnist",
        offline=offline,
        data_dir=data_dir,
        prefix=f"{_FASHION_PREFIX}-",
        num_classes=handlers.NUMBER_OF_CLASSES,
        train_size=train_size,
        test_size=test_size,
        max_items=max_items,
        seed=seed,
    )


__all__ = ["build_fashion_mnist", "build_mnist"]
