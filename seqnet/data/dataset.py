"""Immutable in-memory dataset of paired features and one-hot labels."""

from __future__ import annotations

import math
from typing import Any, Callable, Iterator, Tuple

import numpy as np

from ..core.types import Array, Batch
from ..errors import ArgumentError

FeatureExtractor = Callable[[Any], Array]
LabelExtractor = Callable[[Any, int], Array]


def _frozen(array: Array) -> Array:
    array = np.array(array, dtype=np.float32, copy=True)
    array.setflags(write=False)
    return array


class Dataset:
    """Ordered features ``x`` of shape ``(N, ...)`` and labels ``y`` of shape ``(N, C)``.

    Every accessor is read-only; ``split`` and ``shuffle`` return new datasets.
    """

    def __init__(self, x: Array, y: Array) -> None:
        x = np.asarray(x)
        y = np.asarray(y)
        if y.ndim == 1:
            y = y.reshape(-1, 1)
        if x.shape[0] != y.shape[0]:
            raise ArgumentError(
                f"Feature count {x.shape[0]} does not match label count {y.shape[0]}"
            )
        self._x = _frozen(x)
        self._y = _frozen(y)

    # ------------------------------------------------------------------
    # Construction

    @classmethod
    def create(
        cls,
        features_source: Any,
        labels_source: Any,
        num_classes: int,
        feature_extractor: FeatureExtractor,
        label_extractor: LabelExtractor,
    ) -> "Dataset":
        return cls(feature_extractor(features_source), label_extractor(labels_source, num_classes))

    @classmethod
    def create_train_and_test_datasets(
        cls,
        train_features_source: Any,
        train_labels_source: Any,
        test_features_source: Any,
        test_labels_source: Any,
        num_classes: int,
        feature_extractor: FeatureExtractor,
        label_extractor: LabelExtractor,
    ) -> Tuple["Dataset", "Dataset"]:
        train = cls.create(
            train_features_source, train_labels_source, num_classes, feature_extractor, label_extractor
        )
        test = cls.create(
            test_features_source, test_labels_source, num_classes, feature_extractor, label_extractor
        )
        return train, test

    # ------------------------------------------------------------------
    # Accessors

    @property
    def x(self) -> Array:
        return self._x

    @property
    def y(self) -> Array:
        return self._y

    @property
    def num_classes(self) -> int:
        return int(self._y.shape[1])

    def x_size(self) -> int:
        return int(self._x.shape[0])

    def __len__(self) -> int:
        return self.x_size()

    def get_x(self, index: int) -> Array:
        return self._x[index]

    def get_y(self, index: int) -> Array:
        return self._y[index]

    def get_label(self, index: int) -> int:
        return int(np.argmax(self._y[index]))

    def get_x_batch(self, start: int, size: int) -> Array:
        return self._x[start : start + size]

    def get_y_batch(self, start: int, size: int) -> Array:
        return self._y[start : start + size]

    def batches(self, batch_size: int, *, drop_remainder: bool = False) -> Iterator[Batch]:
        """Yield consecutive batches in index order."""

        if batch_size <= 0:
            raise ArgumentError(f"batch_size must be positive, got {batch_size}")
        n = self.x_size()
        stop = n - n % batch_size if drop_remainder else n
        for start in range(0, stop, batch_size):
            yield Batch(inputs=self.get_x_batch(start, batch_size), targets=self.get_y_batch(start, batch_size))

    def num_batches(self, batch_size: int, *, drop_remainder: bool = False) -> int:
        if batch_size <= 0:
            raise ArgumentError(f"batch_size must be positive, got {batch_size}")
        n = self.x_size()
        return n // batch_size if drop_remainder else math.ceil(n / batch_size)

    # ------------------------------------------------------------------
    # Derived datasets

    def split(self, ratio: float) -> Tuple["Dataset", "Dataset"]:
        """Give the first ``floor(ratio * N)`` examples to the first result."""

        if not 0.0 < ratio < 1.0:
            raise ArgumentError(f"Split ratio must be in (0, 1), got {ratio}")
        n = self.x_size()
        cut = int(math.floor(ratio * n + 1e-9))
        return Dataset(self._x[:cut], self._y[:cut]), Dataset(self._x[cut:], self._y[cut:])

    def shuffle(self, seed: int = 0) -> "Dataset":
        order = np.random.default_rng(seed).permutation(self.x_size())
        return Dataset(self._x[order], self._y[order])

    def __repr__(self) -> str:
        return f"Dataset(x={self._x.shape}, y={self._y.shape})"


__all__ = ["Dataset", "FeatureExtractor", "LabelExtractor"]
