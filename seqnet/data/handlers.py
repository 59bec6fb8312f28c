"""Extractors for IDX image/label archives (MNIST, Fashion-MNIST).

``extract_images`` and ``extract_labels`` satisfy the feature and label
extractor contracts of :meth:`Dataset.create_train_and_test_datasets`.
"""

from __future__ import annotations

import gzip
import struct
from pathlib import Path
from typing import BinaryIO

import numpy as np

from ..core.types import Array
from .dataset import Dataset

IMAGE_SIZE = 28
NUM_CHANNELS = 1
NUMBER_OF_CLASSES = 10

TRAIN_IMAGES_ARCHIVE = "train-images-idx3-ubyte.gz"
TRAIN_LABELS_ARCHIVE = "train-labels-idx1-ubyte.gz"
TEST_IMAGES_ARCHIVE = "t10k-images-idx3-ubyte.gz"
TEST_LABELS_ARCHIVE = "t10k-labels-idx1-ubyte.gz"

_IMAGE_MAGIC = 2051
_LABEL_MAGIC = 2049


def _open(path: str | Path) -> BinaryIO:
    path = Path(path)
    if path.suffix == ".gz":
        return gzip.open(path, "rb")
    return path.open("rb")


def _read_header(handle: BinaryIO, count: int, magic: int, path: str | Path) -> tuple[int, ...]:
    (found,) = struct.unpack(">I", handle.read(4))
    if found != magic:
        raise ValueError(f"{path} is not an IDX archive with magic {magic} (found {found})")
    return (found,) + struct.unpack(f">{count - 1}I", handle.read(4 * (count - 1)))


def extract_images(path: str | Path) -> Array:
    """Return images as ``(N, rows * cols)`` float32 scaled into ``[0, 1]``."""

    with _open(path) as handle:
        _, count, rows, cols = _read_header(handle, 4, _IMAGE_MAGIC, path)
        pixels = np.frombuffer(handle.read(count * rows * cols), dtype=np.uint8)
    return pixels.reshape(count, rows * cols).astype(np.float32) / 255.0


def extract_labels(path: str | Path, num_classes: int) -> Array:
    """Return labels one-hot encoded as ``(N, num_classes)`` float32."""

    with _open(path) as handle:
        _, count = _read_header(handle, 2, _LABEL_MAGIC, path)
        labels = np.frombuffer(handle.read(count), dtype=np.uint8).astype(np.int64)
    if labels.size and labels.max() >= num_classes:
        raise ValueError(f"{path} contains label {labels.max()} but num_classes={num_classes}")
    return np.eye(num_classes, dtype=np.float32)[labels]


def write_idx_images(path: str | Path, images: Array) -> None:
    """Write ``(N, rows, cols)`` uint8 images as a gzip IDX archive."""

    images = np.asarray(images, dtype=np.uint8)
    count, rows, cols = images.shape
    with gzip.open(path, "wb") as handle:
        handle.write(struct.pack(">4I", _IMAGE_MAGIC, count, rows, cols))
        handle.write(images.tobytes())


def write_idx_labels(path: str | Path, labels: Array) -> None:
    labels = np.asarray(labels, dtype=np.uint8)
    with gzip.open(path, "wb") as handle:
        handle.write(struct.pack(">2I", _LABEL_MAGIC, labels.size))
        handle.write(labels.tobytes())


def mnist_reshape(image: Array) -> Array:
    """Reshape a flat 28x28 image into a single NHWC example."""

    return np.asarray(image, dtype=np.float32).reshape(1, IMAGE_SIZE, IMAGE_SIZE, NUM_CHANNELS)


def get_label(dataset: Dataset, index: int) -> int:
    return dataset.get_label(index)


__all__ = [
    "IMAGE_SIZE",
    "NUMBER_OF_CLASSES",
    "NUM_CHANNELS",
    "TEST_IMAGES_ARCHIVE",
    "TEST_LABELS_ARCHIVE",
    "TRAIN_IMAGES_ARCHIVE",
    "TRAIN_LABELS_ARCHIVE",
    "extract_images",
    "extract_labels",
    "get_label",
    "mnist_reshape",
    "write_idx_images",
    "write_idx_labels",
]
