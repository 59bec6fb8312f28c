"""Datasets, extractors and the dataset registry."""

# Ensure built-in datasets register themselves when the package is imported.
from . import mnist as _mnist  # noqa: F401
from .dataset import Dataset
from .registry import DatasetSpec, available_datasets, get_dataset, register_dataset

__all__ = [
    "Dataset",
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
