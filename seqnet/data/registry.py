"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, MutableMapping, Tuple

from .dataset import Dataset


@dataclass(frozen=True)
class DatasetSpec:
    """A registered dataset resolved into its train and test partitions.

    Attributes
    ----------
    name:
        Registry identifier.
    train, test:
        The two :class:`Dataset` partitions.
    num_classes:
        Label cardinality; every label vector has this length.
    input_shape:
        Per-example feature shape expected by the model's ``Input`` layer,
        for example ``(28, 28, 1)``. Features may be stored flat.
    provenance:
        Free-form metadata describing where the data came from.
    """

    name: str
    train: Dataset
    test: Dataset
    num_classes: int
    input_shape: Tuple[int, ...]
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": self.train.x_size(), "test": self.test.x_size()}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("mnist")
        def make_mnist(**kwargs):
            ...

    or directly::

        register_dataset("mnist", make_mnist)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(
    dataset: str,
    /,
    *,
    offline: bool = True,
    data_dir: str | Path | None = None,
    **options: Any,
) -> DatasetSpec:
    """Return the :class:`DatasetSpec` for ``dataset``."""

    if dataset not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {dataset}")
    spec = _REGISTRY[dataset](offline=offline, data_dir=data_dir, **options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    for split, dataset in (("train", spec.train), ("test", spec.test)):
        if dataset.num_classes != spec.num_classes:
            raise ValueError(
                f"Split {split!r} has {dataset.num_classes} label columns, "
                f"expected {spec.num_classes}"
            )


__all__ = ["DatasetSpec", "available_datasets", "get_dataset", "register_dataset"]
