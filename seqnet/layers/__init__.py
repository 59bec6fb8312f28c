"""Layer variants and config (de)serialisation."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Type

from ..core import initializers
from .base import Layer
from .convolutional import AvgPool2D, Conv2D, MaxPool2D
from .core import Dense, Flatten, Input

_LAYERS: Dict[str, Type[Layer]] = {
    cls.__name__: cls for cls in (Input, Flatten, Dense, Conv2D, MaxPool2D, AvgPool2D)
}


def deserialize(config: Mapping[str, Any]) -> Layer:
    """Rebuild a layer from :meth:`Layer.get_config` output."""

    name = str(config["class_name"])
    if name not in _LAYERS:
        raise KeyError(f"Unknown layer: {name}")
    options = dict(config.get("config", {}))
    for key in ("kernel_initializer", "bias_initializer"):
        if key in options:
            options[key] = initializers.deserialize(options[key])
    if name == "Input":
        dims = options.pop("dims")
        return Input(*dims, **options)
    return _LAYERS[name](**options)


__all__ = ["AvgPool2D", "Conv2D", "Dense", "Flatten", "Input", "Layer", "MaxPool2D", "deserialize"]
