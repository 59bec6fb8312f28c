"""Two-dimensional convolution and pooling over NHWC tensors.

Both operators walk the kernel window offsets and vectorise over batch,
spatial positions and channels, so the Python-level loop only runs
``kernel_h * kernel_w`` times per call.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence, Tuple

import numpy as np

from ..core import activations, initializers
from ..core.initializers import Initializer
from ..core.shape import as_pair, format_shape
from ..core.types import UNKNOWN_DIM, Array, Shape
from ..errors import ArgumentError, ShapeMismatchError
from .base import Layer, Variables

_PADDINGS = {"same", "valid"}


def conv_output_length(length: int, window: int, stride: int, padding: str) -> int:
    if length < 0:
        return UNKNOWN_DIM
    if padding == "same":
        return -(-length // stride)
    return -(-(length - window + 1) // stride)


def padding_amounts(length: int, window: int, stride: int, padding: str) -> Tuple[int, int]:
    if padding == "valid":
        return 0, 0
    out = -(-length // stride)
    total = max((out - 1) * stride + window - length, 0)
    return total // 2, total - total // 2


def _window(offset: int, stride: int, out_length: int) -> slice:
    return slice(offset, offset + stride * (out_length - 1) + 1, stride)


def _check_padding(padding: str) -> str:
    padding = str(padding).lower()
    if padding not in _PADDINGS:
        raise ArgumentError(f"padding must be one of {sorted(_PADDINGS)}, got {padding!r}")
    return padding


class _Spatial(Layer):
    """Shape bookkeeping shared by the NHWC window operators."""

    window: Tuple[int, int]
    strides: Tuple[int, int]
    padding: str

    def _spatial_output(self, input_shape: Shape) -> Tuple[int, int]:
        if len(input_shape) != 4:
            raise ShapeMismatchError(
                f"{type(self).__name__} layer {self.name!r} expects a 4-D NHWC input but "
                f"received {format_shape(input_shape)}"
            )
        dims = []
        for axis in range(2):
            length = int(input_shape[1 + axis])
            out = conv_output_length(length, self.window[axis], self.strides[axis], self.padding)
            if length >= 0 and out <= 0:
                raise ShapeMismatchError(
                    f"Window {self.window} does not fit input {format_shape(input_shape)} "
                    f"in layer {self.name!r} with padding {self.padding!r}"
                )
            dims.append(out)
        return dims[0], dims[1]

    def _pad(self, inputs: Array, fill: float = 0.0) -> Tuple[Array, Tuple[int, int], int, int]:
        _, height, width, _ = inputs.shape
        top, bottom = padding_amounts(height, self.window[0], self.strides[0], self.padding)
        left, right = padding_amounts(width, self.window[1], self.strides[1], self.padding)
        out_h = conv_output_length(height, self.window[0], self.strides[0], self.padding)
        out_w = conv_output_length(width, self.window[1], self.strides[1], self.padding)
        if top or bottom or left or right:
            inputs = np.pad(
                inputs,
                ((0, 0), (top, bottom), (left, right), (0, 0)),
                mode="constant",
                constant_values=fill,
            )
        return inputs, (top, left), out_h, out_w


class Conv2D(_Spatial):
    """2-D convolution with kernel ``(kh, kw, in_channels, filters)``."""

    def __init__(
        self,
        filters: int = 32,
        kernel_size: int | Sequence[int] = (5, 5),
        strides: int | Sequence[int] = (1, 1, 1, 1),
        activation: str = "relu",
        kernel_initializer: Initializer | None = None,
        bias_initializer: Initializer | None = None,
        padding: str = "same",
        name: str = "",
    ) -> None:
        super().__init__(name)
        if filters <= 0:
            raise ArgumentError(f"filters must be positive, got {filters}")
        self.filters = int(filters)
        self.window = as_pair(kernel_size, "kernel_size")
        self.strides = as_pair(strides, "strides")
        self.padding = _check_padding(padding)
        self.activation = activations.get(activation)
        self.kernel_initializer = kernel_initializer or initializers.GlorotUniform()
        self.bias_initializer = bias_initializer or initializers.Zeros()

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        out_h, out_w = self._spatial_output(input_shape)
        return (int(input_shape[0]), out_h, out_w, self.filters)

    def _create_variables(self, graph, input_shape: Shape) -> None:
        kh, kw = self.window
        channels = int(input_shape[-1])
        self.fan_in = kh * kw * channels
        self.fan_out = kh * kw * self.filters
        self._add_variable(graph, "kernel", (kh, kw, channels, self.filters), self.kernel_initializer)
        self._add_variable(graph, "bias", (self.filters,), self.bias_initializer)

    def forward(self, variables: Variables, inputs: Array) -> Tuple[Array, Any]:
        kernel = variables["kernel"]
        padded, offsets, out_h, out_w = self._pad(inputs)
        sh, sw = self.strides
        z = np.zeros(
            (inputs.shape[0], out_h, out_w, self.filters),
            dtype=np.result_type(inputs.dtype, kernel.dtype),
        )
        for i in range(self.window[0]):
            for j in range(self.window[1]):
                patch = padded[:, _window(i, sh, out_h), _window(j, sw, out_w), :]
                z += patch @ kernel[i, j]
        z += variables["bias"]
        out = self.activation(z)
        return out, (inputs.shape, padded, offsets, z, out)

    def backward(self, variables: Variables, cache: Any, grad: Array):
        input_shape, padded, (top, left), z, out = cache
        kernel = variables["kernel"]
        dz = self.activation.backward(z, out, grad)
        _, out_h, out_w, _ = dz.shape
        sh, sw = self.strides
        d_padded = np.zeros_like(padded, dtype=dz.dtype)
        d_kernel = np.zeros_like(kernel, dtype=dz.dtype)
        for i in range(self.window[0]):
            for j in range(self.window[1]):
                rows, cols = _window(i, sh, out_h), _window(j, sw, out_w)
                patch = padded[:, rows, cols, :]
                d_kernel[i, j] = np.tensordot(patch, dz, axes=([0, 1, 2], [0, 1, 2]))
                d_padded[:, rows, cols, :] += dz @ kernel[i, j].T
        height, width = input_shape[1], input_shape[2]
        d_inputs = d_padded[:, top : top + height, left : left + width, :]
        return d_inputs, {"kernel": d_kernel, "bias": dz.sum(axis=(0, 1, 2))}

    def has_activation(self) -> bool:
        return True

    def get_config(self) -> Dict[str, Any]:
        return {
            "class_name": "Conv2D",
            "config": {
                "name": self.name,
                "filters": self.filters,
                "kernel_size": list(self.window),
                "strides": list(self.strides),
                "activation": self.activation.name,
                "kernel_initializer": self.kernel_initializer.get_config(),
                "bias_initializer": self.bias_initializer.get_config(),
                "padding": self.padding,
            },
        }


class _Pool2D(_Spatial):
    def __init__(
        self,
        pool_size: int | Sequence[int] = (1, 2, 2, 1),
        strides: int | Sequence[int] = (1, 2, 2, 1),
        padding: str = "valid",
        name: str = "",
    ) -> None:
        super().__init__(name)
        self.window = as_pair(pool_size, "pool_size")
        self.strides = as_pair(strides, "strides")
        self.padding = _check_padding(padding)

    def compute_output_shape(self, input_shape: Shape) -> Shape:
        out_h, out_w = self._spatial_output(input_shape)
        return (int(input_shape[0]), out_h, out_w, int(input_shape[3]))

    def _windows(self, padded: Array, out_h: int, out_w: int) -> Array:
        sh, sw = self.strides
        return np.stack(
            [
                padded[:, _window(i, sh, out_h), _window(j, sw, out_w), :]
                for i in range(self.window[0])
                for j in range(self.window[1])
            ]
        )

    def _scatter(self, padded_shape, out_h: int, out_w: int, pieces) -> Array:
        sh, sw = self.strides
        d_padded = np.zeros(padded_shape, dtype=np.float32)
        k = 0
        for i in range(self.window[0]):
            for j in range(self.window[1]):
                d_padded[:, _window(i, sh, out_h), _window(j, sw, out_w), :] += pieces(k)
                k += 1
        return d_padded

    def get_config(self) -> Dict[str, Any]:
        return {
            "class_name": type(self).__name__,
            "config": {
                "name": self.name,
                "pool_size": list(self.window),
                "strides": list(self.strides),
                "padding": self.padding,
            },
        }


class MaxPool2D(_Pool2D):
    """Max pooling; gradients flow to the first maximum of each window."""

    def forward(self, variables: Variables, inputs: Array) -> Tuple[Array, Any]:
        padded, offsets, out_h, out_w = self._pad(inputs, fill=-np.inf)
        windows = self._windows(padded, out_h, out_w)
        winners = windows.argmax(axis=0)
        return windows.max(axis=0), (inputs.shape, padded.shape, offsets, winners)

    def backward(self, variables: Variables, cache: Any, grad: Array):
        input_shape, padded_shape, (top, left), winners = cache
        _, out_h, out_w, _ = grad.shape
        d_padded = self._scatter(padded_shape, out_h, out_w, lambda k: grad * (winners == k))
        return d_padded[:, top : top + input_shape[1], left : left + input_shape[2], :], {}


class AvgPool2D(_Pool2D):
    """Average pooling; padded positions are excluded from the mean."""

    def forward(self, variables: Variables, inputs: Array) -> Tuple[Array, Any]:
        padded, offsets, out_h, out_w = self._pad(inputs)
        mask, _, _, _ = self._pad(np.ones((1,) + inputs.shape[1:], dtype=np.float32))
        counts = self._windows(mask, out_h, out_w).sum(axis=0)
        sums = self._windows(padded, out_h, out_w).sum(axis=0)
        return sums / counts, (inputs.shape, padded.shape, offsets, counts)

    def backward(self, variables: Variables, cache: Any, grad: Array):
        input_shape, padded_shape, (top, left), counts = cache
        _, out_h, out_w, _ = grad.shape
        share = grad / counts
        d_padded = self._scatter(padded_shape, out_h, out_w, lambda k: share)
        return d_padded[:, top : top + input_shape[1], left : left + input_shape[2], :], {}


__all__ = ["AvgPool2D", "Conv2D", "MaxPool2D", "conv_output_length", "padding_amounts"]
