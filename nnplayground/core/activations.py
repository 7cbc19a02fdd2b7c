"""Activation registry for nn-playground."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .types import Array

ArrayFn = Callable[[Array], Array]

_CLAMP = 500.0


@dataclass(frozen=True)
class Activation:
    """Forward value and derivative with respect to the pre-activation."""

    name: str
    forward: ArrayFn
    derivative: ArrayFn


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def relu_deriv(x: Array) -> Array:
    return (np.asarray(x) > 0).astype(np.float64)


def sigmoid(x: Array) -> Array:
    """Logistic sigmoid with the exponent clamped to avoid overflow."""

    return 1.0 / (1.0 + np.exp(-np.clip(x, -_CLAMP, _CLAMP)))


def sigmoid_deriv(x: Array) -> Array:
    s = sigmoid(x)
    return s * (1.0 - s)


def tanh(x: Array) -> Array:
    return np.tanh(np.clip(x, -_CLAMP, _CLAMP))


def tanh_deriv(x: Array) -> Array:
    t = tanh(x)
    return 1.0 - t * t


def linear(x: Array) -> Array:
    return np.asarray(x, dtype=np.float64)


def linear_deriv(x: Array) -> Array:
    return np.ones_like(x, dtype=np.float64)


_REGISTRY: Dict[str, Activation] = {
    "relu": Activation("relu", relu, relu_deriv),
    "sigmoid": Activation("sigmoid", sigmoid, sigmoid_deriv),
    "tanh": Activation("tanh", tanh, tanh_deriv),
    "linear": Activation("linear", linear, linear_deriv),
}


def get_activation(name: str) -> Activation:
    try:
        return _REGISTRY[name]
    except KeyError as exc:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown activation {name!r}. Available activations: {available}") from exc


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = [
    "Activation",
    "get_activation",
    "linear",
    "names",
    "relu",
    "sigmoid",
    "tanh",
]
