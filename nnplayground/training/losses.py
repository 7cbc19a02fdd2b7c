"""Loss registry used by the forward/backward engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.errors import ShapeMismatch
from ..core.types import Array

LossForward = Callable[[Array, Array], float]
LossBackward = Callable[[Array, Array], Array]

_EPS = 1e-15


@dataclass(frozen=True)
class Loss:
    """Loss wrapper exposing the scalar loss and dL/dprediction."""

    name: str
    forward_fn: LossForward
    backward_fn: LossBackward

    def forward(self, predictions: Array, targets: Array) -> float:
        _check_shapes(predictions, targets)
        return float(self.forward_fn(predictions, targets))

    def backward(self, predictions: Array, targets: Array) -> Array:
        _check_shapes(predictions, targets)
        return self.backward_fn(predictions, targets)


def _check_shapes(predictions: Array, targets: Array) -> None:
    if predictions.shape != targets.shape:
        raise ShapeMismatch(
            f"Target length {targets.shape[-1] if targets.ndim else 0} does not match "
            f"output layer width {predictions.shape[-1] if predictions.ndim else 0}"
        )


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Loss] = {}

    def register(self, name: str, forward: LossForward, backward: LossBackward) -> None:
        self._registry[name] = Loss(name, forward, backward)

    def get(self, name: str) -> Loss:
        try:
            return self._registry[name]
        except KeyError as exc:
            raise KeyError(f"Unknown loss: {name}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str, *, task: str) -> Loss:
        if name == "auto":
            if task == "regression":
                name = "mse"
            elif task == "classification":
                name = "cross_entropy"
            else:
                raise ValueError(f"Unknown task kind: {task}")
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}")
        return self._registry[name]


REGISTRY = LossRegistry()


def _mse(pred: Array, target: Array) -> float:
    diff = pred - target
    return float(np.mean(np.square(diff)))


def _mse_grad(pred: Array, target: Array) -> Array:
    return 2.0 * (pred - target) / pred.size


def _mae(pred: Array, target: Array) -> float:
    return float(np.mean(np.abs(pred - target)))


def _mae_grad(pred: Array, target: Array) -> Array:
    return np.sign(pred - target) / pred.size


def _huber(pred: Array, target: Array, delta: float = 1.0) -> float:
    abs_diff = np.abs(pred - target)
    quadratic = np.minimum(abs_diff, delta)
    linear = abs_diff - quadratic
    return float(np.mean(0.5 * quadratic**2 + delta * linear))


def _huber_grad(pred: Array, target: Array, delta: float = 1.0) -> Array:
    diff = pred - target
    grad = np.where(np.abs(diff) <= delta, diff, delta * np.sign(diff))
    return grad / pred.size


def _cross_entropy(pred: Array, target: Array) -> float:
    p = np.clip(pred, _EPS, 1.0 - _EPS)
    return float(-np.mean(target * np.log(p) + (1.0 - target) * np.log(1.0 - p)))


def _cross_entropy_grad(pred: Array, target: Array) -> Array:
    p = np.clip(pred, _EPS, 1.0 - _EPS)
    return (p - target) / (p * (1.0 - p)) / pred.size


REGISTRY.register("mse", _mse, _mse_grad)
REGISTRY.register("mae", _mae, _mae_grad)
REGISTRY.register("huber", _huber, _huber_grad)
REGISTRY.register("cross_entropy", _cross_entropy, _cross_entropy_grad)

__all__ = ["Loss", "LossRegistry", "REGISTRY"]
