"""Optimizer registry: stateful per-element parameter update rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.types import DTYPE, Array, TrainConfig

OptimizerState = Dict[str, Array]


@dataclass(frozen=True)
class OptimizerHyperParams:
    momentum: float = 0.9
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8

    @classmethod
    def from_config(cls, config: TrainConfig | None) -> "OptimizerHyperParams":
        if config is None:
            return cls()
        # ``momentum`` doubles as the first-moment decay for adam.
        beta = config.momentum if config.momentum is not None else 0.9
        beta2 = config.beta2 if config.beta2 is not None else 0.999
        return cls(momentum=beta, beta1=beta, beta2=beta2)


InitFn = Callable[[int], OptimizerState]
UpdateFn = Callable[[Array, Array, OptimizerState, float, int, OptimizerHyperParams], None]


@dataclass(frozen=True)
class Optimizer:
    """Update rule operating in place on a flat parameter vector."""

    name: str
    initialize: InitFn
    update: UpdateFn


def _sgd_init(param_count: int) -> OptimizerState:
    return {}


def _sgd_update(params, grads, state, lr, step, hyper) -> None:
    params -= lr * grads


def _momentum_init(param_count: int) -> OptimizerState:
    return {"velocity": np.zeros(param_count, dtype=DTYPE)}


def _momentum_update(params, grads, state, lr, step, hyper) -> None:
    velocity = state["velocity"]
    velocity *= hyper.momentum
    velocity += (1.0 - hyper.momentum) * grads
    params -= lr * velocity


def _adam_init(param_count: int) -> OptimizerState:
    return {
        "m": np.zeros(param_count, dtype=DTYPE),
        "v": np.zeros(param_count, dtype=DTYPE),
    }


def _adam_update(params, grads, state, lr, step, hyper) -> None:
    if step < 1:
        raise ValueError(f"adam expects a 1-indexed step, got {step}")
    m, v = state["m"], state["v"]
    m *= hyper.beta1
    m += (1.0 - hyper.beta1) * grads
    v *= hyper.beta2
    v += (1.0 - hyper.beta2) * grads * grads
    m_hat = m / (1.0 - hyper.beta1**step)
    v_hat = v / (1.0 - hyper.beta2**step)
    params -= lr * m_hat / (np.sqrt(v_hat) + hyper.epsilon)


_REGISTRY: Dict[str, Optimizer] = {
    "sgd": Optimizer("sgd", _sgd_init, _sgd_update),
    "momentum": Optimizer("momentum", _momentum_init, _momentum_update),
    "adam": Optimizer("adam", _adam_init, _adam_update),
}


def get_optimizer(name: str) -> Optimizer:
    try:
        return _REGISTRY[name]
    except KeyError as exc:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown optimizer {name!r}. Available optimizers: {available}") from exc


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = ["Optimizer", "OptimizerHyperParams", "OptimizerState", "get_optimizer", "names"]
