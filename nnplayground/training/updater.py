"""Apply an optimizer step to a compiled network."""

from __future__ import annotations

import numpy as np

from ..core.network import NetworkComputation
from ..core.types import TrainConfig
from .optimizers import OptimizerHyperParams, get_optimizer


def clip_gradients(net: NetworkComputation, max_norm: float) -> float:
    """Rescale the combined gradient vector to at most ``max_norm``.

    Returns the norm measured before clipping.
    """

    norm = float(np.linalg.norm(net.parameter_gradients))
    if max_norm > 0 and norm > max_norm:
        net.parameter_gradients *= max_norm / norm
    return norm


def update_parameters(
    net: NetworkComputation,
    optimizer_name: str,
    learning_rate: float,
    step: int,
    config: TrainConfig | None = None,
) -> None:
    """Run one optimizer update over the flat weights+biases vector in place.

    ``step`` is 1-indexed and must already include this update. The optimizer
    state is created on the first call and kept on ``net`` for the rest of
    the run.
    """

    optimizer = get_optimizer(optimizer_name)
    if not net.optimizer_state:
        net.optimizer_state = optimizer.initialize(net.total_params)
    for key, buffer in net.optimizer_state.items():
        if buffer.size != net.total_params:
            raise RuntimeError(
                f"Optimizer state {key!r} has {buffer.size} entries but the network "
                f"has {net.total_params} parameters"
            )

    if config is not None and config.weight_decay:
        net.weight_gradients[:] += config.weight_decay * net.weights
    if config is not None and config.gradient_clip:
        clip_gradients(net, config.gradient_clip)

    hyper = OptimizerHyperParams.from_config(config)
    optimizer.update(net.parameters, net.parameter_gradients, net.optimizer_state, learning_rate, step, hyper)


__all__ = ["clip_gradients", "update_parameters"]
