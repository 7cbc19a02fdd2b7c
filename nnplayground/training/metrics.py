"""Metric helpers for the training loop."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from ..core.network import NetworkComputation, forward, predicted_class
from ..core.types import Array
from ..data.utils import encode_targets
from .losses import Loss


def label_class(label: Array) -> int:
    label = np.asarray(label).reshape(-1)
    if label.size > 1:
        return int(np.argmax(label))
    return int(label[0])


def argmax_correct(output: Array, label: Array) -> bool:
    return predicted_class(output) == label_class(label)


def evaluate(
    net: NetworkComputation,
    features: Array,
    labels: Array,
    *,
    task: str,
    loss: Loss,
) -> Tuple[float, float | None]:
    """Inference-only pass returning mean loss and, for classification, accuracy."""

    if len(features) == 0:
        return 0.0, None
    targets = encode_targets(labels, task, net.output_size)
    total = 0.0
    correct = 0
    for row, target, label in zip(features, targets, labels):
        output = forward(net, row)
        total += loss.forward(output, target)
        if task == "classification" and argmax_correct(output, label):
            correct += 1
    accuracy = correct / len(features) if task == "classification" else None
    return total / len(features), accuracy


__all__ = ["argmax_correct", "evaluate", "label_class"]
