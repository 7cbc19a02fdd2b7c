"""Dataset partitioning and label/feature preprocessing helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple, TypeVar

import numpy as np

from ..core.types import DTYPE, Array

T = TypeVar("T")


@dataclass(frozen=True)
class DataSplit:
    """Parallel feature/label arrays for the train and validation partitions."""

    train_features: Array
    train_labels: Array
    val_features: Array
    val_labels: Array

    @property
    def sizes(self) -> dict:
        return {"train": int(len(self.train_features)), "val": int(len(self.val_features))}


def as_feature_matrix(features: Sequence[Sequence[float]] | Array) -> Array:
    matrix = np.asarray(features, dtype=DTYPE)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise ValueError(f"Features must be a 2-D matrix, got shape {matrix.shape}")
    return matrix


def split_data(
    features: Sequence[Sequence[float]] | Array,
    labels: Sequence[object] | Array,
    train_ratio: float = 0.8,
    shuffle: bool = True,
    seed: int | None = None,
) -> DataSplit:
    """Shuffle and split a labelled dataset into train/validation partitions.

    ``floor(n * train_ratio)`` samples go to the training partition. With a
    fixed ``seed`` the partition is reproducible; ``seed=None`` draws fresh
    entropy.
    """

    x = as_feature_matrix(features)
    y = np.asarray(labels, dtype=DTYPE)
    if x.shape[0] != y.shape[0]:
        raise ValueError(f"{x.shape[0]} feature rows but {y.shape[0]} labels")
    indices = np.arange(x.shape[0])
    if shuffle:
        rng = np.random.default_rng(seed)
        indices = rng.permutation(indices)
    train_size = int(np.floor(x.shape[0] * train_ratio))
    train_idx, val_idx = indices[:train_size], indices[train_size:]
    return DataSplit(
        train_features=x[train_idx],
        train_labels=y[train_idx],
        val_features=x[val_idx],
        val_labels=y[val_idx],
    )


def one_hot_encode(labels: Sequence[int] | Array, num_classes: int | None = None) -> Array:
    indices = np.asarray(labels).reshape(-1).astype(int)
    if num_classes is None:
        num_classes = int(indices.max()) + 1 if indices.size else 0
    if indices.size and (indices.min() < 0 or indices.max() >= num_classes):
        raise ValueError(f"Labels must lie in [0, {num_classes}), got {sorted(set(indices.tolist()))}")
    out = np.zeros((indices.shape[0], num_classes), dtype=DTYPE)
    out[np.arange(indices.shape[0]), indices] = 1.0
    return out


def encode_targets(labels: Array, task: str, output_width: int) -> Array:
    """Turn labels into target vectors matching the output layer.

    Classification labels become one-hot rows of ``output_width`` classes; a
    single output unit keeps the raw 0/1 label. Regression scalars become
    length-1 vectors. Vector labels are passed through unchanged.
    """

    labels = np.asarray(labels, dtype=DTYPE)
    if labels.ndim == 2:
        return labels
    if task == "classification" and output_width > 1:
        return one_hot_encode(labels, output_width)
    return labels.reshape(-1, 1)


def normalize_features(features: Sequence[Sequence[float]] | Array) -> Tuple[Array, Array, Array]:
    """Min-max scale every column to [0, 1]; constant columns map to 0."""

    x = as_feature_matrix(features) if len(features) else np.zeros((0, 0), dtype=DTYPE)
    if x.size == 0:
        return x, np.zeros(0, dtype=DTYPE), np.zeros(0, dtype=DTYPE)
    low = x.min(axis=0)
    high = x.max(axis=0)
    span = high - low
    safe = np.where(span == 0, 1.0, span)
    normalized = np.where(span == 0, 0.0, (x - low) / safe)
    return normalized, low, high


def standardize_features(features: Sequence[Sequence[float]] | Array) -> Tuple[Array, Array, Array]:
    x = as_feature_matrix(features) if len(features) else np.zeros((0, 0), dtype=DTYPE)
    if x.size == 0:
        return x, np.zeros(0, dtype=DTYPE), np.zeros(0, dtype=DTYPE)
    mean = x.mean(axis=0)
    std = x.std(axis=0)
    safe = np.where(std == 0, 1.0, std)
    standardized = np.where(std == 0, 0.0, (x - mean) / safe)
    return standardized, mean, std


def create_batches(items: Sequence[T], batch_size: int) -> List[Sequence[T]]:
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [items[start : start + batch_size] for start in range(0, len(items), batch_size)]


def batch_indices(step: int, batch_size: int, train_size: int) -> Array:
    """Contiguous, wrapping window of ``batch_size`` indices for ``step``."""

    if train_size <= 0:
        raise ValueError("training partition is empty")
    start = (step * batch_size) % train_size
    return (start + np.arange(batch_size)) % train_size


__all__ = [
    "DataSplit",
    "as_feature_matrix",
    "batch_indices",
    "create_batches",
    "encode_targets",
    "normalize_features",
    "one_hot_encode",
    "split_data",
    "standardize_features",
]
