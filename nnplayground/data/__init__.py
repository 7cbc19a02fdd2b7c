"""Dataset registry and data preparation helpers."""

from .registry import DatasetSpec, available_datasets, get_dataset, register_dataset
from .utils import (
    DataSplit,
    create_batches,
    normalize_features,
    one_hot_encode,
    split_data,
    standardize_features,
)

__all__ = [
    "DataSplit",
    "DatasetSpec",
    "available_datasets",
    "create_batches",
    "get_dataset",
    "normalize_features",
    "one_hot_encode",
    "register_dataset",
    "split_data",
    "standardize_features",
]
