"""Built-in datasets and the registry that serves them."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, MutableMapping

import numpy as np
import pandas as pd
from sklearn.datasets import make_circles, make_moons
from sklearn.preprocessing import LabelEncoder

from ..core.types import DTYPE, TASK_KINDS, Dataset


@dataclass(frozen=True)
class DatasetSpec:
    """A materialised dataset plus the metadata needed to train on it.

    Attributes
    ----------
    dataset:
        Feature rows and labels.
    task:
        ``"classification"`` or ``"regression"``.
    num_classes:
        Number of distinct labels for classification datasets.
    provenance:
        Generator options, recorded in run manifests so a run can be
        reproduced.
    """

    dataset: Dataset
    task: str
    num_classes: int | None = None
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.dataset.name

    @property
    def n_features(self) -> int:
        return len(self.dataset.features[0]) if len(self.dataset) else 0


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    Works as a decorator::

        @register_dataset("xor")
        def make_xor(**options):
            ...

    or directly as ``register_dataset("xor", make_xor)``.
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(name: str, /, **options: Any) -> DatasetSpec:
    """Build the dataset registered under ``name`` with ``options``."""

    if name not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset: {name}. Available datasets: {available}")
    spec = _REGISTRY[name](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.task not in TASK_KINDS:
        raise ValueError(f"Invalid task: {spec.task}")
    if spec.task == "classification" and spec.num_classes is None:
        raise ValueError("Classification datasets must define num_classes")
    if len(spec.dataset) == 0:
        raise ValueError(f"Dataset {spec.name!r} is empty")


def _classification(name: str, features: np.ndarray, labels: np.ndarray, **provenance: Any) -> DatasetSpec:
    labels = labels.astype(int)
    return DatasetSpec(
        dataset=Dataset(name=name, features=features.astype(DTYPE).tolist(), labels=labels.tolist()),
        task="classification",
        num_classes=int(labels.max()) + 1,
        provenance={"generator": name, **provenance},
    )


# Built-in datasets -----------------------------------------------------------------


@register_dataset("xor")
def make_xor(**_: Any) -> DatasetSpec:
    features = np.array([[0, 0], [0, 1], [1, 0], [1, 1]], dtype=DTYPE)
    labels = np.array([0, 1, 1, 0])
    return _classification("xor", features, labels)


@register_dataset("moons")
def make_moons_dataset(*, n_samples: int = 200, noise: float = 0.1, seed: int = 0, **_: Any) -> DatasetSpec:
    features, labels = make_moons(n_samples=n_samples, noise=noise, random_state=seed)
    return _classification("moons", features, labels, n_samples=n_samples, noise=noise, seed=seed)


@register_dataset("circles")
def make_circles_dataset(
    *,
    n_samples: int = 200,
    noise: float = 0.05,
    factor: float = 0.5,
    seed: int = 0,
    **_: Any,
) -> DatasetSpec:
    features, labels = make_circles(n_samples=n_samples, noise=noise, factor=factor, random_state=seed)
    return _classification(
        "circles", features, labels, n_samples=n_samples, noise=noise, factor=factor, seed=seed
    )


@register_dataset("spiral")
def make_spiral(*, n_samples: int = 200, turns: float = 1.75, radius: float = 5.0, **_: Any) -> DatasetSpec:
    """Two interleaved arms; samples alternate between class 0 and class 1."""

    per_class = n_samples // 2
    fraction = np.arange(per_class, dtype=DTYPE) / max(per_class, 1)
    r = fraction * radius
    theta = fraction * turns * 2 * math.pi
    arm0 = np.stack([r * np.sin(theta), r * np.cos(theta)], axis=1)
    arm1 = np.stack([r * np.sin(theta + math.pi), r * np.cos(theta + math.pi)], axis=1)
    features = np.empty((2 * per_class, 2), dtype=DTYPE)
    features[0::2] = arm0
    features[1::2] = arm1
    labels = np.tile([0, 1], per_class)
    return _classification("spiral", features, labels, n_samples=n_samples, turns=turns, radius=radius)


@register_dataset("sine")
def make_sine(
    *,
    n_points: int = 64,
    freq: float = 1.0,
    noise: float = 0.0,
    seed: int = 0,
    **_: Any,
) -> DatasetSpec:
    """Regression on ``sin(2*pi*freq*x)`` for ``x`` evenly spaced in [-1, 1]."""

    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points, dtype=DTYPE)
    y = np.sin(2 * math.pi * freq * x)
    if noise:
        y = y + rng.normal(scale=noise, size=n_points)
    return DatasetSpec(
        dataset=Dataset(name="sine", features=x.reshape(-1, 1).tolist(), labels=y.tolist()),
        task="regression",
        provenance={"generator": "sine", "n_points": n_points, "freq": freq, "noise": noise, "seed": seed},
    )


@register_dataset("csv")
def load_csv(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "target",
    task: str = "classification",
    **_: Any,
) -> DatasetSpec:
    """Load feature columns plus a ``target_col`` column from a CSV file."""

    if csv_path is None:
        raise ValueError("The csv dataset requires a csv_path option")
    path = Path(csv_path)
    df = pd.read_csv(path)
    if target_col not in df.columns:
        raise KeyError(f"Target column {target_col!r} not found in CSV")
    target = df.pop(target_col).to_numpy()
    features = df.to_numpy(dtype=DTYPE)
    provenance: Dict[str, Any] = {"path": str(path), "target_col": target_col}
    if task == "regression":
        return DatasetSpec(
            dataset=Dataset(name=path.stem, features=features.tolist(), labels=target.astype(DTYPE).tolist()),
            task="regression",
            provenance=provenance,
        )
    encoder = LabelEncoder()
    labels = encoder.fit_transform(target)
    provenance["classes"] = [str(value) for value in encoder.classes_]
    return _classification(path.stem, features, labels, **provenance)


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
