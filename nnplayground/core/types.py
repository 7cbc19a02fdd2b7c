"""Core typing contracts for nn-playground."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

Array = np.ndarray
DTYPE = np.float64

LAYER_KINDS = ("input", "dense", "output")
TASK_KINDS = ("classification", "regression")


@dataclass
class LayerSpec:
    """One column of the editable network graph."""

    id: str
    kind: str
    activation: str
    units: int
    position_x: float = 0.0
    name: str = ""
    dropout: float | None = None


@dataclass
class NodeSpec:
    """A single unit; ``position_y`` fixes its index within the layer."""

    id: str
    layer_id: str
    bias: float = 0.0
    activation: str = "linear"
    position_y: float | None = None


@dataclass
class EdgeSpec:
    id: str
    source: str
    target: str
    weight: float = 0.0


@dataclass
class NetworkGraph:
    """Layer/node/edge description handed over by the graph editor."""

    layers: List[LayerSpec] = field(default_factory=list)
    nodes: Dict[str, NodeSpec] = field(default_factory=dict)
    edges: Dict[str, EdgeSpec] = field(default_factory=dict)

    def layer_nodes(self, layer_id: str) -> List[NodeSpec]:
        return [node for node in self.nodes.values() if node.layer_id == layer_id]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NetworkGraph":
        """Build a graph from the editor's wire format.

        Both the editor shape (``layerId``, ``from``/``to``, ``position``
        objects) and the snake_case field names are accepted.
        """

        layers = []
        for raw in payload.get("layers", []):
            position = raw.get("position") or {}
            layers.append(
                LayerSpec(
                    id=str(raw["id"]),
                    kind=str(raw.get("type", raw.get("kind", "dense"))),
                    activation=str(raw.get("activation", "linear")),
                    units=int(raw.get("units", 0)),
                    position_x=float(position.get("x", raw.get("position_x", 0.0))),
                    name=str(raw.get("name", "")),
                    dropout=raw.get("dropout"),
                )
            )
        nodes = {}
        for key, raw in dict(payload.get("nodes", {})).items():
            position = raw.get("position")
            y = position.get("y") if position else raw.get("position_y")
            nodes[str(key)] = NodeSpec(
                id=str(raw.get("id", key)),
                layer_id=str(_required(raw, "layerId", "layer_id")),
                bias=float(raw.get("bias", 0.0)),
                activation=str(raw.get("activation", "linear")),
                position_y=None if y is None else float(y),
            )
        edges = {}
        for key, raw in dict(payload.get("edges", {})).items():
            edges[str(key)] = EdgeSpec(
                id=str(raw.get("id", key)),
                source=str(_required(raw, "from", "source")),
                target=str(_required(raw, "to", "target")),
                weight=float(raw.get("weight", 0.0)),
            )
        return cls(layers=layers, nodes=nodes, edges=edges)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layers": [
                {
                    "id": layer.id,
                    "type": layer.kind,
                    "name": layer.name,
                    "activation": layer.activation,
                    "units": layer.units,
                    "dropout": layer.dropout,
                    "position": {"x": layer.position_x, "y": 0.0},
                }
                for layer in self.layers
            ],
            "nodes": {
                key: {
                    "id": node.id,
                    "layerId": node.layer_id,
                    "bias": node.bias,
                    "activation": node.activation,
                    **(
                        {"position": {"x": 0.0, "y": node.position_y}}
                        if node.position_y is not None
                        else {}
                    ),
                }
                for key, node in self.nodes.items()
            },
            "edges": {
                key: {"id": edge.id, "from": edge.source, "to": edge.target, "weight": edge.weight}
                for key, edge in self.edges.items()
            },
        }


@dataclass
class Dataset:
    """Features as rows of numeric vectors, labels as scalars or vectors."""

    name: str
    features: Sequence[Sequence[float]]
    labels: Sequence[Any]

    def __post_init__(self) -> None:
        if len(self.features) != len(self.labels):
            raise ValueError(
                f"Dataset {self.name!r} has {len(self.features)} feature rows "
                f"but {len(self.labels)} labels"
            )

    def __len__(self) -> int:
        return len(self.features)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Dataset":
        return cls(
            name=str(payload.get("name", "dataset")),
            features=[list(map(float, row)) for row in payload["features"]],
            labels=list(payload["labels"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        features = np.asarray(self.features, dtype=DTYPE).tolist()
        labels = np.asarray(self.labels).tolist()
        return {"name": self.name, "features": features, "labels": labels}


@dataclass(frozen=True)
class EarlyStopping:
    patience: int
    min_delta: float = 0.0


@dataclass(frozen=True)
class TrainConfig:
    """Immutable hyper-parameters of one training run."""

    task: str
    loss: str
    optimizer: str
    learning_rate: float
    batch_size: int
    epochs: int
    momentum: float | None = None
    beta2: float | None = None
    weight_decay: float | None = None
    gradient_clip: float | None = None
    early_stopping: EarlyStopping | None = None
    seed: int | None = None
    train_ratio: float = 0.8

    @property
    def is_classification(self) -> bool:
        return self.task == "classification"

    def validate(self) -> "TrainConfig":
        if self.task not in TASK_KINDS:
            raise ValueError(f"Unknown task kind {self.task!r}; expected one of {TASK_KINDS}")
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.epochs <= 0:
            raise ValueError(f"epochs must be positive, got {self.epochs}")
        if not 0.0 < self.train_ratio <= 1.0:
            raise ValueError(f"train_ratio must lie in (0, 1], got {self.train_ratio}")
        return self

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TrainConfig":
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in payload and payload[key] is not None:
                    return payload[key]
            return default

        early = pick("earlyStopping", "early_stopping")
        if isinstance(early, Mapping):
            early = EarlyStopping(
                patience=int(early["patience"]),
                min_delta=float(early.get("minDelta", early.get("min_delta", 0.0))),
            )
        seed = pick("seed")
        return cls(
            task=str(pick("task", default="classification")),
            loss=str(pick("loss", default="auto")),
            optimizer=str(pick("optimizer", default="sgd")),
            learning_rate=float(pick("learningRate", "learning_rate", "lr", default=0.01)),
            batch_size=int(pick("batchSize", "batch_size", default=1)),
            epochs=int(pick("epochs", default=1)),
            momentum=_optional_float(pick("momentum")),
            beta2=_optional_float(pick("beta2")),
            weight_decay=_optional_float(pick("weightDecay", "weight_decay")),
            gradient_clip=_optional_float(pick("gradientClip", "gradient_clip")),
            early_stopping=early,
            seed=None if seed is None else int(seed),
            train_ratio=float(pick("trainRatio", "train_ratio", default=0.8)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _required(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    raise KeyError(f"Record {raw.get('id', '?')!r} is missing field {' or '.join(keys)}")


@dataclass(frozen=True)
class TrainingMetrics:
    """Metrics snapshot; accuracies are only set for classification runs."""

    step: int
    epoch: int
    loss: float
    val_loss: float | None = None
    accuracy: float | None = None
    val_accuracy: float | None = None

    def to_dict(self) -> Dict[str, float]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`nnplayground.training.pipelines.run_pipeline`."""

    steps: int
    epochs: int
    status: str
    metrics_path: str
    manifest_path: str


__all__ = [
    "Array",
    "DTYPE",
    "Dataset",
    "EarlyStopping",
    "EdgeSpec",
    "LayerSpec",
    "NetworkGraph",
    "NodeSpec",
    "RunResult",
    "TrainConfig",
    "TrainingMetrics",
]
