"""Commands accepted by, and notifications emitted from, the training worker.

Both directions are closed sets of frozen dataclasses, each tagged with a
``type`` string matching the host wire protocol (``"START"``, ``"UPDATE"``,
...). :func:`parse_command` decodes the wire form of a command and every
notification can be turned back into it with ``to_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Union

from ..core.types import Dataset, NetworkGraph, TrainConfig, TrainingMetrics


# Commands (host -> engine) ----------------------------------------------------------


@dataclass(frozen=True)
class Start:
    type: ClassVar[str] = "START"
    network: NetworkGraph
    config: TrainConfig
    dataset: Dataset


@dataclass(frozen=True)
class Pause:
    type: ClassVar[str] = "PAUSE"


@dataclass(frozen=True)
class Resume:
    type: ClassVar[str] = "RESUME"


@dataclass(frozen=True)
class Step:
    type: ClassVar[str] = "STEP"


@dataclass(frozen=True)
class Stop:
    type: ClassVar[str] = "STOP"


@dataclass(frozen=True)
class Reset:
    type: ClassVar[str] = "RESET"


@dataclass(frozen=True)
class Shutdown:
    """Ends the worker thread; never sent over the host protocol."""

    type: ClassVar[str] = "SHUTDOWN"


Command = Union[Start, Pause, Resume, Step, Stop, Reset, Shutdown]

_SIMPLE_COMMANDS = {cls.type: cls for cls in (Pause, Resume, Step, Stop, Reset)}


def parse_command(payload: Mapping[str, Any]) -> Command:
    kind = str(payload.get("type", "")).upper()
    if kind == Start.type:
        return Start(
            network=NetworkGraph.from_dict(payload["network"]),
            config=TrainConfig.from_dict(payload["config"]),
            dataset=Dataset.from_dict(payload["dataset"]),
        )
    try:
        return _SIMPLE_COMMANDS[kind]()
    except KeyError as exc:
        raise ValueError(f"Unknown command type: {payload.get('type')!r}") from exc


# Notifications (engine -> host) -----------------------------------------------------

_WIRE_METRIC_KEYS = {"val_loss": "valLoss", "val_accuracy": "valAccuracy"}


def _wire_metrics(metrics: TrainingMetrics) -> Dict[str, float]:
    return {_WIRE_METRIC_KEYS.get(key, key): value for key, value in metrics.to_dict().items()}


@dataclass(frozen=True)
class Update:
    type: ClassVar[str] = "UPDATE"
    weights: Dict[str, float]
    biases: Dict[str, float]
    metrics: TrainingMetrics
    gradients: Dict[str, float] = field(default_factory=dict)
    activations: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "weights": dict(self.weights),
            "biases": dict(self.biases),
            "gradients": dict(self.gradients),
            "activations": dict(self.activations),
            "metrics": _wire_metrics(self.metrics),
        }


@dataclass(frozen=True)
class EpochComplete:
    type: ClassVar[str] = "EPOCH_COMPLETE"
    epoch: int
    metrics: TrainingMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "epoch": self.epoch, "metrics": _wire_metrics(self.metrics)}


@dataclass(frozen=True)
class TrainingComplete:
    type: ClassVar[str] = "TRAINING_COMPLETE"
    final_metrics: TrainingMetrics

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "finalMetrics": _wire_metrics(self.final_metrics)}


@dataclass(frozen=True)
class Paused:
    type: ClassVar[str] = "PAUSED"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True)
class Stopped:
    type: ClassVar[str] = "STOPPED"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True)
class Error:
    type: ClassVar[str] = "ERROR"
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "message": self.message}


Notification = Union[Update, EpochComplete, TrainingComplete, Paused, Stopped, Error]

__all__ = [
    "Command",
    "EpochComplete",
    "Error",
    "Notification",
    "Pause",
    "Paused",
    "Reset",
    "Resume",
    "Shutdown",
    "Start",
    "Step",
    "Stop",
    "Stopped",
    "TrainingComplete",
    "Update",
    "parse_command",
]
