"""Metric sinks fed with per-epoch training metrics."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable, List, Mapping, Protocol, Tuple

from .artifacts import git_sha

# Stable CSV column order; absent metrics are written as empty cells.
CSV_FIELDS = ("epoch", "step", "split", "loss", "val_loss", "accuracy", "val_accuracy")


class MetricsSink(Protocol):
    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None: ...


def _numeric(metrics: Mapping[str, object]) -> dict[str, float]:
    return {
        key: float(value)
        for key, value in metrics.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    }


class JsonlSink:
    """Append-only JSONL writer for metrics; truncates the file on creation."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or git_sha()

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        record: dict[str, object] = {
            "epoch": int(epoch),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update(_numeric(metrics))
        record["epoch"] = int(epoch)
        if "step" in record:
            record["step"] = int(record["step"])
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_epoch


class CsvSink:
    """Write metrics to CSV with the fixed :data:`CSV_FIELDS` schema."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        row: dict[str, object] = {name: "" for name in CSV_FIELDS}
        row.update({k: v for k, v in _numeric(metrics).items() if k in row})
        row["epoch"] = int(epoch)
        row["split"] = self.split
        if row["step"] != "":
            row["step"] = int(row["step"])
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_epoch


class MetricsRecorder:
    """Fan epoch metrics out to several sinks and keep the history in memory."""

    def __init__(self, sinks: Iterable[MetricsSink] = ()) -> None:
        self.sinks = list(sinks)
        self.history: List[Tuple[int, dict[str, float]]] = []

    @property
    def last(self) -> dict[str, float]:
        return self.history[-1][1] if self.history else {}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        payload = _numeric(metrics)
        self.history.append((int(epoch), payload))
        for sink in self.sinks:
            sink.on_epoch(epoch, payload)


__all__ = ["CSV_FIELDS", "CsvSink", "JsonlSink", "MetricsRecorder", "MetricsSink"]
