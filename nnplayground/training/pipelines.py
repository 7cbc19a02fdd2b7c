"""Preset configurations and synchronous batch runs of the training loop."""

from __future__ import annotations

import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping

from ..core.factory import create_network
from ..core.types import RunResult, TrainConfig
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink, MetricsRecorder
from ..reporting.plots import PlotAdapter
from .controller import ERROR, TRAINING, LoopSettings, TrainingLoop
from .messages import EpochComplete, Error, Notification

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor-adam": {
        "data": {"name": "xor", "options": {}},
        "model": {"hidden": [4], "activation": "tanh", "output_activation": "sigmoid"},
        "train": {
            "optimizer": "adam",
            "loss": "cross_entropy",
            "lr": 0.05,
            "batch_size": 4,
            "epochs": 500,
            "train_ratio": 1.0,
            "seed": 7,
            "run_dir": "runs/xor-adam",
            "enable_plots": False,
        },
    },
    "moons-momentum": {
        "data": {"name": "moons", "options": {"n_samples": 200, "noise": 0.1}},
        "model": {"hidden": [8, 4], "activation": "relu"},
        "train": {
            "optimizer": "momentum",
            "momentum": 0.9,
            "lr": 0.1,
            "batch_size": 16,
            "epochs": 40,
            "seed": 0,
            "early_stopping": {"patience": 8, "min_delta": 1e-4},
            "run_dir": "runs/moons-momentum",
            "enable_plots": False,
        },
    },
    "spiral-adam": {
        "data": {"name": "spiral", "options": {"n_samples": 200}},
        "model": {"hidden": [16, 16], "activation": "tanh"},
        "train": {
            "optimizer": "adam",
            "lr": 0.01,
            "batch_size": 16,
            "epochs": 60,
            "gradient_clip": 5.0,
            "seed": 1,
            "run_dir": "runs/spiral-adam",
            "enable_plots": False,
        },
    },
    "sine-sgd": {
        "data": {"name": "sine", "options": {"n_points": 64, "freq": 0.5}},
        "model": {"hidden": [16], "activation": "tanh", "output_activation": "linear"},
        "train": {
            "optimizer": "sgd",
            "loss": "mse",
            "lr": 0.05,
            "batch_size": 8,
            "epochs": 100,
            "weight_decay": 1e-4,
            "seed": 3,
            "run_dir": "runs/sine-sgd",
            "enable_plots": False,
        },
    },
}

_REQUIRED_SECTIONS = {"data", "model", "train"}


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Dict[str, Any]:
    try:
        return deepcopy(dict(_PRESETS[name]))
    except KeyError as exc:
        available = ", ".join(sorted(_PRESETS))
        raise KeyError(f"Unknown preset: {name}. Available presets: {available}") from exc


def load_config_file(path: str | Path) -> Dict[str, Any]:
    """Read a ``{data, model, train}`` config from a JSON or YAML file.

    The file may omit sections; :func:`merge_config` fills them from a preset.
    """

    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(path.read_text()) or {}
    elif suffix == ".json":
        data = json.loads(path.read_text() or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    unknown = set(data) - _REQUIRED_SECTIONS
    if unknown:
        raise KeyError(f"Config {path.name} has unknown sections: {', '.join(sorted(unknown))}")
    return json.loads(json.dumps(data))


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""

    merged: Dict[str, Any] = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def run_pipeline(config: Mapping[str, Any], *, settings: LoopSettings | None = None) -> RunResult:
    """Train to completion on the calling thread and write run artifacts."""

    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])
    seed = int(train_cfg.get("seed", 0))

    options = dict(data_cfg.get("options", {}))
    options.setdefault("seed", seed)
    spec = registry.get_dataset(str(data_cfg["name"]), **options)

    layers = _build_layers(model_cfg, spec)
    graph = create_network(layers, seed=seed)
    train_config = _train_config(train_cfg, spec.task)

    run_dir = _resolve_run_dir(train_cfg, spec.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    jsonl = JsonlSink(run_dir / "metrics.jsonl", split="train", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    recorder = MetricsRecorder([jsonl, csv_sink, plots])

    errors: List[str] = []

    def collect(notification: Notification) -> None:
        if isinstance(notification, EpochComplete):
            recorder.on_epoch(notification.epoch, notification.metrics.to_dict())
        elif isinstance(notification, Error):
            errors.append(notification.message)

    loop = TrainingLoop(emit=collect, settings=settings)
    loop.start(graph, train_config, spec.dataset)
    _log_startup_summary(spec.name, layers, train_config, loop.network.total_params, run_dir)

    while loop.status == TRAINING:
        loop.run_tick()
    plot_path = plots.close()
    if loop.status == ERROR:
        raise RuntimeError(f"Training failed at step {loop.step_count}: {errors[-1]}")

    final = recorder.last
    logger.info("Run finished after %d steps and %d epochs: %s", loop.step_count, loop.epoch, final)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=_safe_config(config, layers),
        dataset_provenance={"name": spec.name, "task": spec.task, **spec.provenance},
        result={
            "steps": loop.step_count,
            "epochs": loop.epoch,
            "status": loop.status,
            "final_metrics": final,
            "plot": None if plot_path is None else str(plot_path),
        },
    )
    return RunResult(
        steps=loop.step_count,
        epochs=loop.epoch,
        status=loop.status,
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
    )


def _build_layers(model_cfg: Mapping[str, Any], spec: registry.DatasetSpec) -> List[Dict[str, Any]]:
    hidden = [int(units) for units in model_cfg.get("hidden", [])]
    activation = str(model_cfg.get("activation", "relu"))
    if spec.task == "classification":
        classes = int(spec.num_classes or 2)
        default_units = 1 if classes == 2 else classes
        default_output = "sigmoid"
    else:
        default_units = 1
        default_output = "linear"
    layers: List[Dict[str, Any]] = [{"type": "input", "units": spec.n_features, "activation": "linear"}]
    layers.extend({"type": "dense", "units": units, "activation": activation} for units in hidden)
    layers.append(
        {
            "type": "output",
            "units": int(model_cfg.get("output_units", default_units)),
            "activation": str(model_cfg.get("output_activation", default_output)),
        }
    )
    return layers


def _train_config(train_cfg: MutableMapping[str, Any], task: str) -> TrainConfig:
    payload = {key: value for key, value in train_cfg.items() if key not in {"run_dir", "enable_plots"}}
    payload.setdefault("task", task)
    return TrainConfig.from_dict(payload).validate()


def _resolve_run_dir(train_cfg: Mapping[str, Any], dataset: str) -> Path:
    if train_cfg.get("run_dir"):
        return Path(train_cfg["run_dir"])
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _safe_config(config: Mapping[str, Any], layers: List[Dict[str, Any]]) -> Dict[str, Any]:
    copied = json.loads(json.dumps(config, default=str))
    copied.setdefault("model", {})["layers"] = layers
    return copied


def _log_startup_summary(
    dataset: str,
    layers: List[Dict[str, Any]],
    config: TrainConfig,
    param_count: int,
    run_dir: Path,
) -> None:
    widths = [layer["units"] for layer in layers]
    logger.info("=== nn-playground run ===")
    logger.info("Dataset    : %s (%s)", dataset, config.task)
    logger.info("Layers     : %s", widths)
    logger.info("Loss       : %s", config.loss)
    logger.info("Optimizer  : %s (lr=%g)", config.optimizer, config.learning_rate)
    logger.info("Parameters : %d", param_count)
    logger.info("Run dir    : %s", run_dir)


__all__ = [
    "load_config_file",
    "load_preset",
    "merge_config",
    "presets",
    "run_pipeline",
]
