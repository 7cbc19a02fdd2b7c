"""nn-playground public API."""

from .core import activations, types  # noqa: F401
from .core.factory import build_template, create_network
from .core.network import compile_network, forward, predict
from .training.controller import LoopSettings, TrainingLoop
from .training.manager import TrainingManager, TrainingState
from .training.pipelines import load_preset, presets, run_pipeline

__all__ = [
    "LoopSettings",
    "TrainingLoop",
    "TrainingManager",
    "TrainingState",
    "activations",
    "build_template",
    "compile_network",
    "create_network",
    "forward",
    "load_preset",
    "predict",
    "presets",
    "run_pipeline",
    "types",
]
