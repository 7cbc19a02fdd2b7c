"""Training loop state machine.

:class:`TrainingLoop` owns one run: the compiled network, the immutable
config, the data partitions and the step/epoch counters. It never blocks and
never spawns threads; the host (see :mod:`nnplayground.training.worker`)
drives it by calling :meth:`TrainingLoop.run_tick` repeatedly and feeding it
commands between ticks. Everything the host needs to know is pushed through
the ``emit`` callback as :mod:`~nnplayground.training.messages`
notifications.

Statuses: ``idle -> training <-> paused``, ``training -> complete``, any
status ``-> error``, any status ``-> idle`` on stop/reset.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Type

from ..core.errors import ShapeMismatch, UninitializedRunError
from ..core.network import NetworkComputation, backward, compile_network, forward, zero_gradients
from ..core.types import Dataset, NetworkGraph, TrainConfig, TrainingMetrics
from ..data.utils import DataSplit, batch_indices, encode_targets, split_data
from .losses import REGISTRY as LOSS_REGISTRY
from .losses import Loss
from .messages import (
    Command,
    EpochComplete,
    Error,
    Notification,
    Pause,
    Paused,
    Reset,
    Resume,
    Start,
    Step,
    Stop,
    Stopped,
    TrainingComplete,
    Update,
)
from .metrics import argmax_correct, evaluate
from .optimizers import get_optimizer
from .updater import update_parameters

logger = logging.getLogger(__name__)

IDLE = "idle"
TRAINING = "training"
PAUSED = "paused"
ERROR = "error"
COMPLETE = "complete"

Emit = Callable[[Notification], None]


@dataclass(frozen=True)
class LoopSettings:
    """Scheduling knobs of the loop; none of them change the numerics."""

    batches_per_tick: int = 5
    snapshot_every: int = 10
    validate_every: int = 1
    snapshot_weight_limit: int = 100


def _discard(_: Notification) -> None:
    return None


class TrainingLoop:
    """Pausable, resumable and steppable training run."""

    def __init__(self, emit: Emit | None = None, settings: LoopSettings | None = None) -> None:
        self.settings = settings or LoopSettings()
        self._emit = emit or _discard
        self.status = IDLE
        self.step_count = 0
        self.epoch = 0
        self.network: NetworkComputation | None = None
        self.config: TrainConfig | None = None
        self.split: DataSplit | None = None
        self.last_metrics: TrainingMetrics | None = None
        self._loss: Loss | None = None
        self._pause_requested = False
        self._handlers: Dict[Type[Command], Callable[[Command], None]] = {
            Start: lambda cmd: self.start(cmd.network, cmd.config, cmd.dataset),
            Pause: lambda cmd: self.pause(),
            Resume: lambda cmd: self.resume(),
            Step: lambda cmd: self.step(),
            Stop: lambda cmd: self.stop(),
            Reset: lambda cmd: self.reset(),
        }
        self._reset_tracking()

    # ------------------------------------------------------------------
    # Command entry points

    def handle(self, command: Command) -> None:
        """Apply ``command``; failures move the loop to ``error``."""

        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {command!r}")
        try:
            handler(command)
        except Exception as exc:
            logger.exception("Command %s failed", command.type)
            self._fail(str(exc) or exc.__class__.__name__)

    def start(self, network: NetworkGraph, config: TrainConfig, dataset: Dataset) -> None:
        self._discard_run()
        config.validate()
        net = compile_network(network)
        loss = LOSS_REGISTRY.resolve(config.loss, task=config.task)
        get_optimizer(config.optimizer)
        split = split_data(
            dataset.features,
            dataset.labels,
            train_ratio=config.train_ratio,
            shuffle=True,
            seed=config.seed,
        )
        if len(split.train_features) == 0:
            raise ValueError(f"Dataset {dataset.name!r} leaves an empty training partition")
        if split.train_features.shape[1] != net.input_size:
            raise ShapeMismatch(
                f"Dataset {dataset.name!r} has {split.train_features.shape[1]} features "
                f"but the input layer has {net.input_size} units"
            )

        self.network = net
        self.config = config
        self.split = split
        self._loss = loss
        self.step_count = 0
        self.epoch = 0
        self._pause_requested = False
        self._reset_tracking()
        self.status = TRAINING
        logger.info(
            "Started run on %r: train=%d val=%d params=%d optimizer=%s loss=%s",
            dataset.name,
            split.sizes["train"],
            split.sizes["val"],
            net.total_params,
            config.optimizer,
            loss.name,
        )

    def pause(self) -> None:
        self._require_run()
        if self.status == TRAINING:
            self._pause_requested = True
        else:
            logger.debug("Pause ignored in status %s", self.status)

    def resume(self) -> None:
        self._require_run()
        self._pause_requested = False
        if self.status == PAUSED:
            self.status = TRAINING
            logger.info("Resumed at step %d epoch %d", self.step_count, self.epoch)

    def step(self) -> TrainingMetrics | None:
        """Run exactly one batch outside the scheduling loop."""

        self._require_run()
        if self.status == TRAINING:
            logger.warning("Step ignored while the loop is running; pause first")
            return None
        if self.status == COMPLETE:
            logger.warning("Step ignored after the run completed; start a new run")
            return None
        metrics = self._advance()
        self._send_snapshot(metrics)
        return metrics

    def stop(self) -> None:
        """Halt execution; the compiled parameters keep their trained values."""

        self.status = IDLE
        self._pause_requested = False
        self.step_count = 0
        self.epoch = 0
        self._reset_tracking()
        logger.info("Training stopped")
        self._emit(Stopped())

    def reset(self) -> None:
        self._discard_run()
        self.status = IDLE
        logger.info("Training reset")
        self._emit(Stopped())

    # ------------------------------------------------------------------
    # Scheduling

    def run_tick(self) -> int:
        """Run up to ``batches_per_tick`` batches; returns how many ran."""

        if self.status != TRAINING:
            return 0
        ran = 0
        for _ in range(self.settings.batches_per_tick):
            if self._pause_requested:
                self._honor_pause()
                return ran
            try:
                metrics = self._advance()
            except Exception as exc:
                logger.exception("Batch failed at step %d", self.step_count)
                self._fail(str(exc) or exc.__class__.__name__)
                return ran
            ran += 1
            if self.status != TRAINING:
                self._send_snapshot(metrics)
                return ran
        if self._since_snapshot >= self.settings.snapshot_every and self.last_metrics is not None:
            self._send_snapshot(self.last_metrics)
        return ran

    @property
    def batch_size(self) -> int:
        self._require_run()
        return min(self.config.batch_size, len(self.split.train_features))

    @property
    def batches_per_epoch(self) -> int:
        return math.ceil(len(self.split.train_features) / self.batch_size)

    # ------------------------------------------------------------------
    # Snapshot

    def snapshot(self, metrics: TrainingMetrics | None = None) -> Update:
        self._require_run()
        net = self.network
        limit = self.settings.snapshot_weight_limit
        weights = {f"weight_{i}": float(value) for i, value in enumerate(net.weights[:limit])}
        gradients = {
            f"weight_grad_{i}": float(value) for i, value in enumerate(net.weight_gradients[:limit])
        }
        biases = {f"bias_{i}": float(value) for i, value in enumerate(net.biases)}
        activations = {
            f"activation_{layer}_{unit}": float(value)
            for layer, buffer in enumerate(net.activations)
            for unit, value in enumerate(buffer)
        }
        if metrics is None:
            metrics = self.last_metrics or TrainingMetrics(step=self.step_count, epoch=self.epoch, loss=0.0)
        return Update(
            weights=weights,
            biases=biases,
            metrics=metrics,
            gradients=gradients,
            activations=activations,
        )

    # ------------------------------------------------------------------
    # Internals

    def _advance(self) -> TrainingMetrics:
        loss, accuracy = self._train_batch()
        self._since_snapshot += 1
        epoch_done = self.step_count % self.batches_per_epoch == 0
        if epoch_done:
            self.epoch += 1
        metrics = self._metrics(loss, accuracy)
        self.last_metrics = metrics
        if epoch_done:
            self._finish_epoch()
        return metrics

    def _train_batch(self) -> tuple[float, float | None]:
        net, config, split = self.network, self.config, self.split
        train_size = len(split.train_features)
        indices = batch_indices(self.step_count, self.batch_size, train_size)
        labels = split.train_labels[indices]
        targets = encode_targets(labels, config.task, net.output_size)

        zero_gradients(net)
        total = 0.0
        correct = 0
        for row, target, label in zip(split.train_features[indices], targets, labels):
            output = forward(net, row)
            total += backward(net, output, target, self._loss, accumulate=True)
            if config.is_classification and argmax_correct(output, label):
                correct += 1
        net.parameter_gradients /= len(indices)

        step = self.step_count + 1
        update_parameters(net, config.optimizer, config.learning_rate, step, config)
        self.step_count = step

        if self.step_count % max(1, self.settings.validate_every) == 0 or self._val_loss is None:
            self._validate()

        batch_loss = total / len(indices)
        self._epoch_loss += total
        self._epoch_samples += len(indices)
        self._epoch_correct += correct
        accuracy = correct / len(indices) if config.is_classification else None
        return batch_loss, accuracy

    def _validate(self) -> None:
        split = self.split
        if len(split.val_features) == 0:
            return
        self._val_loss, self._val_accuracy = evaluate(
            self.network,
            split.val_features,
            split.val_labels,
            task=self.config.task,
            loss=self._loss,
        )

    def _metrics(self, loss: float, accuracy: float | None) -> TrainingMetrics:
        return TrainingMetrics(
            step=self.step_count,
            epoch=self.epoch,
            loss=loss,
            val_loss=self._val_loss,
            accuracy=accuracy,
            val_accuracy=self._val_accuracy,
        )

    def _finish_epoch(self) -> None:
        config = self.config
        samples = max(1, self._epoch_samples)
        accuracy = self._epoch_correct / samples if config.is_classification else None
        epoch_metrics = self._metrics(self._epoch_loss / samples, accuracy)
        self._epoch_loss = 0.0
        self._epoch_samples = 0
        self._epoch_correct = 0
        logger.debug("Epoch %d complete: %s", self.epoch, epoch_metrics.to_dict())
        self._emit(EpochComplete(epoch=self.epoch, metrics=epoch_metrics))

        finished = self.epoch >= config.epochs
        if not finished and self._should_stop_early(epoch_metrics):
            logger.info("Early stopping after epoch %d", self.epoch)
            finished = True
        if finished:
            self.status = COMPLETE
            self._pause_requested = False
            logger.info("Training complete at step %d epoch %d", self.step_count, self.epoch)
            self._emit(TrainingComplete(final_metrics=epoch_metrics))

    def _should_stop_early(self, metrics: TrainingMetrics) -> bool:
        early = self.config.early_stopping
        if early is None:
            return False
        monitored = metrics.val_loss if metrics.val_loss is not None else metrics.loss
        if monitored < self._best_monitored - early.min_delta:
            self._best_monitored = monitored
            self._stale_epochs = 0
            return False
        self._stale_epochs += 1
        return self._stale_epochs >= early.patience

    def _honor_pause(self) -> None:
        self._pause_requested = False
        self.status = PAUSED
        logger.info("Paused at step %d epoch %d", self.step_count, self.epoch)
        self._send_snapshot(self.last_metrics)
        self._emit(Paused())

    def _send_snapshot(self, metrics: TrainingMetrics | None) -> None:
        self._since_snapshot = 0
        self._emit(self.snapshot(metrics))

    def _fail(self, message: str) -> None:
        self.status = ERROR
        self._pause_requested = False
        self._emit(Error(message=message))

    def _require_run(self) -> None:
        if self.network is None or self.config is None or self.split is None:
            raise UninitializedRunError("No network has been compiled; send START first")

    def _discard_run(self) -> None:
        self.network = None
        self.config = None
        self.split = None
        self._loss = None
        self.step_count = 0
        self.epoch = 0
        self._pause_requested = False
        self._reset_tracking()

    def _reset_tracking(self) -> None:
        self.last_metrics = None
        self._since_snapshot = 0
        self._epoch_loss = 0.0
        self._epoch_samples = 0
        self._epoch_correct = 0
        self._val_loss: float | None = None
        self._val_accuracy: float | None = None
        self._best_monitored = math.inf
        self._stale_epochs = 0


__all__ = [
    "COMPLETE",
    "ERROR",
    "IDLE",
    "LoopSettings",
    "PAUSED",
    "TRAINING",
    "TrainingLoop",
]
