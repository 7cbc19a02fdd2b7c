"""Host-facing handle on a background training worker.

Each :class:`TrainingManager` owns one worker thread and one notification
pump; create as many as needed and dispose of them with :meth:`close` (or a
``with`` block)::

    with TrainingManager() as manager:
        manager.start_training(graph, config, dataset)
        manager.wait_for("complete", timeout=30)
        print(manager.get_state().metrics)
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List

from ..core.errors import ExecutionContextUnavailable
from ..core.types import Dataset, NetworkGraph, TrainConfig, TrainingMetrics
from .controller import COMPLETE, ERROR, IDLE, PAUSED, TRAINING, LoopSettings
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
from .worker import Envelope, TrainingWorker

logger = logging.getLogger(__name__)

_PUMP_POLL = 0.05


@dataclass
class TrainingState:
    status: str = IDLE
    metrics: TrainingMetrics | None = None
    error: str | None = None
    weights: Dict[str, float] = field(default_factory=dict)
    biases: Dict[str, float] = field(default_factory=dict)
    gradients: Dict[str, float] = field(default_factory=dict)
    activations: Dict[str, float] = field(default_factory=dict)
    epochs: List[TrainingMetrics] = field(default_factory=list)

    @property
    def is_training(self) -> bool:
        return self.status == TRAINING

    @property
    def is_paused(self) -> bool:
        return self.status == PAUSED

    @property
    def is_complete(self) -> bool:
        return self.status == COMPLETE

    @property
    def has_error(self) -> bool:
        return self.status == ERROR


Listener = Callable[[TrainingState], None]


class TrainingManager:
    """Send commands to a training worker and track what it reports."""

    def __init__(self, settings: LoopSettings | None = None, *, tick_interval: float = 0.0) -> None:
        self._state = TrainingState()
        self._listeners: List[Listener] = []
        self._condition = threading.Condition()
        self._closed = threading.Event()
        self._runs_requested = 0
        self._worker: TrainingWorker | None = None
        self._pump: threading.Thread | None = None
        self._initialize_worker(settings, tick_interval)

    def _initialize_worker(self, settings: LoopSettings | None, tick_interval: float) -> None:
        try:
            worker = TrainingWorker(settings, tick_interval=tick_interval)
            worker.start()
        except RuntimeError as exc:
            logger.error("Failed to initialize training worker: %s", exc)
            self._update(status=ERROR, error="Training worker not available")
            return
        self._worker = worker
        self._pump = threading.Thread(
            target=self._pump_notifications, name="nnplayground-notifications", daemon=True
        )
        self._pump.start()

    # ------------------------------------------------------------------
    # Public API

    def start_training(self, network: NetworkGraph, config: TrainConfig, dataset: Dataset) -> None:
        with self._condition:
            self._runs_requested += 1
        # Optimistic state is recorded before the command is posted.
        self._update(status=TRAINING, error=None, metrics=None, epochs=[])
        self._post(Start(network=network, config=config, dataset=dataset))

    def pause_training(self) -> None:
        self._post(Pause())

    def resume_training(self) -> None:
        with self._condition:
            paused = self._state.status == PAUSED
        if paused:
            self._update(status=TRAINING)
        self._post(Resume())

    def step_training(self) -> None:
        self._post(Step())

    def stop_training(self) -> None:
        self._post(Stop())

    def reset_training(self) -> None:
        self._post(Reset())

    def get_state(self) -> TrainingState:
        with self._condition:
            return replace(self._state, epochs=list(self._state.epochs))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._condition:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._condition:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def wait_for(self, *statuses: str, timeout: float | None = None) -> bool:
        """Block until the status is one of ``statuses``; False on timeout."""

        with self._condition:
            return self._condition.wait_for(lambda: self._state.status in statuses, timeout)

    def wait_until(self, predicate: Callable[[TrainingState], bool], timeout: float | None = None) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: predicate(self._state), timeout)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        if self._worker is not None:
            self._worker.close()
        if self._pump is not None:
            self._pump.join(timeout=5.0)
        with self._condition:
            self._listeners.clear()
        self._worker = None

    def __enter__(self) -> "TrainingManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals

    def _post(self, command: Command) -> bool:
        try:
            if self._worker is None:
                raise ExecutionContextUnavailable("Training worker not available")
            self._worker.send(command)
        except ExecutionContextUnavailable:
            logger.error("Dropping %s: training worker not available", command.type)
            self._update(status=ERROR, error="Training worker not available")
            return False
        return True

    def _pump_notifications(self) -> None:
        worker = self._worker
        while not (self._closed.is_set() and worker.notifications.empty()):
            try:
                envelope = worker.notifications.get(timeout=_PUMP_POLL)
            except queue.Empty:
                if not worker.is_alive() and not self._closed.is_set():
                    self._update(status=ERROR, error="Training worker exited unexpectedly")
                    return
                continue
            self._handle(envelope)

    def _handle(self, envelope: Envelope) -> None:
        with self._condition:
            stale = envelope.run < self._runs_requested
        if stale:
            return
        notification: Notification = envelope.notification
        if isinstance(notification, Update):
            self._update(
                metrics=notification.metrics,
                weights=dict(notification.weights),
                biases=dict(notification.biases),
                gradients=dict(notification.gradients),
                activations=dict(notification.activations),
            )
        elif isinstance(notification, EpochComplete):
            with self._condition:
                epochs = self._state.epochs + [notification.metrics]
            self._update(metrics=notification.metrics, epochs=epochs)
        elif isinstance(notification, TrainingComplete):
            self._update(status=COMPLETE, metrics=notification.final_metrics, error=None)
        elif isinstance(notification, Paused):
            self._update(status=PAUSED, error=None)
        elif isinstance(notification, Stopped):
            self._update(status=IDLE, metrics=None, error=None)
        elif isinstance(notification, Error):
            self._update(status=ERROR, error=notification.message)
        else:
            raise TypeError(f"Unsupported notification: {notification!r}")

    def _update(self, **changes: object) -> None:
        with self._condition:
            self._state = replace(self._state, **changes)
            snapshot = replace(self._state, epochs=list(self._state.epochs))
            listeners = list(self._listeners)
            self._condition.notify_all()
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener %r failed", listener)


__all__ = ["Listener", "TrainingManager", "TrainingState"]
