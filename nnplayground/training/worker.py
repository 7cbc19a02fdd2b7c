"""Background execution context for a :class:`TrainingLoop`.

The worker owns its loop exclusively. The host talks to it only through two
queues: commands in, notifications out. Commands are deep-copied on the way
in and notifications only carry plain Python values, so no mutable state is
shared across the thread boundary.
"""

from __future__ import annotations

import copy
import logging
import queue
import time
from dataclasses import dataclass
from threading import Event, Thread

from ..core.errors import ExecutionContextUnavailable
from .controller import TRAINING, LoopSettings, TrainingLoop
from .messages import Command, Notification, Shutdown, Start

logger = logging.getLogger(__name__)

_IDLE_POLL = 0.1


@dataclass(frozen=True)
class Envelope:
    """A notification tagged with the number of START commands seen so far."""

    run: int
    notification: Notification


class TrainingWorker(Thread):
    """Thread that runs a training loop in cooperative ticks."""

    def __init__(
        self,
        settings: LoopSettings | None = None,
        *,
        tick_interval: float = 0.0,
        name: str = "nnplayground-training",
    ) -> None:
        super().__init__(name=name, daemon=True)
        self.commands: "queue.Queue[Command]" = queue.Queue()
        self.notifications: "queue.Queue[Envelope]" = queue.Queue()
        self.tick_interval = tick_interval
        self._settings = settings or LoopSettings()
        self._stop_request = Event()
        self._runs = 0

    def send(self, command: Command) -> None:
        if not self.is_alive() or self._stop_request.is_set():
            raise ExecutionContextUnavailable("Training worker is not running")
        self.commands.put(copy.deepcopy(command))

    def close(self, timeout: float | None = 5.0) -> None:
        self._stop_request.set()
        self.commands.put(Shutdown())
        if self.is_alive():
            self.join(timeout)

    def run(self) -> None:
        loop = TrainingLoop(emit=self._publish, settings=self._settings)
        logger.debug("Training worker %s started", self.name)
        while not self._stop_request.is_set():
            if loop.status == TRAINING:
                if not self._drain(loop):
                    break
                loop.run_tick()
                # Yield so the host threads get scheduled between ticks.
                time.sleep(self.tick_interval)
                continue
            try:
                command = self.commands.get(timeout=_IDLE_POLL)
            except queue.Empty:
                continue
            if isinstance(command, Shutdown):
                break
            self._dispatch(loop, command)
        logger.debug("Training worker %s exiting", self.name)

    def _drain(self, loop: TrainingLoop) -> bool:
        """Apply every queued command; returns False on shutdown."""

        while True:
            try:
                command = self.commands.get_nowait()
            except queue.Empty:
                return True
            if isinstance(command, Shutdown):
                return False
            self._dispatch(loop, command)

    def _dispatch(self, loop: TrainingLoop, command: Command) -> None:
        if isinstance(command, Start):
            self._runs += 1
        loop.handle(command)

    def _publish(self, notification: Notification) -> None:
        self.notifications.put(Envelope(run=self._runs, notification=notification))


__all__ = ["Envelope", "TrainingWorker"]
