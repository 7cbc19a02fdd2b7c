import numpy as np

from nnplayground.core.factory import build_template
from nnplayground.core.types import Dataset, EarlyStopping
from nnplayground.training.controller import COMPLETE, ERROR, IDLE, PAUSED, TRAINING, LoopSettings, TrainingLoop
from nnplayground.training.messages import (
    EpochComplete,
    Error,
    Pause,
    Paused,
    Start,
    Stopped,
    TrainingComplete,
    Update,
)


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, notification):
        self.events.append(notification)

    def of(self, kind):
        return [event for event in self.events if isinstance(event, kind)]


def _run_to_end(loop):
    while loop.status == TRAINING:
        loop.run_tick()


def test_xor_loss_decreases(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events)
    loop.start(xor_graph, make_config(), xor_dataset)
    _run_to_end(loop)

    assert loop.status == COMPLETE
    epochs = events.of(EpochComplete)
    assert len(epochs) == 500
    assert epochs[-1].metrics.loss < epochs[0].metrics.loss
    assert epochs[-1].metrics.accuracy is not None
    assert len(events.of(TrainingComplete)) == 1


def test_counters_and_epoch_accounting(xor_graph, xor_dataset, make_config):
    loop = TrainingLoop()
    loop.start(xor_graph, make_config(batch_size=3, epochs=3), xor_dataset)
    assert loop.batch_size == 3
    assert loop.batches_per_epoch == 2
    _run_to_end(loop)
    assert loop.step_count == 6
    assert loop.epoch == 3


def test_batch_larger_than_partition_uses_whole_partition(xor_graph, xor_dataset, make_config):
    loop = TrainingLoop()
    loop.start(xor_graph, make_config(batch_size=64, epochs=2), xor_dataset)
    assert loop.batch_size == 4
    assert loop.batches_per_epoch == 1


def test_pause_then_resume_keeps_counters(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events, settings=LoopSettings(batches_per_tick=5))
    loop.start(xor_graph, make_config(), xor_dataset)
    loop.run_tick()
    loop.pause()
    assert loop.run_tick() == 0
    assert loop.status == PAUSED
    assert isinstance(events.events[-1], Paused)
    assert isinstance(events.events[-2], Update)
    paused_step, paused_epoch = loop.step_count, loop.epoch
    assert paused_step == 5

    assert loop.run_tick() == 0
    loop.resume()
    assert loop.status == TRAINING
    loop.run_tick()
    assert loop.step_count == paused_step + 5
    assert loop.epoch >= paused_epoch


def test_steps_match_looped_batches(xor_graph, xor_dataset, make_config):
    looped = TrainingLoop(settings=LoopSettings(batches_per_tick=10))
    looped.start(xor_graph, make_config(batch_size=2), xor_dataset)
    looped.run_tick()

    stepped = TrainingLoop()
    stepped.start(xor_graph, make_config(batch_size=2), xor_dataset)
    stepped.pause()
    stepped.run_tick()
    for _ in range(10):
        stepped.step()

    assert looped.step_count == stepped.step_count == 10
    assert looped.epoch == stepped.epoch == 5
    np.testing.assert_allclose(looped.network.parameters, stepped.network.parameters)


def test_step_emits_update_and_is_ignored_while_training(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events)
    loop.start(xor_graph, make_config(), xor_dataset)
    assert loop.step() is None
    assert loop.step_count == 0

    loop.pause()
    loop.run_tick()
    metrics = loop.step()
    assert metrics.step == 1
    update = events.events[-1]
    assert isinstance(update, Update)
    assert update.metrics == metrics
    assert set(update.biases) == {f"bias_{i}" for i in range(5)}
    assert "weight_grad_0" in update.gradients
    assert "activation_2_0" in update.activations


def test_snapshots_are_throttled(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events, settings=LoopSettings(batches_per_tick=5, snapshot_every=10))
    loop.start(xor_graph, make_config(), xor_dataset)
    loop.run_tick()
    assert events.of(Update) == []
    loop.run_tick()
    assert len(events.of(Update)) == 1
    assert events.of(Update)[0].metrics.step == 10


def test_stop_keeps_parameters_and_reset_discards_them(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events)
    loop.start(xor_graph, make_config(), xor_dataset)
    loop.run_tick()
    trained = loop.network.parameters.copy()

    loop.stop()
    assert loop.status == IDLE
    assert loop.step_count == 0 and loop.epoch == 0
    np.testing.assert_array_equal(loop.network.parameters, trained)
    assert isinstance(events.events[-1], Stopped)

    loop.reset()
    assert loop.status == IDLE
    assert loop.network is None
    assert isinstance(events.events[-1], Stopped)


def test_commands_before_start_move_to_error():
    events = Recorder()
    loop = TrainingLoop(emit=events)
    loop.handle(Pause())
    assert loop.status == ERROR
    assert len(events.of(Error)) == 1


def test_dataset_width_mismatch_is_reported(xor_graph, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events)
    wide = Dataset(name="wide", features=[[0.0, 1.0, 2.0]] * 4, labels=[0, 1, 0, 1])
    loop.handle(Start(network=xor_graph, config=make_config(), dataset=wide))
    assert loop.status == ERROR
    assert "features" in events.of(Error)[0].message


def test_early_stopping_completes_before_epoch_limit(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events)
    config = make_config(epochs=50, early_stopping=EarlyStopping(patience=1, min_delta=1e9))
    loop.start(xor_graph, config, xor_dataset)
    _run_to_end(loop)
    assert loop.status == COMPLETE
    assert loop.epoch == 2
    assert len(events.of(TrainingComplete)) == 1


def test_validation_metrics_present_with_holdout(xor_graph, make_config):
    rng = np.random.default_rng(0)
    features = rng.uniform(size=(20, 2))
    labels = (features[:, 0] > features[:, 1]).astype(int)
    dataset = Dataset(name="halves", features=features.tolist(), labels=labels.tolist())
    events = Recorder()
    loop = TrainingLoop(emit=events)
    loop.start(xor_graph, make_config(epochs=2, train_ratio=0.8), dataset)
    _run_to_end(loop)
    final = events.of(TrainingComplete)[0].final_metrics
    assert final.val_loss is not None
    assert 0.0 <= final.val_accuracy <= 1.0


def test_regression_metrics_have_no_accuracy(make_config):
    xs = np.linspace(0, 1, 10)
    dataset = Dataset(name="line", features=[[x, -x] for x in xs], labels=list(xs))
    loop = TrainingLoop()
    loop.start(
        build_template("regression", seed=0),
        make_config(task="regression", loss="mse", optimizer="sgd", epochs=2, train_ratio=0.8),
        dataset,
    )
    _run_to_end(loop)
    assert loop.last_metrics.accuracy is None
    assert loop.last_metrics.val_loss is not None


def test_failing_batch_moves_to_error_and_run_can_restart(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events)
    too_wide = Dataset(name="too-wide", features=xor_dataset.features, labels=[[0.0, 1.0, 0.0]] * 4)
    loop.start(xor_graph, make_config(), too_wide)

    assert loop.run_tick() == 0
    assert loop.status == ERROR
    assert loop.step_count == 0
    errors = events.of(Error)
    assert len(errors) == 1
    assert "Target length 3" in errors[0].message

    loop.start(xor_graph, make_config(epochs=3), xor_dataset)
    _run_to_end(loop)
    assert loop.status == COMPLETE


def test_step_after_completion_is_ignored(xor_graph, xor_dataset, make_config):
    events = Recorder()
    loop = TrainingLoop(emit=events)
    loop.start(xor_graph, make_config(epochs=2), xor_dataset)
    _run_to_end(loop)

    assert loop.step() is None
    assert loop.epoch == 2
    assert loop.step_count == 2
    assert len(events.of(TrainingComplete)) == 1
