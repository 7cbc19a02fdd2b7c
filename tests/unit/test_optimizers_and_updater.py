import numpy as np
import pytest

from nnplayground.core.factory import build_template
from nnplayground.core.network import compile_network
from nnplayground.core.types import TrainConfig
from nnplayground.training.optimizers import OptimizerHyperParams, get_optimizer, names
from nnplayground.training.updater import clip_gradients, update_parameters


def _config(**overrides):
    base = dict(task="classification", loss="auto", optimizer="sgd", learning_rate=0.1, batch_size=1, epochs=1)
    base.update(overrides)
    return TrainConfig(**base)


def test_optimizer_names():
    assert list(names()) == ["adam", "momentum", "sgd"]
    with pytest.raises(KeyError, match="Unknown optimizer"):
        get_optimizer("rmsprop")


def test_sgd_update_in_place():
    sgd = get_optimizer("sgd")
    params = np.array([1.0, -1.0])
    sgd.update(params, np.array([0.5, -0.5]), sgd.initialize(2), 0.1, 1, OptimizerHyperParams())
    np.testing.assert_allclose(params, [0.95, -0.95])


def test_momentum_uses_exponential_average():
    momentum = get_optimizer("momentum")
    state = momentum.initialize(1)
    params = np.zeros(1)
    hyper = OptimizerHyperParams(momentum=0.5)
    momentum.update(params, np.array([1.0]), state, 1.0, 1, hyper)
    np.testing.assert_allclose(state["velocity"], [0.5])
    np.testing.assert_allclose(params, [-0.5])
    momentum.update(params, np.array([1.0]), state, 1.0, 2, hyper)
    np.testing.assert_allclose(state["velocity"], [0.75])


def test_adam_first_step_moves_by_learning_rate():
    adam = get_optimizer("adam")
    params = np.array([0.0, 0.0])
    adam.update(params, np.array([2.0, -3.0]), adam.initialize(2), 0.01, 1, OptimizerHyperParams())
    np.testing.assert_allclose(params, [-0.01, 0.01], atol=1e-6)


def test_adam_rejects_zero_step():
    adam = get_optimizer("adam")
    with pytest.raises(ValueError):
        adam.update(np.zeros(1), np.ones(1), adam.initialize(1), 0.01, 0, OptimizerHyperParams())


def test_hyper_params_follow_config():
    hyper = OptimizerHyperParams.from_config(_config(momentum=0.8, beta2=0.99))
    assert hyper.momentum == hyper.beta1 == 0.8
    assert hyper.beta2 == 0.99


def test_optimizer_state_is_created_lazily_with_parameter_count():
    net = compile_network(build_template("xor", seed=0))
    assert net.optimizer_state == {}
    update_parameters(net, "adam", 0.01, 1, _config(optimizer="adam"))
    assert set(net.optimizer_state) == {"m", "v"}
    assert all(buffer.size == net.total_params for buffer in net.optimizer_state.values())


def test_updater_rejects_foreign_state():
    net = compile_network(build_template("xor", seed=0))
    net.optimizer_state = {"velocity": np.zeros(3)}
    with pytest.raises(RuntimeError):
        update_parameters(net, "momentum", 0.01, 1)


def test_weight_decay_only_touches_weights():
    net = compile_network(build_template("xor", seed=0))
    weights_before = net.weights.copy()
    biases_before = net.biases.copy()
    update_parameters(net, "sgd", 1.0, 1, _config(weight_decay=0.5))
    np.testing.assert_allclose(net.weights, weights_before * 0.5)
    np.testing.assert_allclose(net.biases, biases_before)


def test_clip_gradients_rescales_global_norm():
    net = compile_network(build_template("xor", seed=0))
    net.parameter_gradients[:] = 1.0
    before = clip_gradients(net, 1.0)
    assert before == pytest.approx(np.sqrt(net.total_params))
    assert np.linalg.norm(net.parameter_gradients) == pytest.approx(1.0)
