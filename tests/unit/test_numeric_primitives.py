import numpy as np
import pytest

from nnplayground.core.activations import get_activation, names as activation_names
from nnplayground.core.errors import ShapeMismatch
from nnplayground.training.losses import REGISTRY


def test_activation_registry_lists_builtins():
    assert set(activation_names()) == {"linear", "relu", "sigmoid", "tanh"}
    with pytest.raises(KeyError, match="Unknown activation"):
        get_activation("softplus")


def test_relu_and_derivative():
    relu = get_activation("relu")
    x = np.array([-2.0, 0.0, 3.0])
    np.testing.assert_array_equal(relu.forward(x), [0.0, 0.0, 3.0])
    np.testing.assert_array_equal(relu.derivative(x), [0.0, 0.0, 1.0])


def test_sigmoid_is_clamped_for_large_inputs():
    sigmoid = get_activation("sigmoid")
    out = sigmoid.forward(np.array([-1e6, 0.0, 1e6]))
    assert np.all(np.isfinite(out))
    assert out[1] == pytest.approx(0.5)
    assert sigmoid.derivative(np.array([0.0]))[0] == pytest.approx(0.25)


def test_tanh_derivative_matches_finite_difference():
    tanh = get_activation("tanh")
    x = np.array([-0.7, 0.1, 1.3])
    eps = 1e-6
    numeric = (tanh.forward(x + eps) - tanh.forward(x - eps)) / (2 * eps)
    np.testing.assert_allclose(tanh.derivative(x), numeric, atol=1e-6)


def test_linear_is_identity():
    linear = get_activation("linear")
    x = np.array([-1.5, 2.5])
    np.testing.assert_array_equal(linear.forward(x), x)
    np.testing.assert_array_equal(linear.derivative(x), [1.0, 1.0])


def test_mse_value_and_gradient():
    mse = REGISTRY.get("mse")
    pred = np.array([0.5, 1.0])
    target = np.array([0.0, 1.0])
    assert mse.forward(pred, target) == pytest.approx(0.125)
    np.testing.assert_allclose(mse.backward(pred, target), [0.5, 0.0])


def test_cross_entropy_is_finite_at_saturation():
    ce = REGISTRY.get("cross_entropy")
    pred = np.array([0.0, 1.0])
    target = np.array([1.0, 0.0])
    value = ce.forward(pred, target)
    assert np.isfinite(value)
    assert np.all(np.isfinite(ce.backward(pred, target)))


def test_cross_entropy_gradient():
    ce = REGISTRY.get("cross_entropy")
    pred = np.array([0.8])
    target = np.array([1.0])
    assert ce.forward(pred, target) == pytest.approx(-np.log(0.8))
    np.testing.assert_allclose(ce.backward(pred, target), [(0.8 - 1.0) / (0.8 * 0.2)])


def test_loss_shape_mismatch():
    with pytest.raises(ShapeMismatch):
        REGISTRY.get("mse").forward(np.zeros(2), np.zeros(3))


def test_auto_loss_resolution():
    assert REGISTRY.resolve("auto", task="classification").name == "cross_entropy"
    assert REGISTRY.resolve("auto", task="regression").name == "mse"
    with pytest.raises(KeyError, match="Unknown loss"):
        REGISTRY.get("auto")
    with pytest.raises(KeyError):
        REGISTRY.resolve("hinge", task="classification")
