import numpy as np
import pytest

from nnplayground.data.registry import DatasetSpec, available_datasets, get_dataset, register_dataset
from nnplayground.core.types import Dataset


def test_builtin_datasets_are_registered():
    assert {"circles", "csv", "moons", "sine", "spiral", "xor"} <= set(available_datasets())


def test_unknown_dataset():
    with pytest.raises(KeyError, match="Unknown dataset"):
        get_dataset("mnist")


def test_xor_dataset():
    spec = get_dataset("xor")
    assert spec.task == "classification"
    assert spec.num_classes == 2
    assert spec.dataset.labels == [0, 1, 1, 0]
    assert spec.n_features == 2


@pytest.mark.parametrize("name", ["moons", "circles"])
def test_sklearn_generators_are_seeded(name):
    a = get_dataset(name, n_samples=50, seed=3)
    b = get_dataset(name, n_samples=50, seed=3)
    assert len(a.dataset) == 50
    np.testing.assert_array_equal(a.dataset.features, b.dataset.features)
    assert set(a.dataset.labels) == {0, 1}


def test_spiral_alternates_classes():
    spec = get_dataset("spiral", n_samples=20)
    assert len(spec.dataset) == 20
    assert spec.dataset.labels[:4] == [0, 1, 0, 1]
    first, second = np.asarray(spec.dataset.features[2]), np.asarray(spec.dataset.features[3])
    np.testing.assert_allclose(first, -second, atol=1e-12)


def test_sine_is_regression():
    spec = get_dataset("sine", n_points=16, freq=1.0)
    assert spec.task == "regression"
    assert spec.num_classes is None
    assert spec.n_features == 1
    assert max(abs(y) for y in spec.dataset.labels) <= 1.0


def test_csv_classification_encodes_string_labels(tmp_path):
    path = tmp_path / "points.csv"
    path.write_text("x,y,target\n0,0,cat\n1,1,dog\n0,1,cat\n")
    spec = get_dataset("csv", csv_path=path)
    assert spec.task == "classification"
    assert spec.dataset.labels == [0, 1, 0]
    assert spec.provenance["classes"] == ["cat", "dog"]
    assert spec.n_features == 2


def test_csv_regression_and_missing_target(tmp_path):
    path = tmp_path / "line.csv"
    path.write_text("x,value\n0,0.5\n1,1.5\n")
    spec = get_dataset("csv", csv_path=path, target_col="value", task="regression")
    assert spec.dataset.labels == [0.5, 1.5]
    with pytest.raises(KeyError, match="Target column"):
        get_dataset("csv", csv_path=path)
    with pytest.raises(ValueError):
        get_dataset("csv")


def test_register_custom_dataset():
    @register_dataset("tiny-test")
    def _tiny(**_):
        return DatasetSpec(
            dataset=Dataset(name="tiny-test", features=[[0.0], [1.0]], labels=[0.0, 1.0]),
            task="regression",
        )

    assert "tiny-test" in available_datasets()
    assert len(get_dataset("tiny-test").dataset) == 2
