import pytest

from nnplayground.core.factory import create_network
from nnplayground.core.types import Dataset, TrainConfig

XOR = Dataset(
    name="xor",
    features=[[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]],
    labels=[0, 1, 1, 0],
)


@pytest.fixture
def xor_graph():
    return create_network(
        [
            {"type": "input", "units": 2, "activation": "linear"},
            {"type": "dense", "units": 4, "activation": "tanh"},
            {"type": "output", "units": 1, "activation": "sigmoid"},
        ],
        seed=7,
    )


@pytest.fixture
def xor_dataset():
    return XOR


@pytest.fixture
def make_config():
    def _make(**overrides):
        base = dict(
            task="classification",
            loss="cross_entropy",
            optimizer="adam",
            learning_rate=0.05,
            batch_size=4,
            epochs=500,
            seed=7,
            train_ratio=1.0,
        )
        base.update(overrides)
        return TrainConfig(**base)

    return _make
