import json
from pathlib import Path

import pytest

from nnplayground.training import pipelines


def _config(run_dir, **train):
    config = pipelines.load_preset("xor-adam")
    config["train"].update({"epochs": 20, "run_dir": str(run_dir)})
    config["train"].update(train)
    return config


def test_presets_have_all_sections():
    names = set(pipelines.presets())
    assert names == {"xor-adam", "moons-momentum", "spiral-adam", "sine-sgd"}
    for config in pipelines.presets().values():
        assert {"data", "model", "train"} <= set(config)
    with pytest.raises(KeyError, match="Unknown preset"):
        pipelines.load_preset("mnist")


def test_pipeline_produces_artifacts(tmp_path):
    result = pipelines.run_pipeline(_config(tmp_path / "run", enable_plots=True))
    assert result.status == "complete"
    assert result.epochs == 20
    assert result.steps == 20

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert len(records) == 20
    assert all("loss" in record and record["split"] == "train" for record in records)
    assert (tmp_path / "run" / "metrics.csv").exists()
    assert (tmp_path / "run" / "loss.png").exists()

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 7
    assert manifest["dataset"]["name"] == "xor"
    assert manifest["result"]["status"] == "complete"
    assert [layer["units"] for layer in manifest["config"]["model"]["layers"]] == [2, 4, 1]


def test_pipeline_is_deterministic(tmp_path):
    a = pipelines.run_pipeline(_config(tmp_path / "a"))
    b = pipelines.run_pipeline(_config(tmp_path / "b"))
    assert Path(a.metrics_path).read_text() == Path(b.metrics_path).read_text()


def test_regression_pipeline_with_holdout(tmp_path):
    config = pipelines.load_preset("sine-sgd")
    config["train"].update({"epochs": 3, "run_dir": str(tmp_path / "sine")})
    result = pipelines.run_pipeline(config)
    last = json.loads(Path(result.metrics_path).read_text().splitlines()[-1])
    assert "val_loss" in last
    assert "accuracy" not in last


def test_config_file_merge(tmp_path):
    path = tmp_path / "override.yaml"
    path.write_text("train:\n  epochs: 2\n  lr: 0.1\n")
    override = pipelines.load_config_file(path)
    merged = pipelines.merge_config(pipelines.load_preset("moons-momentum"), override)
    assert merged["train"]["epochs"] == 2
    assert merged["train"]["lr"] == 0.1
    assert merged["train"]["optimizer"] == "momentum"
    assert merged["data"]["name"] == "moons"

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"trainer": {}}))
    with pytest.raises(KeyError):
        pipelines.load_config_file(bad)
    with pytest.raises(ValueError):
        pipelines.load_config_file(tmp_path / "override.toml")


def test_pipeline_raises_when_training_fails(tmp_path):
    config = pipelines.load_preset("sine-sgd")
    config["model"]["output_units"] = 2
    config["train"].update({"epochs": 2, "run_dir": str(tmp_path / "run")})
    with pytest.raises(RuntimeError, match="Training failed at step 0"):
        pipelines.run_pipeline(config)
    assert not (tmp_path / "run" / "manifest.json").exists()
