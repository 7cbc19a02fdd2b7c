import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_runs_preset_with_overrides(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "xor-adam", "--epochs", "5", "--lr", "0.1", "--log-level", "WARNING"])
    run_dir = Path("runs/xor-adam")
    assert (run_dir / "metrics.jsonl").exists()
    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest["config"]["train"]["epochs"] == 5
    assert manifest["config"]["train"]["lr"] == 0.1
    output = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert output["epochs"] == 5
    assert output["status"] == "complete"


def test_cli_dataset_and_run_dir(tmp_path):
    run_dir = tmp_path / "circles"
    main(
        [
            "--preset",
            "moons-momentum",
            "--dataset",
            "circles",
            "--epochs",
            "2",
            "--batch-size",
            "32",
            "--optimizer",
            "sgd",
            "--seed",
            "5",
            "--run-dir",
            str(run_dir),
        ]
    )
    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest["dataset"]["name"] == "circles"
    assert manifest["config"]["train"]["optimizer"] == "sgd"
    assert manifest["config"]["train"]["seed"] == 5


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--list-presets"])
    assert exc.value.code == 0
    assert "xor-adam" in capsys.readouterr().out.split()
