"""Command line entry point for nn-playground training runs."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Iterable

from nnplayground.data import registry
from nnplayground.training import optimizers, pipelines

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _format_result(result) -> str:
    payload = {
        "steps": result.steps,
        "epochs": result.epochs,
        "status": result.status,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="xor-adam",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument(
        "--dataset",
        choices=list(registry.available_datasets()),
        help="Override the dataset used by the run",
    )
    parser.add_argument("--csv-path", help="Path to a CSV file for the csv dataset")
    parser.add_argument("--target-col", help="Target column name for the csv dataset")
    parser.add_argument("--epochs", type=int, help="Number of epochs to train")
    parser.add_argument("--lr", type=float, help="Learning rate")
    parser.add_argument("--optimizer", choices=list(optimizers.names()), help="Optimizer name")
    parser.add_argument("--batch-size", type=int, help="Mini-batch size")
    parser.add_argument("--seed", type=int, help="Seed used for data splits and weight init")
    parser.add_argument("--run-dir", type=Path, help="Directory receiving run artifacts")
    parser.add_argument("--enable-plots", action="store_true", help="Write loss.png")
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Logging level (defaults to $LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> dict:
    config = pipelines.load_preset(args.preset)
    if args.config:
        config = pipelines.merge_config(config, pipelines.load_config_file(args.config))

    if args.dataset:
        options: dict = {}
        if args.csv_path:
            options["csv_path"] = args.csv_path
        if args.target_col:
            options["target_col"] = args.target_col
        config["data"] = {"name": args.dataset, "options": options}

    train = config.setdefault("train", {})
    overrides = {
        "epochs": args.epochs,
        "lr": args.lr,
        "optimizer": args.optimizer,
        "batch_size": args.batch_size,
        "seed": args.seed,
        "run_dir": None if args.run_dir is None else str(args.run_dir),
    }
    train.update({key: value for key, value in overrides.items() if value is not None})
    if args.enable_plots:
        train["enable_plots"] = True
    return config


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    level = getattr(logging, str(args.log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    result = pipelines.run_pipeline(build_config(args))
    print(_format_result(result))


if __name__ == "__main__":
    main()
