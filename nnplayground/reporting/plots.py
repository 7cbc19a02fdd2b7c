"""Headless-safe loss curve rendering."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Tuple


class PlotAdapter:
    """Collect per-epoch losses and optionally write ``loss.png`` on close."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float, float | None]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    @property
    def plot_path(self) -> Path:
        return self.run_dir / "loss.png"

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        val_loss = metrics.get("val_loss")
        self._history.append(
            (epoch, float(metrics.get("loss", 0.0)), None if val_loss is None else float(val_loss))
        )

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs = [epoch for epoch, _, _ in self._history]
        fig, ax = plt.subplots()
        ax.plot(epochs, [loss for _, loss, _ in self._history], label="train")
        validation = [(epoch, val) for epoch, _, val in self._history if val is not None]
        if validation:
            ax.plot(*zip(*validation), label="validation")
            ax.legend()
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Loss")
        ax.set_title("Training Curve")
        fig.savefig(self.plot_path)
        plt.close(fig)
        return self.plot_path

    __call__ = on_epoch
