"""Loss curves for a ``fit`` call, rendered headless."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from ..core.types import BatchEvent, EpochEvent, TrainingHistory

PLOT_FILE = "loss.png"


class PlotAdapter:
    """Callback that draws batch losses and per-epoch train/validation losses.

    Nothing is collected or written unless ``enable_plots`` is set; the figure
    goes to ``run_dir / "loss.png"`` when training ends.
    """

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._batch_losses: List[float] = []
        self._epochs: List[Tuple[int, float, float | None]] = []

    def on_batch_end(self, event: BatchEvent) -> None:
        if self.enable_plots:
            self._batch_losses.append(float(event.loss_value))

    def on_epoch_end(self, event: EpochEvent) -> None:
        if self.enable_plots:
            self._epochs.append((event.epoch_index, event.loss_value, event.val_loss_value))

    def on_train_end(self, history: TrainingHistory) -> None:
        self.close()

    def close(self) -> Path | None:
        if not self.enable_plots or not self._batch_losses:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt

        fig, (batch_ax, epoch_ax) = plt.subplots(1, 2, figsize=(10, 4))
        batch_ax.plot(range(1, len(self._batch_losses) + 1), self._batch_losses)
        batch_ax.set_xlabel("Batch")
        batch_ax.set_ylabel("Loss")

        if self._epochs:
            indices = [epoch for epoch, _, _ in self._epochs]
            epoch_ax.plot(indices, [loss for _, loss, _ in self._epochs], marker="o", label="train")
            validated = [(epoch, val) for epoch, _, val in self._epochs if val is not None]
            if validated:
                epoch_ax.plot(*zip(*validated), marker="o", label="validation")
            epoch_ax.legend()
        epoch_ax.set_xlabel("Epoch")

        self.run_dir.mkdir(parents=True, exist_ok=True)
        plot_path = self.run_dir / PLOT_FILE
        fig.tight_layout()
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path


__all__ = ["PLOT_FILE", "PlotAdapter"]
