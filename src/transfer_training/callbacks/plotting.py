"""Training history callback — saves loss and accuracy curve PNGs."""

from __future__ import annotations

from pathlib import Path

import lightning as L
import matplotlib
import matplotlib.pyplot as plt
from loguru import logger


class TrainingHistoryCallback(L.Callback):
    """Plot the head's training loss and accuracy once training ends.

    Writes two PNG files:
    - ``loss_history.png``: train loss per epoch
    - ``accuracy_history.png``: train accuracy per epoch

    Plotting errors are logged and never fail the run.

    Args:
        output_dir: Root directory for saved plots.
    """

    def __init__(self, output_dir: str = "outputs") -> None:
        super().__init__()
        self.output_dir = Path(output_dir) / "training_history"
        self.history: dict[str, list[float | None]] = {
            "train_loss": [],
            "train_acc": [],
        }
        self.epochs: list[int] = []

    def on_train_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        """Collect metrics from callback_metrics at end of training epoch."""
        self.epochs.append(trainer.current_epoch)
        metrics = trainer.callback_metrics
        for key, metric_name in [
            ("train_loss", "train/loss"),
            ("train_acc", "train/acc"),
        ]:
            val = metrics.get(metric_name)
            self.history[key].append(val.item() if val is not None else None)

    def on_train_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        if not self.epochs:
            return
        try:
            self._plot_metrics()
        except Exception as e:
            logger.error(f"Failed to plot training history: {e}")

    def _plot_metrics(self) -> None:
        matplotlib.use("Agg")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        for key, title, ylabel, filename in [
            ("train_loss", "Training Loss", "Loss", "loss_history.png"),
            ("train_acc", "Training Accuracy", "Accuracy", "accuracy_history.png"),
        ]:
            fig, ax = plt.subplots(figsize=(10, 6))
            values = self.history[key]
            if any(v is not None for v in values):
                ax.plot(self.epochs, values, label=title)  # type: ignore[arg-type]
            ax.set_title(title)
            ax.set_xlabel("Epoch")
            ax.set_ylabel(ylabel)
            ax.legend()
            ax.grid(True, linestyle="--", alpha=0.7)
            fig.tight_layout()
            fig.savefig(self.output_dir / filename, dpi=150)
            plt.close(fig)

        logger.info(f"Training history plots written to {self.output_dir}")
