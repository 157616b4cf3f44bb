"""Bridges Lightning epoch ends to a ProgressSink and the run history."""

from __future__ import annotations

import lightning as L

from transfer_training.progress import ProgressSink
from transfer_training.types import TrainingRun


class ProgressCallback(L.Callback):
    """Record ``train/acc`` and ``train/loss`` after every epoch.

    Appends an :class:`~transfer_training.types.EpochRecord` to ``run`` and
    calls ``sink.progress(epoch, accuracy)``.

    Args:
        sink: Receiver of per-epoch progress.
        run: Run whose history is appended to.
    """

    def __init__(self, sink: ProgressSink, run: TrainingRun) -> None:
        super().__init__()
        self.sink = sink
        self.run = run

    def on_train_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        epoch = trainer.current_epoch
        metrics = trainer.callback_metrics
        acc = metrics.get("train/acc")
        loss = metrics.get("train/loss")
        accuracy = float(acc.item()) if acc is not None else float("nan")
        self.run.history.append(
            {
                "epoch": epoch,
                "accuracy": accuracy,
                "loss": float(loss.item()) if loss is not None else float("nan"),
            }
        )
        self.sink.progress(epoch, accuracy)
