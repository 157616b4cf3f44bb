"""Full-batch training of the classifier head for a fixed number of epochs."""

from __future__ import annotations

import warnings
from collections.abc import Sequence

import lightning as L
import torch
from loguru import logger
from torch.utils.data import DataLoader, TensorDataset

from transfer_training.callbacks.progress import ProgressCallback
from transfer_training.models.head import ClassifierHead
from transfer_training.progress import NullSink, ProgressSink
from transfer_training.types import TrainingRun


class ClassifierTrainer:
    """Trains a fresh :class:`ClassifierHead` on (features, one-hot labels).

    Every epoch is one gradient step over the entire set: there is no
    batching, no validation split, no early stopping and no checkpointing.
    An interrupted run is simply lost.

    Args:
        epochs: Exact number of epochs to run.
        hidden_units: Width of the hidden dense layer.
        learning_rate: Adam learning rate.
        accelerator: Lightning accelerator (``"cpu"``, ``"gpu"``, ``"auto"``).
        callbacks: Extra Lightning callbacks (plots, model info...).
    """

    def __init__(
        self,
        epochs: int = 100,
        hidden_units: int = 64,
        learning_rate: float = 1e-3,
        accelerator: str = "cpu",
        callbacks: Sequence[L.Callback] = (),
    ) -> None:
        self.epochs = epochs
        self.hidden_units = hidden_units
        self.learning_rate = learning_rate
        self.accelerator = accelerator
        self.callbacks = list(callbacks)

    def build_head(self, embedding_dim: int, num_classes: int) -> ClassifierHead:
        return ClassifierHead(
            embedding_dim=embedding_dim,
            num_classes=num_classes,
            hidden_units=self.hidden_units,
            learning_rate=self.learning_rate,
        )

    @staticmethod
    def evaluate(
        head: ClassifierHead, features: torch.Tensor, labels: torch.Tensor
    ) -> float:
        """Accuracy of ``head`` on ``features`` against one-hot ``labels``."""
        head.eval()
        with torch.no_grad():
            preds = head(features.to(head.device)).argmax(dim=-1).cpu()
        return float((preds == labels.argmax(dim=-1)).float().mean().item())

    def fit(
        self,
        features: torch.Tensor,
        labels: torch.Tensor,
        sink: ProgressSink | None = None,
        run: TrainingRun | None = None,
    ) -> ClassifierHead:
        """Train a new head for exactly ``self.epochs`` epochs.

        Args:
            features: (N, E) embeddings.
            labels: (N, C) one-hot targets, row-aligned with ``features``.
            sink: Receives ``progress(epoch, accuracy)`` after each epoch.
            run: Run whose ``history`` and ``initial_accuracy`` are filled in.

        Returns:
            The trained head.
        """
        assert features.shape[0] == labels.shape[0], (
            f"{features.shape[0]} feature rows but {labels.shape[0]} label rows"
        )
        sink = sink or NullSink()
        run = run if run is not None else TrainingRun(epochs=self.epochs)

        head = self.build_head(int(features.shape[1]), int(labels.shape[1]))
        run.initial_accuracy = self.evaluate(head, features, labels)
        logger.info(f"Accuracy before training: {run.initial_accuracy:.4f}")
        head.train()

        loader = DataLoader(
            TensorDataset(features, labels),
            batch_size=len(features),
            shuffle=False,
        )
        trainer = L.Trainer(
            max_epochs=self.epochs,
            min_epochs=self.epochs,
            accelerator=self.accelerator,
            devices=1,
            logger=False,
            enable_checkpointing=False,
            enable_progress_bar=False,
            enable_model_summary=False,
            num_sanity_val_steps=0,
            log_every_n_steps=1,
            callbacks=[*self.callbacks, ProgressCallback(sink, run)],
        )
        with warnings.catch_warnings():
            # A worker-less loader is intentional: the data is one tensor.
            warnings.filterwarnings(
                "ignore", message=r".*does not have many workers.*"
            )
            trainer.fit(head, train_dataloaders=loader)

        head.eval()
        logger.info(
            f"Trained {len(run.history)} epochs, final accuracy "
            f"{run.final_accuracy}"
        )
        return head
