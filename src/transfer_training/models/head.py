"""Two-layer classifier head trained on top of frozen embeddings."""

from __future__ import annotations

from typing import Any

import lightning as L
import torch
from torch import nn
from torchmetrics.classification import MulticlassAccuracy


class ClassifierHead(L.LightningModule):
    """Dense(hidden, ReLU) -> Dense(num_classes) over embedding vectors.

    ``forward`` returns logits; :meth:`predict_proba` applies the softmax.
    Targets are one-hot float rows, so the loss is categorical
    cross-entropy against class probabilities.
    """

    def __init__(
        self,
        embedding_dim: int,
        num_classes: int,
        hidden_units: int = 64,
        learning_rate: float = 1e-3,
    ) -> None:
        super().__init__()
        self.save_hyperparameters()
        self.model = nn.Sequential(
            nn.Linear(embedding_dim, hidden_units),
            nn.ReLU(),
            nn.Linear(hidden_units, num_classes),
        )
        self.loss_fn = nn.CrossEntropyLoss()
        # MulticlassAccuracy rejects num_classes=1, which a project with a
        # single label folder produces. Predictions are passed as indices.
        self.train_acc = MulticlassAccuracy(
            num_classes=max(2, num_classes), top_k=1, average="micro"
        )

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        return self.model(features)  # type: ignore[no-any-return]

    def predict_proba(self, features: torch.Tensor) -> torch.Tensor:
        """Class probability rows summing to 1."""
        return torch.softmax(self(features), dim=-1)

    def training_step(
        self, batch: tuple[torch.Tensor, torch.Tensor], batch_idx: int
    ) -> torch.Tensor:
        features, targets = batch
        logits = self(features)
        loss: torch.Tensor = self.loss_fn(logits, targets)
        self.train_acc(logits.argmax(dim=-1), targets.argmax(dim=-1))
        self.log("train/loss", loss, on_step=False, on_epoch=True)
        self.log("train/acc", self.train_acc, on_step=False, on_epoch=True)
        return loss

    def configure_optimizers(self) -> Any:
        return torch.optim.Adam(
            self.parameters(), lr=self.hparams["learning_rate"]
        )
