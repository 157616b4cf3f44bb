"""Model info callback — reports the classifier head's shape and size."""

from __future__ import annotations

import lightning as L
from loguru import logger
from rich import box
from rich.console import Console
from rich.table import Table


class ModelInfoCallback(L.Callback):
    """Print a table describing the head at fit start.

    Reports embedding width, hidden width, class count, parameter count and
    size in KB.  Only the head is counted: the backbone is frozen and lives
    outside the Lightning module.
    """

    def on_fit_start(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        hparams = pl_module.hparams
        total_params = sum(p.numel() for p in pl_module.parameters())
        trainable_params = sum(
            p.numel() for p in pl_module.parameters() if p.requires_grad
        )
        size_kb = sum(
            p.numel() * p.element_size() for p in pl_module.parameters()
        ) / 1024

        table = Table(
            title="Classifier Head",
            header_style="bold magenta",
            box=box.SQUARE,
            show_lines=True,
        )
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Model Class", type(pl_module).__name__)
        table.add_row("Embedding Dim", str(hparams.get("embedding_dim", "?")))
        table.add_row("Hidden Units", str(hparams.get("hidden_units", "?")))
        table.add_row("Classes", str(hparams.get("num_classes", "?")))
        table.add_row("Trainable Parameters", f"{trainable_params:,}")
        table.add_row("Model Size", f"{size_kb:.1f} KB")
        Console().print(table)

        logger.info(
            f"Model: {type(pl_module).__name__} | "
            f"Params: {total_params:,} ({trainable_params:,} trainable) | "
            f"Size: {size_kb:.1f} KB"
        )
