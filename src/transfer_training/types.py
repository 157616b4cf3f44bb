"""Dataclasses and TypedDicts for transfer_training inter-module contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TypedDict

import torch


class RunState(str, Enum):
    """Lifecycle of one training run. ``COMPLETED`` and ``FAILED`` are terminal."""

    IDLE = "idle"
    LOADING = "loading"
    FEATURE_EXTRACTING = "feature_extracting"
    TRAINING = "training"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImageSample:
    """One decoded image and its label.

    image: Float tensor of shape (3, H, W), values in [0, 1].
    """

    path: Path
    label_name: str
    label_index: int
    image: torch.Tensor


@dataclass
class LabeledDataset:
    """Shuffled, stacked training set.

    images: Float tensor of shape (N, 3, H, W) in [0, 1]; ``None`` once the
        features have been computed and the pixels released.
    labels: Float one-hot tensor of shape (N, num_classes), row-aligned with
        ``images``.
    """

    images: torch.Tensor | None
    labels: torch.Tensor
    label_names: list[str]

    @property
    def num_classes(self) -> int:
        return len(self.label_names)

    def __len__(self) -> int:
        return int(self.labels.shape[0])


class EpochRecord(TypedDict):
    """Metrics recorded at the end of one epoch."""

    epoch: int
    accuracy: float
    loss: float


@dataclass
class TrainingRun:
    """State and history of a single training run. Never persisted."""

    epochs: int = 100
    label_names: list[str] = field(default_factory=list)
    history: list[EpochRecord] = field(default_factory=list)
    state: RunState = RunState.IDLE
    initial_accuracy: float | None = None

    @property
    def final_accuracy(self) -> float | None:
        return self.history[-1]["accuracy"] if self.history else None
