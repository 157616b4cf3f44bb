"""Shared pytest fixtures for transfer_training tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import torch
from PIL import Image

from transfer_training.models.backbone import Backbone
from transfer_training.progress import ProgressSink


class StubBackbone(Backbone):
    """Deterministic 12-wide embedding: 2x2 average pool of each channel."""

    def __init__(self) -> None:
        self.calls = 0

    @property
    def embedding_dim(self) -> int:
        return 12

    def embed(self, images: torch.Tensor) -> torch.Tensor:
        self.calls += 1
        return torch.nn.functional.adaptive_avg_pool2d(images, (2, 2)).flatten(1)


class RecordingSink(ProgressSink):
    """Collects every event as a ``(name, payload)`` tuple."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def log(self, message: str) -> None:
        self.events.append(("log", message))

    def detail(self, message: str) -> None:
        self.events.append(("detail", message))

    def progress(self, epoch: int, accuracy: float) -> None:
        self.events.append(("progress", (epoch, accuracy)))

    def completed(self) -> None:
        self.events.append(("completed", None))

    def names(self, *kinds: str) -> list[tuple[str, Any]]:
        return [e for e in self.events if e[0] in kinds]


def save_image(
    path: Path, color: tuple[int, int, int], size: tuple[int, int] = (32, 24)
) -> Path:
    """Write a solid-colour RGB image, creating parent folders."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color=color).save(path)
    return path


@pytest.fixture()
def image_root(tmp_path: Path) -> Path:
    """Project folder with two labels: ``cat`` (2 images) and ``dog`` (1 image).

    A stray image directly in the root and a text file inside a label folder
    must both be ignored.
    """
    root = tmp_path / "project"
    save_image(root / "cat" / "a.png", (200, 30, 30))
    save_image(root / "cat" / "b.jpg", (180, 60, 20))
    save_image(root / "dog" / "c.bmp", (20, 40, 220))
    save_image(root / "stray.png", (0, 0, 0))
    (root / "dog" / "notes.txt").write_text("not an image")
    return root


@pytest.fixture()
def stub_backbone_factory() -> Callable[[], StubBackbone]:
    return StubBackbone


@pytest.fixture()
def recording_sink() -> RecordingSink:
    return RecordingSink()
