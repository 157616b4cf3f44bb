"""Turn loaded samples into one shuffled, stacked, one-hot labelled dataset."""

from __future__ import annotations

import random
from typing import TypeVar

import torch
from loguru import logger

from transfer_training.errors import EmptyDatasetError
from transfer_training.types import ImageSample, LabeledDataset

A = TypeVar("A")
B = TypeVar("B")


def paired_shuffle(
    first: list[A], second: list[B], rng: random.Random | None = None
) -> None:
    """Fisher-Yates shuffle applying one permutation to two lists in place.

    Walks ``counter`` from ``N - 1`` down to 1, draws ``j`` uniformly from
    ``[0, counter]`` and swaps position ``counter`` with ``j`` in both lists,
    so ``first[i]`` and ``second[i]`` stay paired for every ``i``.
    """
    assert len(first) == len(second), (
        f"paired_shuffle needs equal lengths, got {len(first)} and {len(second)}"
    )
    rng = rng or random.Random()
    for counter in range(len(first) - 1, 0, -1):
        j = rng.randint(0, counter)
        first[counter], first[j] = first[j], first[counter]
        second[counter], second[j] = second[j], second[counter]


def one_hot(indices: list[int], num_classes: int) -> torch.Tensor:
    """Float one-hot matrix of shape (len(indices), num_classes)."""
    labels = torch.tensor(indices, dtype=torch.long)
    return torch.nn.functional.one_hot(labels, num_classes).to(torch.float32)


def build_dataset(
    samples: list[ImageSample],
    label_names: list[str],
    rng: random.Random | None = None,
) -> LabeledDataset:
    """Shuffle, stack and one-hot encode ``samples``.

    Images are stacked as-is: they are already in [0, 1] from the loader and
    must not be divided by 255 again.  ``samples`` is emptied afterwards so
    the per-image tensors can be freed.

    Raises:
        EmptyDatasetError: ``samples`` is empty.
    """
    if not samples:
        raise EmptyDatasetError("No images to build a dataset from")

    images = [s.image for s in samples]
    indices = [s.label_index for s in samples]
    paired_shuffle(images, indices, rng)

    stacked = torch.stack(images)
    labels = one_hot(indices, len(label_names))
    images.clear()
    samples.clear()

    logger.info(
        f"Images all converted to tensors: X {list(stacked.shape)}, "
        f"Y {list(labels.shape)}"
    )
    return LabeledDataset(
        images=stacked, labels=labels, label_names=list(label_names)
    )
