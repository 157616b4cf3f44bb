"""Data pipeline for transfer_training."""

from transfer_training.data.builder import build_dataset, one_hot, paired_shuffle
from transfer_training.data.loader import ImageFolderLoader, load_image
from transfer_training.data.utils import get_label_images

__all__ = [
    "ImageFolderLoader",
    "build_dataset",
    "get_label_images",
    "load_image",
    "one_hot",
    "paired_shuffle",
]
