"""Folder-labelled image loading: enumerate, label, decode, resize, normalize."""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable
from pathlib import Path

import numpy as np
import torch
from loguru import logger
from PIL import Image
from torchvision.transforms import InterpolationMode, v2
from tqdm import tqdm

from transfer_training.config import DEFAULT_EXTENSIONS
from transfer_training.data.utils import get_label_images
from transfer_training.errors import DecodeError, EmptyDatasetError
from transfer_training.progress import NullSink, ProgressSink
from transfer_training.types import ImageSample

# Pillow modes carrying more than 8 bits per channel.
_SIXTEEN_BIT_MODES = ("I", "I;16", "I;16B", "I;16L", "I;16N")

# Formats accepted by the decoder; anything else is a decode failure.
_DECODABLE_FORMATS = ("PNG", "JPEG", "BMP", "GIF")


def build_image_transform(
    size: tuple[int, int],
) -> Callable[[Image.Image], torch.Tensor]:
    """Bilinear resize to exactly ``size`` then scale to float32 in [0, 1].

    No aspect-ratio preservation and no cropping.  This is the only place
    pixels are divided by 255.
    """
    return v2.Compose([
        v2.ToImage(),
        v2.Resize(size, interpolation=InterpolationMode.BILINEAR, antialias=False),
        v2.ToDtype(torch.float32, scale=True),
    ])


def to_rgb(image: Image.Image) -> Image.Image:
    """Convert any decoded image to 8-bit RGB, rescaling high bit depths."""
    if image.mode in _SIXTEEN_BIT_MODES or image.mode == "F":
        array = np.asarray(image, dtype=np.float32)
        peak = 1.0 if image.mode == "F" else 65535.0
        array = np.clip(array / peak * 255.0, 0.0, 255.0).astype(np.uint8)
        image = Image.fromarray(array)
    return image.convert("RGB")


def load_image(
    path: Path,
    transform: Callable[[Image.Image], torch.Tensor],
) -> torch.Tensor:
    """Decode one file into a (3, H, W) float tensor.

    Raises:
        DecodeError: The bytes are not a PNG, JPEG, BMP or GIF image.
    """
    try:
        with Image.open(path, formats=_DECODABLE_FORMATS) as img:
            img.load()
            rgb = to_rgb(img)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Failed to decode image {path}: {e}") from e
    return transform(rgb).as_subclass(torch.Tensor)


class ImageFolderLoader:
    """Reads a ``root/<label>/<image>`` tree into labelled image tensors.

    Label indices are handed out in first-seen order over the enumeration
    order of :func:`get_label_images`.  That order comes from the file system,
    so the same folder copied to another machine may map names to different
    indices.  Indices are fixed on the calling thread before any decoding
    starts; decoding may then run on ``num_workers`` threads.

    Any undecodable file aborts the whole load.

    Args:
        image_size: (height, width) every image is resized to.
        extensions: Accepted lowercase suffixes including the dot.
        num_workers: Decode threads; ``0`` decodes on the calling thread.
    """

    def __init__(
        self,
        image_size: tuple[int, int] = (224, 224),
        extensions: tuple[str, ...] = DEFAULT_EXTENSIONS,
        num_workers: int = 0,
    ) -> None:
        self.image_size = image_size
        self.extensions = extensions
        self.num_workers = num_workers
        self.transform = build_image_transform(image_size)

    def load(
        self, root: Path, sink: ProgressSink | None = None
    ) -> tuple[list[ImageSample], list[str]]:
        """Load every image under ``root``.

        Returns:
            The samples in enumeration order and the label names, where a
            sample's ``label_index`` is the position of its ``label_name``.

        Raises:
            EnumerationError: ``root`` cannot be listed.
            EmptyDatasetError: No image files were found.
            DecodeError: A file could not be decoded.
        """
        sink = sink or NullSink()
        sink.detail("Identifying image list")
        files = get_label_images(root, self.extensions)
        sink.detail(f"{len(files)} files found")
        if not files:
            raise EmptyDatasetError(f"No labelled images found under {root}")

        label_names: list[str] = []
        indices: list[int] = []
        for path in files:
            name = path.parent.name
            if name not in label_names:
                label_names.append(name)
            indices.append(label_names.index(name))

        sink.detail("Now converting to tensors")
        images = self._decode_all(files)
        samples = [
            ImageSample(
                path=path,
                label_name=label_names[idx],
                label_index=idx,
                image=image,
            )
            for path, idx, image in zip(files, indices, images)
        ]
        logger.debug(
            f"ImageFolderLoader: {len(samples)} images, "
            f"{len(label_names)} labels {label_names} under {root}"
        )
        return samples, label_names

    def _decode(self, path: Path) -> torch.Tensor:
        return load_image(path, self.transform)

    def _decode_all(self, files: list[Path]) -> list[torch.Tensor]:
        if self.num_workers == 0:
            return [
                self._decode(p)
                for p in tqdm(files, desc="Decode", unit="img", disable=None)
            ]
        # map() yields in submission order and re-raises the first failure
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.num_workers
        ) as executor:
            return list(
                tqdm(
                    executor.map(self._decode, files),
                    total=len(files),
                    desc="Decode",
                    unit="img",
                    disable=None,
                )
            )
