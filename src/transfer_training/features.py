"""One-shot feature extraction through a frozen backbone."""

from __future__ import annotations

from collections.abc import Callable

import torch
from loguru import logger

from transfer_training.errors import ModelLoadError, PipelineError
from transfer_training.models.backbone import Backbone

BackboneFactory = Callable[[], Backbone]


class FeatureExtractor:
    """Obtains a backbone once per run and embeds the whole dataset with it.

    The backbone is supplied as a factory so unit tests can pass a stub and
    the download (if any) happens inside the pipeline's loading stage.

    Args:
        backbone_factory: Zero-argument callable returning a :class:`Backbone`.
    """

    def __init__(self, backbone_factory: BackboneFactory) -> None:
        self._factory = backbone_factory
        self._backbone: Backbone | None = None

    @property
    def backbone(self) -> Backbone:
        if self._backbone is None:
            raise RuntimeError("Call load() before using the backbone")
        return self._backbone

    @property
    def embedding_dim(self) -> int:
        return self.backbone.embedding_dim

    def load(self) -> Backbone:
        """Build the backbone.

        Raises:
            ModelLoadError: The factory failed (no connectivity, bad weights...).
        """
        try:
            self._backbone = self._factory()
        except PipelineError:
            raise
        except Exception as e:
            raise ModelLoadError(f"Failed to load backbone: {e}") from e
        return self._backbone

    def extract(self, images: torch.Tensor) -> torch.Tensor:
        """Embed a (N, 3, H, W) batch in a single gradient-free forward pass."""
        backbone = self.backbone
        with torch.inference_mode():
            features = backbone.embed(images)
        expected = (images.shape[0], backbone.embedding_dim)
        assert tuple(features.shape) == expected, (
            f"Backbone returned {tuple(features.shape)}, expected {expected}"
        )
        logger.debug(f"Extracted features {list(features.shape)}")
        # Inference tensors cannot be saved for backward by the head.
        return features.clone()
