"""Frozen pretrained backbones that embed images into fixed-length vectors."""

from __future__ import annotations

from abc import ABC, abstractmethod

import torch
import torchvision.models as tv_models
from loguru import logger
from torch import nn
from torchvision.transforms import v2

from transfer_training.errors import ModelLoadError
from transfer_training.utils.hydra import register

# Backbones are trained on ImageNet-normalized inputs; images arrive in [0, 1].
IMAGENET_MEAN: list[float] = [0.485, 0.456, 0.406]
IMAGENET_STD: list[float] = [0.229, 0.224, 0.225]


class Backbone(ABC):
    """A frozen embedding function from image batches to feature vectors."""

    @property
    @abstractmethod
    def embedding_dim(self) -> int:
        """Length E of each embedding vector."""

    @abstractmethod
    def embed(self, images: torch.Tensor) -> torch.Tensor:
        """Map a (N, 3, H, W) batch in [0, 1] to a (N, E) float tensor."""


class TorchvisionBackbone(Backbone):
    """Torchvision classifier with its head removed and weights frozen.

    Subclasses implement :meth:`_build` returning the truncated network and
    its output width.  Pass ``pretrained=False`` in tests to skip the weight
    download.
    """

    def __init__(self, pretrained: bool = True, device: str = "cpu") -> None:
        self.device = torch.device(device)
        try:
            network, dim = self._build(pretrained)
        except Exception as e:
            raise ModelLoadError(
                f"Failed to load backbone {type(self).__name__}: {e}"
            ) from e
        network.eval()
        network.requires_grad_(False)
        self.network = network.to(self.device)
        self._embedding_dim = dim
        self.normalize = v2.Normalize(mean=IMAGENET_MEAN, std=IMAGENET_STD)
        logger.info(
            f"Loaded backbone {type(self).__name__} "
            f"(pretrained={pretrained}, embedding_dim={dim})"
        )

    @abstractmethod
    def _build(self, pretrained: bool) -> tuple[nn.Module, int]: ...

    @property
    def embedding_dim(self) -> int:
        return self._embedding_dim

    def embed(self, images: torch.Tensor) -> torch.Tensor:
        batch = self.normalize(images.to(self.device))
        return self.network(batch).to(torch.float32).cpu()  # type: ignore[no-any-return]


@register(group="backbone", name="mobilenet_v2")
class MobileNetV2Backbone(TorchvisionBackbone):
    """MobileNetV2 feature vector (1280 wide, global average pooled)."""

    def _build(self, pretrained: bool) -> tuple[nn.Module, int]:
        weights = tv_models.MobileNet_V2_Weights.DEFAULT if pretrained else None
        model = tv_models.mobilenet_v2(weights=weights)
        dim = model.classifier[-1].in_features
        model.classifier = nn.Identity()
        return model, dim


@register(group="backbone", name="resnet18")
class ResNet18Backbone(TorchvisionBackbone):
    """ResNet18 penultimate features (512 wide)."""

    def _build(self, pretrained: bool) -> tuple[nn.Module, int]:
        weights = tv_models.ResNet18_Weights.DEFAULT if pretrained else None
        model = tv_models.resnet18(weights=weights)
        dim = model.fc.in_features
        model.fc = nn.Identity()
        return model, dim
