"""Backbones and classifier head."""

from transfer_training.models.backbone import (
    Backbone,
    MobileNetV2Backbone,
    ResNet18Backbone,
    TorchvisionBackbone,
)
from transfer_training.models.head import ClassifierHead

__all__ = [
    "Backbone",
    "ClassifierHead",
    "MobileNetV2Backbone",
    "ResNet18Backbone",
    "TorchvisionBackbone",
]
