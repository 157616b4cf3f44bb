"""Error kinds surfaced by the training pipeline.

Every failure the caller can trigger is a :class:`PipelineError`; the ``kind``
attribute gives a stable short name for display next to the message.
Broken internal invariants use plain ``assert`` instead.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for unrecoverable training pipeline failures."""

    kind = "pipeline"

    def __str__(self) -> str:
        return f"[{self.kind}] {super().__str__()}"


class EnumerationError(PipelineError):
    """The dataset root could not be listed."""

    kind = "enumeration"


class EmptyDatasetError(EnumerationError):
    """The dataset root holds no usable images."""

    kind = "no_data"


class DecodeError(PipelineError):
    """An image file is not in a supported format."""

    kind = "decode"


class ModelLoadError(PipelineError):
    """The pretrained backbone could not be obtained."""

    kind = "model_load"


class TrainingInProgressError(PipelineError):
    """A run was requested while another one is still active."""

    kind = "busy"
