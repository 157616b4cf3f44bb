"""Pydantic frozen configuration models for transfer_training."""

from pydantic import BaseModel, field_validator

DEFAULT_EXTENSIONS: tuple[str, ...] = (".png", ".jpg", ".jpeg", ".bmp")


class PipelineConfig(BaseModel, frozen=True):
    """Configuration for one training run.

    All fields are validated at construction time. Frozen — no mutation after
    creation.  The defaults reproduce the tool's fixed behaviour: 224x224
    inputs, a 64-unit hidden layer and 100 full-batch epochs.
    """

    image_size: int = 224
    epochs: int = 100
    hidden_units: int = 64
    learning_rate: float = 1e-3
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    num_workers: int = 0
    accelerator: str = "cpu"
    seed: int | None = None
    history_dir: str | None = None
    show_model_info: bool = False

    @field_validator("image_size", "epochs", "hidden_units")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("num_workers")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Lower-case and dot-prefix so ``"PNG"`` and ``".png"`` match alike."""
        if not value:
            raise ValueError("at least one extension is required")
        return tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in value
        )

    @property
    def image_shape(self) -> tuple[int, int]:
        """(height, width) every image is resized to."""
        return (self.image_size, self.image_size)
