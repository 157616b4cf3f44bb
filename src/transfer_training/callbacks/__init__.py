"""Training callbacks for transfer_training."""

from transfer_training.callbacks.model_info import ModelInfoCallback
from transfer_training.callbacks.plotting import TrainingHistoryCallback
from transfer_training.callbacks.progress import ProgressCallback

__all__ = [
    "ModelInfoCallback",
    "ProgressCallback",
    "TrainingHistoryCallback",
]
