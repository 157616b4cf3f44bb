"""Transfer-learning training pipeline for folder-labelled image datasets."""

__version__ = "0.0.1"
