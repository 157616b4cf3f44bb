"""The dataset-to-training pipeline and its ``run_training`` entry point.

Stages run strictly in order::

    idle -> loading -> feature_extracting -> training -> completed

An error in any stage moves the run to ``failed`` instead.  ``failed`` is
terminal: there is no retry and no resume.  Errors propagate to the caller as
:class:`~transfer_training.errors.PipelineError` subclasses; the pipeline never
exits the hosting process.
"""

from __future__ import annotations

import asyncio
import random
import threading
from collections.abc import Sequence
from pathlib import Path

import lightning as L
from loguru import logger

from transfer_training.callbacks.model_info import ModelInfoCallback
from transfer_training.callbacks.plotting import TrainingHistoryCallback
from transfer_training.config import PipelineConfig
from transfer_training.data.builder import build_dataset
from transfer_training.data.loader import ImageFolderLoader
from transfer_training.errors import TrainingInProgressError
from transfer_training.features import BackboneFactory, FeatureExtractor
from transfer_training.models.backbone import MobileNetV2Backbone
from transfer_training.progress import EventChannel, ProgressSink, make_sink
from transfer_training.trainer import ClassifierTrainer
from transfer_training.types import RunState, TrainingRun


class TrainingPipeline:
    """Loads a labelled folder, embeds it and trains a classifier head.

    One pipeline runs one training at a time; a concurrent :meth:`run` raises
    :class:`TrainingInProgressError` instead of interleaving two runs.

    Args:
        config: Run configuration. Defaults to :class:`PipelineConfig()`.
        backbone_factory: Builds the frozen backbone. Defaults to a pretrained
            :class:`MobileNetV2Backbone`.
        callbacks: Extra Lightning callbacks for the head's trainer.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        backbone_factory: BackboneFactory | None = None,
        callbacks: Sequence[L.Callback] = (),
    ) -> None:
        self.config = config or PipelineConfig()
        self.backbone_factory = backbone_factory or MobileNetV2Backbone
        self.callbacks = list(callbacks)
        self.state = RunState.IDLE
        self._lock = threading.Lock()

    def _set_state(self, run: TrainingRun, state: RunState) -> None:
        logger.debug(f"Run state: {run.state.value} -> {state.value}")
        run.state = state
        self.state = state

    def _build_callbacks(self) -> list[L.Callback]:
        callbacks = list(self.callbacks)
        if self.config.show_model_info:
            callbacks.append(ModelInfoCallback())
        if self.config.history_dir is not None:
            callbacks.append(TrainingHistoryCallback(self.config.history_dir))
        return callbacks

    def run(
        self,
        root: str | Path,
        observer: EventChannel | ProgressSink | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> TrainingRun:
        """Train on ``root/<label>/<image>`` and report to ``observer``.

        ``loop`` is where an observer with a coroutine ``emit`` gets its
        deliveries scheduled; :func:`run_training` passes its own loop.

        Raises:
            EnumerationError: ``root`` cannot be listed or holds no images.
            DecodeError: An image could not be decoded.
            ModelLoadError: The backbone could not be obtained.
            TrainingInProgressError: Another run is active on this pipeline.
        """
        if not self._lock.acquire(blocking=False):
            raise TrainingInProgressError("A training run is already in progress")
        try:
            return self._run(Path(root), make_sink(observer, loop))
        finally:
            self._lock.release()

    def _run(self, root: Path, sink: ProgressSink) -> TrainingRun:
        cfg = self.config
        run = TrainingRun(epochs=cfg.epochs)
        rng = random.Random(cfg.seed)
        if cfg.seed is not None:
            L.seed_everything(cfg.seed, workers=True)

        try:
            self._set_state(run, RunState.LOADING)
            sink.log("loading images")
            loader = ImageFolderLoader(
                image_size=cfg.image_shape,
                extensions=cfg.extensions,
                num_workers=cfg.num_workers,
            )
            samples, label_names = loader.load(root, sink)
            dataset = build_dataset(samples, label_names, rng)
            run.label_names = dataset.label_names

            sink.log("loading model")
            extractor = FeatureExtractor(self.backbone_factory)
            extractor.load()

            self._set_state(run, RunState.FEATURE_EXTRACTING)
            sink.log("creating features")
            assert dataset.images is not None
            features = extractor.extract(dataset.images)
            dataset.images = None
            sink.log(f"Features stack {list(features.shape)}")

            self._set_state(run, RunState.TRAINING)
            trainer = ClassifierTrainer(
                epochs=cfg.epochs,
                hidden_units=cfg.hidden_units,
                learning_rate=cfg.learning_rate,
                accelerator=cfg.accelerator,
                callbacks=self._build_callbacks(),
            )
            trainer.fit(features, dataset.labels, sink, run)
        except Exception as e:
            self._set_state(run, RunState.FAILED)
            logger.error(f"Training run on {root} failed: {e}")
            raise

        self._set_state(run, RunState.COMPLETED)
        sink.log("learned")
        sink.completed()
        return run


async def run_training(
    root: str | Path,
    observer: EventChannel | ProgressSink | None = None,
    *,
    pipeline: TrainingPipeline | None = None,
) -> TrainingRun:
    """Run one training on a worker thread and await its result.

    The event loop stays free while loading, embedding and training; failures
    surface as the awaited exception.  Pass a shared ``pipeline`` to make
    overlapping requests fail with :class:`TrainingInProgressError`.

    An observer whose ``emit`` is a coroutine function has its deliveries
    scheduled on the calling event loop.
    """
    pipeline = pipeline or TrainingPipeline()
    loop = asyncio.get_running_loop()
    return await asyncio.to_thread(pipeline.run, root, observer, loop)
