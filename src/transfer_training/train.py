"""Training entrypoint for transfer_training.

Usage:
    transfer-train data_root=projects/flowers                # defaults
    transfer-train data_root=projects/flowers backbone=resnet18
    transfer-train data_root=projects/flowers epochs=20 seed=0
"""

import functools
import sys
from typing import Any

import hydra
from loguru import logger
from omegaconf import DictConfig, OmegaConf

# CRITICAL: import models to trigger @register decorators BEFORE Hydra parses config
import transfer_training.models  # noqa: F401
from transfer_training.config import PipelineConfig
from transfer_training.errors import PipelineError
from transfer_training.pipeline import TrainingPipeline


def build_config(cfg: DictConfig) -> PipelineConfig:
    """Pick the PipelineConfig fields out of the composed Hydra config."""
    values: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    return PipelineConfig(
        **{k: v for k, v in values.items() if k in PipelineConfig.model_fields}
    )


@hydra.main(version_base=None, config_path="conf", config_name="train")
def main(cfg: DictConfig) -> None:
    """Run one training with the given Hydra config."""
    logger.remove()
    logger.add(sys.stderr, level=cfg.get("log_level", "INFO"))

    logger.info(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")

    config = build_config(cfg)
    # Instantiated lazily so the download happens inside the pipeline's
    # "loading model" stage and failures surface as ModelLoadError.
    backbone_factory = functools.partial(hydra.utils.instantiate, cfg.backbone)
    pipeline = TrainingPipeline(config=config, backbone_factory=backbone_factory)

    try:
        run = pipeline.run(hydra.utils.to_absolute_path(cfg.data_root))
    except PipelineError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(
        f"Labels: {run.label_names} | accuracy {run.initial_accuracy:.4f} -> "
        f"{run.final_accuracy:.4f} over {len(run.history)} epochs"
    )


if __name__ == "__main__":
    main()
