"""Hydra ConfigStore registration utilities."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from hydra.core.config_store import ConfigStore
from loguru import logger

T = TypeVar("T", bound=type[Any])


def register(*, group: str, name: str | None = None, **defaults: Any) -> Callable[[T], T]:
    """Decorator storing a ``_target_`` node for the class in ConfigStore.

    Selecting ``<group>=<name>`` on the command line then instantiates the
    decorated class with ``defaults`` (overridable like any other key).

    Arguments:
        group: The ConfigStore group, e.g. ``"backbone"``.
        name: Config name inside the group. Defaults to the class name.
        **defaults: Default constructor arguments for the configuration node.
    """

    def _store(target_cls: T) -> T:
        config_name = name or target_cls.__name__
        node: dict[str, Any] = {
            "_target_": f"{target_cls.__module__}.{target_cls.__qualname__}"
        }
        node.update(defaults)
        logger.debug(
            f"Registering {target_cls.__name__} as '{config_name}' in group '{group}'"
        )
        ConfigStore.instance().store(group=group, name=config_name, node=node)
        return target_cls

    return _store
