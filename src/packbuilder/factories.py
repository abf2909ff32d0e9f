"""
Packbuilder Factories

This module contains the factory that turns phase configs into runnable phases.

Dependencies:
- builder.provider: lifecycle-wide config operations
- builder.phase: the runnable phase
"""

from typing import TYPE_CHECKING
import logging

from .builder.phase import Phase
from .builder.provider import PhaseConfigProvider, with_binds, with_lifecycle
from .exceptions import PhaseFactoryError
from .protocols import RunnerCleaner
from . import constants

if TYPE_CHECKING:
    from .builder.lifecycle import Lifecycle

logger = logging.getLogger(__name__)


class DefaultPhaseFactory:
    """
    Factory Materializes phases of one lifecycle on the lifecycle's runtime.

    Every phase gets the lifecycle-wide settings on top of its own: the builder
    image, proxy env and the shared layers and app volumes.
    """

    def __init__(self, lifecycle: "Lifecycle"):
        self.lifecycle = lifecycle

    def new(self, name: str, provider: PhaseConfigProvider) -> RunnerCleaner:
        lc = self.lifecycle
        if lc.runtime is None:
            raise PhaseFactoryError(f"Cannot create '{name}' phase: lifecycle has no container runtime")

        provider.update(
            with_lifecycle(lc),
            with_binds(
                f"{lc.layers_volume}:{constants.LAYERS_DIR}",
                f"{lc.app_volume}:{constants.APP_DIR}",
            ),
        )
        logger.debug(f"[Factory] Materializing '{name}' phase: cmd={provider.container_config.cmd}")

        # Snapshots: the phase must not see later changes to the provider.
        return Phase(
            name,
            provider.container_config.model_copy(deep=True),
            provider.host_config.model_copy(deep=True),
            runtime=lc.runtime,
            logger=lc.logger,
            uid=lc.uid,
            gid=lc.gid,
            app_path=lc.app_path,
            app_once=lc.app_once,
        )
