"""
Packbuilder Builder Module

- Lifecycle: Build-wide context and the phase operations
- PhaseConfigProvider: Container/host config of one phase, built from operations
- Phase: A phase bound to a container runtime

Usage:
    from packbuilder.builder import Lifecycle
    from packbuilder.bases import WhalesRuntime
    from packbuilder.config import Config

    config = Config("build.yml")
    lifecycle = Lifecycle.create(config.model, WhalesRuntime())
    await lifecycle.execute(config.options())
"""

from .provider import (
    PhaseConfigOperation,
    PhaseConfigProvider,
    with_args,
    with_binds,
    with_daemon_access,
    with_lifecycle,
    with_network,
    with_registry_access,
    with_root,
)
from .phase import Phase
from .lifecycle import Lifecycle, cache_volume_name

__all__ = [
    'Lifecycle',
    'cache_volume_name',
    'Phase',
    'PhaseConfigOperation',
    'PhaseConfigProvider',
    'with_args',
    'with_binds',
    'with_daemon_access',
    'with_lifecycle',
    'with_network',
    'with_registry_access',
    'with_root',
]
