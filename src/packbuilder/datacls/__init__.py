"""
Packbuilder Data Classes

- ContainerConfig, HostConfig: launch configuration of a phase container
- Bind: parsed src:dst[:mode] bind mount
- LifecycleOptions: parameters of a full pipeline run
"""

from .containers import ContainerConfig, HostConfig, Bind
from .options import LifecycleOptions

__all__ = [
    'ContainerConfig',
    'HostConfig',
    'Bind',
    'LifecycleOptions',
]
