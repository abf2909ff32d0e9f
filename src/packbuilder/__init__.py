"""
Packbuilder

Runs the buildpacks lifecycle (detect, restore, analyze, build, export) as a
sequence of containers started from a builder image.

Main modules:
- builder: Lifecycle orchestration, phase configs and phases
- bases: Docker runtime and registry keychains
- auth: Image references and registry credentials
- config: Build file loading and validation
- factories: Phase factory
- datacls: Container configs and pipeline options
- rules: Version parsing and matching
- utils: Logging and helpers

Quick start example:
```python
import asyncio
from packbuilder import Config, Lifecycle, WhalesRuntime

config = Config("build.yml")
lifecycle = Lifecycle.create(config.model, WhalesRuntime())
asyncio.run(lifecycle.execute(config.options()))
```
"""

__version__ = "0.1.0"

from .protocols import RunnerCleaner, PhaseFactoryProtocol, ContainerRuntimeProtocol
from .abstractions import ContainerRuntime, Credentials, Keychain
from .config import Config, BuildConfigModel
from .builder import Lifecycle, PhaseConfigProvider, Phase
from .bases import WhalesRuntime, DockerConfigKeychain, StaticKeychain
from .factories import DefaultPhaseFactory
from .datacls import LifecycleOptions
from .exceptions import (
    PackBuilderError,
    ConfigurationError,
    ConfigValidationError,
    DefinitionError,
    PhaseError,
    PhaseRunError,
    RegistryAuthError,
)

__all__ = [
    '__version__',
    # Protocols
    'RunnerCleaner',
    'PhaseFactoryProtocol',
    'ContainerRuntimeProtocol',
    # Abstractions
    'ContainerRuntime',
    'Credentials',
    'Keychain',
    # Config
    'Config',
    'BuildConfigModel',
    # Builder
    'Lifecycle',
    'PhaseConfigProvider',
    'Phase',
    'DefaultPhaseFactory',
    'LifecycleOptions',
    # Bases
    'WhalesRuntime',
    'DockerConfigKeychain',
    'StaticKeychain',
    # Exceptions
    'PackBuilderError',
    'ConfigurationError',
    'ConfigValidationError',
    'DefinitionError',
    'PhaseError',
    'PhaseRunError',
    'RegistryAuthError',
]
