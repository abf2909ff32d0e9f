"""
Packbuilder Bases Module

Concrete implementations of the collaborator abstractions.

- WhalesRuntime: Docker runtime backed by python-on-whales
- DockerConfigKeychain: credentials from the docker CLI config file
- StaticKeychain: fixed credentials
"""

from .runtime import WhalesRuntime
from .keychains import DockerConfigKeychain, StaticKeychain

__all__ = [
    'WhalesRuntime',
    'DockerConfigKeychain',
    'StaticKeychain',
]
