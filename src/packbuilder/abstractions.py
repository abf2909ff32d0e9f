"""
Packbuilder Abstract Base Classes

This module contains the abstract base classes (ABCs) for packbuilder collaborators.

Dependencies:
- protocols.py: Protocol definitions (structural types)
- datacls/: Container configuration data classes
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, NamedTuple, Optional, Tuple

from .datacls import ContainerConfig, HostConfig


# ============================================================================
# Container Runtime
# ============================================================================

class ContainerRuntime(ABC):
    """
    Abstract class describing the container runtime phases run on.

    Implementations translate their own failures into RuntimeOperationError.
    """

    @abstractmethod
    def create(self, name: str, ctr_conf: ContainerConfig, host_conf: HostConfig) -> str:
        """
        Creates (but does not start) a container.

        Args:
            name: The phase name, used for logging and container naming.
            ctr_conf: Process side of the container.
            host_conf: Host side of the container.
        Returns:
            The container id.
        """
        pass

    @abstractmethod
    def copy_archive(self, container_id: str, archive: bytes, dest: str = "/") -> None:
        """
        Extracts a tar archive into a created container at `dest`.
        """
        pass

    @abstractmethod
    def start_and_stream(self, container_id: str, on_line: Callable[[str], None]) -> None:
        """
        Starts the container and feeds every output line to `on_line` until the output ends.
        """
        pass

    @abstractmethod
    def wait(self, container_id: str) -> int:
        """
        Blocks until the container exits and returns its exit code.
        """
        pass

    @abstractmethod
    def kill(self, container_id: str) -> None:
        pass

    @abstractmethod
    def remove(self, container_id: str) -> None:
        """
        Force-removes a container, running or not.
        """
        pass

    @abstractmethod
    def remove_volume(self, name: str) -> None:
        pass

    @abstractmethod
    def image_config(self, ref: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        """
        Returns the env (as a mapping) and labels of an image, fetching it first if needed.
        """
        pass


# ============================================================================
# Registry Credentials
# ============================================================================

class Credentials(NamedTuple):
    username: Optional[str] = None
    password: Optional[str] = None
    identity_token: Optional[str] = None
    registry_token: Optional[str] = None

    def is_anonymous(self) -> bool:
        return not any(self)


class Keychain(ABC):
    """
    Abstract class describing where registry credentials come from.
    """

    @abstractmethod
    def resolve(self, registry: str) -> Optional[Credentials]:
        """
        Looks up credentials for a registry host.

        Args:
            registry: Registry host, e.g. "index.docker.io" or "gcr.io".
        Returns:
            Credentials, or None for anonymous access.
        """
        pass
