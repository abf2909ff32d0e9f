"""
Packbuilder Protocol Definitions

This module contains all Protocol definitions for the packbuilder framework.

Protocols are the foundation layer with zero dependencies on other packbuilder modules.
"""

from typing import Any, Callable, Dict, Optional, Protocol, Tuple, runtime_checkable


# ============================================================================
# Phase Protocols
# ============================================================================

@runtime_checkable
class RunnerCleaner(Protocol):
    """
    Protocol for a runnable lifecycle phase.

    `cleanup` releases whatever `run` created on the runtime. Callers invoke it
    exactly once per phase, whether `run` succeeded or not.
    """

    async def run(self) -> None:
        """
        Run the phase container to completion.

        Cancelling the awaiting task aborts the in-flight container.
        """
        ...

    def cleanup(self) -> None:
        """Release runtime resources created by `run`."""
        ...


@runtime_checkable
class PhaseFactoryProtocol(Protocol):
    """
    Protocol for phase factories.

    Factories turn a phase name and its accumulated config into a runnable phase.
    """

    def new(self, name: str, provider: Any) -> RunnerCleaner:
        """
        Materialize a phase.

        Args:
            name: Phase name (e.g. "detector")
            provider: PhaseConfigProvider holding the phase config

        Returns:
            A runnable, cleanable phase
        """
        ...


# ============================================================================
# Collaborator Protocols
# ============================================================================

@runtime_checkable
class VerboseLogger(Protocol):
    """Protocol for the lifecycle logger."""

    def is_verbose(self) -> bool:
        """Whether debug output was requested."""
        ...


@runtime_checkable
class KeychainProtocol(Protocol):
    """Protocol for registry credential lookups."""

    def resolve(self, registry: str) -> Optional[Any]:
        """
        Look up credentials for a registry host.

        Returns:
            Credentials, or None for anonymous access
        """
        ...


@runtime_checkable
class ContainerRuntimeProtocol(Protocol):
    """
    Protocol for the container runtime a phase runs on.

    The engine never talks to the runtime transport directly, only through these calls.
    """

    def create(self, name: str, ctr_conf: Any, host_conf: Any) -> str:
        """Create (but do not start) a container, returning its id."""
        ...

    def copy_archive(self, container_id: str, archive: bytes, dest: str = "/") -> None:
        """Extract a tar archive into a created container."""
        ...

    def start_and_stream(self, container_id: str, on_line: Callable[[str], None]) -> None:
        """Start a container and feed each output line to `on_line` until it stops."""
        ...

    def wait(self, container_id: str) -> int:
        """Block until the container exits, returning its exit code."""
        ...

    def kill(self, container_id: str) -> None:
        """Kill a running container."""
        ...

    def remove(self, container_id: str) -> None:
        """Force-remove a container."""
        ...

    def remove_volume(self, name: str) -> None:
        """Remove a named volume."""
        ...

    def image_config(self, ref: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Return the (env, labels) of an image."""
        ...
