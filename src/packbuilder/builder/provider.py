"""
Phase configuration provider.

A provider accumulates the container and host configuration of one lifecycle
phase. It is built from configuration operations: small functions applied in
order, each of which appends to the command, env or binds, or sets one of the
scalar fields (user, image, network mode). The phase name and the lifecycle
binary at the head of the command are fixed when the provider is created.
"""

from typing import Callable, Optional, TYPE_CHECKING
import logging

from .. import constants
from ..auth import resolve_registry_auth
from ..bases import DockerConfigKeychain
from ..datacls import ContainerConfig, HostConfig
from ..exceptions import PhaseConfigError
from ..protocols import KeychainProtocol

if TYPE_CHECKING:
    from .lifecycle import Lifecycle

logger = logging.getLogger(__name__)

PhaseConfigOperation = Callable[["PhaseConfigProvider"], None]


class PhaseConfigProvider:
    """
    Container and host configuration of one phase, built up by operations.

    Args:
        name: Phase name, selects the lifecycle binary (`/cnb/lifecycle/<name>`)
        *ops: Operations applied in order
    Raises:
        PhaseConfigError: an operation failed; the original error is chained
    """

    def __init__(self, name: str, *ops: PhaseConfigOperation):
        self._name = name
        self._ctr_conf = ContainerConfig(
            cmd=[f"{constants.LIFECYCLE_BIN_DIR}/{name}"],
            labels={constants.AUTHOR_LABEL: constants.TOOL_NAME},
        )
        self._host_conf = HostConfig()
        self._apply(ops, "create phase config")

    def update(self, *ops: PhaseConfigOperation) -> None:
        """Apply further operations, e.g. lifecycle-wide defaults."""
        self._apply(ops, "update phase config")

    def _apply(self, ops, stage: str) -> None:
        for op in ops:
            try:
                op(self)
            except Exception as e:
                logger.debug(f"[Provider] [{self._name}] {stage} failed: {e}")
                raise PhaseConfigError(f"{stage}: {e}") from e

    @property
    def name(self) -> str:
        return self._name

    @property
    def container_config(self) -> ContainerConfig:
        return self._ctr_conf

    @property
    def host_config(self) -> HostConfig:
        return self._host_conf

    def __repr__(self):
        return f"PhaseConfigProvider({self._name!r})"


# ============================================================================
# Configuration operations
# ============================================================================

def with_args(*args: str) -> PhaseConfigOperation:
    def op(provider: PhaseConfigProvider) -> None:
        provider._ctr_conf.cmd.extend(args)
    return op


def with_binds(*binds: str) -> PhaseConfigOperation:
    def op(provider: PhaseConfigProvider) -> None:
        provider._host_conf.binds.extend(binds)
    return op


def with_daemon_access() -> PhaseConfigOperation:
    """Run as root with the docker socket mounted."""
    def op(provider: PhaseConfigProvider) -> None:
        provider._ctr_conf.user = constants.ROOT_USER
        provider._host_conf.binds.append(constants.DOCKER_SOCKET_BIND)
    return op


def with_network(network_mode: str) -> PhaseConfigOperation:
    def op(provider: PhaseConfigProvider) -> None:
        provider._host_conf.network_mode = network_mode
    return op


def with_registry_access(*repos: str, keychain: Optional[KeychainProtocol] = None) -> PhaseConfigOperation:
    """
    Hand registry credentials for `repos` to the phase and put it on the host network.

    Credentials are resolved when the operation is applied; a resolution
    failure fails the provider. Without a keychain the docker CLI config is read.
    """
    def op(provider: PhaseConfigProvider) -> None:
        chain = keychain if keychain is not None else DockerConfigKeychain()
        auth_config = resolve_registry_auth(chain, *repos)
        provider._ctr_conf.env.append(f"{constants.REGISTRY_AUTH_ENV}={auth_config}")
        provider._host_conf.network_mode = constants.HOST_NETWORK
    return op


def with_root() -> PhaseConfigOperation:
    def op(provider: PhaseConfigProvider) -> None:
        provider._ctr_conf.user = constants.ROOT_USER
    return op


def with_lifecycle(lifecycle: "Lifecycle") -> PhaseConfigOperation:
    """Run the builder image and pass the lifecycle's proxy settings through."""
    def op(provider: PhaseConfigProvider) -> None:
        provider._ctr_conf.image = lifecycle.builder_image
        for field, names in constants.PROXY_ENV.items():
            value = getattr(lifecycle, field)
            if value:
                provider._ctr_conf.env.extend(f"{name}={value}" for name in names)
    return op
