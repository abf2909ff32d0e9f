"""
Docker runtime for lifecycle phases, backed by python-on-whales.
"""

from contextlib import contextmanager
from typing import Callable, Dict, Optional, Sequence, Tuple
import logging
import subprocess

from python_on_whales import DockerClient
from python_on_whales.exceptions import DockerException, NoSuchVolume
from typing_extensions import override

from ..abstractions import ContainerRuntime
from ..datacls import Bind, ContainerConfig, HostConfig
from ..exceptions import RuntimeOperationError

logger = logging.getLogger(__name__)


@contextmanager
def _translate(action: str):
    """Re-raise docker CLI failures as RuntimeOperationError."""
    try:
        yield
    except DockerException as e:
        raise RuntimeOperationError(f"{action}: {e}") from e


class WhalesRuntime(ContainerRuntime):
    """
    Runs phase containers through the docker CLI.

    Args:
        client: python-on-whales client, a default one is created when omitted
        docker_cmd: Command used to stream archives into containers (`docker cp -`)
    """

    def __init__(self, client: Optional[DockerClient] = None, docker_cmd: Sequence[str] = ("docker",)):
        self.client = client or DockerClient()
        self.docker_cmd = list(docker_cmd)

    @override
    def create(self, name: str, ctr_conf: ContainerConfig, host_conf: HostConfig) -> str:
        if not ctr_conf.image:
            raise RuntimeOperationError(f"Cannot create '{name}' container: no image configured")

        volumes = [Bind.parse(bind).as_tuple() for bind in host_conf.binds]
        networks = [host_conf.network_mode] if host_conf.network_mode else []
        logger.debug(
            f"[Runtime] Creating '{name}' container from '{ctr_conf.image}': "
            f"cmd={ctr_conf.cmd} user={ctr_conf.user or '<default>'} binds={host_conf.binds} "
            f"network={host_conf.network_mode or '<default>'}"
        )
        with _translate(f"create '{name}' container"):
            container = self.client.container.create(
                ctr_conf.image,
                ctr_conf.cmd,
                envs=ctr_conf.env_mapping(),
                labels=ctr_conf.labels,
                user=ctr_conf.user or None,
                volumes=volumes,
                networks=networks,
            )
        logger.debug(f"[Runtime] Created container {container.id[:12]} for '{name}'")
        return container.id

    @override
    def copy_archive(self, container_id: str, archive: bytes, dest: str = "/") -> None:
        cmd = [*self.docker_cmd, "cp", "-", f"{container_id}:{dest}"]
        logger.debug(f"[Runtime] Copying {len(archive)} bytes into {container_id[:12]}:{dest}")
        try:
            subprocess.run(cmd, input=archive, capture_output=True, check=True)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            raise RuntimeOperationError(f"copy into container {container_id[:12]}: {stderr or e}") from e
        except OSError as e:
            raise RuntimeOperationError(f"copy into container {container_id[:12]}: {e}") from e

    @override
    def start_and_stream(self, container_id: str, on_line: Callable[[str], None]) -> None:
        with _translate(f"run container {container_id[:12]}"):
            self.client.container.start(container_id)
            for _source, chunk in self.client.container.logs(container_id, follow=True, stream=True):
                for line in chunk.decode("utf-8", errors="replace").splitlines():
                    on_line(line)

    @override
    def wait(self, container_id: str) -> int:
        with _translate(f"wait for container {container_id[:12]}"):
            return self.client.container.wait(container_id)

    @override
    def kill(self, container_id: str) -> None:
        with _translate(f"kill container {container_id[:12]}"):
            self.client.container.kill(container_id)

    @override
    def remove(self, container_id: str) -> None:
        with _translate(f"remove container {container_id[:12]}"):
            self.client.container.remove(container_id, force=True)

    @override
    def remove_volume(self, name: str) -> None:
        try:
            with _translate(f"remove volume '{name}'"):
                self.client.volume.remove(name)
        except RuntimeOperationError as e:
            if isinstance(e.__cause__, NoSuchVolume):
                logger.debug(f"[Runtime] Volume '{name}' was never created, nothing to remove")
                return
            raise

    @override
    def image_config(self, ref: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        with _translate(f"inspect image '{ref}'"):
            if not self.client.image.exists(ref):
                logger.info(f"[Runtime] Pulling image '{ref}'...")
                self.client.image.pull(ref, quiet=True)
            image = self.client.image.inspect(ref)

        env = {}
        for entry in image.config.env or []:
            key, _, value = entry.partition("=")
            env[key] = value
        return env, dict(image.config.labels or {})
