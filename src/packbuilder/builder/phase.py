from pathlib import Path
from typing import Optional
import asyncio
import io
import logging
import tarfile
import threading

from .. import constants
from ..datacls import ContainerConfig, HostConfig
from ..exceptions import PhaseCleanupError, PhaseRunError, RuntimeOperationError
from ..protocols import ContainerRuntimeProtocol, VerboseLogger
from ..utils import Once

logger = logging.getLogger(__name__)


class Phase:
    """
    One lifecycle phase bound to a container runtime.

    Holds a snapshot of the phase's container and host config taken when the
    phase was made; later changes to the provider do not reach it. `run` creates
    the container, copies the application in (once per lifecycle), runs it to
    completion and streams its output. `cleanup` removes the container.
    """

    def __init__(
        self,
        name: str,
        ctr_conf: ContainerConfig,
        host_conf: HostConfig,
        runtime: ContainerRuntimeProtocol,
        logger: VerboseLogger,
        uid: int,
        gid: int,
        app_path: Path,
        app_once: Once,
    ):
        self.name = name
        self.ctr_conf = ctr_conf
        self.host_conf = host_conf
        self.runtime = runtime
        self.logger = logger
        self.uid = uid
        self.gid = gid
        self.app_path = Path(app_path)
        self.app_once = app_once
        self.container_id: Optional[str] = None
        self._lock = threading.Lock()
        self._cleaned_up = False

    async def run(self) -> None:
        loop = asyncio.get_running_loop()

        try:
            await loop.run_in_executor(None, self._create)
        except RuntimeOperationError as e:
            raise PhaseRunError(f"failed to create '{self.name}' container: {e}") from e

        try:
            await loop.run_in_executor(None, self.app_once.do, self._copy_app)
        except (RuntimeOperationError, OSError) as e:
            raise PhaseRunError(f"failed to copy files to '{self.name}' container: {e}") from e

        logger.debug(f"[Phase] [{self.name}] Running container {self.container_id[:12]}")
        try:
            status = await loop.run_in_executor(None, self._run_container)
        except asyncio.CancelledError:
            logger.warning(f"[Phase] [{self.name}] Cancelled, killing container {self.container_id[:12]}")
            await loop.run_in_executor(None, self._kill)
            raise
        except RuntimeOperationError as e:
            raise PhaseRunError(f"failed to run '{self.name}' container: {e}") from e

        if status != 0:
            raise PhaseRunError(f"'{self.name}' phase failed with status code: {status}")
        logger.debug(f"[Phase] [{self.name}] Finished")

    def cleanup(self) -> None:
        with self._lock:
            self._cleaned_up = True
            container_id = self.container_id
        if container_id is None:
            logger.debug(f"[Phase] [{self.name}] No container to remove")
            return
        try:
            self.runtime.remove(container_id)
        except RuntimeOperationError as e:
            raise PhaseCleanupError(f"failed to remove '{self.name}' container: {e}") from e
        logger.debug(f"[Phase] [{self.name}] Removed container {container_id[:12]}")
        self.container_id = None

    def _create(self) -> None:
        container_id = self.runtime.create(self.name, self.ctr_conf, self.host_conf)
        with self._lock:
            if not self._cleaned_up:
                self.container_id = container_id
                return

        # run was cancelled and cleaned up while the create call was in flight
        logger.warning(f"[Phase] [{self.name}] Removing container {container_id[:12]} created after cleanup")
        try:
            self.runtime.remove(container_id)
        except RuntimeOperationError as e:
            logger.warning(f"[Phase] [{self.name}] Failed to remove container {container_id[:12]}: {e}")

    def _run_container(self) -> int:
        self.runtime.start_and_stream(self.container_id, self._on_line)
        return self.runtime.wait(self.container_id)

    def _on_line(self, line: str) -> None:
        emit = getattr(self.logger, "phase_output", None)
        if emit is not None:
            emit(self.name, line)
        else:
            logger.info(f"[{self.name}] {line}")

    def _kill(self) -> None:
        try:
            self.runtime.kill(self.container_id)
        except RuntimeOperationError as e:
            logger.warning(f"[Phase] [{self.name}] Failed to kill container: {e}")

    def _copy_app(self) -> None:
        logger.debug(f"[Phase] [{self.name}] Copying '{self.app_path}' to {constants.APP_DIR}")
        self.runtime.copy_archive(self.container_id, self._app_archive(), "/")

    def _app_archive(self) -> bytes:
        """
        Tar of the application source rooted at the app dir, owned by the lifecycle uid/gid.
        """
        if not self.app_path.exists():
            raise FileNotFoundError(f"application path '{self.app_path}' does not exist")

        root = constants.APP_DIR.lstrip("/")
        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            if self.app_path.is_dir():
                tar.add(str(self.app_path), arcname=root, filter=self._normalize)
            else:
                tar.addfile(self._normalize(tarfile.TarInfo(root), tarfile.DIRTYPE))
                tar.add(str(self.app_path), arcname=f"{root}/{self.app_path.name}", filter=self._normalize)
        return buf.getvalue()

    def _normalize(self, info: tarfile.TarInfo, kind: Optional[bytes] = None) -> tarfile.TarInfo:
        if kind is not None:
            info.type = kind
            info.mode = 0o755
        info.uid, info.gid = self.uid, self.gid
        info.uname = info.gname = ""
        info.mtime = constants.NORMALIZED_MTIME
        return info

    def __repr__(self):
        return f"Phase({self.name!r})"
