"""
Lifecycle orchestration.

A Lifecycle holds what stays fixed for one image build: the builder image, the
lifecycle version, the uid/gid phases run as, the shared layers and app
volumes, proxy settings and the runtime. Each phase operation composes the
configuration operations for its phase, asks a phase factory for a runnable
phase, runs it and always cleans it up.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import asyncio
import hashlib
import json
import logging
import os
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .. import constants
from ..auth import parse_reference
from ..datacls import LifecycleOptions
from ..exceptions import BuilderDefinitionError, InvalidVersionError, RuntimeOperationError
from ..protocols import ContainerRuntimeProtocol, KeychainProtocol, PhaseFactoryProtocol, RunnerCleaner, VerboseLogger
from ..rules import Rule, Version
from ..utils import LifecycleLogger, Once
from .provider import (
    PhaseConfigProvider,
    with_args,
    with_binds,
    with_daemon_access,
    with_network,
    with_registry_access,
    with_root,
)

if TYPE_CHECKING:
    from ..config import BuildConfigModel

logger = logging.getLogger(__name__)


def cache_volume_name(image: str, suffix: str) -> str:
    """Stable cache volume name for an image repository (tags do not matter)."""
    ref = parse_reference(image)
    digest = hashlib.sha256(f"{ref.registry}/{ref.repository}".encode("utf-8")).hexdigest()
    return f"{constants.CACHE_VOLUME_PREFIX}{digest[:12]}{suffix}"


def _prepend(arg: str, args: List[str]) -> List[str]:
    return [arg, *args]


class Lifecycle(BaseModel):
    """
    Build-wide context and the five phase operations (detect, restore, analyze, build, export).

    Immutable once created; every phase of one build reads the same instance.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    version: str
    builder_image: str
    uid: int
    gid: int
    app_path: Path
    layers_volume: str
    app_volume: str
    http_proxy: str = ""
    https_proxy: str = ""
    no_proxy: str = ""

    runtime: Optional[ContainerRuntimeProtocol] = None
    logger: VerboseLogger = Field(default_factory=LifecycleLogger)
    # None means the docker CLI config keychain
    keychain: Optional[KeychainProtocol] = None
    app_once: Once = Field(default_factory=Once)

    @field_validator("version")
    @classmethod
    def check_version(cls, value: str) -> str:
        """Fail fast on a lifecycle version that is not semver."""
        try:
            Version(value)
        except InvalidVersionError as e:
            raise ValueError(f"invalid lifecycle version: {e}") from e
        return value

    # ------------------------------------------------------------------
    # Construction from a build file
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        config: "BuildConfigModel",
        runtime: Optional[ContainerRuntimeProtocol] = None,
        logger: Optional[VerboseLogger] = None,
        keychain: Optional[KeychainProtocol] = None,
        app_path: Optional[Path] = None,
    ) -> "Lifecycle":
        """
        Creates a lifecycle for one build.

        uid, gid and the lifecycle version come from the build config when set,
        otherwise from the builder image (CNB_USER_ID / CNB_GROUP_ID env and the
        builder metadata label). Proxies fall back to the host environment.
        Layers and app volume names are unique per build.
        """
        uid, gid, version = config.uid, config.gid, config.lifecycle_version
        if uid is None or gid is None or not version:
            if runtime is None:
                raise BuilderDefinitionError(
                    f"Cannot inspect builder '{config.builder}' without a runtime; "
                    f"set uid, gid and lifecycle_version explicitly"
                )
            try:
                env, labels = runtime.image_config(config.builder)
            except RuntimeOperationError as e:
                raise BuilderDefinitionError(f"Failed to inspect builder '{config.builder}': {e}") from e
            if uid is None:
                uid = _int_env(config.builder, env, constants.USER_ID_ENV)
            if gid is None:
                gid = _int_env(config.builder, env, constants.GROUP_ID_ENV)
            if not version:
                version = _lifecycle_version(config.builder, labels)

        suffix = uuid.uuid4().hex[:10]
        lifecycle = cls(
            version=version,
            builder_image=config.builder,
            uid=uid,
            gid=gid,
            app_path=app_path or config.path,
            layers_volume=f"{constants.LAYERS_VOLUME_PREFIX}{suffix}",
            app_volume=f"{constants.APP_VOLUME_PREFIX}{suffix}",
            http_proxy=_proxy(config.proxy.http, "HTTP_PROXY"),
            https_proxy=_proxy(config.proxy.https, "HTTPS_PROXY"),
            no_proxy=_proxy(config.proxy.no, "NO_PROXY"),
            runtime=runtime,
            logger=logger or LifecycleLogger(),
            keychain=keychain,
        )
        logging.getLogger(__name__).debug(
            f"[Lifecycle] Created lifecycle {version} for builder '{config.builder}' "
            f"(uid={uid}, gid={gid}, layers={lifecycle.layers_volume}, app={lifecycle.app_volume})"
        )
        return lifecycle

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def execute(self, options: LifecycleOptions, phase_factory: Optional[PhaseFactoryProtocol] = None) -> None:
        """
        Runs all phases in order and removes the layers and app volumes afterwards.

        Restore is skipped when the cache is being cleared.
        """
        if phase_factory is None:
            from ..factories import DefaultPhaseFactory
            phase_factory = DefaultPhaseFactory(self)

        cache_volume = options.cache_volume or cache_volume_name(options.image, constants.BUILD_CACHE_SUFFIX)
        launch_cache_volume = options.launch_cache_volume or cache_volume_name(
            options.image, constants.LAUNCH_CACHE_SUFFIX
        )
        logger.info(f"[Lifecycle] Building '{options.image}' with builder '{self.builder_image}'")
        logger.debug(f"[Lifecycle] Cache volumes: build={cache_volume} launch={launch_cache_volume}")

        try:
            logger.info("[Lifecycle] ===> DETECTING")
            await self.detect(options.network, options.volumes, phase_factory)

            if options.clear_cache:
                logger.info("[Lifecycle] Skipping 'restore' due to clearing cache")
            else:
                logger.info("[Lifecycle] ===> RESTORING")
                await self.restore(cache_volume, phase_factory)

            logger.info("[Lifecycle] ===> ANALYZING")
            await self.analyze(options.image, cache_volume, options.publish, options.clear_cache, phase_factory)

            logger.info("[Lifecycle] ===> BUILDING")
            await self.build(options.network, options.volumes, phase_factory)

            logger.info("[Lifecycle] ===> EXPORTING")
            await self.export(
                options.image, options.run_image, options.publish, launch_cache_volume, cache_volume, phase_factory
            )
        finally:
            await asyncio.get_running_loop().run_in_executor(None, self.cleanup)
        logger.info(f"[Lifecycle] Successfully built image '{options.image}'")

    def cleanup(self) -> None:
        """Removes the layers and app volumes of this build."""
        if self.runtime is None:
            logger.debug("[Lifecycle] No runtime, leaving volumes in place")
            return
        for volume in (self.layers_volume, self.app_volume):
            try:
                self.runtime.remove_volume(volume)
            except RuntimeOperationError as e:
                logger.warning(f"[Lifecycle] Failed to remove volume '{volume}': {e}")

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def detect(self, network_mode: str, volumes: List[str], phase_factory: PhaseFactoryProtocol) -> None:
        provider = PhaseConfigProvider(
            constants.DETECTOR,
            with_args(
                *self._with_log_level(
                    "-app", constants.APP_DIR,
                    "-platform", constants.PLATFORM_DIR,
                )
            ),
            with_network(network_mode),
            with_binds(*volumes),
        )
        await self._run(constants.DETECTOR, phase_factory.new(constants.DETECTOR, provider))

    async def restore(self, cache_volume: str, phase_factory: PhaseFactoryProtocol) -> None:
        provider = PhaseConfigProvider(
            constants.RESTORER,
            with_daemon_access(),
            with_args(
                *self._with_log_level(
                    "-cache-dir", constants.CACHE_DIR,
                    "-layers", constants.LAYERS_DIR,
                )
            ),
            with_binds(f"{cache_volume}:{constants.CACHE_DIR}"),
        )
        await self._run(constants.RESTORER, phase_factory.new(constants.RESTORER, provider))

    async def analyze(
        self,
        repo_name: str,
        cache_volume: str,
        publish: bool,
        clear_cache: bool,
        phase_factory: PhaseFactoryProtocol,
    ) -> None:
        analyze = self._new_analyze(repo_name, cache_volume, publish, clear_cache, phase_factory)
        await self._run(constants.ANALYZER, analyze)

    def _new_analyze(
        self,
        repo_name: str,
        cache_volume: str,
        publish: bool,
        clear_cache: bool,
        phase_factory: PhaseFactoryProtocol,
    ) -> RunnerCleaner:
        args = ["-layers", constants.LAYERS_DIR, repo_name]
        if clear_cache:
            args = _prepend("-skip-layers", args)
        else:
            args = ["-cache-dir", constants.CACHE_DIR, *args]

        if publish:
            # no log level here, unlike the daemon branch
            provider = PhaseConfigProvider(
                constants.ANALYZER,
                with_registry_access(repo_name, keychain=self.keychain),
                with_root(),
                with_args(*args),
                with_binds(f"{cache_volume}:{constants.CACHE_DIR}"),
            )
            return phase_factory.new(constants.ANALYZER, provider)

        provider = PhaseConfigProvider(
            constants.ANALYZER,
            with_daemon_access(),
            with_args(*self._with_log_level(*_prepend("-daemon", args))),
            with_binds(f"{cache_volume}:{constants.CACHE_DIR}"),
        )
        return phase_factory.new(constants.ANALYZER, provider)

    async def build(self, network_mode: str, volumes: List[str], phase_factory: PhaseFactoryProtocol) -> None:
        provider = PhaseConfigProvider(
            constants.BUILDER,
            with_args(
                "-layers", constants.LAYERS_DIR,
                "-app", constants.APP_DIR,
                "-platform", constants.PLATFORM_DIR,
            ),
            with_network(network_mode),
            with_binds(*volumes),
        )
        await self._run(constants.BUILDER, phase_factory.new(constants.BUILDER, provider))

    async def export(
        self,
        repo_name: str,
        run_image: str,
        publish: bool,
        launch_cache_volume: str,
        cache_volume: str,
        phase_factory: PhaseFactoryProtocol,
    ) -> None:
        export = self._new_export(repo_name, run_image, publish, launch_cache_volume, cache_volume, phase_factory)
        await self._run(constants.EXPORTER, export)

    def _new_export(
        self,
        repo_name: str,
        run_image: str,
        publish: bool,
        launch_cache_volume: str,
        cache_volume: str,
        phase_factory: PhaseFactoryProtocol,
    ) -> RunnerCleaner:
        args = [
            "-image", run_image,
            "-cache-dir", constants.CACHE_DIR,
            "-layers", constants.LAYERS_DIR,
            "-app", constants.APP_DIR,
            repo_name,
        ]
        binds = [f"{cache_volume}:{constants.CACHE_DIR}"]

        if publish:
            provider = PhaseConfigProvider(
                constants.EXPORTER,
                with_registry_access(repo_name, run_image, keychain=self.keychain),
                with_args(*self._with_log_level(*args)),
                with_root(),
                with_binds(*binds),
            )
            return phase_factory.new(constants.EXPORTER, provider)

        args = ["-daemon", "-launch-cache", constants.LAUNCH_CACHE_DIR, *args]
        binds.append(f"{launch_cache_volume}:{constants.LAUNCH_CACHE_DIR}")

        provider = PhaseConfigProvider(
            constants.EXPORTER,
            with_daemon_access(),
            with_args(*self._with_log_level(*args)),
            with_binds(*binds),
        )
        return phase_factory.new(constants.EXPORTER, provider)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _run(self, name: str, phase: RunnerCleaner) -> None:
        try:
            await phase.run()
        finally:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._cleanup_phase, name, phase)

    @staticmethod
    def _cleanup_phase(name: str, phase: RunnerCleaner) -> None:
        # The run outcome is what the caller gets; a cleanup failure is only reported.
        try:
            phase.cleanup()
        except Exception as e:
            logger.warning(f"[Lifecycle] Failed to clean up '{name}' phase: {e}")

    def _with_log_level(self, *args: str) -> List[str]:
        if Version(self.version) in Rule(constants.LOG_LEVEL_RULE) and self.logger.is_verbose():
            return ["-log-level", "debug", *args]
        return list(args)


def _proxy(configured: Optional[str], env_name: str) -> str:
    if configured is not None:
        return configured
    return os.environ.get(env_name) or os.environ.get(env_name.lower()) or ""


def _int_env(builder: str, env: Dict[str, str], name: str) -> int:
    value = env.get(name)
    if value is None:
        raise BuilderDefinitionError(f"Builder '{builder}' is missing the '{name}' environment variable")
    try:
        return int(value)
    except ValueError:
        raise BuilderDefinitionError(f"Builder '{builder}' has a non-numeric '{name}': '{value}'")


def _lifecycle_version(builder: str, labels: Dict[str, str]) -> str:
    raw = labels.get(constants.BUILDER_METADATA_LABEL)
    if not raw:
        raise BuilderDefinitionError(
            f"Builder '{builder}' has no '{constants.BUILDER_METADATA_LABEL}' label; set lifecycle_version explicitly"
        )
    try:
        metadata: Any = json.loads(raw)
        version = metadata["lifecycle"]["version"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise BuilderDefinitionError(f"Builder '{builder}' has invalid lifecycle metadata: {e}") from e
    if not isinstance(version, str) or not version:
        raise BuilderDefinitionError(f"Builder '{builder}' metadata has no lifecycle version")
    return version
