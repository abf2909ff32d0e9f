import asyncio
import threading
from pathlib import Path

import pytest

from packbuilder.bases import StaticKeychain
from packbuilder.builder import Lifecycle
from packbuilder.builder.fakes import FakePhase, FakePhaseFactory, which_returns_for_new
from packbuilder.exceptions import PhaseCleanupError, PhaseConfigError, PhaseRunError, RegistryAuthError


class FakeLogger:
    def __init__(self, verbose: bool):
        self.verbose = verbose

    def is_verbose(self) -> bool:
        return self.verbose


class BrokenKeychain:
    def resolve(self, registry):
        raise RegistryAuthError(f"no access to {registry}")


def fake_lifecycle(verbose: bool = False, version: str = "0.7.0", keychain=None) -> Lifecycle:
    return Lifecycle(
        version=version,
        builder_image="some-builder",
        uid=1000,
        gid=1000,
        app_path=Path("."),
        layers_volume="pack-layers-test",
        app_volume="pack-app-test",
        logger=FakeLogger(verbose),
        keychain=keychain if keychain is not None else StaticKeychain(),
    )


def assert_includes_all(items, *patterns):
    """Every pattern must appear in `items` as a contiguous run."""
    for pattern in patterns:
        pattern = list(pattern)
        found = any(items[i:i + len(pattern)] == pattern for i in range(len(items) - len(pattern) + 1))
        assert found, f"expected {pattern} in {items}"


def run_phase(lifecycle: Lifecycle, phase: str, factory, **kwargs):
    defaults = {
        "detect": {"network_mode": "test", "volumes": []},
        "restore": {"cache_volume": "test"},
        "analyze": {"repo_name": "test", "cache_volume": "test", "publish": False, "clear_cache": False},
        "build": {"network_mode": "test", "volumes": []},
        "export": {
            "repo_name": "test", "run_image": "test", "publish": False,
            "launch_cache_volume": "test", "cache_volume": "test",
        },
    }
    args = defaults[phase] | kwargs
    asyncio.run(getattr(lifecycle, phase)(phase_factory=factory, **args))


PHASES = ["detect", "restore", "analyze", "build", "export"]


class TestRunAndCleanup:
    """Each phase operation creates one phase, runs it and always cleans it up."""

    @pytest.mark.parametrize("phase", PHASES)
    def test_creates_a_phase_and_then_runs_it(self, phase):
        fake_phase = FakePhase()
        factory = FakePhaseFactory(which_returns_for_new(fake_phase))

        run_phase(fake_lifecycle(), phase, factory)

        assert factory.new_call_count == 1
        assert fake_phase.run_call_count == 1
        assert fake_phase.cleanup_call_count == 1

    @pytest.mark.parametrize("phase", PHASES)
    def test_cleans_up_when_run_fails(self, phase):
        fake_phase = FakePhase(run_error=PhaseRunError("exit 1"))
        factory = FakePhaseFactory(return_for_new=fake_phase)

        with pytest.raises(PhaseRunError, match="exit 1"):
            run_phase(fake_lifecycle(), phase, factory)

        assert fake_phase.cleanup_call_count == 1

    def test_cleanup_error_does_not_mask_run_error(self):
        fake_phase = FakePhase(run_error=PhaseRunError("exit 2"), cleanup_error=PhaseCleanupError("busy"))
        factory = FakePhaseFactory(return_for_new=fake_phase)

        with pytest.raises(PhaseRunError, match="exit 2"):
            run_phase(fake_lifecycle(), "build", factory)
        assert fake_phase.cleanup_call_count == 1

    def test_cleanup_error_after_success_is_only_logged(self, caplog):
        fake_phase = FakePhase(cleanup_error=PhaseCleanupError("busy"))
        factory = FakePhaseFactory(return_for_new=fake_phase)

        run_phase(fake_lifecycle(), "detect", factory)

        assert fake_phase.cleanup_call_count == 1
        assert "Failed to clean up 'detector' phase" in caplog.text

    def test_cleanup_runs_off_the_event_loop(self):
        threads = []

        class ThreadRecordingPhase(FakePhase):
            def cleanup(self):
                threads.append(threading.current_thread())
                super().cleanup()

        factory = FakePhaseFactory(return_for_new=ThreadRecordingPhase())

        run_phase(fake_lifecycle(), "restore", factory)

        assert len(threads) == 1
        assert threads[0] is not threading.main_thread()

    def test_cancellation_still_cleans_up(self):
        fake_phase = FakePhase(run_error=asyncio.CancelledError())
        factory = FakePhaseFactory(return_for_new=fake_phase)

        with pytest.raises(asyncio.CancelledError):
            run_phase(fake_lifecycle(), "build", factory)
        assert fake_phase.cleanup_call_count == 1


class TestDetect:
    def test_configures_the_phase_with_the_expected_arguments(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(verbose=True), "detect", factory, volumes=["test"])

        assert factory.new_called_with_name == "detector"
        provider = factory.new_called_with_provider
        assert_includes_all(
            provider.container_config.cmd,
            ["-log-level", "debug"],
            ["-app", "/workspace"],
            ["-platform", "/platform"],
        )
        assert "test" in provider.host_config.binds

    def test_runs_the_detector_binary(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "detect", factory)

        assert factory.new_called_with_provider.container_config.cmd[0] == "/cnb/lifecycle/detector"
        assert factory.new_called_with_provider.container_config.labels == {"author": "packbuilder"}

    def test_configures_the_phase_with_the_expected_network_mode(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "detect", factory, network_mode="some-network-mode")

        assert factory.new_called_with_provider.host_config.network_mode == "some-network-mode"

    def test_configures_the_phase_with_binds(self):
        factory = FakePhaseFactory()
        expected_binds = ["some-mount-source:/some-mount-target"]

        run_phase(fake_lifecycle(), "detect", factory, volumes=expected_binds)

        assert factory.new_called_with_provider.host_config.binds == expected_binds


class TestRestore:
    def test_configures_the_phase_with_daemon_access(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "restore", factory)

        provider = factory.new_called_with_provider
        assert factory.new_called_with_name == "restorer"
        assert provider.container_config.user == "root"
        assert "/var/run/docker.sock:/var/run/docker.sock" in provider.host_config.binds

    def test_configures_the_phase_with_the_expected_arguments(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(verbose=True), "restore", factory)

        assert_includes_all(
            factory.new_called_with_provider.container_config.cmd,
            ["-log-level", "debug"],
            ["-cache-dir", "/cache"],
            ["-layers", "/layers"],
        )

    def test_configures_the_phase_with_binds(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "restore", factory, cache_volume="some-cache")

        assert "some-cache:/cache" in factory.new_called_with_provider.host_config.binds


class TestAnalyze:
    def test_publish_configures_registry_access(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "analyze", factory, repo_name="some-repo-name", publish=True)

        provider = factory.new_called_with_provider
        assert factory.new_called_with_name == "analyzer"
        assert_includes_all(provider.container_config.cmd, ["-layers", "/layers"], ["some-repo-name"])
        assert "CNB_REGISTRY_AUTH={}" in provider.container_config.env
        assert provider.host_config.network_mode == "host"
        assert provider.container_config.user == "root"

    def test_publish_has_no_daemon_flag_and_no_log_level(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(verbose=True), "analyze", factory, publish=True)

        cmd = factory.new_called_with_provider.container_config.cmd
        assert "-daemon" not in cmd
        assert "-log-level" not in cmd
        assert "/var/run/docker.sock:/var/run/docker.sock" not in factory.new_called_with_provider.host_config.binds

    def test_daemon_configures_daemon_access(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(verbose=True), "analyze", factory, repo_name="some-repo-name")

        provider = factory.new_called_with_provider
        assert provider.container_config.user == "root"
        assert "/var/run/docker.sock:/var/run/docker.sock" in provider.host_config.binds
        assert provider.container_config.cmd == [
            "/cnb/lifecycle/analyzer",
            "-log-level", "debug",
            "-daemon",
            "-cache-dir", "/cache",
            "-layers", "/layers",
            "some-repo-name",
        ]

    @pytest.mark.parametrize("publish", [True, False])
    def test_clear_cache_skips_layers(self, publish):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "analyze", factory, publish=publish, clear_cache=True)

        cmd = factory.new_called_with_provider.container_config.cmd
        assert "-skip-layers" in cmd
        assert "-cache-dir" not in cmd

    @pytest.mark.parametrize("publish", [True, False])
    def test_without_clear_cache_uses_cache_dir(self, publish):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "analyze", factory, publish=publish, clear_cache=False)

        cmd = factory.new_called_with_provider.container_config.cmd
        assert_includes_all(cmd, ["-cache-dir", "/cache"])
        assert "-skip-layers" not in cmd

    @pytest.mark.parametrize("publish", [True, False])
    def test_configures_the_phase_with_binds(self, publish):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "analyze", factory, cache_volume="some-cache", publish=publish)

        assert "some-cache:/cache" in factory.new_called_with_provider.host_config.binds

    def test_publish_fails_when_credentials_cannot_be_resolved(self):
        factory = FakePhaseFactory()

        with pytest.raises(PhaseConfigError, match="create phase config"):
            run_phase(fake_lifecycle(keychain=BrokenKeychain()), "analyze", factory, publish=True)
        assert factory.new_call_count == 0


class TestBuild:
    def test_configures_the_phase_with_the_expected_arguments(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(verbose=True), "build", factory)

        assert factory.new_called_with_name == "builder"
        assert factory.new_called_with_provider.container_config.cmd == [
            "/cnb/lifecycle/builder",
            "-layers", "/layers",
            "-app", "/workspace",
            "-platform", "/platform",
        ]

    def test_configures_the_phase_with_network_and_binds(self):
        factory = FakePhaseFactory()
        expected_binds = ["some-mount-source:/some-mount-target"]

        run_phase(fake_lifecycle(), "build", factory, network_mode="some-network-mode", volumes=expected_binds)

        provider = factory.new_called_with_provider
        assert provider.host_config.network_mode == "some-network-mode"
        assert provider.host_config.binds == expected_binds


class TestExport:
    def test_publish_configures_registry_access(self):
        factory = FakePhaseFactory()

        run_phase(
            fake_lifecycle(verbose=True), "export", factory,
            repo_name="some-repo-name", run_image="some-run-image", publish=True,
        )

        provider = factory.new_called_with_provider
        assert factory.new_called_with_name == "exporter"
        assert provider.container_config.user == "root"
        assert provider.host_config.network_mode == "host"
        assert "CNB_REGISTRY_AUTH={}" in provider.container_config.env
        assert_includes_all(
            provider.container_config.cmd,
            ["-log-level", "debug"],
            ["-image", "some-run-image"],
            ["-cache-dir", "/cache"],
            ["-layers", "/layers"],
            ["-app", "/workspace"],
            ["some-repo-name"],
        )
        assert "-daemon" not in provider.container_config.cmd

    def test_daemon_configures_launch_cache(self):
        factory = FakePhaseFactory()

        run_phase(
            fake_lifecycle(), "export", factory,
            launch_cache_volume="some-launch-cache", cache_volume="some-cache",
        )

        provider = factory.new_called_with_provider
        assert "some-cache:/cache" in provider.host_config.binds
        assert "some-launch-cache:/launch-cache" in provider.host_config.binds
        assert "-daemon" in provider.container_config.cmd
        assert_includes_all(provider.container_config.cmd, ["-launch-cache", "/launch-cache"])

    def test_daemon_configures_daemon_access(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "export", factory)

        provider = factory.new_called_with_provider
        assert provider.container_config.user == "root"
        assert "/var/run/docker.sock:/var/run/docker.sock" in provider.host_config.binds
        assert provider.host_config.network_mode == ""

    def test_publish_has_no_launch_cache(self):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(), "export", factory, launch_cache_volume="some-launch-cache", publish=True)

        provider = factory.new_called_with_provider
        assert "-launch-cache" not in provider.container_config.cmd
        assert "some-launch-cache:/launch-cache" not in provider.host_config.binds


class TestLogLevel:
    @pytest.mark.parametrize("version, verbose, expected", [
        ("0.4.0", True, False),
        ("0.4.0", False, False),
        ("0.4.1", True, True),
        ("0.4.1", False, False),
        ("0.3.0", True, False),
        ("0.9.0", True, True),
    ])
    @pytest.mark.parametrize("phase", ["detect", "restore", "analyze", "export"])
    def test_log_level_is_gated_on_version_and_verbosity(self, phase, version, verbose, expected):
        factory = FakePhaseFactory()

        run_phase(fake_lifecycle(verbose=verbose, version=version), phase, factory)

        cmd = factory.new_called_with_provider.container_config.cmd
        assert (cmd[1:3] == ["-log-level", "debug"]) is expected
        assert ("-log-level" in cmd) is expected
