import base64
import json

import pytest

from packbuilder.abstractions import Credentials
from packbuilder.auth import auth_header, parse_reference, registry_of, resolve_registry_auth
from packbuilder.bases import DockerConfigKeychain, StaticKeychain
from packbuilder.exceptions import InvalidReferenceError, RegistryAuthError


def b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


@pytest.fixture
def write_docker_config(tmp_path):
    """Writes config.json into a temporary DOCKER_CONFIG dir and returns the dir."""
    def _write(data) -> str:
        content = data if isinstance(data, str) else json.dumps(data)
        (tmp_path / "config.json").write_text(content)
        return str(tmp_path)
    return _write


class TestReference:
    @pytest.mark.parametrize("name, expected", [
        ("busybox", ("index.docker.io", "library/busybox", None, None)),
        ("busybox:1.36", ("index.docker.io", "library/busybox", "1.36", None)),
        ("someone/app", ("index.docker.io", "someone/app", None, None)),
        ("docker.io/busybox", ("index.docker.io", "library/busybox", None, None)),
        ("gcr.io/project/app:v1", ("gcr.io", "project/app", "v1", None)),
        ("localhost/app", ("localhost", "app", None, None)),
        ("localhost:5000/team/app:latest", ("localhost:5000", "team/app", "latest", None)),
        ("registry.example.com:8443/app@sha256:" + "a" * 64,
         ("registry.example.com:8443", "app", None, "sha256:" + "a" * 64)),
    ])
    def test_parse(self, name, expected):
        assert tuple(parse_reference(name)) == expected

    @pytest.mark.parametrize("name", [
        "",
        " busybox",
        "Busybox",
        "app:",
        "app@sha256:short",
        "gcr.io/",
        "a//b",
    ])
    def test_invalid(self, name):
        with pytest.raises(InvalidReferenceError):
            parse_reference(name)

    def test_invalid_reference_is_an_auth_error(self):
        with pytest.raises(RegistryAuthError):
            registry_of("UPPER")

    def test_str_round_trips_normalized_name(self):
        assert str(parse_reference("busybox:1.36")) == "index.docker.io/library/busybox:1.36"


class TestAuthHeader:
    @pytest.mark.parametrize("credentials, expected", [
        (None, ""),
        (Credentials(), ""),
        (Credentials(username="u", password="p"), "Basic " + b64("u:p")),
        (Credentials(identity_token="id"), "X-Identity id"),
        (Credentials(registry_token="rt", username="u", password="p"), "Bearer rt"),
    ])
    def test_header(self, credentials, expected):
        assert auth_header(credentials) == expected


class TestResolveRegistryAuth:
    def test_anonymous_gives_empty_object(self):
        assert resolve_registry_auth(StaticKeychain(), "busybox", "gcr.io/a/b") == "{}"

    def test_one_entry_per_registry_sorted(self):
        keychain = StaticKeychain({
            "gcr.io": Credentials(username="g", password="p"),
            "https://index.docker.io/v1/": Credentials(identity_token="tok"),
        })

        blob = resolve_registry_auth(keychain, "someone/app", "gcr.io/project/run", "gcr.io/project/app")

        assert blob == json.dumps(
            {"gcr.io": "Basic " + b64("g:p"), "index.docker.io": "X-Identity tok"},
            sort_keys=True,
            separators=(",", ":"),
        )

    def test_keychain_failure_is_wrapped(self):
        class Broken:
            def resolve(self, registry):
                raise OSError("keychain locked")

        with pytest.raises(RegistryAuthError, match="keychain locked"):
            resolve_registry_auth(Broken(), "busybox")


class TestDockerConfigKeychain:
    def test_missing_file_is_anonymous(self, tmp_path):
        assert DockerConfigKeychain(tmp_path).resolve("gcr.io") is None

    def test_auth_entry(self, write_docker_config):
        config_dir = write_docker_config({"auths": {"https://index.docker.io/v1/": {"auth": b64("me:pw")}}})

        creds = DockerConfigKeychain(config_dir).resolve("index.docker.io")

        assert creds == Credentials(username="me", password="pw")

    def test_username_password_and_tokens(self, write_docker_config):
        config_dir = write_docker_config({"auths": {
            "gcr.io": {"username": "u", "password": "p"},
            "https://quay.io/v2/": {"identitytoken": "idt"},
            "ghcr.io": {"registrytoken": "rt"},
        }})
        keychain = DockerConfigKeychain(config_dir)

        assert keychain.resolve("gcr.io") == Credentials(username="u", password="p")
        assert keychain.resolve("quay.io") == Credentials(identity_token="idt")
        assert keychain.resolve("ghcr.io") == Credentials(registry_token="rt")
        assert keychain.resolve("other.io") is None

    def test_uses_docker_config_env(self, write_docker_config, monkeypatch):
        monkeypatch.setenv("DOCKER_CONFIG", write_docker_config({"auths": {"gcr.io": {"auth": b64("a:b")}}}))

        assert DockerConfigKeychain().resolve("gcr.io") == Credentials(username="a", password="b")

    def test_credential_helpers_are_not_run(self, write_docker_config, caplog):
        config_dir = write_docker_config({"credsStore": "desktop", "credHelpers": {"gcr.io": "gcloud"}})

        with caplog.at_level("DEBUG", logger="packbuilder.bases.keychains"):
            assert DockerConfigKeychain(config_dir).resolve("gcr.io") is None
        assert "Credential helpers" in caplog.text

    @pytest.mark.parametrize("content, match", [
        ("{not json", "Failed to read docker config"),
        ("[]", "must contain a JSON object"),
        (json.dumps({"auths": {"gcr.io": "nope"}}), "Invalid auth entry"),
        (json.dumps({"auths": {"gcr.io": {"auth": "!!!"}}}), "Invalid 'auth' value"),
        (json.dumps({"auths": {"gcr.io": {"auth": b64("no-colon")}}}), "expected user:password"),
    ])
    def test_malformed_config(self, write_docker_config, content, match):
        keychain = DockerConfigKeychain(write_docker_config(content))

        with pytest.raises(RegistryAuthError, match=match):
            keychain.resolve("gcr.io")
