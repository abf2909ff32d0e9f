"""
Packbuilder Keychain Implementations

Concrete classes:
- DockerConfigKeychain: credentials stored by `docker login` in config.json
- StaticKeychain: fixed credentials, for tests and programmatic use
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import base64
import binascii
import json
import logging
import os

from typing_extensions import override

from .. import constants
from ..abstractions import Credentials, Keychain
from ..exceptions import RegistryAuthError

logger = logging.getLogger(__name__)


def _normalize_registry(key: str) -> str:
    """Reduce a config.json `auths` key ("https://gcr.io/v1/") to its host."""
    if key in constants.DOCKER_HUB_ALIASES:
        return constants.DEFAULT_REGISTRY
    host = key.split("://", 1)[-1]
    host = host.split("/", 1)[0]
    return constants.DEFAULT_REGISTRY if host in constants.DOCKER_HUB_ALIASES else host


# ============================================================================
# DOCKER CONFIG KEYCHAIN
# ============================================================================

class DockerConfigKeychain(Keychain):
    """
    Reads credentials from the Docker CLI config file.

    The file is `$DOCKER_CONFIG/config.json`, or `~/.docker/config.json` when
    DOCKER_CONFIG is unset. Credential helpers are not executed; registries that
    are only served by a helper resolve as anonymous.
    """

    def __init__(self, config_dir: Optional[os.PathLike] = None):
        if config_dir is None:
            config_dir = os.environ.get(constants.DOCKER_CONFIG_ENV) or Path.home() / ".docker"
        self.path = Path(config_dir) / constants.DOCKER_CONFIG_FILENAME
        self._auths: Optional[Dict[str, Credentials]] = None

    def _load(self) -> Dict[str, Credentials]:
        if self._auths is not None:
            return self._auths

        if not self.path.exists():
            logger.debug(f"[Keychain] No docker config at '{self.path}', using anonymous access")
            self._auths = {}
            return self._auths

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryAuthError(f"Failed to read docker config '{self.path}': {e}") from e
        if not isinstance(data, dict):
            raise RegistryAuthError(f"Docker config '{self.path}' must contain a JSON object")

        helpers = set(data.get("credHelpers", {}) or {})
        if data.get("credsStore") or helpers:
            logger.debug(f"[Keychain] Credential helpers in '{self.path}' are not used")

        self._auths = {
            _normalize_registry(key): self._parse_entry(key, entry)
            for key, entry in (data.get("auths") or {}).items()
        }
        return self._auths

    def _parse_entry(self, key: str, entry: Any) -> Credentials:
        if not isinstance(entry, dict):
            raise RegistryAuthError(f"Invalid auth entry for '{key}' in '{self.path}'")

        username, password = entry.get("username"), entry.get("password")
        encoded = entry.get("auth")
        if encoded:
            try:
                decoded = base64.b64decode(encoded).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise RegistryAuthError(f"Invalid 'auth' value for '{key}' in '{self.path}': {e}") from e
            username, sep, password = decoded.partition(":")
            if not sep:
                raise RegistryAuthError(f"Invalid 'auth' value for '{key}' in '{self.path}': expected user:password")

        return Credentials(
            username=username or None,
            password=password or None,
            identity_token=entry.get("identitytoken") or None,
            registry_token=entry.get("registrytoken") or None,
        )

    @override
    def resolve(self, registry: str) -> Optional[Credentials]:
        return self._load().get(_normalize_registry(registry))


# ============================================================================
# STATIC KEYCHAIN
# ============================================================================

class StaticKeychain(Keychain):
    """
    Keychain with a fixed registry -> credentials mapping
    """

    def __init__(self, credentials: Optional[Mapping[str, Credentials]] = None):
        self.credentials = {
            _normalize_registry(registry): creds
            for registry, creds in (credentials or {}).items()
        }

    @override
    def resolve(self, registry: str) -> Optional[Credentials]:
        return self.credentials.get(_normalize_registry(registry))
