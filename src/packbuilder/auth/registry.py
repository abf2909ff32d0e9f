import base64
import json
import logging
from typing import Dict, Optional

from ..abstractions import Credentials
from ..exceptions import RegistryAuthError
from ..protocols import KeychainProtocol
from .reference import registry_of

logger = logging.getLogger(__name__)


def auth_header(credentials: Optional[Credentials]) -> str:
    """
    Authorization header value for credentials, empty for anonymous access.
    """
    if credentials is None or credentials.is_anonymous():
        return ""
    if credentials.registry_token:
        return f"Bearer {credentials.registry_token}"
    if credentials.identity_token:
        return f"X-Identity {credentials.identity_token}"
    pair = f"{credentials.username or ''}:{credentials.password or ''}"
    return "Basic " + base64.b64encode(pair.encode("utf-8")).decode("ascii")


def resolve_registry_auth(keychain: KeychainProtocol, *repos: str) -> str:
    """
    Serialize credentials for the registries of `repos` into the JSON blob
    lifecycle phases read from CNB_REGISTRY_AUTH.

    Args:
        keychain: Where credentials are looked up
        repos: Repository names, e.g. "gcr.io/project/app" or "busybox"
    Returns:
        JSON object mapping registry host to Authorization header value.
        Registries accessed anonymously are left out, so no credentials yields "{}".
    """
    registry_auths: Dict[str, str] = {}
    for repo in repos:
        registry = registry_of(repo)
        try:
            credentials = keychain.resolve(registry)
        except RegistryAuthError:
            raise
        except Exception as e:
            raise RegistryAuthError(f"Failed to resolve credentials for '{registry}': {e}") from e

        header = auth_header(credentials)
        if not header:
            logger.debug(f"[Auth] Using anonymous access for '{registry}' ({repo})")
            continue
        logger.debug(f"[Auth] Found credentials for '{registry}' ({repo})")
        registry_auths[registry] = header

    return json.dumps(registry_auths, sort_keys=True, separators=(",", ":"))
