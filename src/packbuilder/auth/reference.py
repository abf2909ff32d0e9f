"""
Image reference parsing, just enough to find which registry a repository lives on.
"""

from typing import NamedTuple, Optional
import re

from .. import constants
from ..exceptions import InvalidReferenceError

_DOMAIN = re.compile(r"^(?:[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)*(?::\d+)?$")
_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$")


class Reference(NamedTuple):
    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    def __str__(self):
        name = f"{self.registry}/{self.repository}"
        if self.tag:
            name += f":{self.tag}"
        if self.digest:
            name += f"@{self.digest}"
        return name


def parse_reference(name: str) -> Reference:
    """
    Parse `[registry/]repository[:tag][@digest]`.

    Names without a registry live on Docker Hub; single component Docker Hub
    names get the `library/` namespace.
    """
    if not name or name != name.strip():
        raise InvalidReferenceError(f"Invalid image reference '{name}'")

    remainder, digest = name, None
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        if not _DIGEST.match(digest):
            raise InvalidReferenceError(f"Invalid digest '{digest}' in image reference '{name}'")

    tag = None
    last_slash = remainder.rfind("/")
    last_colon = remainder.rfind(":")
    if last_colon > last_slash:
        remainder, tag = remainder[:last_colon], remainder[last_colon + 1:]
        if not _TAG.match(tag):
            raise InvalidReferenceError(f"Invalid tag '{tag}' in image reference '{name}'")

    first, sep, rest = remainder.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        if not _DOMAIN.match(first):
            raise InvalidReferenceError(f"Invalid registry '{first}' in image reference '{name}'")
        registry, repository = first, rest
    else:
        registry, repository = constants.DEFAULT_REGISTRY, remainder

    if registry in constants.DOCKER_HUB_ALIASES:
        registry = constants.DEFAULT_REGISTRY
        if "/" not in repository:
            repository = f"library/{repository}"

    if not repository or not all(_COMPONENT.match(c) for c in repository.split("/")):
        raise InvalidReferenceError(f"Invalid repository '{repository}' in image reference '{name}'")

    return Reference(registry, repository, tag, digest)


def registry_of(name: str) -> str:
    """Registry host serving the given repository name."""
    return parse_reference(name).registry
