"""
Packbuilder Auth Module

- parse_reference, registry_of: image reference parsing
- resolve_registry_auth: CNB_REGISTRY_AUTH blob for phases that talk to registries

Usage:
    from packbuilder.auth import resolve_registry_auth
    from packbuilder.bases import DockerConfigKeychain

    blob = resolve_registry_auth(DockerConfigKeychain(), "gcr.io/project/app")
"""

from .reference import Reference, parse_reference, registry_of
from .registry import auth_header, resolve_registry_auth

__all__ = [
    'Reference',
    'parse_reference',
    'registry_of',
    'auth_header',
    'resolve_registry_auth',
]
