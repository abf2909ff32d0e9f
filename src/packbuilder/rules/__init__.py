"""
Packbuilder Rules Module

- Rule: version constraints such as ">0.4.0" or "[0.5.0, 1.0.0)"
- Version: semantic version parsing and ordering

Usage:
    from packbuilder.rules import Rule, Version
"""

from .rule import Rule
from .version import Version

__all__ = [
    'Rule',
    'Version',
]
