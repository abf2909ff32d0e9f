"""
Packbuilder Utils Module

- logger: Logging setup and the lifecycle logger adapter
- once: One-time shared guard

Usage:
    from packbuilder.utils import setup_logger, LifecycleLogger, Once
"""

from .logger import setup_logger, parse_module_levels, LifecycleLogger
from .once import Once

__all__ = [
    'setup_logger',
    'parse_module_levels',
    'LifecycleLogger',
    'Once',
]
