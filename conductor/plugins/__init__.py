"""Plugins — last-step transforms applied to every pod before writing.

Public re-exports for convenient access.
"""

from conductor.plugins.base import Context, Operation, Plugin
from conductor.plugins.default_tags import DefaultTagsPlugin
from conductor.plugins.manager import Manager

__all__ = [
    "Context",
    "DefaultTagsPlugin",
    "Manager",
    "Operation",
    "Plugin",
]
