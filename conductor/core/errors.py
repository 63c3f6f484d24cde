"""
Error taxonomy for conductor.

Every failure that callers are expected to handle derives from
``ConductorError``.  The CLI catches that base class, prints a single
message and exits non-zero.
"""

from __future__ import annotations

from pathlib import Path


class ConductorError(Exception):
    """Base class for all recoverable conductor errors."""


class ProjectIOError(ConductorError):
    """A filesystem operation failed.  Always names the offending path."""

    def __init__(self, path: Path | str, message: str):
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class ConfigError(ConductorError):
    """Raised when project layout or configuration is invalid or missing."""


class DestinationExistsError(ConductorError):
    """Raised when an export would clobber an existing directory."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"The directory {self.path} already exists")


class CollaboratorError(ConductorError):
    """A merge, standalone, update or plugin step failed."""


class PluginError(CollaboratorError):
    """A plugin failed while transforming a pod."""

    def __init__(self, plugin: str, message: str):
        self.plugin = plugin
        super().__init__(f"Plugin '{plugin}' failed: {message}")
