"""
Plugin manager — runs the ordered chain of plugins over each pod.

The manager is built during the second phase of ``Project`` construction,
once pods and overrides are known, and lives as long as the project.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from conductor.core.errors import ConductorError, PluginError
from conductor.plugins.base import Context, Operation, Plugin
from conductor.plugins.default_tags import DefaultTagsPlugin

if TYPE_CHECKING:
    from conductor.core.models import Document
    from conductor.core.project import Project

logger = logging.getLogger(__name__)


class Manager:
    """Ordered plugin chain for one project.

    Plugins run in registration order.  The first failure stops the
    chain and propagates.
    """

    BUILTIN: tuple[type[Plugin], ...] = (DefaultTagsPlugin,)

    def __init__(self, project: Project):
        self._plugins: list[Plugin] = []
        for plugin_cls in self.BUILTIN:
            try:
                plugin = plugin_cls()
            except Exception as e:
                raise PluginError(plugin_cls.__name__, f"cannot initialize: {e}") from e
            self.register(plugin)
        logger.debug(
            "Plugin manager ready for %s: %s",
            project.name,
            ", ".join(self.list_plugins()) or "(none)",
        )

    def register(self, plugin: Plugin) -> None:
        """Append ``plugin`` to the end of the chain."""
        if any(p.name == plugin.name for p in self._plugins):
            logger.warning("Registering a second plugin named %s", plugin.name)
        self._plugins.append(plugin)

    def list_plugins(self) -> list[str]:
        return [p.name for p in self._plugins]

    def transform(self, op: Operation, ctx: Context, doc: Document) -> None:
        """Run every enabled plugin over ``doc``, in order."""
        for plugin in self._plugins:
            if not plugin.is_enabled_for(ctx.project):
                continue
            logger.debug("Running plugin %s on %s (%s)", plugin.name, ctx.pod.name, op)
            try:
                plugin.transform(op, ctx, doc)
            except ConductorError:
                raise
            except Exception as e:
                raise PluginError(plugin.name, str(e)) from e
