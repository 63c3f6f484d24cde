"""
Plugin base — the contract between the output pipeline and plugins.

Plugins get the last word on every pod document before it is written.
The pipeline only talks to plugins through the ``Manager``, never
directly.

To create a new plugin:
    1. Subclass Plugin
    2. Implement name and transform (and is_enabled_for, if optional)
    3. Add it to ``Manager.BUILTIN`` or ``Manager.register`` it
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from conductor.core.models import Document, Override, Pod
    from conductor.core.project import Project


class Operation(StrEnum):
    """Which kind of tree the pipeline is producing."""

    OUTPUT = "output"   # working tree under .conductor/pods
    EXPORT = "export"   # standalone snapshot for shipping elsewhere


@dataclass(frozen=True)
class Context:
    """Everything a plugin may look at while transforming one pod."""

    project: Project
    ovr: Override
    pod: Pod


class Plugin(ABC):
    """Abstract base class for all plugins."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The plugin identifier (e.g., 'default_tags')."""

    def is_enabled_for(self, project: Project) -> bool:
        """Whether this plugin should run for ``project`` at all."""
        return True

    @abstractmethod
    def transform(self, op: Operation, ctx: Context, doc: Document) -> None:
        """Rewrite ``doc`` in place.

        Raise a ``ConductorError`` (or anything else) to abort the run.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
