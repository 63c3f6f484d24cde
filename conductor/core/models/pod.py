"""
Pod model — a group of services defined in one ``pods/<name>.yml`` file.

A pod's base definition can be customized per override by a file of the
same name under ``pods/overrides/<override>/``.  All files are read once,
when the pod is constructed; merging happens on demand.

A pod may declare itself a one-shot task (a migration, say) through the
compose extension field::

    x-conductor:
      type: task
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any

from conductor.core.config.loader import load_yaml_mapping
from conductor.core.errors import ConfigError
from conductor.core.models.document import Document, merge_mappings
from conductor.core.models.override import Override

logger = logging.getLogger(__name__)


class PodType(StrEnum):
    """How a pod is run."""

    SERVICE = "service"   # long-running
    TASK = "task"         # runs once and exits


class Pod:
    """A pod definition together with all of its override files."""

    def __init__(self, pods_dir: Path, name: str, overrides: Sequence[Override]):
        self._pods_dir = pods_dir
        self._name = name
        self._base = load_yaml_mapping(self.base_path)
        self._overlays: dict[str, dict[str, Any]] = {}
        for ovr in overrides:
            path = self.override_path(ovr)
            self._overlays[ovr.name] = load_yaml_mapping(path) if path.is_file() else {}
        logger.debug(
            "Loaded pod %s (%d override files)",
            name,
            sum(1 for data in self._overlays.values() if data),
        )

    def __repr__(self) -> str:
        return f"<Pod name={self._name!r}>"

    @property
    def name(self) -> str:
        return self._name

    @property
    def base_path(self) -> Path:
        return self._pods_dir / f"{self._name}.yml"

    def override_path(self, ovr: Override) -> Path:
        return self._pods_dir / "overrides" / ovr.name / f"{self._name}.yml"

    def _overlay(self, ovr: Override) -> dict[str, Any]:
        try:
            return self._overlays[ovr.name]
        except KeyError:
            raise ConfigError(
                f"Pod '{self._name}' has no override named '{ovr.name}'"
            ) from None

    def merged_file(self, ovr: Override) -> Document:
        """The base file with ``ovr`` applied, as a fresh document."""
        return Document(merge_mappings(self._base, self._overlay(ovr)))

    def pod_type(self, ovr: Override) -> PodType:
        """Classify this pod under ``ovr``.

        Raises:
            ConfigError: If the declared type is not a known pod type.
        """
        declared = self.merged_file(ovr).metadata.get("type", PodType.SERVICE.value)
        try:
            return PodType(declared)
        except ValueError:
            raise ConfigError(
                f"Pod '{self._name}' has unknown type {declared!r} "
                f"(expected one of: {', '.join(t.value for t in PodType)})"
            ) from None

    def service_names(self, ovr: Override) -> list[str]:
        return list(self.merged_file(ovr).services)

    def all_files(self) -> Iterator[dict[str, Any]]:
        """The base file followed by every non-empty override file."""
        yield self._base
        for data in self._overlays.values():
            if data:
                yield data

    def build_contexts(self) -> Iterator[str]:
        """Every ``build`` context named by any service in any file."""
        for data in self.all_files():
            services = data.get("services")
            if not isinstance(services, dict):
                continue
            for svc in services.values():
                if not isinstance(svc, dict):
                    continue
                build = svc.get("build")
                context = build.get("context") if isinstance(build, dict) else build
                if isinstance(context, str):
                    yield context
