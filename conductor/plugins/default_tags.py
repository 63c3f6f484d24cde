"""
Default tags plugin — pin untagged images to the project's default tags.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from conductor.plugins.base import Context, Operation, Plugin

if TYPE_CHECKING:
    from conductor.core.models import Document
    from conductor.core.project import Project

logger = logging.getLogger(__name__)


class DefaultTagsPlugin(Plugin):
    """Applies ``Project.default_tags`` to every service image without a tag."""

    @property
    def name(self) -> str:
        return "default_tags"

    def is_enabled_for(self, project: Project) -> bool:
        return project.default_tags is not None

    def transform(self, op: Operation, ctx: Context, doc: Document) -> None:
        tags = ctx.project.default_tags
        if tags is None:
            return
        for svc_name, svc in doc.services.items():
            image = svc.get("image")
            if not isinstance(image, str):
                continue
            tagged = tags.default_for(image)
            if tagged != image:
                logger.debug("%s/%s: %s → %s", ctx.pod.name, svc_name, image, tagged)
                svc["image"] = tagged
