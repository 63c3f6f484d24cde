"""
Default tags — fallback image tags used to pin reproducible exports.

Typically produced by a CI system as a file with one tagged image per
line:

    example/web:1.2.3
    registry.local:5000/example/db:build-42
"""

from __future__ import annotations

from pydantic import BaseModel, Field


def split_image(image: str) -> tuple[str, str | None]:
    """Split ``name[:tag]`` into ``(name, tag)``.

    A colon before the last ``/`` belongs to a registry host:port and is
    not a tag separator.  Digest references (``name@sha256:...``) are
    returned whole, with no tag.
    """
    if "@" in image:
        return image, None
    slash = image.rfind("/")
    colon = image.rfind(":")
    if colon > slash:
        return image[:colon], image[colon + 1:]
    return image, None


class DefaultTags(BaseModel):
    """Mapping of untagged image name → tag to apply."""

    tags: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def parse(cls, text: str) -> DefaultTags:
        """Parse the line-oriented default tags format.

        Raises:
            ValueError: If a non-blank, non-comment line has no tag.
        """
        tags: dict[str, str] = {}
        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            name, tag = split_image(line)
            if not tag:
                raise ValueError(f"line {lineno}: expected image:tag, got {line!r}")
            tags[name] = tag
        return cls(tags=tags)

    def __len__(self) -> int:
        return len(self.tags)

    def default_for(self, image: str) -> str:
        """Return ``image`` with its default tag applied, if it lacks one."""
        name, tag = split_image(image)
        if tag is not None or "@" in image:
            return image
        default = self.tags.get(name)
        return f"{name}:{default}" if default else image
