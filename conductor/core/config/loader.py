"""
Configuration loader — locates projects and reads auxiliary config files.

A conductor project is any directory with a ``pods/`` subdirectory.
Commands may be run from anywhere inside the project; we walk upward
until we find it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from conductor.core.errors import ConfigError, ProjectIOError

if TYPE_CHECKING:
    from conductor.core.models.default_tags import DefaultTags

logger = logging.getLogger(__name__)

PODS_DIR_NAME = "pods"
SRC_DIR_NAME = "src"
OUTPUT_DIR_NAME = ".conductor"

__all__ = [
    "ConfigError",
    "find_project_dir",
    "load_default_tags",
    "load_yaml_mapping",
]


def find_project_dir(start_dir: Path | None = None) -> Path:
    """Search for a directory containing ``pods/``, walking up.

    Starting inside ``pods/`` itself works too, since its parent is checked
    next.

    Raises:
        ConfigError: If no project directory is found.
    """
    start = (start_dir or Path.cwd()).resolve()
    current = start

    for _ in range(40):  # safety limit
        if (current / PODS_DIR_NAME).is_dir():
            logger.debug("Found project at %s", current)
            return current
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    raise ConfigError(
        f"Could not find a '{PODS_DIR_NAME}' directory in {start} or any parent"
    )


def load_yaml_mapping(path: Path) -> dict:
    """Read a YAML file that must contain a mapping (or nothing at all).

    Raises:
        ProjectIOError: If the file cannot be read.
        ConfigError: If the YAML is invalid or not a mapping.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProjectIOError(path, f"Cannot read ({e})") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_default_tags(path: Path) -> DefaultTags:
    """Load a default-tags file (one ``image:tag`` per line).

    Raises:
        ProjectIOError: If the file cannot be read.
        ConfigError: If a line is not a tagged image reference.
    """
    from conductor.core.models.default_tags import DefaultTags

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProjectIOError(path, f"Cannot read default tags ({e})") from e

    try:
        tags = DefaultTags.parse(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid default tags in {path}: {e}") from e

    logger.info("Loaded %d default tags from %s", len(tags), path)
    return tags
