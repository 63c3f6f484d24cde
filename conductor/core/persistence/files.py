"""
File persistence — atomic writes and directory swaps for generated pods.

Writes go to a temp file in the destination directory and are renamed
into place, so a crash mid-write never leaves a truncated ``*.yml``.
Whole trees are rendered into a temp sibling directory and swapped in
with ``replace_dir``.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from conductor.core.errors import ProjectIOError

logger = logging.getLogger(__name__)


def ensure_parent(path: Path) -> Path:
    """Create every missing parent directory of ``path`` and return it."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ProjectIOError(path.parent, f"Cannot create directory ({e})") from e
    return path


def write_text_atomic(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via temp-file-then-rename.

    An existing file at ``path`` is replaced.
    """
    ensure_parent(path)
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp, path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ProjectIOError(path, f"Cannot write ({e})") from e
    logger.debug("Wrote %s", path)


def remove_tree(path: Path) -> None:
    """Recursively delete ``path`` if it exists."""
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise ProjectIOError(path, f"Cannot delete ({e})") from e
    logger.debug("Removed %s", path)


def make_staging_dir(target: Path) -> Path:
    """Create an empty temp directory next to ``target`` for a later swap."""
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(dir=target.parent, prefix=f".{target.name}-"))
    except OSError as e:
        raise ProjectIOError(target.parent, f"Cannot create staging directory ({e})") from e


def replace_dir(staging: Path, target: Path) -> None:
    """Move a fully-rendered ``staging`` tree into place at ``target``.

    The old ``target`` is renamed aside first and only deleted once the
    new tree is in place; if the swap fails it is moved back.  Everything
    lives in the same parent, so no rename crosses filesystems.
    """
    backup: Path | None = None
    if target.exists():
        backup = Path(tempfile.mkdtemp(dir=target.parent, prefix=f".{target.name}-old-"))
        try:
            os.replace(target, backup)
        except OSError as e:
            remove_tree(backup)
            raise ProjectIOError(target, f"Cannot move old tree aside ({e})") from e

    try:
        os.replace(staging, target)
    except OSError as e:
        if backup is not None:
            os.replace(backup, target)
        raise ProjectIOError(target, f"Cannot move {staging} into place ({e})") from e

    if backup is not None:
        remove_tree(backup)


def sweep_staging_dirs(target: Path) -> None:
    """Delete staging and backup trees left next to ``target`` by a killed run."""
    if not target.parent.is_dir():
        return
    for leftover in target.parent.glob(f".{target.name}-*"):
        if leftover.is_dir():
            logger.info("Removing leftover %s", leftover)
            remove_tree(leftover)
