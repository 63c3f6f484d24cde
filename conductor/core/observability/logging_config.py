"""
Logging configuration for the conductor CLI.

``main.py`` calls ``resolve_level`` and then ``setup_logging`` once per
invocation.  Library code only ever does
``logger = logging.getLogger(__name__)``.

Console level, highest precedence first:
    --debug  >  --verbose  >  --quiet  >  CONDUCTOR_LOG_LEVEL  >  WARNING

``-v`` prints pipeline progress as bare lines; ``--debug`` adds the
emitting module so a failing pod can be traced through the pipeline.
CONDUCTOR_LOG_FILE / CONDUCTOR_LOG_FILE_LEVEL add a timestamped file log.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping

LEVEL_ENV = "CONDUCTOR_LOG_LEVEL"
FILE_ENV = "CONDUCTOR_LOG_FILE"
FILE_LEVEL_ENV = "CONDUCTOR_LOG_FILE_LEVEL"

_CONSOLE_FORMATS = {
    logging.DEBUG: "%(levelname)-7s %(name)s: %(message)s",
    logging.INFO: "%(message)s",
}
_FMT_PROBLEM = "conductor: %(levelname)s: %(message)s"
_FMT_FILE = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level name from the CLI flags and environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return (environ or {}).get(LEVEL_ENV, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Install conductor's console handler, plus a file handler if asked.

    Args:
        level: Console level name.
        log_file: Path to append a detailed log to.
        log_file_level: Level for ``log_file``; defaults to ``level``.
    """
    console_level = _parse_level(level)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(
        logging.Formatter(_CONSOLE_FORMATS.get(console_level, _FMT_PROBLEM))
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FMT_FILE))
        root.addHandler(handler)

    root.setLevel(root_level)


def _parse_level(level: str | None) -> int:
    """Map a level name to its number; anything unrecognised is WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
