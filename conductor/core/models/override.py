"""
Override model — a named environment overlay (development, production, ...).

Each override is a directory under ``pods/overrides/``.  What it contains
is owned by the pods that read from it.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Override(BaseModel):
    """An environment overlay, identified solely by its name."""

    model_config = ConfigDict(frozen=True)

    name: str

    def __str__(self) -> str:
        return self.name
