"""
Repository model — git repositories referenced as build contexts.

Any service in any pod (base file or override) may build from a git URL.
Those repositories can be checked out under the project's ``src/``
directory, in which case local output builds from the checkout instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from conductor.core.errors import ConfigError

if TYPE_CHECKING:
    from conductor.core.models.pod import Pod

logger = logging.getLogger(__name__)


def is_git_url(context: str) -> bool:
    """Whether a build context is a git repository rather than a local path.

    Follows the rules docker itself applies to ``build:`` values.
    """
    if context.startswith(("git://", "git@", "github.com/")):
        return True
    if context.startswith(("http://", "https://")):
        url = context.split("#", 1)[0]
        return url.endswith(".git") or "#" in context
    return False


def split_git_url(context: str) -> tuple[str, str | None]:
    """Split ``url#ref:subdir`` into ``(url, subdir)``."""
    url, _, fragment = context.partition("#")
    _, _, subdir = fragment.partition(":")
    return url, subdir or None


class Repo(BaseModel):
    """A single git repository used as a build context."""

    model_config = ConfigDict(frozen=True)

    url: str
    alias: str

    @classmethod
    def from_url(cls, context: str) -> Repo:
        url, _ = split_git_url(context)
        tail = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
        alias = tail[:-4] if tail.endswith(".git") else tail
        if not alias:
            raise ConfigError(f"Cannot derive a repository name from {context!r}")
        return cls(url=url, alias=alias)

    def path(self, src_dir: Path) -> Path:
        """Where this repository is (or would be) checked out."""
        return src_dir / self.alias

    def is_cloned(self, src_dir: Path) -> bool:
        return self.path(src_dir).is_dir()


class Repos:
    """All git repositories referenced by a project's pods, keyed by alias."""

    def __init__(self, repos: Iterable[Repo] = ()):
        self._repos: dict[str, Repo] = {}
        for repo in repos:
            existing = self._repos.get(repo.alias)
            if existing is not None and existing.url != repo.url:
                raise ConfigError(
                    f"Repositories {existing.url} and {repo.url} "
                    f"would both be checked out as '{repo.alias}'"
                )
            self._repos[repo.alias] = repo

    @classmethod
    def from_pods(cls, pods: Iterable[Pod]) -> Repos:
        """Collect every git build context used by ``pods``."""
        repos: list[Repo] = []
        for pod in pods:
            for context in pod.build_contexts():
                if is_git_url(context):
                    repos.append(Repo.from_url(context))
        result = cls(repos)
        logger.debug("Found %d repositories", len(result))
        return result

    def __iter__(self) -> Iterator[Repo]:
        return iter(sorted(self._repos.values(), key=lambda r: r.alias))

    def __len__(self) -> int:
        return len(self._repos)

    def get(self, alias: str) -> Repo | None:
        return self._repos.get(alias)

    def find_by_url(self, context: str) -> Repo | None:
        """Look up the repo for a build context, ignoring any ``#fragment``."""
        url, _ = split_git_url(context)
        for repo in self._repos.values():
            if repo.url == url:
                return repo
        return None
