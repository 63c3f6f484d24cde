"""
Document model — one merged docker-compose file on its way to disk.

A document starts life as a pod's base file merged with one override.
The pipeline then threads it through a fixed sequence of in-place
rewrites before writing it out:

    merge → make_standalone → update_for_output | update_for_export
          → plugin transforms → write_to_path

Only one step holds the document at a time.
"""

from __future__ import annotations

import copy
import logging
import os
import re
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from conductor.core.errors import CollaboratorError, ConfigError, ProjectIOError
from conductor.core.models.repos import is_git_url, split_git_url
from conductor.core.persistence.files import write_text_atomic

if TYPE_CHECKING:
    from conductor.core.project import Project

logger = logging.getLogger(__name__)

# Compose extension field holding conductor's own per-pod settings.
META_KEY = "x-conductor"

# $$ | $VAR | ${VAR} | ${VAR:-default} | ${VAR-default} | ${VAR:?error} | ${VAR?error}
_INTERPOLATION = re.compile(
    r"\$(?:(?P<escaped>\$)"
    r"|\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?:(?P<sep>:?[-?])(?P<arg>[^}]*))?\}"
    r"|(?P<named>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<invalid>\{[^}]*\}?))"
)


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overlay`` onto ``base``, returning a new dict.

    Mappings merge key by key; everything else (lists included) in
    ``overlay`` replaces the value in ``base``.
    """
    merged = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_mappings(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _absolute(base_dir: Path, value: str) -> str:
    """Anchor a relative local path at ``base_dir``; leave others untouched."""
    if os.path.isabs(value) or value.startswith("~"):
        return value
    return os.path.normpath(str(base_dir / value))


def _is_host_path(source: str) -> bool:
    return source.startswith((".", "/", "~"))


def _read_env_file(path: Path) -> dict[str, str]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProjectIOError(path, f"Cannot read env_file ({e})") from e

    env: dict[str, str] = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        env[key.strip()] = value if sep else ""
    return env


def _load_env_file(base_dir: Path, entry: Any, service: str) -> dict[str, str]:
    """Read one ``env_file`` entry, in either short (``str``) or long form.

    The long form is ``{path: ..., required: bool}``; a missing optional
    file contributes nothing.
    """
    if isinstance(entry, str):
        return _read_env_file(Path(_absolute(base_dir, entry)))
    if isinstance(entry, Mapping) and isinstance(entry.get("path"), str):
        path = Path(_absolute(base_dir, entry["path"]))
        if not entry.get("required", True) and not path.exists():
            logger.debug("Skipping optional env_file %s for %s", path, service)
            return {}
        return _read_env_file(path)
    raise CollaboratorError(f"Service '{service}' has an unreadable 'env_file' entry: {entry!r}")


def _environment_as_dict(value: Any, service: str) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, list):
        env: dict[str, Any] = {}
        for item in value:
            key, sep, val = str(item).partition("=")
            env[key] = val if sep else None
        return env
    raise CollaboratorError(f"Service '{service}' has an unreadable 'environment' section")


def interpolate(value: str, environ: Mapping[str, str]) -> str:
    """Replace compose-style ``$VAR`` references in ``value`` with literals.

    Raises:
        CollaboratorError: If a variable without a default is unset, a
            ``${VAR:?err}`` / ``${VAR?err}`` check fails, or a ``${...}``
            reference is malformed.
    """

    def _replace(match: re.Match[str]) -> str:
        if match.group("escaped"):
            return "$"
        if match.group("invalid") is not None:
            raise CollaboratorError(f"Invalid interpolation format: ${match.group('invalid')}")
        name = match.group("braced") or match.group("named")
        sep = match.group("sep")
        arg = match.group("arg")
        current = environ.get(name)
        # A leading ':' also treats the empty string as unset.
        missing = not current if sep and sep.startswith(":") else current is None
        if sep in (":-", "-") and missing:
            return arg
        if sep in (":?", "?") and missing:
            raise CollaboratorError(arg or f"Environment variable {name} is required")
        if current is None:
            raise CollaboratorError(f"Environment variable {name} is not set")
        return current

    return _INTERPOLATION.sub(_replace, value)


def _map_strings(value: Any, fn: Callable[[str], str]) -> Any:
    if isinstance(value, str):
        return fn(value)
    if isinstance(value, dict):
        return {k: _map_strings(v, fn) for k, v in value.items()}
    if isinstance(value, list):
        return [_map_strings(v, fn) for v in value]
    return value


class Document:
    """A merged compose file plus conductor's metadata for it."""

    def __init__(self, data: Mapping[str, Any] | None = None):
        data = dict(data or {})
        meta = data.pop(META_KEY, None) or {}
        if not isinstance(meta, Mapping):
            raise ConfigError(f"'{META_KEY}' must be a mapping")
        self._data: dict[str, Any] = data
        self._meta: dict[str, Any] = dict(meta)

    def __repr__(self) -> str:
        return f"<Document services={list(self.services)!r}>"

    @property
    def data(self) -> dict[str, Any]:
        """The compose mapping that will be written out."""
        return self._data

    @property
    def metadata(self) -> dict[str, Any]:
        """Settings from the ``x-conductor`` extension field."""
        return self._meta

    @property
    def services(self) -> dict[str, dict[str, Any]]:
        services = self._data.get("services")
        if services is None:
            return {}
        if not isinstance(services, dict):
            raise CollaboratorError("'services' must be a mapping")
        return {name: svc for name, svc in services.items() if isinstance(svc, dict)}

    # ── Standalone ──────────────────────────────────────────────

    def make_standalone(self, pods_dir: Path) -> None:
        """Remove this file's dependence on the project directory layout.

        Relative local paths become absolute (anchored at ``pods_dir``) and
        ``env_file`` contents are inlined into ``environment``.
        """
        base_dir = pods_dir.resolve()
        for name, svc in self.services.items():
            build = svc.get("build")
            if isinstance(build, str) and not is_git_url(build):
                svc["build"] = _absolute(base_dir, build)
            elif isinstance(build, dict):
                context = build.get("context")
                if isinstance(context, str) and not is_git_url(context):
                    build["context"] = _absolute(base_dir, context)

            if "env_file" in svc:
                env_files = svc.pop("env_file")
                if isinstance(env_files, str):
                    env_files = [env_files]
                env: dict[str, Any] = {}
                for env_file in env_files or []:
                    env.update(_load_env_file(base_dir, env_file, name))
                for key, value in _environment_as_dict(svc.get("environment"), name).items():
                    # A bare ``KEY`` only passes through what is already set.
                    if value is None and key in env:
                        continue
                    env[key] = value
                svc["environment"] = env

            volumes = svc.get("volumes")
            if isinstance(volumes, list):
                svc["volumes"] = [self._standalone_volume(base_dir, v) for v in volumes]

    @staticmethod
    def _standalone_volume(base_dir: Path, volume: Any) -> Any:
        if isinstance(volume, str):
            source, sep, rest = volume.partition(":")
            if sep and _is_host_path(source):
                return f"{_absolute(base_dir, source)}:{rest}"
            return volume
        if isinstance(volume, dict) and volume.get("type") == "bind":
            source = volume.get("source")
            if isinstance(source, str):
                volume["source"] = _absolute(base_dir, source)
        return volume

    # ── Mode updates ────────────────────────────────────────────

    def update_for_output(self, project: Project) -> None:
        """Point git build contexts at local checkouts, where they exist."""
        for name, svc in self.services.items():
            build = svc.get("build")
            context = build.get("context") if isinstance(build, dict) else build
            if not isinstance(context, str) or not is_git_url(context):
                continue
            repo = project.repos.find_by_url(context)
            if repo is None or not repo.is_cloned(project.src_dir):
                continue
            _, subdir = split_git_url(context)
            local = repo.path(project.src_dir).resolve()
            if subdir:
                local = local / subdir
            logger.debug("Service %s builds from local checkout %s", name, local)
            if isinstance(build, dict):
                build["context"] = str(local)
            else:
                svc["build"] = str(local)

    def update_for_export(
        self,
        project: Project,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Resolve environment interpolation and drop local-only build info.

        Args:
            project: The project being exported.
            environ: Variables to interpolate from (default: ``os.environ``).
        """
        env = os.environ if environ is None else environ
        self._data = _map_strings(self._data, lambda s: interpolate(s, env))

        for name, svc in self.services.items():
            build = svc.get("build")
            context = build.get("context") if isinstance(build, dict) else build
            if "image" in svc and isinstance(context, str) and not is_git_url(context):
                logger.debug("Dropping local build context from %s in %s", name, project.name)
                del svc["build"]

    # ── Output ──────────────────────────────────────────────────

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            self._data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    def write_to_path(self, path: Path) -> None:
        """Serialize to ``path``, replacing any existing file."""
        write_text_atomic(path, self.to_yaml())
