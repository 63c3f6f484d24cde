"""
Project — a directory containing a ``pods/`` subdirectory.

The project is the aggregate root: it discovers pods and overrides,
owns the plugin manager, and drives the output/export pipeline.

Layout read:

    <root>/pods/<pod>.yml
    <root>/pods/overrides/<override>/<pod>.yml

Layout written by ``output``:

    <output_dir>/pods/<pod>.yml

Layout written by ``export``:

    <dest>/<pod>.yml
    <dest>/tasks/<task pod>.yml
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from conductor.core.config.loader import (
    OUTPUT_DIR_NAME,
    PODS_DIR_NAME,
    SRC_DIR_NAME,
    find_project_dir,
)
from conductor.core.errors import ConfigError, DestinationExistsError, ProjectIOError
from conductor.core.models import DefaultTags, Override, Pod, PodType, Repos
from conductor.core.persistence.files import (
    ensure_parent,
    make_staging_dir,
    remove_tree,
    replace_dir,
    sweep_staging_dirs,
)
from conductor.plugins import Context, Manager, Operation

logger = logging.getLogger(__name__)


def _list_dir(path: Path) -> list[Path]:
    """Entries directly under ``path``, sorted by name."""
    try:
        return sorted(path.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise ProjectIOError(path, f"Cannot list directory ({e})") from e


def _reject_duplicates(kind: str, names: list[str]) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ConfigError(f"Duplicate {kind} name: {name}")
        seen.add(name)


class Project:
    """A conductor project: pods, overrides, and where to put the results."""

    def __init__(
        self,
        name: str,
        root_dir: Path,
        src_dir: Path,
        output_dir: Path,
        pods: list[Pod],
        overrides: list[Override],
        repos: Repos,
    ):
        # Use ``from_dirs``; this only assembles the phase-1 value.
        self._name = name
        self._root_dir = root_dir
        self._src_dir = src_dir
        self._output_dir = output_dir
        self._pods = tuple(pods)
        self._overrides = tuple(overrides)
        self._repos = repos
        self._default_tags: DefaultTags | None = None
        self._plugins: Manager | None = None

    # ── Construction ────────────────────────────────────────────

    @classmethod
    def from_dirs(cls, root_dir: Path, src_dir: Path, output_dir: Path) -> Project:
        """Create a project, specifying every directory explicitly.

        The plugin manager needs a fully-populated project to initialize
        itself, so it is created after the rest of the project and then
        attached.

        Raises:
            ProjectIOError: If ``pods/`` or ``pods/overrides/`` can't be listed.
            ConfigError: If the project can't be named or a pod is invalid.
        """
        root_dir = Path(root_dir)
        overrides = cls.find_overrides(root_dir)
        pods = cls.find_pods(root_dir, overrides)
        repos = Repos.from_pods(pods)

        name = root_dir.resolve().name
        if not name:
            raise ConfigError(f"Can't find directory name for {root_dir}")

        project = cls(
            name=name,
            root_dir=root_dir,
            src_dir=Path(src_dir),
            output_dir=Path(output_dir),
            pods=pods,
            overrides=overrides,
            repos=repos,
        )
        project._plugins = Manager(project)

        logger.info(
            "Loaded project '%s' with %d pods and %d overrides",
            project.name,
            len(pods),
            len(overrides),
        )
        return project

    @classmethod
    def from_current_dir(cls, start_dir: Path | None = None) -> Project:
        """Create a project rooted at the nearest directory with ``pods/``.

        Cloned repositories go in ``<root>/src``; output goes in
        ``<root>/.conductor``.
        """
        root_dir = find_project_dir(start_dir)
        return cls.from_dirs(root_dir, root_dir / SRC_DIR_NAME, root_dir / OUTPUT_DIR_NAME)

    @staticmethod
    def find_overrides(root_dir: Path) -> list[Override]:
        """Every directory directly under ``pods/overrides``."""
        overrides_dir = root_dir / PODS_DIR_NAME / "overrides"
        names = [p.name for p in _list_dir(overrides_dir) if p.is_dir()]
        _reject_duplicates("override", names)
        return [Override(name=name) for name in names]

    @staticmethod
    def find_pods(root_dir: Path, overrides: list[Override]) -> list[Pod]:
        """Every ``*.yml`` file directly under ``pods/``."""
        pods_dir = root_dir / PODS_DIR_NAME
        paths = [p for p in _list_dir(pods_dir) if p.suffix == ".yml" and p.is_file()]
        _reject_duplicates("pod", [p.stem for p in paths])
        return [Pod(pods_dir, path.stem, overrides) for path in paths]

    # ── Accessors ───────────────────────────────────────────────

    @property
    def name(self) -> str:
        """Defaults to the name of the project directory."""
        return self._name

    def set_name(self, name: str) -> Project:
        """Override the project name.  Do this before ``output``/``export``."""
        self._name = name
        return self

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    @property
    def src_dir(self) -> Path:
        """Where cloned git repositories live."""
        return self._src_dir

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def pods_dir(self) -> Path:
        """The directory relative to which all compose paths are interpreted."""
        return self._root_dir / PODS_DIR_NAME

    @property
    def output_pods_dir(self) -> Path:
        return self._output_dir / PODS_DIR_NAME

    def pods(self) -> Iterator[Pod]:
        return iter(self._pods)

    def pod(self, name: str) -> Pod | None:
        for pod in self._pods:
            if pod.name == name:
                return pod
        return None

    def overrides(self) -> Iterator[Override]:
        return iter(self._overrides)

    def ovr(self, name: str) -> Override | None:
        """Look up an override by name (``override`` reads too much like a keyword)."""
        for ovr in self._overrides:
            if ovr.name == name:
                return ovr
        return None

    @property
    def repos(self) -> Repos:
        return self._repos

    @property
    def default_tags(self) -> DefaultTags | None:
        return self._default_tags

    def set_default_tags(self, tags: DefaultTags) -> Project:
        self._default_tags = tags
        return self

    @property
    def plugins(self) -> Manager:
        assert self._plugins is not None, "plugins should always be set at Project init"
        return self._plugins

    def to_dict(self) -> dict:
        """Summary for use in generator templates."""
        return {"name": self.name}

    def __repr__(self) -> str:
        return f"<Project name={self._name!r} root={str(self._root_dir)!r}>"

    # ── Output ──────────────────────────────────────────────────

    def pod_rel_path(self, pod: Pod, ovr: Override, op: Operation) -> Path:
        """Where ``pod`` goes, relative to the output or export directory."""
        pod_type = pod.pod_type(ovr)
        file_name = f"{pod.name}.yml"
        if op == Operation.EXPORT and pod_type == PodType.TASK:
            return Path("tasks") / file_name
        return Path(file_name)

    def _output_helper(self, ovr: Override, op: Operation, dest: Path) -> None:
        """Merge, flatten, transform and write every pod into ``dest``.

        Stops at the first failure; pods already written stay on disk.
        """
        for pod in self._pods:
            out_path = ensure_parent(dest / self.pod_rel_path(pod, ovr, op))
            logger.debug("Outputting %s", out_path)

            doc = pod.merged_file(ovr)
            doc.make_standalone(self.pods_dir)
            if op == Operation.OUTPUT:
                doc.update_for_output(self)
            else:
                doc.update_for_export(self)
            self.plugins.transform(op, Context(self, ovr, pod), doc)
            doc.write_to_path(out_path)

    def output(self, ovr: Override) -> None:
        """Replace ``output_dir/pods`` with freshly processed pods.

        The new tree is built next to the old one and swapped in only when
        every pod has been written, so a failure leaves the previous output
        untouched.  Staging trees left by an interrupted run are removed
        first.
        """
        out_pods = self.output_pods_dir
        sweep_staging_dirs(out_pods)
        staging = make_staging_dir(out_pods)
        try:
            self._output_helper(ovr, Operation.OUTPUT, staging)
            replace_dir(staging, out_pods)
        finally:
            remove_tree(staging)
        logger.info("Output %d pods for '%s' to %s", len(self._pods), ovr.name, out_pods)

    def export(self, ovr: Override, export_dir: Path) -> None:
        """Export standalone pods, with ``ovr`` applied, to a new directory.

        Raises:
            DestinationExistsError: If ``export_dir`` already exists.
        """
        export_dir = Path(export_dir)
        if export_dir.exists():
            raise DestinationExistsError(export_dir)

        if self.default_tags is None:
            logger.warning("Exporting project without --default-tags")

        self._output_helper(ovr, Operation.EXPORT, export_dir)
        logger.info("Exported %d pods for '%s' to %s", len(self._pods), ovr.name, export_dir)
