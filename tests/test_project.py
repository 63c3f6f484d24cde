"""
Tests for Project — discovery, construction, and the output/export pipeline.
"""

import logging
from pathlib import Path

import pytest
import yaml

from conductor.core.errors import (
    CollaboratorError,
    ConfigError,
    DestinationExistsError,
    PluginError,
    ProjectIOError,
)
from conductor.core.models import DefaultTags, PodType
from conductor.core.project import Project
from conductor.plugins import Operation, Plugin


def _load(path: Path) -> dict:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def _tree(root: Path) -> list[str]:
    return sorted(str(p.relative_to(root)) for p in root.rglob("*") if p.is_file())


class FailOnPod(Plugin):
    """Plugin that blows up when it reaches a given pod."""

    def __init__(self, pod_name: str):
        self._pod_name = pod_name
        self.seen: list[str] = []

    @property
    def name(self) -> str:
        return "fail_on_pod"

    def transform(self, op, ctx, doc):
        self.seen.append(ctx.pod.name)
        if ctx.pod.name == self._pod_name:
            raise RuntimeError(f"refusing {ctx.pod.name}")


# ── Construction ─────────────────────────────────────────────────────


class TestConstruction:
    def test_from_dirs_records_directories(self, tmp_path: Path, example_root):
        root = example_root("hello")
        proj = Project.from_dirs(root, tmp_path / "out" / "src", tmp_path / "out")
        assert proj.root_dir == root
        assert proj.src_dir == tmp_path / "out" / "src"
        assert proj.output_dir == tmp_path / "out"
        assert proj.pods_dir == root / "pods"
        assert proj.output_pods_dir == tmp_path / "out" / "pods"

    def test_from_current_dir_uses_conventional_dirs(self, example_root, monkeypatch):
        root = example_root("hello")
        monkeypatch.chdir(root / "pods")
        proj = Project.from_current_dir()
        assert proj.root_dir == root.resolve()
        assert proj.src_dir == root.resolve() / "src"
        assert proj.output_dir == root.resolve() / ".conductor"

    def test_from_current_dir_outside_project_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="pods"):
            Project.from_current_dir(tmp_path)

    def test_plugins_are_ready_after_construction(self, make_project):
        proj = make_project("hello")
        assert proj.plugins.list_plugins() == ["default_tags"]

    def test_missing_overrides_dir_is_an_io_error(self, tmp_path: Path):
        (tmp_path / "bare" / "pods").mkdir(parents=True)
        with pytest.raises(ProjectIOError) as exc_info:
            Project.from_dirs(tmp_path / "bare", tmp_path / "src", tmp_path / "out")
        assert exc_info.value.path == tmp_path / "bare" / "pods" / "overrides"

    def test_invalid_pod_yaml_raises(self, example_root, tmp_path: Path):
        root = example_root("hello")
        (root / "pods" / "broken.yml").write_text(":: invalid: yaml: [")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            Project.from_dirs(root, tmp_path / "src", tmp_path / "out")

    def test_repos_are_collected_from_pods(self, make_project):
        proj = make_project("rails_hello")
        aliases = [repo.alias for repo in proj.repos]
        assert aliases == ["rails_hello"]


# ── Naming ───────────────────────────────────────────────────────────


class TestNaming:
    def test_name_defaults_to_project_dir_but_can_be_overridden(self, make_project):
        proj = make_project("hello")
        assert proj.name == "hello"
        proj.set_name("hi")
        assert proj.name == "hi"

    def test_to_dict_reflects_name(self, make_project):
        proj = make_project("hello")
        assert proj.to_dict() == {"name": "hello"}
        proj.set_name("renamed")
        assert proj.to_dict() == {"name": "renamed"}


# ── Discovery ────────────────────────────────────────────────────────


class TestDiscovery:
    def test_pods_are_loaded(self, make_project):
        proj = make_project("hello")
        assert [pod.name for pod in proj.pods()] == ["frontend"]

    def test_overrides_are_loaded(self, make_project):
        proj = make_project("hello")
        assert [o.name for o in proj.overrides()] == ["development", "production", "test"]

    def test_pods_are_sorted_and_non_recursive(self, make_project):
        proj = make_project("rails_hello")
        assert [pod.name for pod in proj.pods()] == ["db", "frontend", "migrate"]

    def test_non_yml_and_nested_files_are_ignored(self, example_root, tmp_path: Path):
        root = example_root("hello")
        (root / "pods" / "notes.txt").write_text("not a pod")
        (root / "pods" / "nested").mkdir()
        (root / "pods" / "nested" / "inner.yml").write_text("services: {}\n")
        (root / "pods" / "overrides" / "stray.yml").write_text("services: {}\n")
        proj = Project.from_dirs(root, tmp_path / "src", tmp_path / "out")
        assert [pod.name for pod in proj.pods()] == ["frontend"]
        assert "stray" not in [o.name for o in proj.overrides()]

    def test_lookup_by_name(self, make_project):
        proj = make_project("rails_hello")
        assert proj.pod("db").name == "db"
        assert proj.pod("nope") is None
        assert proj.ovr("production").name == "production"
        assert proj.ovr("staging") is None


# ── Pipeline ─────────────────────────────────────────────────────────


class TestPodRouting:
    def test_task_pods_go_under_tasks_only_on_export(self, make_project):
        proj = make_project("rails_hello")
        ovr = proj.ovr("development")
        migrate = proj.pod("migrate")
        assert migrate.pod_type(ovr) == PodType.TASK
        assert proj.pod_rel_path(migrate, ovr, Operation.EXPORT) == Path("tasks/migrate.yml")
        assert proj.pod_rel_path(migrate, ovr, Operation.OUTPUT) == Path("migrate.yml")

    def test_service_pods_are_flat_in_both_modes(self, make_project):
        proj = make_project("rails_hello")
        ovr = proj.ovr("development")
        db = proj.pod("db")
        assert db.pod_type(ovr) == PodType.SERVICE
        for op in Operation:
            assert proj.pod_rel_path(db, ovr, op) == Path("db.yml")


class TestOutput:
    def test_output_creates_a_directory_of_flat_yml_files(self, make_project):
        proj = make_project("rails_hello")
        proj.output(proj.ovr("development"))
        assert _tree(proj.output_pods_dir) == ["db.yml", "frontend.yml", "migrate.yml"]

    def test_output_is_idempotent(self, make_project):
        proj = make_project("rails_hello")
        ovr = proj.ovr("development")
        proj.output(ovr)
        first = {p: (proj.output_pods_dir / p).read_text() for p in _tree(proj.output_pods_dir)}
        proj.output(ovr)
        second = {p: (proj.output_pods_dir / p).read_text() for p in _tree(proj.output_pods_dir)}
        assert first == second

    def test_output_removes_stale_files(self, make_project):
        proj = make_project("rails_hello")
        stale = proj.output_pods_dir / "old_pod.yml"
        stale.parent.mkdir(parents=True)
        stale.write_text("services: {}\n")
        proj.output(proj.ovr("development"))
        assert not stale.exists()
        assert _tree(proj.output_pods_dir) == ["db.yml", "frontend.yml", "migrate.yml"]

    def test_output_applies_override(self, make_project):
        proj = make_project("rails_hello")
        proj.output(proj.ovr("production"))
        web = _load(proj.output_pods_dir / "frontend.yml")["services"]["web"]
        assert web["environment"]["RAILS_ENV"] == "production"
        assert web["ports"] == ["80:3000"]

    def test_output_is_standalone(self, make_project):
        proj = make_project("rails_hello")
        proj.output(proj.ovr("development"))
        web = _load(proj.output_pods_dir / "frontend.yml")["services"]["web"]
        pods_dir = proj.pods_dir.resolve()
        assert "env_file" not in web
        assert web["environment"]["DATABASE_URL"] == "postgres://postgres@db:5432/rails_hello"
        assert web["volumes"] == [f"{pods_dir / 'data' / 'uploads'}:/app/public/uploads"]

    def test_output_keeps_interpolation(self, make_project):
        proj = make_project("rails_hello")
        proj.output(proj.ovr("test"))
        web = _load(proj.output_pods_dir / "frontend.yml")["services"]["web"]
        assert web["environment"]["RAILS_ENV"] == "${RAILS_ENV:-development}"

    def test_output_builds_from_local_checkout(self, make_project):
        proj = make_project("rails_hello")
        checkout = proj.src_dir / "rails_hello"
        checkout.mkdir(parents=True)
        proj.output(proj.ovr("development"))
        web = _load(proj.output_pods_dir / "frontend.yml")["services"]["web"]
        assert web["build"] == str(checkout.resolve())

    def test_output_strips_conductor_metadata(self, make_project):
        proj = make_project("rails_hello")
        proj.output(proj.ovr("development"))
        assert "x-conductor" not in _load(proj.output_pods_dir / "migrate.yml")

    def test_failed_output_leaves_previous_tree(self, make_project):
        proj = make_project("rails_hello")
        ovr = proj.ovr("development")
        proj.output(ovr)
        before = _tree(proj.output_pods_dir)

        proj.plugins.register(FailOnPod("frontend"))
        with pytest.raises(PluginError, match="refusing frontend"):
            proj.output(ovr)

        assert _tree(proj.output_pods_dir) == before
        assert [p.name for p in proj.output_dir.iterdir()] == ["pods"]

    def test_output_rejects_unknown_pod_type(self, example_root, tmp_path: Path):
        root = example_root("hello")
        (root / "pods" / "nightly.yml").write_text(
            "x-conductor:\n  type: cronjob\nservices:\n  nightly:\n    image: busybox\n"
        )
        proj = Project.from_dirs(root, tmp_path / "src", tmp_path / "out")
        with pytest.raises(ConfigError, match="cronjob"):
            proj.output(proj.ovr("development"))
        assert not proj.output_pods_dir.exists()

    def test_failed_swap_restores_previous_tree(self, make_project, monkeypatch):
        from conductor.core.persistence import files

        proj = make_project("rails_hello")
        ovr = proj.ovr("development")
        proj.output(ovr)
        before = _tree(proj.output_pods_dir)

        real_replace = files.os.replace

        def failing_replace(src, dst):
            name = Path(src).name
            if name.startswith(".pods-") and "-old-" not in name:
                raise OSError("disk on fire")
            real_replace(src, dst)

        monkeypatch.setattr(files.os, "replace", failing_replace)
        with pytest.raises(ProjectIOError, match="disk on fire"):
            proj.output(ovr)

        assert _tree(proj.output_pods_dir) == before
        assert [p.name for p in proj.output_dir.iterdir()] == ["pods"]

    def test_output_sweeps_leftover_staging_dirs(self, make_project):
        proj = make_project("hello")
        leftover = proj.output_dir / ".pods-leftover"
        leftover.mkdir(parents=True)
        (leftover / "frontend.yml").write_text("")
        proj.output(proj.ovr("development"))
        assert [p.name for p in proj.output_dir.iterdir()] == ["pods"]


class TestExport:
    def test_export_creates_a_directory_of_flat_yml_files(self, make_project, tmp_path: Path):
        proj = make_project("rails_hello")
        export_dir = tmp_path / "hello_export"
        proj.export(proj.ovr("development"), export_dir)
        assert _tree(export_dir) == ["db.yml", "frontend.yml", "tasks/migrate.yml"]

    def test_export_refuses_existing_directory(self, make_project, tmp_path: Path):
        proj = make_project("rails_hello")
        export_dir = tmp_path / "exists"
        export_dir.mkdir()
        with pytest.raises(DestinationExistsError):
            proj.export(proj.ovr("development"), export_dir)
        assert list(export_dir.iterdir()) == []

    def test_export_warns_without_default_tags(self, make_project, tmp_path: Path, caplog):
        proj = make_project("rails_hello")
        with caplog.at_level(logging.WARNING, logger="conductor"):
            proj.export(proj.ovr("development"), tmp_path / "export")
        assert "without --default-tags" in caplog.text

    def test_export_with_default_tags_is_quiet_and_pinned(
        self, make_project, tmp_path: Path, caplog
    ):
        proj = make_project("rails_hello")
        proj.set_default_tags(DefaultTags(tags={"postgres": "9.6", "example/rails_hello": "v1"}))
        with caplog.at_level(logging.WARNING, logger="conductor"):
            proj.export(proj.ovr("development"), tmp_path / "export")
        assert "without --default-tags" not in caplog.text
        assert _load(tmp_path / "export" / "db.yml")["services"]["db"]["image"] == "postgres:9.6"
        rake = _load(tmp_path / "export" / "tasks" / "migrate.yml")["services"]["rake"]
        assert rake["image"] == "example/rails_hello:v1"

    def test_export_resolves_interpolation(self, make_project, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("RAILS_ENV", "staging")
        proj = make_project("rails_hello")
        proj.export(proj.ovr("test"), tmp_path / "export")
        web = _load(tmp_path / "export" / "frontend.yml")["services"]["web"]
        assert web["environment"]["RAILS_ENV"] == "staging"

    def test_export_failure_keeps_earlier_pods(self, make_project, tmp_path: Path):
        proj = make_project("rails_hello")
        failing = FailOnPod("frontend")
        proj.plugins.register(failing)
        export_dir = tmp_path / "export"
        with pytest.raises(PluginError):
            proj.export(proj.ovr("development"), export_dir)
        assert _tree(export_dir) == ["db.yml"]
        assert failing.seen == ["db", "frontend"]

    def test_unknown_env_var_aborts_export(self, example_root, tmp_path: Path, monkeypatch):
        monkeypatch.delenv("CONDUCTOR_TEST_UNSET", raising=False)
        root = example_root("hello")
        (root / "pods" / "worker.yml").write_text(
            "services:\n  worker:\n    image: \"busybox\"\n"
            "    command: \"echo $CONDUCTOR_TEST_UNSET\"\n"
        )
        proj = Project.from_dirs(root, tmp_path / "src", tmp_path / "out")
        with pytest.raises(CollaboratorError, match="CONDUCTOR_TEST_UNSET"):
            proj.export(proj.ovr("development"), tmp_path / "export")
        assert _tree(tmp_path / "export") == ["frontend.yml"]
