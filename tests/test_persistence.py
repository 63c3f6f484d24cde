"""
Tests for file persistence — atomic writes and directory swaps.
"""

from pathlib import Path

import pytest

from conductor.core.errors import ProjectIOError
from conductor.core.persistence.files import (
    ensure_parent,
    make_staging_dir,
    remove_tree,
    replace_dir,
    sweep_staging_dirs,
    write_text_atomic,
)


class TestWriteTextAtomic:
    def test_creates_parents(self, tmp_path: Path):
        path = tmp_path / "deep" / "nested" / "file.yml"
        write_text_atomic(path, "a: 1\n")
        assert path.read_text() == "a: 1\n"

    def test_leaves_no_temp_files(self, tmp_path: Path):
        path = tmp_path / "file.yml"
        write_text_atomic(path, "one")
        write_text_atomic(path, "two")
        assert path.read_text() == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["file.yml"]

    def test_parent_is_a_file(self, tmp_path: Path):
        (tmp_path / "blocker").write_text("")
        with pytest.raises(ProjectIOError) as exc_info:
            ensure_parent(tmp_path / "blocker" / "file.yml")
        assert exc_info.value.path == tmp_path / "blocker"


class TestReplaceDir:
    def test_swaps_in_new_tree(self, tmp_path: Path):
        target = tmp_path / "out" / "pods"
        target.mkdir(parents=True)
        (target / "stale.yml").write_text("")

        staging = make_staging_dir(target)
        assert staging.parent == target.parent
        (staging / "fresh.yml").write_text("")
        replace_dir(staging, target)

        assert [p.name for p in target.iterdir()] == ["fresh.yml"]
        assert not staging.exists()

    def test_target_need_not_exist(self, tmp_path: Path):
        target = tmp_path / "out" / "pods"
        staging = make_staging_dir(target)
        replace_dir(staging, target)
        assert target.is_dir()

    def test_remove_tree_missing_is_noop(self, tmp_path: Path):
        remove_tree(tmp_path / "missing")

    def test_swap_leaves_no_backup_behind(self, tmp_path: Path):
        target = tmp_path / "out" / "pods"
        target.mkdir(parents=True)
        staging = make_staging_dir(target)
        replace_dir(staging, target)
        assert [p.name for p in target.parent.iterdir()] == ["pods"]

    def test_sweep_staging_dirs(self, tmp_path: Path):
        target = tmp_path / "out" / "pods"
        target.mkdir(parents=True)
        (target.parent / ".pods-abc123").mkdir()
        (target.parent / ".pods-old-def456" / "nested").mkdir(parents=True)
        (target.parent / "keep.txt").write_text("")

        sweep_staging_dirs(target)

        assert sorted(p.name for p in target.parent.iterdir()) == ["keep.txt", "pods"]

    def test_sweep_without_parent_is_noop(self, tmp_path: Path):
        sweep_staging_dirs(tmp_path / "missing" / "pods")
