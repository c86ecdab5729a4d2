"""Tests for FileState and the file primitives (anchorforge.patcher.filestate).

Covers:
- Reading, applying, diffing and writing a file
- All-or-nothing batches when a directive fails
- Byte-for-byte preservation (CRLF line endings, untouched files)
- create_file overwrite semantics and FileExistsError
- remove_file with and without missing_ok
- Atomic writes keep the file mode and leave no temp files behind
"""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from anchorforge.patcher.errors import AnchorNotFoundError
from anchorforge.patcher.filestate import FileState, create_file, remove_file
from anchorforge.patcher.models import AppendText, InsertAfter, InsertBefore, RegexReplace

pytestmark = pytest.mark.unit


@pytest.fixture
def routes_file(tmp_path: Path) -> Path:
    path = tmp_path / "config" / "routes.rb"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"Rails.application.routes.draw do\nend\n")
    return path


# ---------------------------------------------------------------------------
# FileState
# ---------------------------------------------------------------------------


class TestFileState:
    def test_read(self, routes_file: Path):
        state = FileState.read(routes_file)
        assert state.path == routes_file
        assert state.content == "Rails.application.routes.draw do\nend\n"
        assert state.changed is False

    def test_read_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            FileState.read(tmp_path / "missing.rb")

    def test_apply_reports_change(self, routes_file: Path):
        state = FileState.read(routes_file)
        assert state.apply(InsertAfter(anchor="draw do\n", payload="  root to: 'home#index'\n"))
        assert state.changed
        assert "  root to: 'home#index'\n" in state.content

    def test_apply_noop_reports_no_change(self, routes_file: Path):
        state = FileState.read(routes_file)
        assert state.apply(RegexReplace(pattern="nomatch", replacement="x")) is False
        assert state.changed is False

    def test_apply_attaches_path_to_error(self, routes_file: Path):
        state = FileState.read(routes_file)
        with pytest.raises(AnchorNotFoundError) as exc_info:
            state.apply(InsertBefore(anchor="missing", payload="x"))
        assert exc_info.value.path == routes_file
        assert str(routes_file) in str(exc_info.value)
        assert state.changed is False

    def test_apply_all_in_order(self, routes_file: Path):
        state = FileState.read(routes_file)
        applied = state.apply_all([
            InsertBefore(anchor="Rails.application", payload="require 'sidekiq/web'\n\n"),
            InsertAfter(anchor="draw do\n", payload="  root to: 'home#index'\n"),
            RegexReplace(pattern="nomatch", replacement="x"),
        ])
        assert applied == 2
        assert state.content == (
            "require 'sidekiq/web'\n\n"
            "Rails.application.routes.draw do\n"
            "  root to: 'home#index'\n"
            "end\n"
        )

    def test_apply_all_is_all_or_nothing(self, routes_file: Path):
        state = FileState.read(routes_file)
        with pytest.raises(AnchorNotFoundError):
            state.apply_all([
                InsertAfter(anchor="draw do\n", payload="  root to: 'home#index'\n"),
                InsertBefore(anchor="missing anchor", payload="x"),
            ])
        assert state.content == state.original
        assert state.changed is False

    def test_failed_batch_leaves_disk_untouched(self, routes_file: Path):
        before = routes_file.read_bytes()
        state = FileState.read(routes_file)
        with pytest.raises(AnchorNotFoundError):
            state.apply_all([
                AppendText(payload="# tail\n"),
                InsertBefore(anchor="missing anchor", payload="x"),
            ])
        assert state.write() is False
        assert routes_file.read_bytes() == before

    def test_write_only_when_changed(self, routes_file: Path):
        mtime = routes_file.stat().st_mtime_ns
        state = FileState.read(routes_file)
        assert state.write() is False
        assert routes_file.stat().st_mtime_ns == mtime

    def test_write_persists_and_resets_baseline(self, routes_file: Path):
        state = FileState.read(routes_file)
        state.apply(AppendText(payload="# tail\n"))
        assert state.write() is True
        assert routes_file.read_text(encoding="utf-8").endswith("end\n# tail\n")
        assert state.changed is False

    def test_write_preserves_crlf(self, tmp_path: Path):
        path = tmp_path / "win.txt"
        path.write_bytes(b"one\r\ntwo\r\n")
        state = FileState.read(path)
        state.apply(InsertAfter(anchor="one\r\n", payload="mid\r\n"))
        state.write()
        assert path.read_bytes() == b"one\r\nmid\r\ntwo\r\n"

    def test_write_preserves_mode(self, tmp_path: Path):
        path = tmp_path / "script.sh"
        path.write_text("#!/bin/sh\necho hi\n", encoding="utf-8")
        path.chmod(0o755)
        state = FileState.read(path)
        state.apply(AppendText(payload="echo bye\n"))
        state.write()
        assert stat.S_IMODE(path.stat().st_mode) == 0o755

    def test_write_leaves_no_temp_files(self, routes_file: Path):
        state = FileState.read(routes_file)
        state.apply(AppendText(payload="# tail\n"))
        state.write()
        assert sorted(p.name for p in routes_file.parent.iterdir()) == ["routes.rb"]

    def test_diff(self, routes_file: Path):
        state = FileState.read(routes_file)
        state.apply(InsertAfter(anchor="draw do\n", payload="  root to: 'home#index'\n"))
        diff = state.diff()
        assert diff.startswith("--- a/")
        assert "+  root to: 'home#index'" in diff

    def test_diff_empty_when_unchanged(self, routes_file: Path):
        assert FileState.read(routes_file).diff() == ""

    def test_diff_against_baseline(self, tmp_path: Path):
        state = FileState(tmp_path / ".overmind.env", "OVERMIND_PORT=3000\n")
        diff = state.diff(against="")
        assert "+OVERMIND_PORT=3000" in diff
        assert "-OVERMIND" not in diff

    def test_reset(self, routes_file: Path):
        state = FileState.read(routes_file)
        state.apply(AppendText(payload="x\n"))
        state.reset()
        assert state.changed is False


# ---------------------------------------------------------------------------
# create_file
# ---------------------------------------------------------------------------


class TestCreateFile:
    def test_creates_with_parents(self, tmp_path: Path):
        target = tmp_path / "app" / "views" / "home" / "index.html.haml"
        create_file(target, "%h1 Home\n")
        assert target.read_text(encoding="utf-8") == "%h1 Home\n"

    def test_empty_contents(self, tmp_path: Path):
        target = tmp_path / ".overmind.env"
        create_file(target, "")
        assert target.exists()
        assert target.read_bytes() == b""

    def test_existing_without_overwrite_raises(self, tmp_path: Path):
        target = tmp_path / "Procfile"
        target.write_bytes(b"web: original\n")
        with pytest.raises(FileExistsError):
            create_file(target, "web: replaced\n", overwrite=False)
        assert target.read_bytes() == b"web: original\n"

    def test_overwrite(self, tmp_path: Path):
        target = tmp_path / "Procfile"
        target.write_text("web: original\n", encoding="utf-8")
        create_file(target, "web: replaced\n", overwrite=True)
        assert target.read_text(encoding="utf-8") == "web: replaced\n"

    def test_overwrite_of_missing_file_creates_it(self, tmp_path: Path):
        target = tmp_path / "Procfile"
        create_file(target, "web: new\n", overwrite=True)
        assert target.read_text(encoding="utf-8") == "web: new\n"

    def test_unencodable_contents_leave_no_file(self, tmp_path: Path):
        target = tmp_path / "Procfile"
        with pytest.raises(UnicodeEncodeError):
            create_file(target, "web: \ud800\n")
        assert not target.exists()


# ---------------------------------------------------------------------------
# remove_file
# ---------------------------------------------------------------------------


class TestRemoveFile:
    def test_removes(self, tmp_path: Path):
        target = tmp_path / "bin" / "dev"
        target.parent.mkdir()
        target.write_text("#!/bin/sh\n", encoding="utf-8")
        assert remove_file(target) is True
        assert not target.exists()

    def test_missing_ok(self, tmp_path: Path):
        assert remove_file(tmp_path / "nope") is False

    def test_missing_not_ok(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            remove_file(tmp_path / "nope", missing_ok=False)
