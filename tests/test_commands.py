"""End-to-end tests for the gp commands."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from groovepush import app
from groovepush.sync.store import MemoryBlobStore


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("GP_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("GP_LOG_LEVEL", raising=False)
    monkeypatch.delenv("GP_STORAGE_ROOT", raising=False)


def _project(tmp_path: Path) -> Path:
    project = tmp_path / "beat"
    (project / "Samples").mkdir(parents=True)
    (project / "beat.als").write_bytes(b"set v1")
    (project / "Samples" / "kick.wav").write_bytes(b"kick")
    return project


def test_push_log_and_checkout(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    store = MemoryBlobStore()

    assert app.run(["push", "-m", "first take"], project_dir=project, store=store) == 0
    out = capsys.readouterr().out
    assert "Project: beat" in out
    assert "New blobs: 2" in out
    assert "Message: first take" in out

    assert app.run(["log"], project_dir=project, store=store) == 0
    out = capsys.readouterr().out
    assert "beat (showing 1 of 1)" in out

    (project / "beat.als").write_bytes(b"set v2")
    assert app.run(["push"], project_dir=project, store=store) == 0
    capsys.readouterr()

    assert "beat/history" in store.objects

    output = tmp_path / "restore"
    assert app.run(["checkout", "20", "--output", str(output)], project_dir=project, store=store) == 0
    assert (output / "beat.als").read_bytes() == b"set v2"
    assert "Restored snapshot" in capsys.readouterr().out


def test_push_without_changes_reports_noop(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    store = MemoryBlobStore()
    app.run(["push"], project_dir=project, store=store)
    capsys.readouterr()
    writes = len(store.writes)

    assert app.run(["push"], project_dir=project, store=store) == 0

    assert "no changed files" in capsys.readouterr().out
    assert len(store.writes) == writes


def test_dry_run_lists_files(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    store = MemoryBlobStore()

    assert app.run(["push", "--dry-run"], project_dir=project, store=store) == 0

    out = capsys.readouterr().out
    assert "Samples/kick.wav" in out
    assert "Dry run" in out
    assert store.writes == []


def test_checkout_unknown_snapshot_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    store = MemoryBlobStore()
    app.run(["push"], project_dir=project, store=store)
    capsys.readouterr()

    assert app.run(["checkout", "1999"], project_dir=project, store=store) == 1

    assert "Snapshot not found: 1999" in capsys.readouterr().err


def test_log_without_history_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)

    assert app.run(["log"], project_dir=project, store=MemoryBlobStore()) == 1

    assert "No history found" in capsys.readouterr().err


def test_clone_into_working_directory(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    store = MemoryBlobStore()
    app.run(["push"], project_dir=project, store=store)
    workspace = tmp_path / "workspace"
    workspace.mkdir()

    assert app.run(["clone", "beat"], project_dir=workspace, store=store) == 0
    assert (workspace / "beat" / "Samples" / "kick.wav").read_bytes() == b"kick"
    assert (workspace / "beat" / ".gp").is_dir()

    assert app.run(["clone", "beat"], project_dir=workspace, store=store) == 1
    assert "Destination already exists" in capsys.readouterr().err


def test_init_and_status(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    store = MemoryBlobStore()

    assert app.run(["init"], project_dir=project, store=store) == 0
    assert (project / ".gp-ignore").exists()
    capsys.readouterr()

    assert app.run(["status"], project_dir=project, store=store) == 0
    assert "not pushed yet" in capsys.readouterr().out

    app.run(["push"], project_dir=project, store=store)
    (project / "beat.als").write_bytes(b"set v2")
    capsys.readouterr()

    assert app.run(["status"], project_dir=project, store=store) == 0
    out = capsys.readouterr().out
    assert "1 modified" in out
    assert "beat.als" in out


def test_usage_errors_exit_with_code_two(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)

    assert app.run(["bogus"], project_dir=project, store=MemoryBlobStore()) == 2
    assert "Unknown command" in capsys.readouterr().err

    assert app.run(["log", "-n", "many"], project_dir=project, store=MemoryBlobStore()) == 2
    assert app.run(["checkout"], project_dir=project, store=MemoryBlobStore()) == 2


def test_help_lists_commands(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    assert app.run([], project_dir=tmp_path, store=MemoryBlobStore()) == 0

    out = capsys.readouterr().out
    for name in ("push", "log", "checkout", "clone", "init", "status"):
        assert name in out


def test_local_backend_from_configuration(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    project = _project(tmp_path)
    remote = tmp_path / "remote"
    monkeypatch.setenv("GP_STORAGE_ROOT", str(remote))

    assert app.run(["push"], project_dir=project) == 0

    assert (remote / "groovepush-bucket" / "beat" / "history").is_file()
    assert (remote / "groovepush-bucket" / "beat" / "state").is_file()


def test_unknown_storage_backend_fails_cleanly(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    config_dir = project / ".gp" / "config"
    config_dir.mkdir(parents=True)
    (config_dir / "storage.yml").write_text("storage:\n  backend: s3\n", encoding="utf-8")

    assert app.run(["push"], project_dir=project) == 1
    err = capsys.readouterr().err.strip().splitlines()
    assert len(err) == 1
    assert err[0].startswith("gp push: Configuration is invalid")
    assert "storage.backend" in err[0]

    assert app.run(["log"], project_dir=project) == 1
    assert "storage.backend" in capsys.readouterr().err


def test_push_rejects_positional_arguments(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = _project(tmp_path)
    store = MemoryBlobStore()

    assert app.run(["push", "extra"], project_dir=project, store=store) == 2
    assert "Usage: gp push" in capsys.readouterr().err
    assert store.writes == []


def test_dry_run_prints_project_name_literally(tmp_path: Path, capsys: pytest.CaptureFixture[str]):
    project = tmp_path / "[red]beat"
    project.mkdir()
    (project / "beat.als").write_bytes(b"set")

    assert app.run(["push", "--dry-run"], project_dir=project, store=MemoryBlobStore()) == 0

    out = re.sub(r"\x1b\[[0-9;]*m", "", capsys.readouterr().out)
    assert "[red]beat:" in out
