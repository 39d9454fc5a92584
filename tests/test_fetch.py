from __future__ import annotations

import subprocess

from conftest import write_files
from licenses_html import generator
from licenses_html.generator import (
    FETCH_CACHED,
    FETCH_CLONED,
    FETCH_FAILED,
    fetch_repositories,
    fetch_repository,
)
from licenses_html.sources import DependencyDescriptor


def _recording_run(calls: list[list[str]], fail: bool = False):
    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        if fail:
            raise subprocess.CalledProcessError(
                128, cmd, stderr="fatal: repository not found\n"
            )
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    return fake_run


def test_shallow_clone_into_repos_dir(workspace, monkeypatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(generator.subprocess, "run", _recording_run(calls))
    source = DependencyDescriptor(name="Foo", location="https://example.com/foo.git")

    status, error = fetch_repository(source, workspace)

    assert (status, error) == (FETCH_CLONED, None)
    assert calls == [
        [
            "git",
            "clone",
            "--depth",
            "1",
            "https://example.com/foo.git",
            str(workspace.repos_dir / "foo"),
        ]
    ]


def test_existing_clone_is_reused(workspace, monkeypatch, capsys) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(generator.subprocess, "run", _recording_run(calls))
    write_files(workspace.repos_dir / "foo", {"LICENSE": "MIT"})
    source = DependencyDescriptor(name="Foo", location="https://example.com/foo.git")

    status, error = fetch_repository(source, workspace)

    assert (status, error) == (FETCH_CACHED, None)
    assert calls == []
    assert "Delete it to download the repo again" in capsys.readouterr().err


def test_clone_failure_is_reported(workspace, monkeypatch) -> None:
    monkeypatch.setattr(generator.subprocess, "run", _recording_run([], fail=True))
    source = DependencyDescriptor(name="Foo", location="https://example.com/foo.git")

    status, error = fetch_repository(source, workspace)

    assert status == FETCH_FAILED
    assert "fatal: repository not found" in error
    assert "Foo" in error


def test_missing_git_is_reported(workspace, monkeypatch) -> None:
    def no_git(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", "git")

    monkeypatch.setattr(generator.subprocess, "run", no_git)
    source = DependencyDescriptor(name="Foo", location="https://example.com/foo.git")

    status, error = fetch_repository(source, workspace)

    assert status == FETCH_FAILED
    assert "Is git installed" in error


def test_fetch_repositories_skips_files_and_duplicates(workspace, monkeypatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(generator.subprocess, "run", _recording_run(calls))
    sources = [
        DependencyDescriptor("Foo", "https://example.com/foo.git"),
        DependencyDescriptor("Local", "./licenses/local.txt"),
        DependencyDescriptor("Foo again", "https://mirror.example.com/foo"),
        DependencyDescriptor("Bar", "https://example.com/bar.git"),
    ]
    errors: list[str] = []

    statuses = fetch_repositories(sources, workspace, errors)

    assert workspace.repos_dir.is_dir()
    assert statuses == {
        workspace.repos_dir / "foo": FETCH_CLONED,
        workspace.repos_dir / "bar": FETCH_CLONED,
    }
    assert sorted(cmd[4] for cmd in calls) == [
        "https://example.com/bar.git",
        "https://example.com/foo.git",
    ]
    assert errors == []


def test_fetch_repositories_collects_errors(workspace, monkeypatch) -> None:
    monkeypatch.setattr(generator.subprocess, "run", _recording_run([], fail=True))
    sources = [DependencyDescriptor("Foo", "https://example.com/foo.git")]
    errors: list[str] = []

    statuses = fetch_repositories(sources, workspace, errors)

    assert statuses == {workspace.repos_dir / "foo": FETCH_FAILED}
    assert len(errors) == 1
