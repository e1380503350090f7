"""
Shared fixtures for fork-fleet tests.

Sync tests run the real ``git`` binary against throwaway repositories in
``tmp_path``: a bare "upstream", a bare "origin" fork cloned from it, and a
scratch working copy used to publish new upstream commits.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from fork_fleet.models import RemoteRepositoryDescriptor, TrackedRepository


def git(*args: str, cwd: Path | None = None) -> str:
    """Run git and return stdout, failing the test on a non-zero exit."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=False,
    )
    assert result.returncode == 0, f"git {' '.join(args)} failed: {result.stderr}"
    return result.stdout


@pytest.fixture(autouse=True)
def git_env(tmp_path_factory, monkeypatch):
    """Isolate git from the user's configuration."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Fleet Tester")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "tester@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Fleet Tester")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tester@example.com")
    monkeypatch.delenv("FORK_FLEET_CONFIG", raising=False)
    return home


class Forge:
    """An upstream repository and a fork of it, both bare."""

    def __init__(self, root: Path):
        self.root = root
        self.upstream = root / "upstream.git"
        self.origin = root / "origin.git"
        self.scratch = root / "scratch"

        git("init", "--bare", str(self.upstream))
        git("symbolic-ref", "HEAD", "refs/heads/main", cwd=self.upstream)

        git("init", str(self.scratch))
        git("symbolic-ref", "HEAD", "refs/heads/main", cwd=self.scratch)
        git("remote", "add", "upstream", str(self.upstream), cwd=self.scratch)
        self.commit_upstream("README.md", "# project\n", "initial commit")

        git("clone", "--bare", str(self.upstream), str(self.origin))

    def commit_upstream(self, filename: str, content: str, message: str) -> str:
        """Publish a commit on upstream/main and return its SHA."""
        self.commit(self.scratch, filename, content, message)
        git("push", "upstream", "main", cwd=self.scratch)
        return self.head(self.scratch)

    def commit(self, repo: Path, filename: str, content: str, message: str) -> str:
        (repo / filename).write_text(content)
        git("add", filename, cwd=repo)
        git("commit", "-q", "-m", message, cwd=repo)
        return self.head(repo)

    def clone_origin(self, dest: Path, with_upstream: bool = False) -> Path:
        git("clone", "-q", str(self.origin), str(dest))
        if with_upstream:
            git("remote", "add", "upstream", str(self.upstream), cwd=dest)
            git("fetch", "-q", "upstream", cwd=dest)
        return dest

    def head(self, repo: Path, ref: str = "HEAD") -> str:
        return git("rev-parse", ref, cwd=repo).strip()

    def tracked(self, local_path: Path | None = None, name: str = "project") -> TrackedRepository:
        return TrackedRepository(
            full_name=f"me/{name}",
            owner="me",
            name=name,
            clone_url=str(self.origin),
            default_branch="main",
            local_path=local_path,
            is_fork=True,
            upstream_full_name=f"them/{name}",
        )


@pytest.fixture
def forge(tmp_path: Path) -> Forge:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    return Forge(tmp_path / "forge")


def make_descriptor(
    full_name: str = "me/project",
    clone_url: str | None = None,
    ssh_url: str | None = None,
    is_fork: bool = False,
    upstream_full_name: str | None = None,
    upstream_clone_url: str | None = None,
) -> RemoteRepositoryDescriptor:
    owner, name = full_name.split("/", 1)
    return RemoteRepositoryDescriptor(
        full_name=full_name,
        owner=owner,
        name=name,
        clone_url=clone_url or f"https://github.com/{full_name}.git",
        ssh_url=ssh_url or f"git@github.com:{full_name}.git",
        is_fork=is_fork,
        upstream_full_name=upstream_full_name,
        upstream_clone_url=upstream_clone_url,
    )
