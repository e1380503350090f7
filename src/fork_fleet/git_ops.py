"""Thin wrapper over the git command line used by the fork synchronizer."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from .errors import FastForwardFailed, GitError, MergeConflict

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT = 600.0


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    # Never block a worker thread on an interactive credential prompt.
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def run_git(
    args: list[str],
    cwd: Path | None = None,
    timeout: float | None = DEFAULT_GIT_TIMEOUT,
) -> subprocess.CompletedProcess:
    """Run git, converting launch failures and timeouts into GitError."""
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
            env=_git_env(),
        )
    except subprocess.TimeoutExpired:
        raise GitError(f"git {' '.join(args)} timed out after {timeout:g}s") from None
    except OSError as e:
        raise GitError(f"failed to run git {' '.join(args)}: {e}") from e


def clone(url: str, dest: Path, timeout: float | None = DEFAULT_GIT_TIMEOUT) -> None:
    """Clone a repository to a local path."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    result = run_git(["clone", url, str(dest)], timeout=timeout)
    if result.returncode != 0:
        raise GitError(f"git clone failed: {result.stderr.strip()}")


class GitOperations:
    """Low-level git operations for a single repository."""

    def __init__(self, repo_path: Path, timeout: float | None = DEFAULT_GIT_TIMEOUT):
        self.repo_path = repo_path
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        """Run a git command in the repository."""
        return run_git(list(args), cwd=self.repo_path, timeout=self.timeout)

    def _run_ok(self, *args: str) -> str:
        """Run a git command, raising GitError on a non-zero exit."""
        result = self._run(*args)
        if result.returncode != 0:
            raise GitError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
        return result.stdout

    def has_git_dir(self) -> bool:
        return (self.repo_path / ".git").exists()

    def remote_list(self) -> list[str]:
        """List configured remote names."""
        stdout = self._run_ok("remote")
        return [n.strip() for n in stdout.splitlines() if n.strip()]

    def remote_add(self, name: str, url: str) -> None:
        """Add a remote; an existing remote of the same name is not an error."""
        result = self._run("remote", "add", name, url)
        if result.returncode != 0:
            if "already exists" in result.stderr:
                return
            raise GitError(f"failed to add remote {name}: {result.stderr.strip()}")

    def fetch(self, remote: str) -> None:
        """Fetch a remote, pruning deleted branches."""
        self._run_ok("fetch", remote, "--prune")

    def checkout(self, branch: str) -> None:
        self._run_ok("checkout", branch)

    def merge_ff(self, ref: str) -> None:
        """Fast-forward merge from a ref."""
        result = self._run("merge", "--ff-only", ref)
        if result.returncode != 0:
            raise FastForwardFailed(ref, result.stderr.strip())

    def merge(self, ref: str) -> None:
        """Three-way merge from a ref without editing the message."""
        result = self._run("merge", ref, "--no-edit")
        if result.returncode != 0:
            raise MergeConflict(ref, result.stderr.strip() or result.stdout.strip())

    def rebase(self, ref: str) -> None:
        """Rebase onto a ref, aborting and restoring the branch on failure."""
        result = self._run("rebase", ref)
        if result.returncode != 0:
            abort = self._run("rebase", "--abort")
            if abort.returncode != 0:
                logger.warning(
                    "rebase --abort failed in %s: %s", self.repo_path, abort.stderr.strip()
                )
            raise MergeConflict(ref, result.stderr.strip() or result.stdout.strip())

    def reset_hard(self, ref: str) -> None:
        self._run_ok("reset", "--hard", ref)

    def push(self, remote: str, branch: str, force: bool = False) -> None:
        args = ["push", remote, branch]
        if force:
            args.insert(1, "--force")
        self._run_ok(*args)

    def rev_list_count(self, a: str, b: str) -> int:
        """Count commits reachable from b but not a (``git rev-list --count a..b``)."""
        stdout = self._run_ok("rev-list", "--count", f"{a}..{b}")
        try:
            return int(stdout.strip())
        except ValueError:
            return 0

    def current_branch(self) -> str:
        return self._run_ok("rev-parse", "--abbrev-ref", "HEAD").strip()
