"""Bring one fork's default branch in line with its upstream."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from . import git_ops
from .errors import GitError
from .git_ops import DEFAULT_GIT_TIMEOUT, GitOperations
from .models import (
    ForkSyncResult,
    MergeStrategy,
    SyncRecord,
    SyncStatus,
    TrackedRepository,
    utcnow,
)

logger = logging.getLogger(__name__)

UPSTREAM_REMOTE = "upstream"
ORIGIN_REMOTE = "origin"


@dataclass(frozen=True)
class _Outcome:
    status: SyncStatus
    commits: int = 0
    branches_synced: int = 0


def resolve_local_path(repo: TrackedRepository, clone_base_dir: Path) -> Path:
    """Known local path of the repository, else ``clone_base_dir/<name>``."""
    if repo.local_path is not None:
        return Path(repo.local_path)
    return Path(clone_base_dir) / repo.name


def compute_divergence(
    path: Path,
    branch: str,
    upstream_ref: str | None = None,
    timeout: float | None = DEFAULT_GIT_TIMEOUT,
) -> tuple[int, int]:
    """Return ``(ahead, behind)`` of ``branch`` relative to ``upstream/<branch>``.

    Raises GitError if either ref cannot be resolved.
    """
    upstream_ref = upstream_ref or f"{UPSTREAM_REMOTE}/{branch}"
    ops = GitOperations(path, timeout=timeout)
    behind = ops.rev_list_count(branch, upstream_ref)
    ahead = ops.rev_list_count(upstream_ref, branch)
    return ahead, behind


def _apply_strategy(ops: GitOperations, strategy: MergeStrategy, upstream_ref: str) -> None:
    match strategy:
        case MergeStrategy.FAST_FORWARD:
            ops.merge_ff(upstream_ref)
        case MergeStrategy.MERGE:
            ops.merge(upstream_ref)
        case MergeStrategy.REBASE:
            ops.rebase(upstream_ref)
        case MergeStrategy.FORCE_PUSH:
            ops.reset_hard(upstream_ref)
        case _:
            raise GitError(f"unsupported merge strategy: {strategy}")


def _sync_fork_inner(
    repo: TrackedRepository,
    upstream_clone_url: str,
    clone_base_dir: Path,
    strategy: MergeStrategy,
    dry_run: bool,
    timeout: float | None,
) -> _Outcome:
    local_path = resolve_local_path(repo, clone_base_dir)
    ops = GitOperations(local_path, timeout=timeout)

    if not ops.has_git_dir():
        if dry_run:
            logger.info("[dry-run] would clone %s to %s", repo.clone_url, local_path)
            return _Outcome(SyncStatus.SKIPPED)
        logger.info("cloning %s to %s", repo.clone_url, local_path)
        git_ops.clone(repo.clone_url, local_path, timeout=timeout)

    branch = repo.default_branch
    upstream_ref = f"{UPSTREAM_REMOTE}/{branch}"

    if dry_run:
        # Read-only from here on; anything that cannot be inspected counts as 0.
        try:
            if UPSTREAM_REMOTE not in ops.remote_list():
                logger.info("[dry-run] would add upstream remote: %s", upstream_clone_url)
            behind = ops.rev_list_count(branch, upstream_ref)
        except GitError as e:
            logger.debug("[dry-run] %s: cannot compute behind count: %s", repo.full_name, e)
            behind = 0
        logger.info("[dry-run] %s: %d commits behind upstream on %s", repo.full_name, behind, branch)
        return _Outcome(SyncStatus.SKIPPED, commits=behind)

    if UPSTREAM_REMOTE not in ops.remote_list():
        ops.remote_add(UPSTREAM_REMOTE, upstream_clone_url)

    ops.fetch(UPSTREAM_REMOTE)

    behind = ops.rev_list_count(branch, upstream_ref)
    if behind == 0:
        logger.info("%s: already up to date on %s", repo.full_name, branch)
        return _Outcome(SyncStatus.SUCCESS, branches_synced=1)

    logger.info(
        "%s: %d commits behind upstream on %s, syncing with strategy %s",
        repo.full_name,
        behind,
        branch,
        strategy,
    )

    ops.checkout(branch)
    _apply_strategy(ops, strategy, upstream_ref)
    ops.push(ORIGIN_REMOTE, branch, force=strategy == MergeStrategy.FORCE_PUSH)

    return _Outcome(SyncStatus.SUCCESS, commits=behind, branches_synced=1)


def failed_result(
    repo: TrackedRepository,
    message: str,
    dry_run: bool,
    started_at: datetime | None = None,
) -> ForkSyncResult:
    """Build a Failed result for a repository."""
    started_at = started_at or utcnow()
    record = SyncRecord(
        repo_id=repo.id,
        status=SyncStatus.FAILED,
        started_at=started_at,
        finished_at=utcnow(),
        branches_failed=1,
        errors=(message,),
    )
    return ForkSyncResult(repo_full_name=repo.full_name, record=record, dry_run=dry_run)


def sync_fork(
    repo: TrackedRepository,
    upstream_clone_url: str,
    clone_base_dir: Path,
    strategy: MergeStrategy = MergeStrategy.FAST_FORWARD,
    dry_run: bool = False,
    *,
    timeout: float | None = DEFAULT_GIT_TIMEOUT,
) -> ForkSyncResult:
    """Sync a fork with its upstream.

    Flow:
    1. Ensure a local clone exists (clone if not)
    2. Add the upstream remote if missing
    3. Fetch upstream
    4. Count commits behind upstream
    5. Checkout the default branch and apply the merge strategy
    6. Push to origin

    Git failures never escape: they become a Failed record. Work already
    done on disk, such as a finished clone, is left in place.
    """
    started_at = utcnow()

    try:
        outcome = _sync_fork_inner(
            repo, upstream_clone_url, Path(clone_base_dir), strategy, dry_run, timeout
        )
    except GitError as e:
        logger.warning("%s: sync failed: %s", repo.full_name, e)
        return failed_result(repo, str(e), dry_run, started_at)
    except Exception as e:
        logger.exception("%s: unexpected error during sync", repo.full_name)
        return failed_result(repo, f"unexpected error: {e}", dry_run, started_at)

    record = SyncRecord(
        repo_id=repo.id,
        status=outcome.status,
        started_at=started_at,
        finished_at=utcnow(),
        branches_synced=outcome.branches_synced,
        commits_transferred=outcome.commits,
    )
    return ForkSyncResult(repo_full_name=repo.full_name, record=record, dry_run=dry_run)
