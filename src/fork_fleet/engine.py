"""Run fork syncs for many repositories in parallel."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .fork_sync import failed_result, sync_fork
from .git_ops import DEFAULT_GIT_TIMEOUT
from .models import ForkSyncResult, MergeStrategy, TrackedRepository

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8

SyncFunc = Callable[..., ForkSyncResult]


class SyncEngine:
    """Sync many forks on worker threads under a concurrency limit.

    Every input pair produces exactly one result. A unit of work that raises
    is reported as a Failed result for its own repository and never affects
    the others.
    """

    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        *,
        git_timeout: float | None = DEFAULT_GIT_TIMEOUT,
        sync_func: SyncFunc = sync_fork,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.git_timeout = git_timeout
        self._sync_func = sync_func
        # Shared by every batch run on this engine, so overlapping batches
        # together stay within the limit.
        self._permits = threading.BoundedSemaphore(concurrency)

    def _run_one(
        self,
        repo: TrackedRepository,
        upstream_url: str,
        clone_base_dir: Path,
        strategy: MergeStrategy,
        dry_run: bool,
    ) -> ForkSyncResult:
        with self._permits:
            return self._sync_func(
                repo,
                upstream_url,
                clone_base_dir,
                strategy,
                dry_run,
                timeout=self.git_timeout,
            )

    def sync_all(
        self,
        pairs: list[tuple[TrackedRepository, str]],
        clone_base_dir: Path,
        strategy: MergeStrategy = MergeStrategy.FAST_FORWARD,
        dry_run: bool = False,
        on_result: Callable[[ForkSyncResult], None] | None = None,
    ) -> list[ForkSyncResult]:
        """Sync every (repository, upstream clone URL) pair.

        Results are returned in input order. Each pair must resolve to a
        distinct local path; duplicates are not detected.
        """
        results: list[ForkSyncResult | None] = [None] * len(pairs)
        if not pairs:
            return []

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            futures = {
                executor.submit(
                    self._run_one, repo, upstream_url, clone_base_dir, strategy, dry_run
                ): idx
                for idx, (repo, upstream_url) in enumerate(pairs)
            }
            for future in as_completed(futures):
                idx = futures[future]
                repo = pairs[idx][0]
                try:
                    result = future.result()
                except Exception as e:
                    logger.exception("%s: sync worker raised", repo.full_name)
                    result = failed_result(repo, f"unexpected error: {e}", dry_run)
                results[idx] = result
                if on_result is not None:
                    try:
                        on_result(result)
                    except Exception:
                        logger.exception("progress callback failed for %s", repo.full_name)

        return [r for r in results if r is not None]
