"""Domain models shared by the scanner, reconciler and sync engine."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path

# =============================================================================
# Enumerations
# =============================================================================


class MergeStrategy(StrEnum):
    """How upstream changes are applied to a fork's default branch."""

    FAST_FORWARD = "ff"
    MERGE = "merge"
    REBASE = "rebase"
    FORCE_PUSH = "force_push"

    @classmethod
    def parse(cls, value: str) -> MergeStrategy:
        """Parse a strategy name, accepting the common spellings."""
        aliases = {
            "ff": cls.FAST_FORWARD,
            "fast_forward": cls.FAST_FORWARD,
            "fast-forward": cls.FAST_FORWARD,
            "merge": cls.MERGE,
            "rebase": cls.REBASE,
            "force_push": cls.FORCE_PUSH,
            "force-push": cls.FORCE_PUSH,
        }
        try:
            return aliases[value.strip().lower()]
        except KeyError:
            raise ValueError(f"unknown merge strategy: {value}") from None


class SyncStatus(StrEnum):
    """Terminal outcome of a fork sync."""

    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"
    SKIPPED = "skipped"


# =============================================================================
# Discovery
# =============================================================================


@dataclass(frozen=True)
class ScannedRemote:
    """A git remote parsed from a local repository's config."""

    name: str
    url: str

    def to_dict(self) -> dict:
        return {"name": self.name, "url": self.url}


@dataclass(frozen=True)
class ScannedRepository:
    """A repository found on the local filesystem."""

    path: Path
    remotes: tuple[ScannedRemote, ...] = ()

    @property
    def name(self) -> str:
        return self.path.name

    def remote_url(self, name: str) -> str | None:
        """First URL configured for the named remote."""
        for remote in self.remotes:
            if remote.name == name:
                return remote.url
        return None

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "remotes": [r.to_dict() for r in self.remotes],
        }


@dataclass(frozen=True)
class RemoteRepositoryDescriptor:
    """A repository as listed by a hosting provider's API."""

    full_name: str
    owner: str
    name: str
    clone_url: str
    ssh_url: str
    default_branch: str = "main"
    is_fork: bool = False
    upstream_full_name: str | None = None
    upstream_clone_url: str | None = None
    description: str | None = None
    is_private: bool = False
    is_archived: bool = False
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


@dataclass(frozen=True)
class TrackedRepository:
    """A repository selected for synchronization."""

    full_name: str
    owner: str
    name: str
    clone_url: str
    default_branch: str = "main"
    local_path: Path | None = None
    is_fork: bool = False
    upstream_full_name: str | None = None
    host_label: str = ""
    id: str = ""

    def __post_init__(self):
        # Same host and full name give the same id on every run.
        if not self.id:
            object.__setattr__(self, "id", repository_id(self.host_label, self.full_name))

    @classmethod
    def from_remote(
        cls,
        remote: RemoteRepositoryDescriptor,
        host_label: str = "",
        local_path: Path | None = None,
    ) -> TrackedRepository:
        return cls(
            full_name=remote.full_name,
            owner=remote.owner,
            name=remote.name,
            clone_url=remote.clone_url,
            default_branch=remote.default_branch,
            local_path=local_path,
            is_fork=remote.is_fork,
            upstream_full_name=remote.upstream_full_name,
            host_label=host_label,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "owner": self.owner,
            "name": self.name,
            "clone_url": self.clone_url,
            "default_branch": self.default_branch,
            "local_path": str(self.local_path) if self.local_path else None,
            "is_fork": self.is_fork,
            "upstream_full_name": self.upstream_full_name,
            "host_label": self.host_label,
        }


# =============================================================================
# Sync results
# =============================================================================


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def repository_id(host_label: str, full_name: str) -> str:
    """Stable identifier for a repository on a configured host."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{host_label}/{full_name}"))


@dataclass(frozen=True)
class SyncRecord:
    """Record of one completed fork sync run."""

    repo_id: str
    status: SyncStatus
    started_at: datetime
    finished_at: datetime
    branches_synced: int = 0
    branches_failed: int = 0
    commits_transferred: int = 0
    errors: tuple[str, ...] = ()
    sync_link_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "repo_id": self.repo_id,
            "sync_link_id": self.sync_link_id,
            "branches_synced": self.branches_synced,
            "branches_failed": self.branches_failed,
            "commits_transferred": self.commits_transferred,
            "status": self.status.value,
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> SyncRecord:
        return cls(
            id=data["id"],
            repo_id=data["repo_id"],
            sync_link_id=data.get("sync_link_id"),
            branches_synced=data.get("branches_synced", 0),
            branches_failed=data.get("branches_failed", 0),
            commits_transferred=data.get("commits_transferred", 0),
            status=SyncStatus(data["status"]),
            errors=tuple(data.get("errors", ())),
            started_at=datetime.fromisoformat(data["started_at"]),
            finished_at=datetime.fromisoformat(data["finished_at"]),
        )


@dataclass(frozen=True)
class ForkSyncResult:
    """Result of syncing a single fork."""

    repo_full_name: str
    record: SyncRecord
    dry_run: bool = False

    @property
    def status(self) -> SyncStatus:
        return self.record.status

    def to_dict(self) -> dict:
        return {
            "repo_full_name": self.repo_full_name,
            "dry_run": self.dry_run,
            "record": self.record.to_dict(),
        }


@dataclass
class SyncSummary:
    """Aggregate counts over a batch of sync results."""

    total: int = 0
    success: int = 0
    partial: int = 0
    failed: int = 0
    skipped: int = 0
    commits: int = 0

    @classmethod
    def from_results(cls, results: list[ForkSyncResult]) -> SyncSummary:
        summary = cls(total=len(results))
        for result in results:
            match result.status:
                case SyncStatus.SUCCESS:
                    summary.success += 1
                case SyncStatus.PARTIAL_SUCCESS:
                    summary.partial += 1
                case SyncStatus.FAILED:
                    summary.failed += 1
                case SyncStatus.SKIPPED:
                    summary.skipped += 1
            summary.commits += result.record.commits_transferred
        return summary

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ForkDivergence:
    """Ahead/behind counts of a local fork against its upstream remote."""

    path: Path
    name: str
    branch: str
    ahead_count: int = 0
    behind_count: int = 0
    error_message: str = ""

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "branch": self.branch,
            "ahead_count": self.ahead_count,
            "behind_count": self.behind_count,
            "error_message": self.error_message,
        }
