"""Match locally scanned repositories against a host's repository listing."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .models import RemoteRepositoryDescriptor, ScannedRepository
from .scanner import scan_paths

if TYPE_CHECKING:
    from .providers import HostProvider

logger = logging.getLogger(__name__)

_SCHEMES = ("https://", "http://", "ssh://", "git://")


def normalize_url(url: str) -> str:
    """Normalize a git URL for identity comparison.

    Lowercases, strips the scheme and any ``user@`` prefix, rewrites
    scp-style ``host:path`` to ``host/path`` and drops a trailing ``.git``
    and trailing slashes, so that HTTPS, SSH and scp-style spellings of
    the same repository compare equal.
    """
    s = url.lower()

    for prefix in _SCHEMES:
        if s.startswith(prefix):
            s = s[len(prefix) :]
            break

    at_pos = s.find("@")
    if at_pos != -1:
        slash_pos = s.find("/")
        if slash_pos == -1:
            slash_pos = len(s)
        if at_pos < slash_pos:
            s = s[at_pos + 1 :]

    colon_pos = s.find(":")
    if colon_pos != -1 and "/" not in s[:colon_pos]:
        s = f"{s[:colon_pos]}/{s[colon_pos + 1 :]}"

    if s.endswith(".git"):
        s = s[: -len(".git")]

    return s.rstrip("/")


# =============================================================================
# Classification
# =============================================================================


@dataclass(frozen=True)
class Matched:
    """Found both locally and on the host."""

    local: ScannedRepository
    remote: RemoteRepositoryDescriptor


@dataclass(frozen=True)
class LocalOnly:
    """Found locally but not on the host."""

    local: ScannedRepository


@dataclass(frozen=True)
class RemoteOnly:
    """Listed on the host but not found locally."""

    remote: RemoteRepositoryDescriptor


ReconcileMatch = Matched | LocalOnly | RemoteOnly


@dataclass
class ReconcileResult:
    """Result of reconciling local and remote repositories for one host."""

    host_label: str
    matches: list[ReconcileMatch] = field(default_factory=list)

    @property
    def matched(self) -> list[Matched]:
        return [m for m in self.matches if isinstance(m, Matched)]

    @property
    def local_only(self) -> list[LocalOnly]:
        return [m for m in self.matches if isinstance(m, LocalOnly)]

    @property
    def remote_only(self) -> list[RemoteOnly]:
        return [m for m in self.matches if isinstance(m, RemoteOnly)]

    @property
    def matched_count(self) -> int:
        return len(self.matched)

    @property
    def local_only_count(self) -> int:
        return len(self.local_only)

    @property
    def remote_only_count(self) -> int:
        return len(self.remote_only)

    def to_dict(self) -> dict:
        entries = []
        for m in self.matches:
            match m:
                case Matched(local=local, remote=remote):
                    entries.append(
                        {"kind": "matched", "local": local.to_dict(), "remote": remote.to_dict()}
                    )
                case LocalOnly(local=local):
                    entries.append({"kind": "local_only", "local": local.to_dict()})
                case RemoteOnly(remote=remote):
                    entries.append({"kind": "remote_only", "remote": remote.to_dict()})
        return {
            "host_label": self.host_label,
            "matched_count": self.matched_count,
            "local_only_count": self.local_only_count,
            "remote_only_count": self.remote_only_count,
            "matches": entries,
        }


def _urls_match(local: ScannedRepository, remote: RemoteRepositoryDescriptor) -> bool:
    """Check if any of the local repo's remote URLs is the remote's clone or SSH URL."""
    candidates = {normalize_url(remote.clone_url), normalize_url(remote.ssh_url)}
    return any(normalize_url(r.url) in candidates for r in local.remotes)


def reconcile(
    local: list[ScannedRepository],
    remote: list[RemoteRepositoryDescriptor],
    host_label: str,
) -> ReconcileResult:
    """Classify local and remote repositories by normalized URL identity.

    Each local repository takes the first remote it matches. A remote that
    was already matched stays eligible for later locals; matching only
    removes it from the remote-only list.
    """
    matches: list[ReconcileMatch] = []
    matched_remote_indices: set[int] = set()

    for local_repo in local:
        for idx, remote_repo in enumerate(remote):
            if _urls_match(local_repo, remote_repo):
                matches.append(Matched(local=local_repo, remote=remote_repo))
                matched_remote_indices.add(idx)
                break
        else:
            matches.append(LocalOnly(local=local_repo))

    for idx, remote_repo in enumerate(remote):
        if idx not in matched_remote_indices:
            matches.append(RemoteOnly(remote=remote_repo))

    return ReconcileResult(host_label=host_label, matches=matches)


def discover(
    host_label: str,
    provider: HostProvider,
    paths: Iterable[Path],
    max_depth: int,
) -> ReconcileResult:
    """Scan local paths, list the host's repositories, and reconcile them.

    Provider errors propagate to the caller.
    """
    local_repos = scan_paths(paths, max_depth)
    remote_repos = provider.list_repos()
    logger.info(
        "%s: %d local repositories, %d remote repositories",
        host_label,
        len(local_repos),
        len(remote_repos),
    )
    return reconcile(local_repos, remote_repos, host_label)
