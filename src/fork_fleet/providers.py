"""Hosting provider clients that list repositories for an account."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import requests

from ._version import __version__
from .errors import ProviderError, ProviderNotImplemented, RateLimited, RepoNotFound
from .models import RemoteRepositoryDescriptor

if TYPE_CHECKING:
    from .config import HostConfig

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
PER_PAGE = 100


class HostKind(StrEnum):
    """Supported git hosting services."""

    GITHUB = "github"
    GITLAB = "gitlab"
    GITEA = "gitea"
    BITBUCKET = "bitbucket"
    AZURE_DEVOPS = "azure_devops"

    @classmethod
    def parse(cls, value: str) -> HostKind:
        normalized = value.strip().lower().replace("-", "_")
        if normalized == "azuredevops":
            normalized = "azure_devops"
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"unknown host kind: {value}") from None

    @property
    def default_api_url(self) -> str:
        return {
            HostKind.GITHUB: "https://api.github.com",
            HostKind.GITLAB: "https://gitlab.com/api/v4",
            HostKind.GITEA: "https://gitea.com/api/v1",
            HostKind.BITBUCKET: "https://api.bitbucket.org/2.0",
            HostKind.AZURE_DEVOPS: "https://dev.azure.com",
        }[self]


@dataclass(frozen=True)
class RemoteBranch:
    name: str
    sha: str
    is_default: bool = False

    def to_dict(self) -> dict:
        return {"name": self.name, "sha": self.sha, "is_default": self.is_default}


@dataclass(frozen=True)
class ForkSyncStatus:
    """Behind/ahead counts of one fork branch against its upstream."""

    branch: str
    behind_by: int
    ahead_by: int

    def to_dict(self) -> dict:
        return {"branch": self.branch, "behind_by": self.behind_by, "ahead_by": self.ahead_by}


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset_at: datetime

    def to_dict(self) -> dict:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_at": self.reset_at.isoformat(),
        }


class HostProvider(ABC):
    """Capabilities a hosting service exposes to fork-fleet.

    Errors are raised as ProviderError subclasses and are never retried here.
    """

    kind: HostKind

    @abstractmethod
    def validate_credentials(self) -> bool:
        """Check that the configured token is accepted."""

    @abstractmethod
    def list_repos(self) -> list[RemoteRepositoryDescriptor]:
        """List every repository of the authenticated account."""

    @abstractmethod
    def get_repo(self, owner: str, name: str) -> RemoteRepositoryDescriptor | None:
        """Fetch one repository, or None if it does not exist."""

    @abstractmethod
    def list_branches(self, owner: str, name: str) -> list[RemoteBranch]: ...

    @abstractmethod
    def fork_sync_status(self, owner: str, name: str) -> list[ForkSyncStatus]: ...

    @abstractmethod
    def rate_limit_status(self) -> RateLimitInfo: ...


# =============================================================================
# GitHub
# =============================================================================


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _github_descriptor(data: dict[str, Any]) -> RemoteRepositoryDescriptor:
    parent = data.get("parent") or {}
    return RemoteRepositoryDescriptor(
        full_name=data["full_name"],
        owner=data["owner"]["login"],
        name=data["name"],
        clone_url=data["clone_url"],
        ssh_url=data["ssh_url"],
        default_branch=data.get("default_branch") or "main",
        is_fork=bool(data.get("fork", False)),
        upstream_full_name=parent.get("full_name"),
        upstream_clone_url=parent.get("clone_url"),
        description=data.get("description"),
        is_private=bool(data.get("private", False)),
        is_archived=bool(data.get("archived", False)),
        updated_at=_parse_timestamp(data.get("updated_at")),
    )


class GitHubProvider(HostProvider):
    """GitHub REST API client."""

    kind = HostKind.GITHUB

    def __init__(
        self,
        token: str,
        api_url: str | None = None,
        username: str = "",
        session: requests.Session | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.api_url = (api_url or self.kind.default_api_url).rstrip("/")
        self.username = username
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": f"fork-fleet/{__version__}",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    def _get(self, path: str, params: dict | None = None) -> requests.Response:
        url = self._url(path)
        logger.debug("GET %s %s", url, params or "")
        try:
            return self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(str(e)) from e

    def _check(self, resp: requests.Response) -> None:
        if resp.status_code in (403, 429):
            retry_after = resp.headers.get("Retry-After", "60")
            raise RateLimited(
                urlparse(self.api_url).hostname or self.api_url,
                int(retry_after) if retry_after.isdigit() else 60,
            )
        if not resp.ok:
            raise ProviderError(resp.text, status=resp.status_code)

    def _json(self, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"JSON parse error: {e}") from e

    def _paginated_get(self, path: str, per_page: int = PER_PAGE) -> list[dict]:
        items: list[dict] = []
        page = 1
        while True:
            resp = self._get(path, params={"per_page": per_page, "page": page})
            self._check(resp)
            batch = self._json(resp)
            items.extend(batch)
            if len(batch) < per_page:
                break
            page += 1
        return items

    def validate_credentials(self) -> bool:
        return self._get("/user").ok

    def list_repos(self) -> list[RemoteRepositoryDescriptor]:
        return [_github_descriptor(r) for r in self._paginated_get("/user/repos")]

    def get_repo(self, owner: str, name: str) -> RemoteRepositoryDescriptor | None:
        resp = self._get(f"/repos/{owner}/{name}")
        if resp.status_code == 404:
            return None
        self._check(resp)
        return _github_descriptor(self._json(resp))

    def list_branches(self, owner: str, name: str) -> list[RemoteBranch]:
        return [
            RemoteBranch(name=b["name"], sha=b["commit"]["sha"])
            for b in self._paginated_get(f"/repos/{owner}/{name}/branches")
        ]

    def fork_sync_status(self, owner: str, name: str) -> list[ForkSyncStatus]:
        """Compare the fork's default branch with its parent's."""
        repo = self.get_repo(owner, name)
        if repo is None:
            raise RepoNotFound(f"{owner}/{name}")
        if not repo.is_fork or not repo.upstream_full_name:
            return []

        branch = repo.default_branch
        upstream_owner = repo.upstream_full_name.split("/", 1)[0]
        resp = self._get(f"/repos/{owner}/{name}/compare/{upstream_owner}:{branch}...{branch}")
        if not resp.ok:
            return [ForkSyncStatus(branch=branch, behind_by=0, ahead_by=0)]
        compare = self._json(resp)
        return [
            ForkSyncStatus(
                branch=branch,
                behind_by=int(compare.get("behind_by", 0)),
                ahead_by=int(compare.get("ahead_by", 0)),
            )
        ]

    def rate_limit_status(self) -> RateLimitInfo:
        resp = self._get("/rate_limit")
        self._check(resp)
        rate = self._json(resp)["rate"]
        return RateLimitInfo(
            limit=int(rate["limit"]),
            remaining=int(rate["remaining"]),
            reset_at=datetime.fromtimestamp(int(rate["reset"]), tz=timezone.utc),
        )


# =============================================================================
# Hosts without an implementation
# =============================================================================


class UnsupportedProvider(HostProvider):
    """Placeholder for host kinds without a client; every call raises."""

    def __init__(self, kind: HostKind):
        self.kind = kind

    def _unsupported(self):
        raise ProviderNotImplemented(self.kind.value)

    def validate_credentials(self) -> bool:
        self._unsupported()

    def list_repos(self) -> list[RemoteRepositoryDescriptor]:
        self._unsupported()

    def get_repo(self, owner: str, name: str) -> RemoteRepositoryDescriptor | None:
        self._unsupported()

    def list_branches(self, owner: str, name: str) -> list[RemoteBranch]:
        self._unsupported()

    def fork_sync_status(self, owner: str, name: str) -> list[ForkSyncStatus]:
        self._unsupported()

    def rate_limit_status(self) -> RateLimitInfo:
        self._unsupported()


def create_provider(host: HostConfig, token: str) -> HostProvider:
    """Create the provider for a configured host."""
    if host.kind == HostKind.GITHUB:
        return GitHubProvider(token, api_url=host.api_url, username=host.username)
    return UnsupportedProvider(host.kind)
