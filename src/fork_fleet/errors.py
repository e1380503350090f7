"""Exception types raised by fork-fleet."""

from __future__ import annotations


class ForkFleetError(Exception):
    """Base class for all fork-fleet errors."""


class ConfigError(ForkFleetError):
    """Configuration loading or validation error."""


class GitError(ForkFleetError):
    """A git subprocess failed, timed out, or could not be started."""

    def __init__(self, message: str):
        super().__init__(f"git error: {message}")
        self.message = message


class FastForwardFailed(GitError):
    """The local branch cannot be fast-forwarded to the upstream ref."""

    def __init__(self, ref: str, message: str):
        ForkFleetError.__init__(self, f"fast-forward failed onto {ref}: {message}")
        self.ref = ref
        self.message = message


class MergeConflict(GitError):
    """A merge or rebase onto the upstream ref did not complete cleanly."""

    def __init__(self, ref: str, message: str):
        ForkFleetError.__init__(self, f"merge conflict with {ref}: {message}")
        self.ref = ref
        self.message = message


class ProviderError(ForkFleetError):
    """A hosting provider API call failed."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(f"API error ({status}): {message}" if status else message)
        self.status = status
        self.message = message


class RateLimited(ProviderError):
    """The hosting provider refused the request because of rate limiting."""

    def __init__(self, host: str, retry_after_secs: int = 60):
        ForkFleetError.__init__(self, f"rate limited by {host}, retry after {retry_after_secs}s")
        self.host = host
        self.retry_after_secs = retry_after_secs
        self.status = 429
        self.message = str(self)


class ProviderNotImplemented(ProviderError):
    """The host kind has no working provider implementation."""

    def __init__(self, kind: str):
        ForkFleetError.__init__(self, f"provider not implemented: {kind}")
        self.kind = kind
        self.status = 0
        self.message = str(self)


class RepoNotFound(ProviderError):
    """The requested repository does not exist on the host."""

    def __init__(self, name: str):
        ForkFleetError.__init__(self, f"repo not found: {name}")
        self.name = name
        self.status = 404
        self.message = str(self)
