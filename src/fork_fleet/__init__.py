"""fork-fleet: Keep a fleet of forks in sync with their upstream repositories."""

from ._version import __version__
from .cli import app
from .config import FleetConfig, HostConfig, init_config, load_config, resolve_config_file
from .engine import SyncEngine
from .errors import (
    ConfigError,
    FastForwardFailed,
    ForkFleetError,
    GitError,
    MergeConflict,
    ProviderError,
    ProviderNotImplemented,
    RateLimited,
    RepoNotFound,
)
from .fork_sync import compute_divergence, sync_fork
from .formatters import OutputFormatter
from .git_ops import GitOperations
from .history import SyncHistory
from .models import (
    ForkDivergence,
    ForkSyncResult,
    MergeStrategy,
    RemoteRepositoryDescriptor,
    ScannedRemote,
    ScannedRepository,
    SyncRecord,
    SyncStatus,
    SyncSummary,
    TrackedRepository,
)
from .providers import GitHubProvider, HostKind, HostProvider, create_provider
from .reconcile import (
    LocalOnly,
    Matched,
    ReconcileResult,
    RemoteOnly,
    discover,
    normalize_url,
    reconcile,
)
from .scanner import scan_directory, scan_paths
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "ForkDivergence",
    "ForkSyncResult",
    "LocalOnly",
    "Matched",
    "MergeStrategy",
    "ReconcileResult",
    "RemoteOnly",
    "RemoteRepositoryDescriptor",
    "ScannedRemote",
    "ScannedRepository",
    "SyncRecord",
    "SyncStatus",
    "SyncSummary",
    "TrackedRepository",
    # Configuration
    "FleetConfig",
    "HostConfig",
    "init_config",
    "load_config",
    "resolve_config_file",
    # Errors
    "ConfigError",
    "FastForwardFailed",
    "ForkFleetError",
    "GitError",
    "MergeConflict",
    "ProviderError",
    "ProviderNotImplemented",
    "RateLimited",
    "RepoNotFound",
    # Operations
    "GitOperations",
    "SyncEngine",
    "SyncHistory",
    "compute_divergence",
    "discover",
    "normalize_url",
    "reconcile",
    "scan_directory",
    "scan_paths",
    "sync_fork",
    # Providers
    "GitHubProvider",
    "HostKind",
    "HostProvider",
    "create_provider",
    # Functions
    "get_tool_schema",
    # Formatters
    "OutputFormatter",
]
