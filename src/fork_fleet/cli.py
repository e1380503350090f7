"""fork-fleet command-line interface."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from ._version import __version__
from .config import FleetConfig, HostConfig, init_config, load_config, resolve_config_file
from .engine import SyncEngine
from .errors import ConfigError, GitError, ProviderError
from .fork_sync import UPSTREAM_REMOTE, compute_divergence
from .formatters import OutputFormatter
from .git_ops import GitOperations
from .history import SyncHistory
from .models import (
    ForkDivergence,
    ForkSyncResult,
    MergeStrategy,
    RemoteRepositoryDescriptor,
    ScannedRepository,
    SyncSummary,
    TrackedRepository,
)
from .providers import HostProvider, RateLimitInfo, create_provider
from .reconcile import Matched, ReconcileResult, RemoteOnly, discover
from .scanner import scan_paths
from .schema import get_tool_schema

logger = logging.getLogger(__name__)

err_console = Console(stderr=True)

app = typer.Typer(
    name="fork-fleet",
    help="Keep a fleet of forks in sync with their upstream repositories.",
    no_args_is_help=True,
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"fork-fleet {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output MCP-compatible tool schema for AI agents",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging on stderr",
    ),
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: $FORK_FLEET_CONFIG, ~/.config/fork-fleet/config.toml)",
    ),
):
    """fork-fleet: Keep a fleet of forks in sync with their upstream repositories."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()

    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


def get_console_and_formatter(json_output: bool) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console()
    formatter = OutputFormatter(console, use_json=json_output)
    return console, formatter


def get_config(ctx: typer.Context) -> FleetConfig:
    """Load the config for this invocation or exit with an error."""
    path = (ctx.obj or {}).get("config_path")
    try:
        return load_config(path)
    except ConfigError as e:
        err_console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1) from None


def select_hosts(config: FleetConfig, label: str | None) -> list[HostConfig]:
    """Hosts to work on: the one named by ``label``, or all of them."""
    if label:
        try:
            return [config.get_host(label)]
        except ConfigError as e:
            err_console.print(f"[red]Error: {e}[/]")
            raise typer.Exit(1) from None
    if not config.hosts:
        err_console.print("[red]Error: No hosts configured[/]")
        err_console.print(
            "Add a [[hosts]] table to the config file (see fork-fleet --schema)",
            style="dim",
            markup=False,
        )
        raise typer.Exit(1)
    return list(config.hosts)


def get_provider(host: HostConfig) -> HostProvider:
    return create_provider(host, host.token())


def _discover_all(
    hosts: list[HostConfig],
    paths: list[Path],
    max_depth: int,
) -> tuple[list[tuple[HostConfig, HostProvider, ReconcileResult]], bool]:
    """Reconcile every host, reporting provider errors per host."""
    discovered = []
    had_errors = False
    for host in hosts:
        provider = get_provider(host)
        try:
            result = discover(host.label, provider, paths, max_depth)
        except ProviderError as e:
            err_console.print(f"[red]{host.label}: {e}[/]")
            had_errors = True
            continue
        discovered.append((host, provider, result))
    return discovered, had_errors


# =============================================================================
# scan
# =============================================================================


@app.command()
def scan(
    ctx: typer.Context,
    path: Path = typer.Argument(
        None,
        help="Directory to scan (default: scan_paths from config)",
    ),
    host: str = typer.Option(
        None,
        "--host",
        "-H",
        help="Only reconcile against this host label",
    ),
    depth: int = typer.Option(
        None,
        "--depth",
        "-d",
        help="Maximum directory depth (default: max_scan_depth from config)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Reconcile local repositories with each host's repository listing."""
    console, formatter = get_console_and_formatter(json_output)
    config = get_config(ctx)
    hosts = select_hosts(config, host)

    paths = [path] if path else config.scan_paths
    if not paths:
        err_console.print("[red]Error: No scan paths: pass PATH or set scan_paths in the config[/]")
        raise typer.Exit(1)
    max_depth = depth if depth is not None else config.max_scan_depth

    if not json_output:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Scanning and listing repositories...", total=None)
            discovered, had_errors = _discover_all(hosts, paths, max_depth)
    else:
        discovered, had_errors = _discover_all(hosts, paths, max_depth)

    formatter.print_reconcile_results([result for _, _, result in discovered])
    if had_errors:
        raise typer.Exit(1)


# =============================================================================
# sync
# =============================================================================


def _fork_candidates(
    result: ReconcileResult,
) -> list[tuple[RemoteRepositoryDescriptor, ScannedRepository | None]]:
    """Forks on the host, paired with their local clone when one was found."""
    candidates = []
    for m in result.matches:
        match m:
            case Matched(local=local, remote=remote) if remote.is_fork:
                candidates.append((remote, local))
            case RemoteOnly(remote=remote) if remote.is_fork:
                candidates.append((remote, None))
    return candidates


def _target_matches(target: str, remote: RemoteRepositoryDescriptor) -> bool:
    if target == "all":
        return True
    return target in (remote.full_name, remote.name)


def _resolve_upstream_url(provider: HostProvider, remote: RemoteRepositoryDescriptor) -> str | None:
    """Upstream clone URL from the listing, else from the host's repository metadata.

    Account listings usually omit the parent repository, so the fork itself
    is looked up first, then the upstream by name.
    """
    if remote.upstream_clone_url:
        return remote.upstream_clone_url
    try:
        upstream_full_name = remote.upstream_full_name
        if not upstream_full_name:
            detail = provider.get_repo(remote.owner, remote.name)
            if detail is None:
                return None
            if detail.upstream_clone_url:
                return detail.upstream_clone_url
            upstream_full_name = detail.upstream_full_name
        if not upstream_full_name or "/" not in upstream_full_name:
            return None
        owner, name = upstream_full_name.split("/", 1)
        upstream = provider.get_repo(owner, name)
    except ProviderError as e:
        logger.warning("%s: cannot look up upstream: %s", remote.full_name, e)
        return None
    return upstream.clone_url if upstream else None


def _collect_sync_pairs(
    config: FleetConfig,
    discovered: list[tuple[HostConfig, HostProvider, ReconcileResult]],
    target: str,
) -> tuple[list[tuple[TrackedRepository, str]], list[str]]:
    """Build (repository, upstream URL) pairs, one per fork and local path."""
    pairs: list[tuple[TrackedRepository, str]] = []
    skipped_no_upstream: list[str] = []
    seen_names: set[str] = set()
    claimed_paths: dict[Path, str] = {}

    for host, provider, result in discovered:
        for remote, local in _fork_candidates(result):
            if not _target_matches(target, remote) or remote.full_name in seen_names:
                continue
            seen_names.add(remote.full_name)

            upstream_url = _resolve_upstream_url(provider, remote)
            if not upstream_url:
                skipped_no_upstream.append(remote.full_name)
                continue

            local_path = local.path if local else config.repos_dir / host.label / remote.name
            if local_path in claimed_paths:
                err_console.print(
                    f"[yellow]Skipping {remote.full_name}: {local_path} "
                    f"is already used by {claimed_paths[local_path]}[/]"
                )
                continue
            claimed_paths[local_path] = remote.full_name

            repo = TrackedRepository.from_remote(remote, host_label=host.label, local_path=local_path)
            pairs.append((repo, upstream_url))

    return pairs, skipped_no_upstream


@app.command()
def sync(
    ctx: typer.Context,
    target: str = typer.Argument(
        "all",
        help="'all', a full name (owner/repo), or a repository name",
    ),
    host: str = typer.Option(
        None,
        "--host",
        "-H",
        help="Only sync forks on this host label",
    ),
    strategy: str = typer.Option(
        None,
        "--strategy",
        "-s",
        help="ff, merge, rebase or force_push (default: default_merge_strategy from config)",
    ),
    concurrency: int = typer.Option(
        None,
        "--concurrency",
        "-p",
        help="Maximum forks synced at once (default: sync_concurrency from config)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show how far behind each fork is without changing anything",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Sync forks with their upstream repositories.

    Forks without a local clone are cloned into the configured clone
    directory. Each fork's default branch is brought up to date with the
    upstream using the chosen strategy and pushed to origin.
    """
    console, formatter = get_console_and_formatter(json_output)
    config = get_config(ctx)
    hosts = select_hosts(config, host)

    try:
        merge_strategy = MergeStrategy.parse(strategy) if strategy else config.default_merge_strategy
    except ValueError as e:
        err_console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1) from None

    try:
        engine = SyncEngine(
            concurrency or config.sync_concurrency,
            git_timeout=config.git_timeout,
        )
    except ValueError as e:
        err_console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1) from None

    if not json_output:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Discovering forks...", total=None)
            discovered, had_errors = _discover_all(hosts, config.scan_paths, config.max_scan_depth)
            pairs, skipped_no_upstream = _collect_sync_pairs(config, discovered, target)
    else:
        discovered, had_errors = _discover_all(hosts, config.scan_paths, config.max_scan_depth)
        pairs, skipped_no_upstream = _collect_sync_pairs(config, discovered, target)

    if not pairs and not skipped_no_upstream and target != "all":
        err_console.print(f"[red]Error: No fork named {target}[/]")
        raise typer.Exit(1)

    if not json_output and pairs:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
        ) as progress:
            label = "Checking forks (dry-run)..." if dry_run else "Syncing forks..."
            task = progress.add_task(label, total=len(pairs))
            results = engine.sync_all(
                pairs,
                config.repos_dir,
                merge_strategy,
                dry_run,
                on_result=lambda _result: progress.advance(task),
            )
    else:
        results = engine.sync_all(pairs, config.repos_dir, merge_strategy, dry_run)

    _record_history(config, pairs, results)

    summary = SyncSummary.from_results(results)
    formatter.print_sync_results(results, summary, skipped_no_upstream)

    if summary.failed or had_errors:
        raise typer.Exit(1)


def _record_history(
    config: FleetConfig,
    pairs: list[tuple[TrackedRepository, str]],
    results: list[ForkSyncResult],
) -> None:
    history = SyncHistory(config.history_path)
    for (repo, _), result in zip(pairs, results):
        try:
            history.append(result, host_label=repo.host_label)
        except OSError as e:
            logger.warning("cannot write sync history to %s: %s", config.history_path, e)
            return


# =============================================================================
# status
# =============================================================================


def _divergence(repo: ScannedRepository, timeout: float) -> ForkDivergence:
    ops = GitOperations(repo.path, timeout=timeout)
    branch = "?"
    try:
        branch = ops.current_branch()
        ahead, behind = compute_divergence(repo.path, branch, timeout=timeout)
    except GitError as e:
        return ForkDivergence(repo.path, repo.name, branch, error_message=str(e))
    return ForkDivergence(repo.path, repo.name, branch, ahead_count=ahead, behind_count=behind)


@app.command()
def status(
    ctx: typer.Context,
    path: Path = typer.Argument(
        None,
        help="Directory to scan (default: scan_paths from config, else the current directory)",
    ),
    depth: int = typer.Option(
        None,
        "--depth",
        "-d",
        help="Maximum directory depth (default: max_scan_depth from config)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show how far local forks are ahead of or behind their upstream remote."""
    console, formatter = get_console_and_formatter(json_output)
    config = get_config(ctx)

    root_paths = [path] if path else (config.scan_paths or [Path(".")])
    max_depth = depth if depth is not None else config.max_scan_depth

    repos = [r for r in scan_paths(root_paths, max_depth) if r.remote_url(UPSTREAM_REMOTE)]
    if not json_output:
        console.print(f"Found [bold]{len(repos)}[/] repositories with an upstream remote\n")

    with ThreadPoolExecutor(max_workers=config.sync_concurrency) as executor:
        divergences = list(executor.map(lambda r: _divergence(r, config.git_timeout), repos))

    formatter.print_divergence_list(divergences, [p.resolve() for p in root_paths])


# =============================================================================
# history
# =============================================================================


@app.command()
def history(
    ctx: typer.Context,
    repo: str = typer.Option(
        None,
        "--repo",
        "-r",
        help="Only show this repository (full name or name)",
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-l",
        help="Maximum number of entries",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show recorded sync runs, newest first."""
    _, formatter = get_console_and_formatter(json_output)
    config = get_config(ctx)
    entries = SyncHistory(config.history_path).read(limit=limit, repo=repo)
    formatter.print_history(entries)


# =============================================================================
# hosts
# =============================================================================


def _check_host(host: HostConfig) -> tuple[bool | None, RateLimitInfo | None, str]:
    provider = get_provider(host)
    try:
        valid = provider.validate_credentials()
        rate = provider.rate_limit_status() if valid else None
    except ProviderError as e:
        return None, None, str(e)
    return valid, rate, ""


def _host_details(host: HostConfig, check: bool) -> dict:
    details = host.to_dict()
    details["token_set"] = bool(host.token())
    if not check:
        return details

    valid, rate, error = _check_host(host)
    details["credentials_valid"] = valid
    details["rate_limit"] = rate.to_dict() if rate else None
    details["error"] = error
    if valid:
        try:
            repos = get_provider(host).list_repos()
        except ProviderError as e:
            details["error"] = str(e)
        else:
            details["repos"] = len(repos)
            details["forks"] = sum(1 for r in repos if r.is_fork)
    return details


@app.command()
def hosts(
    ctx: typer.Context,
    label: str = typer.Argument(
        None,
        help="Show details for one host",
    ),
    check: bool = typer.Option(
        False,
        "--check",
        help="Validate credentials and show the API rate limit (with LABEL: also count repositories)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """List configured hosting accounts, or show one in detail."""
    console, formatter = get_console_and_formatter(json_output)
    config = get_config(ctx)

    if label:
        host = select_hosts(config, label)[0]
        if check and not json_output:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                progress.add_task(f"Checking {label}...", total=None)
                details = _host_details(host, check)
        else:
            details = _host_details(host, check)
        formatter.print_host_info(details)
        return

    checks = None
    if check and config.hosts:
        if not json_output:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                progress.add_task("Checking credentials...", total=None)
                checks = {h.label: _check_host(h) for h in config.hosts}
        else:
            checks = {h.label: _check_host(h) for h in config.hosts}

    formatter.print_hosts(config.hosts, checks)


# =============================================================================
# config
# =============================================================================

config_app = typer.Typer(
    help="Create or inspect the configuration file.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing config file",
    ),
):
    """Write a default config file and create the data directory."""
    try:
        path = init_config((ctx.obj or {}).get("config_path"), force=force)
        config = load_config(path)
        config.data_dir.mkdir(parents=True, exist_ok=True)
    except (ConfigError, OSError) as e:
        err_console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1) from None

    console = Console()
    console.print(f"[green]✓[/] Initialized fork-fleet at {config.data_dir}")
    console.print(f"  config: {path}", style="dim")
    console.print(f"  history: {config.history_path}", style="dim")


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show the effective configuration and the file it was read from."""
    _, formatter = get_console_and_formatter(json_output)
    config = get_config(ctx)
    source = (ctx.obj or {}).get("config_path") or resolve_config_file()
    formatter.print_config(config, source)
