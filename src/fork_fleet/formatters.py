"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

from .models import SyncStatus

if TYPE_CHECKING:
    from .config import FleetConfig, HostConfig
    from .history import HistoryEntry
    from .models import ForkDivergence, ForkSyncResult, SyncSummary
    from .providers import RateLimitInfo
    from .reconcile import ReconcileResult


def compute_unique_display_names(
    items: list[Any],
    name_attr: str = "name",
    path_attr: str = "path",
) -> dict[Path, str]:
    """Compute unique display names for items with duplicate names.

    When multiple items share the same name, parent directory components
    are added until each name becomes unique.

    Args:
        items: List of objects with name and path attributes
        name_attr: Name of the attribute containing the item name
        path_attr: Name of the attribute containing the item path

    Returns:
        Dictionary mapping path to display name
    """
    name_groups: dict[str, list[Any]] = defaultdict(list)
    for item in items:
        name_groups[getattr(item, name_attr)].append(item)

    result: dict[Path, str] = {}

    for name, group in name_groups.items():
        if len(group) == 1:
            result[getattr(group[0], path_attr)] = name
        else:
            paths = [getattr(item, path_attr) for item in group]
            for path, unique_name in zip(paths, _make_paths_unique(paths)):
                result[path] = unique_name

    return result


def _make_paths_unique(paths: list[Path]) -> list[str]:
    """Generate shortest unique display names for a list of paths.

    For each path, adds parent directory components until the name
    is unique among all paths.
    """
    path_parts_list = [list(reversed(p.parts)) for p in paths]

    result = []
    for i, parts in enumerate(path_parts_list):
        depth = 1
        while depth <= len(parts):
            candidate = "/".join(reversed(parts[:depth]))

            is_unique = True
            for j, other_parts in enumerate(path_parts_list):
                if i != j:
                    other_depth = min(depth, len(other_parts))
                    other_candidate = "/".join(reversed(other_parts[:other_depth]))
                    if candidate == other_candidate:
                        is_unique = False
                        break

            if is_unique:
                result.append(candidate)
                break
            depth += 1
        else:
            result.append("/".join(reversed(parts)))

    return result


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def _print_json(self, output: Any):
        self.console.print_json(json.dumps(output, default=str))

    # -------------------------------------------------------------------------
    # scan
    # -------------------------------------------------------------------------

    def print_reconcile_results(self, results: list[ReconcileResult]):
        """Print reconciliation results for each host."""
        if self.use_json:
            self._print_json({"hosts": [r.to_dict() for r in results]})
            return
        for result in results:
            self._print_reconcile_table(result)

    def _print_reconcile_table(self, result: ReconcileResult):
        from .reconcile import LocalOnly, Matched, RemoteOnly

        locals_ = [m.local for m in result.matches if isinstance(m, Matched | LocalOnly)]
        display_names = compute_unique_display_names(locals_)

        table = Table(title=f"Reconciliation: {result.host_label}")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Where", justify="center")
        table.add_column("Remote")
        table.add_column("Fork of")

        for m in result.matches:
            match m:
                case Matched(local=local, remote=remote):
                    table.add_row(
                        display_names.get(local.path, local.name),
                        "[green]both[/]",
                        remote.full_name,
                        remote.upstream_full_name or "",
                    )
                case LocalOnly(local=local):
                    table.add_row(
                        display_names.get(local.path, local.name),
                        "[yellow]local only[/]",
                        "[dim]-[/]",
                        "",
                    )
                case RemoteOnly(remote=remote):
                    table.add_row(
                        remote.name,
                        "[blue]remote only[/]",
                        remote.full_name,
                        remote.upstream_full_name or "",
                    )

        self.console.print(table)
        self.console.print(
            f"[green]Matched:[/] {result.matched_count} | "
            f"[yellow]Local-only:[/] {result.local_only_count} | "
            f"[blue]Remote-only:[/] {result.remote_only_count}\n"
        )

    # -------------------------------------------------------------------------
    # sync
    # -------------------------------------------------------------------------

    def print_sync_results(
        self,
        results: list[ForkSyncResult],
        summary: SyncSummary,
        skipped_no_upstream: list[str] | None = None,
    ):
        """Print fork sync results, a summary line, and every failure."""
        skipped_no_upstream = skipped_no_upstream or []
        if self.use_json:
            self._print_json(
                {
                    "results": [r.to_dict() for r in results],
                    "summary": summary.to_dict(),
                    "skipped_no_upstream": skipped_no_upstream,
                }
            )
            return

        for name in skipped_no_upstream:
            self.console.print(f"[dim]Skipping {name}: no upstream known[/]")

        if not results:
            self.console.print("[dim]No forks to sync[/]")
            return

        dry_run = any(r.dry_run for r in results)
        table = Table(title="Fork Sync Results" + (" (dry-run)" if dry_run else ""))
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Status", justify="center")
        table.add_column("Commits", justify="right")
        table.add_column("Duration", justify="right")

        for result in results:
            record = result.record
            duration = (record.finished_at - record.started_at).total_seconds()
            commits = str(record.commits_transferred)
            if result.dry_run and record.status == SyncStatus.SKIPPED:
                commits = f"[dim]{commits} behind[/]"
            table.add_row(
                result.repo_full_name,
                self._get_status_display(record.status),
                commits,
                f"{duration:.1f}s",
            )

        self.console.print(table)
        self.console.print()
        self._print_sync_summary(summary)

        for result in results:
            if result.record.errors:
                self.console.print(f"\n[bold red]Errors for {result.repo_full_name}:[/]")
                for err in result.record.errors:
                    self.console.print(f"  {err}", markup=False)

    def _get_status_display(self, status: SyncStatus) -> str:
        match status:
            case SyncStatus.SUCCESS:
                return "[green]✓ synced[/]"
            case SyncStatus.PARTIAL_SUCCESS:
                return "[yellow]~ partial[/]"
            case SyncStatus.FAILED:
                return "[red]✗ failed[/]"
            case SyncStatus.SKIPPED:
                return "[dim]skipped[/]"
            case _:
                return "[dim]?[/]"

    def _print_sync_summary(self, summary: SyncSummary):
        parts = [f"[bold]Total:[/] {summary.total}"]
        parts.append(f"[green]✓ Synced:[/] {summary.success}")
        if summary.partial > 0:
            parts.append(f"[yellow]~ Partial:[/] {summary.partial}")
        parts.append(f"[red]✗ Failed:[/] {summary.failed}")
        parts.append(f"[dim]Skipped:[/] {summary.skipped}")
        parts.append(f"[cyan]Commits:[/] {summary.commits}")
        self.console.print(" | ".join(parts))

    # -------------------------------------------------------------------------
    # status
    # -------------------------------------------------------------------------

    def print_divergence_list(self, divergences: list[ForkDivergence], root_paths: list[Path]):
        """Print ahead/behind of local forks against their upstream."""
        if self.use_json:
            self._print_json(
                {
                    "roots": [str(p) for p in root_paths],
                    "repositories": [d.to_dict() for d in divergences],
                }
            )
            return

        if not divergences:
            self.console.print("[dim]No repositories with an upstream remote found[/]")
            return

        display_names = compute_unique_display_names(divergences)
        table = Table(title="Fork Divergence")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Branch")
        table.add_column("Upstream", justify="center")

        for d in divergences:
            table.add_row(
                display_names.get(d.path, d.name), f"[blue]{d.branch}[/]", self._get_divergence_icon(d)
            )

        self.console.print(table)

    def _get_divergence_icon(self, d: ForkDivergence) -> str:
        if d.error_message:
            return f"[red]✗ {d.error_message[:30]}[/]"
        if d.ahead_count and d.behind_count:
            return f"[red]⬆{d.ahead_count} ⬇{d.behind_count}[/]"
        if d.behind_count:
            return f"[blue]⬇ {d.behind_count}[/]"
        if d.ahead_count:
            return f"[yellow]⬆ {d.ahead_count}[/]"
        return "[green]✓[/]"

    # -------------------------------------------------------------------------
    # history
    # -------------------------------------------------------------------------

    def print_history(self, entries: list[HistoryEntry]):
        if self.use_json:
            self._print_json({"entries": [e.to_dict() for e in entries]})
            return

        if not entries:
            self.console.print("[dim]No sync history[/]")
            return

        table = Table(title="Sync History")
        table.add_column("Finished", justify="right")
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Host")
        table.add_column("Status", justify="center")
        table.add_column("Commits", justify="right")

        for entry in entries:
            record = entry.record
            table.add_row(
                self._format_date(record.finished_at),
                entry.repo_full_name,
                entry.host_label,
                self._get_status_display(record.status),
                str(record.commits_transferred),
            )

        self.console.print(table)

    def _format_date(self, dt: datetime | None) -> str:
        """Format datetime for display."""
        if dt is None:
            return "[dim]unknown[/]"

        now = datetime.now(dt.tzinfo)
        delta = now - dt

        if delta.days == 0:
            hours = delta.seconds // 3600
            if hours == 0:
                minutes = delta.seconds // 60
                return f"[green]{minutes}m ago[/]"
            return f"[green]{hours}h ago[/]"
        elif delta.days == 1:
            return "[green]yesterday[/]"
        elif delta.days < 7:
            return f"[yellow]{delta.days}d ago[/]"
        else:
            return f"[dim]{dt.strftime('%Y-%m-%d')}[/]"

    # -------------------------------------------------------------------------
    # hosts
    # -------------------------------------------------------------------------

    def print_hosts(
        self,
        hosts: list[HostConfig],
        checks: dict[str, tuple[bool | None, RateLimitInfo | None, str]] | None = None,
    ):
        """Print configured hosts, with credential checks when available."""
        checks = checks or {}
        if self.use_json:
            output = []
            for host in hosts:
                data = host.to_dict()
                if host.label in checks:
                    valid, rate, error = checks[host.label]
                    data["credentials_valid"] = valid
                    data["rate_limit"] = rate.to_dict() if rate else None
                    data["error"] = error
                output.append(data)
            self._print_json({"hosts": output})
            return

        if not hosts:
            self.console.print("[dim]No hosts configured[/]")
            return

        table = Table(title="Hosts")
        table.add_column("Label", style="cyan", no_wrap=True)
        table.add_column("Kind")
        table.add_column("User")
        table.add_column("API URL")
        if checks:
            table.add_column("Credentials", justify="center")
            table.add_column("Rate limit", justify="right")

        for host in hosts:
            row = [host.label, host.kind.value, host.username, host.api_url or host.kind.default_api_url]
            if checks:
                valid, rate, error = checks.get(host.label, (None, None, ""))
                if error:
                    row.append(f"[red]✗ {error[:40]}[/]")
                elif valid:
                    row.append("[green]✓[/]")
                else:
                    row.append("[red]✗ rejected[/]")
                row.append(f"{rate.remaining}/{rate.limit}" if rate else "[dim]-[/]")
            table.add_row(*row)

        self.console.print(table)

    def print_host_info(self, details: dict[str, Any]):
        """Print the details of a single host."""
        if self.use_json:
            self._print_json(details)
            return

        table = Table(title=f"Host: {details['label']}", show_header=False)
        table.add_column("Field", style="cyan", no_wrap=True)
        table.add_column("Value")
        table.add_row("Kind", details["kind"])
        table.add_row("User", details["username"] or "[dim]-[/]")
        table.add_row("API URL", details["api_url"])
        table.add_row("Token", self._token_display(details))

        if "credentials_valid" in details:
            if details["error"]:
                table.add_row("Credentials", f"[red]✗ {details['error']}[/]")
            elif details["credentials_valid"]:
                table.add_row("Credentials", "[green]✓ valid[/]")
            else:
                table.add_row("Credentials", "[red]✗ rejected[/]")
            rate = details["rate_limit"]
            if rate:
                table.add_row("Rate limit", f"{rate['remaining']}/{rate['limit']} remaining")
        if "repos" in details:
            table.add_row("Repositories", str(details["repos"]))
            table.add_row("Forks", str(details["forks"]))

        self.console.print(table)

    def _token_display(self, details: dict[str, Any]) -> str:
        if not details["token_env"]:
            return "[dim]not configured[/]"
        if details["token_set"]:
            return f"[green]✓[/] ${details['token_env']}"
        return f"[yellow]${details['token_env']} is not set[/]"

    # -------------------------------------------------------------------------
    # config
    # -------------------------------------------------------------------------

    def print_config(self, config: FleetConfig, source: Path | None):
        """Print the effective configuration and the file it came from."""
        if self.use_json:
            self._print_json({"config_file": str(source) if source else None, **config.to_dict()})
            return

        self.console.print(f"[bold]Config file:[/] {source or '[dim]none (defaults)[/]'}")
        table = Table(show_header=False)
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value")
        for key, value in config.to_dict().items():
            if key == "hosts":
                value = ", ".join(h["label"] for h in value) or "[dim]none[/]"
            elif isinstance(value, list):
                value = ", ".join(value) or "[dim]none[/]"
            table.add_row(key, str(value))
        self.console.print(table)
