"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_JSON_OPTION = {
    "type": "boolean",
    "description": "Output as JSON for machine parsing",
    "default": False,
}

_HOST_OPTION = {
    "type": "string",
    "description": "Only use the configured host with this label (default: all hosts)",
}

_SYNC_RECORD = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "repo_id": {"type": "string"},
        "sync_link_id": {"type": ["string", "null"]},
        "branches_synced": {"type": "integer"},
        "branches_failed": {"type": "integer"},
        "commits_transferred": {"type": "integer"},
        "status": {
            "type": "string",
            "enum": ["success", "partial_success", "failed", "skipped"],
        },
        "errors": {"type": "array", "items": {"type": "string"}},
        "started_at": {"type": "string", "format": "date-time"},
        "finished_at": {"type": "string", "format": "date-time"},
    },
}


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "fork-fleet",
        "version": __version__,
        "description": "Keep forks in sync with their upstream repositories across hosting services. Scans local directories for git repositories, reconciles them with the repositories listed by each configured host, and fast-forwards, merges, rebases or resets forks onto their upstream in parallel.",
        "usage": "fork-fleet <command> [args] [options]",
        "tools": [
            {
                "name": "scan",
                "description": "Scan local paths for git repositories and reconcile them with each host's repository listing by normalized clone URL. Classifies every repository as matched, local-only or remote-only.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "Directory to scan (default: scan_paths from the config file)",
                        },
                        "host": _HOST_OPTION,
                        "depth": {
                            "type": "integer",
                            "description": "Maximum directory depth to scan (default: max_scan_depth, 4)",
                        },
                        "json": _JSON_OPTION,
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "hosts": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "host_label": {"type": "string"},
                                    "matched_count": {"type": "integer"},
                                    "local_only_count": {"type": "integer"},
                                    "remote_only_count": {"type": "integer"},
                                    "matches": {
                                        "type": "array",
                                        "items": {
                                            "type": "object",
                                            "properties": {
                                                "kind": {
                                                    "type": "string",
                                                    "enum": ["matched", "local_only", "remote_only"],
                                                },
                                                "local": {"type": "object"},
                                                "remote": {"type": "object"},
                                            },
                                        },
                                    },
                                },
                            },
                        },
                    },
                },
                "examples": [
                    {
                        "description": "Reconcile ~/src against every configured host",
                        "command": "fork-fleet scan ~/src --json",
                    },
                ],
            },
            {
                "name": "sync",
                "description": "Sync forks with their upstream. Clones missing forks, adds an 'upstream' remote, fetches it, and applies the merge strategy to the default branch before pushing to origin. Each repository is isolated: one failure never stops the others. Use --dry-run first to see how far behind each fork is.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "target": {
                            "type": "string",
                            "description": "'all', a full name (owner/repo), or a repository name",
                            "default": "all",
                        },
                        "host": _HOST_OPTION,
                        "strategy": {
                            "type": "string",
                            "enum": ["ff", "merge", "rebase", "force_push"],
                            "description": "Merge strategy (default: default_merge_strategy from config, ff)",
                        },
                        "concurrency": {
                            "type": "integer",
                            "description": "Maximum forks synced at once (default: sync_concurrency, 8)",
                        },
                        "dry_run": {
                            "type": "boolean",
                            "description": "Report behind counts without cloning, fetching, merging or pushing",
                            "default": False,
                        },
                        "json": _JSON_OPTION,
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "results": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "repo_full_name": {"type": "string"},
                                    "dry_run": {"type": "boolean"},
                                    "record": _SYNC_RECORD,
                                },
                            },
                        },
                        "summary": {
                            "type": "object",
                            "properties": {
                                "total": {"type": "integer"},
                                "success": {"type": "integer"},
                                "partial": {"type": "integer"},
                                "failed": {"type": "integer"},
                                "skipped": {"type": "integer"},
                                "commits": {"type": "integer"},
                            },
                        },
                        "skipped_no_upstream": {"type": "array", "items": {"type": "string"}},
                    },
                },
                "examples": [
                    {
                        "description": "Preview syncing every fork",
                        "command": "fork-fleet sync --dry-run --json",
                    },
                    {
                        "description": "Rebase a single fork onto its upstream",
                        "command": "fork-fleet sync octocat/hello-world --strategy rebase",
                    },
                ],
            },
            {
                "name": "status",
                "description": "Show how far each local repository with an 'upstream' remote is ahead of or behind upstream/<branch>. Uses already-fetched refs only.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "Directory to scan (default: scan_paths from the config file)",
                        },
                        "depth": {"type": "integer", "description": "Maximum directory depth to scan"},
                        "json": _JSON_OPTION,
                    },
                    "required": [],
                },
            },
            {
                "name": "history",
                "description": "Show recorded sync results, newest first. Dry runs are never recorded.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "repo": {"type": "string", "description": "Only show this repository"},
                        "limit": {"type": "integer", "description": "Maximum entries", "default": 20},
                        "json": _JSON_OPTION,
                    },
                    "required": [],
                },
            },
            {
                "name": "hosts",
                "description": "List configured hosting accounts, or show one host in detail. With --check, validate credentials and show the API rate limit.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "label": {
                            "type": "string",
                            "description": "Host label to show in detail (positional argument)",
                        },
                        "check": {"type": "boolean", "default": False},
                        "json": _JSON_OPTION,
                    },
                    "required": [],
                },
            },
            {
                "name": "config show",
                "description": "Show the effective configuration and the file it was read from.",
                "inputSchema": {
                    "type": "object",
                    "properties": {"json": _JSON_OPTION},
                    "required": [],
                },
            },
            {
                "name": "config init",
                "description": "Write a default config file to the resolved location and create the data directory.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "force": {
                            "type": "boolean",
                            "default": False,
                            "description": "Overwrite an existing config file",
                        },
                    },
                    "required": [],
                },
            },
        ],
        "configResolution": {
            "description": "When --config is not specified, fork-fleet searches for a config file",
            "priority": [
                "$FORK_FLEET_CONFIG environment variable (path to config file)",
                "~/.config/fork-fleet/config.toml (XDG-compliant)",
                "~/.fork-fleet.toml (legacy fallback)",
            ],
            "fallback": "Built-in defaults with no hosts configured",
        },
        "notes": [
            "All commands support --json for machine-readable output",
            "Host API tokens are read from the environment variable named by each host's token_env",
            "Matching between local and remote repositories uses normalized clone URLs, so SSH and HTTPS remotes are equivalent",
            "Only github hosts have a working provider; other kinds report 'provider not implemented'",
        ],
    }
