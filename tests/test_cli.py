"""
CLI tests using typer's CliRunner.

Hosting providers are replaced with an in-memory fake; git operations run
against the throwaway repositories from the ``forge`` fixture.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import make_descriptor
from typer.testing import CliRunner

from fork_fleet import __version__, cli
from fork_fleet.cli import app
from fork_fleet.config import DEFAULT_CONFIG_TEMPLATE
from fork_fleet.errors import ProviderError
from fork_fleet.git_ops import GitOperations
from fork_fleet.models import RemoteRepositoryDescriptor, utcnow
from fork_fleet.providers import RateLimitInfo

runner = CliRunner()


class FakeProvider:
    def __init__(self, repos=None, details=None, error: Exception | None = None):
        self.repos = repos or []
        self.details = details or {}
        self.error = error

    def list_repos(self):
        if self.error:
            raise self.error
        return self.repos

    def get_repo(self, owner, name):
        return self.details.get(f"{owner}/{name}")

    def validate_credentials(self):
        return True

    def rate_limit_status(self):
        return RateLimitInfo(limit=5000, remaining=4990, reset_at=utcnow())


@pytest.fixture
def use_provider(monkeypatch):
    def install(provider):
        monkeypatch.setattr(cli, "create_provider", lambda host, token: provider)
        return provider

    return install


def write_config(tmp_path: Path, hosts: bool = True, extra: str = "") -> Path:
    text = f'data_dir = "{(tmp_path / "data").as_posix()}"\n{extra}'
    if hosts:
        text += '\n[[hosts]]\nlabel = "gh"\nkind = "github"\nusername = "me"\n'
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


def invoke(config: Path, *args: str):
    return runner.invoke(app, ["--config", str(config), *args])


def fork_of(forge) -> RemoteRepositoryDescriptor:
    return make_descriptor(
        "me/project",
        clone_url=str(forge.origin),
        is_fork=True,
        upstream_full_name="them/project",
        upstream_clone_url=str(forge.upstream),
    )


# ── global options ───────────────────────────────────────────────────


class TestGlobalOptions:

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"fork-fleet {__version__}" in result.stdout

    def test_schema(self):
        result = runner.invoke(app, ["--schema"])
        assert result.exit_code == 0
        schema = json.loads(result.stdout)
        assert schema["name"] == "fork-fleet"
        assert {t["name"] for t in schema["tools"]} == {
            "scan", "sync", "status", "history", "hosts", "config show", "config init"
        }

    def test_invalid_config_exits(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("sync_concurrency = 0\n")
        result = invoke(bad, "history")
        assert result.exit_code == 1


# ── hosts / history ──────────────────────────────────────────────────


class TestHostsAndHistory:

    def test_hosts_json(self, tmp_path):
        result = invoke(write_config(tmp_path), "hosts", "--json")
        assert result.exit_code == 0
        hosts = json.loads(result.stdout)["hosts"]
        assert [h["label"] for h in hosts] == ["gh"]
        assert hosts[0]["api_url"] == "https://api.github.com"

    def test_hosts_check(self, tmp_path, use_provider):
        use_provider(FakeProvider())
        result = invoke(write_config(tmp_path), "hosts", "--check", "--json")
        assert result.exit_code == 0
        host = json.loads(result.stdout)["hosts"][0]
        assert host["credentials_valid"] is True
        assert host["rate_limit"]["remaining"] == 4990

    def test_host_info(self, tmp_path, use_provider, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "t0ken")
        use_provider(FakeProvider([make_descriptor("me/a", is_fork=True), make_descriptor("me/b")]))
        config = write_config(tmp_path)
        config.write_text(config.read_text() + 'token_env = "GH_TOKEN"\n')

        result = invoke(config, "hosts", "gh", "--check", "--json")

        assert result.exit_code == 0
        details = json.loads(result.stdout)
        assert details["label"] == "gh"
        assert details["token_set"] is True
        assert details["credentials_valid"] is True
        assert (details["repos"], details["forks"]) == (2, 1)

    def test_host_info_without_check_stays_offline(self, tmp_path):
        result = invoke(write_config(tmp_path), "hosts", "gh", "--json")
        assert result.exit_code == 0
        details = json.loads(result.stdout)
        assert details["token_set"] is False
        assert "repos" not in details

    def test_host_info_unknown_label(self, tmp_path):
        result = invoke(write_config(tmp_path), "hosts", "nope")
        assert result.exit_code == 1

    def test_no_hosts(self, tmp_path):
        result = invoke(write_config(tmp_path, hosts=False), "hosts")
        assert result.exit_code == 0
        assert "No hosts configured" in result.stdout

    def test_empty_history(self, tmp_path):
        result = invoke(write_config(tmp_path), "history")
        assert result.exit_code == 0
        assert "No sync history" in result.stdout


# ── scan ─────────────────────────────────────────────────────────────


class TestScan:

    def test_scan_json(self, tmp_path, use_provider):
        repo = tmp_path / "src" / "project"
        (repo / ".git").mkdir(parents=True)
        (repo / ".git" / "config").write_text('[remote "origin"]\n\turl = git@github.com:me/project.git\n')
        use_provider(FakeProvider([make_descriptor("me/project"), make_descriptor("me/other")]))

        result = invoke(write_config(tmp_path), "scan", str(tmp_path / "src"), "--json")

        assert result.exit_code == 0
        host = json.loads(result.stdout)["hosts"][0]
        assert host["host_label"] == "gh"
        assert (host["matched_count"], host["local_only_count"], host["remote_only_count"]) == (1, 0, 1)

    def test_provider_error_exits_nonzero(self, tmp_path, use_provider):
        use_provider(FakeProvider(error=ProviderError("bad credentials", status=401)))
        result = invoke(write_config(tmp_path), "scan", str(tmp_path), "--json")
        assert result.exit_code == 1

    def test_requires_hosts(self, tmp_path):
        result = invoke(write_config(tmp_path, hosts=False), "scan", str(tmp_path))
        assert result.exit_code == 1

    def test_unknown_host_label(self, tmp_path):
        result = invoke(write_config(tmp_path), "scan", str(tmp_path), "--host", "nope")
        assert result.exit_code == 1


# ── sync ─────────────────────────────────────────────────────────────


class TestSync:

    def test_dry_run(self, forge, tmp_path, use_provider):
        use_provider(FakeProvider([fork_of(forge), make_descriptor("me/not-a-fork")]))

        result = invoke(write_config(tmp_path), "sync", "--dry-run", "--json")

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert [r["repo_full_name"] for r in output["results"]] == ["me/project"]
        assert output["results"][0]["record"]["status"] == "skipped"
        assert output["summary"]["skipped"] == 1
        assert not (tmp_path / "data" / "repos").exists()
        assert not (tmp_path / "data" / "history.jsonl").exists()

    def test_live_sync_clones_pushes_and_records(self, forge, tmp_path, use_provider):
        upstream_head = forge.commit_upstream("a.txt", "a\n", "upstream a")
        use_provider(FakeProvider([fork_of(forge)]))
        config = write_config(tmp_path)

        result = invoke(config, "sync", "--json")

        assert result.exit_code == 0, result.output
        output = json.loads(result.stdout)
        assert output["summary"]["success"] == 1
        assert output["summary"]["commits"] == 1
        assert (tmp_path / "data" / "repos" / "gh" / "project" / ".git").is_dir()
        assert forge.head(forge.origin, "main") == upstream_head

        history = json.loads(invoke(config, "history", "--json").stdout)["entries"]
        assert [(e["repo_full_name"], e["host_label"]) for e in history] == [("me/project", "gh")]

    def test_failed_sync_exits_nonzero(self, forge, tmp_path, use_provider):
        broken = make_descriptor(
            "me/project",
            clone_url=str(tmp_path / "missing.git"),
            is_fork=True,
            upstream_clone_url=str(forge.upstream),
        )
        use_provider(FakeProvider([broken]))

        result = invoke(write_config(tmp_path), "sync", "--json")

        assert result.exit_code == 1
        assert '"failed": 1' in result.output

    def test_upstream_looked_up_from_fork_details(self, forge, tmp_path, use_provider):
        listed = make_descriptor("me/project", clone_url=str(forge.origin), is_fork=True)
        detailed = fork_of(forge)
        use_provider(FakeProvider([listed], details={"me/project": detailed}))

        result = invoke(write_config(tmp_path), "sync", "--dry-run", "--json")

        output = json.loads(result.stdout)
        assert output["skipped_no_upstream"] == []
        assert len(output["results"]) == 1

    def test_fork_without_known_upstream_is_skipped(self, tmp_path, use_provider):
        use_provider(FakeProvider([make_descriptor("me/orphan", is_fork=True)]))

        result = invoke(write_config(tmp_path), "sync", "--dry-run", "--json")

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["skipped_no_upstream"] == ["me/orphan"]
        assert output["results"] == []

    def test_unknown_target(self, forge, tmp_path, use_provider):
        use_provider(FakeProvider([fork_of(forge)]))
        result = invoke(write_config(tmp_path), "sync", "me/nothing", "--dry-run")
        assert result.exit_code == 1

    def test_invalid_strategy(self, tmp_path, use_provider):
        use_provider(FakeProvider())
        result = invoke(write_config(tmp_path), "sync", "--strategy", "squash")
        assert result.exit_code == 1


# ── status ───────────────────────────────────────────────────────────


class TestStatus:

    def test_reports_divergence(self, forge, tmp_path):
        local = forge.clone_origin(tmp_path / "work" / "project", with_upstream=True)
        forge.commit_upstream("a.txt", "a\n", "upstream a")
        GitOperations(local).fetch("upstream")
        forge.clone_origin(tmp_path / "work" / "plain")

        result = invoke(write_config(tmp_path), "status", str(tmp_path / "work"), "--json")

        assert result.exit_code == 0
        repos = json.loads(result.stdout)["repositories"]
        assert [(r["name"], r["branch"], r["ahead_count"], r["behind_count"]) for r in repos] == [
            ("project", "main", 0, 1)
        ]


# ── config ───────────────────────────────────────────────────────────


class TestConfigCommands:

    def test_init_writes_loadable_default(self, tmp_path):
        path = tmp_path / "conf" / "config.toml"

        result = invoke(path, "config", "init")

        assert result.exit_code == 0, result.output
        assert path.is_file()
        shown = json.loads(invoke(path, "config", "show", "--json").stdout)
        assert shown["config_file"] == str(path)
        assert shown["default_merge_strategy"] == "ff"
        assert shown["sync_concurrency"] == 8
        assert shown["hosts"] == []

    def test_init_refuses_to_overwrite(self, tmp_path):
        path = write_config(tmp_path)
        original = path.read_text()

        assert invoke(path, "config", "init").exit_code == 1
        assert path.read_text() == original

        assert invoke(path, "config", "init", "--force").exit_code == 0
        assert path.read_text() == DEFAULT_CONFIG_TEMPLATE

    def test_init_defaults_to_xdg_location(self, git_env):
        result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0, result.output
        assert (git_env / ".config" / "fork-fleet" / "config.toml").is_file()
        assert (git_env / ".local" / "share" / "fork-fleet").is_dir()

    def test_show_without_file_uses_defaults(self):
        result = runner.invoke(app, ["config", "show", "--json"])

        assert result.exit_code == 0
        shown = json.loads(result.stdout)
        assert shown["config_file"] is None
        assert shown["max_scan_depth"] == 4

    def test_show_table(self, tmp_path):
        result = invoke(write_config(tmp_path), "config", "show")
        assert result.exit_code == 0
        assert "sync_concurrency" in result.stdout
        assert "gh" in result.stdout
