"""
Tests for URL normalization and local/remote reconciliation.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_descriptor

from fork_fleet.errors import ProviderError
from fork_fleet.models import ScannedRemote, ScannedRepository
from fork_fleet.reconcile import (
    LocalOnly,
    Matched,
    RemoteOnly,
    discover,
    normalize_url,
    reconcile,
)


def local_repo(name: str, *urls: str) -> ScannedRepository:
    return ScannedRepository(
        path=Path("/src") / name,
        remotes=tuple(ScannedRemote(name="origin", url=url) for url in urls),
    )


# ── normalize_url ────────────────────────────────────────────────────


class TestNormalizeUrl:

    @pytest.mark.parametrize(
        "url",
        [
            "git@github.com:user/repo.git",
            "https://github.com/user/repo.git",
            "ssh://git@github.com/user/repo",
            "HTTPS://GitHub.com/User/Repo/",
            "http://github.com/user/repo",
            "git://github.com/user/repo.git",
        ],
    )
    def test_equivalent_spellings(self, url):
        assert normalize_url(url) == "github.com/user/repo"

    def test_credentials_in_https_url_are_dropped(self):
        assert normalize_url("https://token@gitlab.com/group/proj.git") == "gitlab.com/group/proj"

    def test_ssh_url_with_port_keeps_port(self):
        assert normalize_url("ssh://git@example.com:2222/team/repo.git") == "example.com/2222/team/repo"

    def test_at_sign_after_path_is_kept(self):
        assert normalize_url("https://example.com/user@team/repo") == "example.com/user@team/repo"

    def test_colon_after_slash_is_kept(self):
        assert normalize_url("https://example.com/a:b") == "example.com/a:b"

    @pytest.mark.parametrize(
        "url",
        [
            "git@github.com:user/repo.git",
            "https://github.com/user/repo/",
            "ssh://git@example.com:2222/team/repo.git",
            "/local/path/repo.git",
            "",
        ],
    )
    def test_idempotent(self, url):
        once = normalize_url(url)
        assert normalize_url(once) == once


# ── reconcile ────────────────────────────────────────────────────────


class TestReconcile:

    def test_disjoint_sets(self):
        locals_ = [
            local_repo("a", "https://github.com/me/a.git"),
            local_repo("b", "https://github.com/me/b.git"),
        ]
        remotes = [make_descriptor("me/x"), make_descriptor("me/y"), make_descriptor("me/z")]

        result = reconcile(locals_, remotes, "gh")

        assert result.host_label == "gh"
        assert result.matched_count == 0
        assert result.local_only_count == 2
        assert result.remote_only_count == 3

    def test_mixed_classification(self):
        l1 = local_repo("a", "git@github.com:me/a.git")
        l2 = local_repo("b", "https://github.com/me/b")
        l3 = local_repo("elsewhere", "https://example.com/me/elsewhere.git")
        a, b, c = make_descriptor("me/a"), make_descriptor("me/b"), make_descriptor("me/c")

        result = reconcile([l1, l2, l3], [a, b, c], "gh")

        assert result.matched_count == 2
        assert result.local_only_count == 1
        assert result.remote_only_count == 1
        assert result.matches == [
            Matched(local=l1, remote=a),
            Matched(local=l2, remote=b),
            LocalOnly(local=l3),
            RemoteOnly(remote=c),
        ]

    def test_matches_on_any_local_remote(self):
        repo = ScannedRepository(
            path=Path("/src/a"),
            remotes=(
                ScannedRemote("upstream", "https://github.com/them/a.git"),
                ScannedRemote("origin", "git@github.com:me/a.git"),
            ),
        )
        result = reconcile([repo], [make_descriptor("me/a")], "gh")
        assert result.matched_count == 1

    def test_first_remote_in_order_wins(self):
        repo = local_repo("a", "https://github.com/me/a.git")
        first = make_descriptor("me/a")
        second = make_descriptor("me/a-mirror", clone_url="https://github.com/me/a")

        result = reconcile([repo], [first, second], "gh")

        assert result.matched == [Matched(local=repo, remote=first)]
        assert result.remote_only == [RemoteOnly(remote=second)]

    def test_matched_remote_stays_eligible_for_later_locals(self):
        checkout1 = local_repo("a", "https://github.com/me/a.git")
        checkout2 = ScannedRepository(
            path=Path("/work/a"),
            remotes=(ScannedRemote("origin", "git@github.com:me/a.git"),),
        )
        remote = make_descriptor("me/a")

        result = reconcile([checkout1, checkout2], [remote], "gh")

        assert result.matched_count == 2
        assert all(m.remote is remote for m in result.matched)
        assert result.remote_only_count == 0

    def test_local_without_remotes_is_local_only(self):
        result = reconcile([local_repo("bare")], [make_descriptor("me/a")], "gh")
        assert result.local_only_count == 1
        assert result.remote_only_count == 1

    def test_empty_inputs(self):
        result = reconcile([], [], "gh")
        assert result.matches == []

    def test_to_dict_kinds(self):
        result = reconcile(
            [local_repo("a", "https://github.com/me/a.git"), local_repo("x")],
            [make_descriptor("me/a"), make_descriptor("me/b")],
            "gh",
        )
        data = result.to_dict()
        assert [m["kind"] for m in data["matches"]] == ["matched", "local_only", "remote_only"]
        assert data["matched_count"] == 1


# ── discover ─────────────────────────────────────────────────────────


class FakeProvider:
    def __init__(self, repos=None, error: Exception | None = None):
        self.repos = repos or []
        self.error = error

    def list_repos(self):
        if self.error:
            raise self.error
        return self.repos


class TestDiscover:

    def test_scans_and_reconciles(self, tmp_path):
        repo = tmp_path / "src" / "a"
        (repo / ".git").mkdir(parents=True)
        (repo / ".git" / "config").write_text(
            '[remote "origin"]\n\turl = git@github.com:me/a.git\n'
        )
        provider = FakeProvider([make_descriptor("me/a"), make_descriptor("me/b")])

        result = discover("gh", provider, [tmp_path / "src"], max_depth=2)

        assert result.matched_count == 1
        assert result.matched[0].local.path == repo
        assert result.remote_only_count == 1

    def test_provider_errors_propagate(self, tmp_path):
        provider = FakeProvider(error=ProviderError("boom", status=500))
        with pytest.raises(ProviderError):
            discover("gh", provider, [tmp_path], max_depth=1)
