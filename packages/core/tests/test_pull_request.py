"""Tests for the GitHub provider wrapper and run metadata."""

from unittest.mock import MagicMock

import pytest
from github import UnknownObjectException

from prscope_core.collectors.diff import pull_request_from_metadata
from prscope_core.gh.pull_request import PROVIDER_ERRORS, GitHubProvider, run_metadata


def _item(data):
    item = MagicMock()
    item.raw_data = data
    return item


def _provider():
    client = MagicMock()
    repo = MagicMock()
    client.get_repo.return_value = repo
    return GitHubProvider(client=client), client, repo


class TestGitHubProvider:
    def test_repo_looked_up_once(self):
        provider, client, repo = _provider()
        repo.get_issue.return_value = _item({"number": 3})

        provider.get_issue("acme/shop", 3)
        provider.get_issue("acme/shop", 4)

        client.get_repo.assert_called_once_with("acme/shop")

    def test_pull_request_files(self):
        provider, _, repo = _provider()
        repo.get_pull.return_value.get_files.return_value = [_item({"filename": "a.py"}), _item({"filename": "b.py"})]

        files = provider.get_pull_request_files("acme/shop", 9)

        repo.get_pull.assert_called_with(9)
        assert files == [{"filename": "a.py"}, {"filename": "b.py"}]

    def test_comments_limited_lazily(self):
        provider, _, repo = _provider()
        consumed = []

        def comments():
            for i in range(100):
                consumed.append(i)
                yield _item({"body": str(i)})

        repo.get_issue.return_value.get_comments.return_value = comments()

        result = provider.get_issue_comments("acme/shop", 3, limit=2)

        assert [c["body"] for c in result] == ["0", "1"]
        assert len(consumed) == 3

    def test_file_contents(self):
        provider, _, repo = _provider()
        contents = MagicMock(content="eA==", encoding="base64", size=1)
        repo.get_contents.return_value = contents

        assert provider.get_file_contents("acme/shop", "a.py", ref="abc") == {
            "content": "eA==",
            "encoding": "base64",
            "size": 1,
        }
        repo.get_contents.assert_called_once_with("a.py", ref="abc")

    def test_file_contents_without_ref(self):
        provider, _, repo = _provider()
        repo.get_contents.return_value = MagicMock(content="", encoding="base64", size=0)

        provider.get_file_contents("acme/shop", "a.py")

        repo.get_contents.assert_called_once_with("a.py")

    def test_directory_is_none(self):
        provider, _, repo = _provider()
        repo.get_contents.return_value = [MagicMock(), MagicMock()]
        assert provider.get_file_contents("acme/shop", "src") is None

    def test_not_found_is_a_provider_error(self):
        provider, _, repo = _provider()
        repo.get_contents.side_effect = UnknownObjectException(404, {"message": "Not Found"}, None)

        with pytest.raises(PROVIDER_ERRORS):
            provider.get_file_contents("acme/shop", "missing.py")

    def test_search_code(self):
        provider, client, _ = _provider()
        client.search_code.return_value = [_item({"path": "a.py"}), _item({"path": "b.py"})]

        assert provider.search_code('"f(" repo:acme/shop', 1) == [{"path": "a.py"}]
        client.search_code.assert_called_once_with('"f(" repo:acme/shop')


class TestRunMetadata:
    PULL = {
        "number": 42,
        "title": "Add checkout",
        "body": None,
        "draft": True,
        "user": {"login": "alice"},
        "base": {"ref": "develop", "repo": {"full_name": "acme/shop", "default_branch": "main"}},
        "head": {"ref": "feature/checkout", "sha": "c" * 40},
        "assignees": [{"login": "bob"}, {}],
        "requested_reviewers": [{"login": "carol"}],
        "labels": [{"name": "feature"}],
    }

    def test_flattens_payload(self):
        metadata = run_metadata(self.PULL)
        assert metadata["pull_request_number"] == 42
        assert metadata["pull_request_body"] == ""
        assert metadata["base_branch"] == "develop"
        assert metadata["head_sha"] == "c" * 40
        assert metadata["author"] == {"login": "alice"}
        assert metadata["assignees"] == ["bob"]
        assert metadata["reviewers"] == ["carol"]
        assert metadata["repository_full_name"] == "acme/shop"

    def test_round_trips_through_diff_collector(self):
        pr = pull_request_from_metadata(run_metadata(self.PULL))
        assert pr.number == 42
        assert pr.title == "Add checkout"
        assert pr.head_branch == "feature/checkout"
        assert pr.author == "alice"
        assert pr.is_draft is True
        assert pr.labels == ["feature"]

    def test_missing_user(self):
        metadata = run_metadata({"number": 1})
        assert metadata["author"] is None
        assert metadata["sender_login"] is None
        assert metadata["base_branch"] is None
