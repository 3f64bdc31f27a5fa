"""Tests for the individual collectors."""

import base64
from unittest.mock import MagicMock

import pytest
from github import UnknownObjectException

from prscope_core.bag import ChangedFile, ContextBag, ContextParams, PullRequestInfo, Repository, ReviewRun
from prscope_core.collectors.base import COMPLETED, FAILED, SKIPPED, BaseCollector
from prscope_core.collectors.diff import DiffCollector, normalize_file, pull_request_from_metadata
from prscope_core.collectors.file_content import FileContentCollector
from prscope_core.collectors.guidelines import GuidelinesCollector
from prscope_core.collectors.linked_issues import LinkedIssueCollector, extract_issue_numbers
from prscope_core.collectors.pr_comments import PullRequestCommentCollector, is_bot
from prscope_core.collectors.project_context import (
    ProjectContextCollector,
    limit_dependencies,
    normalize_module_name,
)
from prscope_core.collectors.repository_context import RepositoryContextCollector
from prscope_core.collectors.review_history import ReviewHistoryCollector, summarize_findings
from prscope_core.collectors.semantic import SemanticCollector
from prscope_core.gh.pull_request import COMMENT_MARKER
from prscope_core.team_config import TEAM_CONFIG_PATH, GuidelineDeclaration, TeamConfig
from prscope_store.models import FindingRecord, ReviewRecord

HEAD_SHA = "d" * 40


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _not_found():
    return UnknownObjectException(404, {"message": "Not Found"}, None)


def _encoded(text):
    return {"content": base64.b64encode(text.encode()).decode(), "encoding": "base64", "size": len(text)}


def _provider(files=None):
    """Provider whose get_file_contents serves ``{(path, ref): text}`` and 404s otherwise."""
    files = files or {}
    provider = MagicMock()

    def get_file_contents(repo, path, ref=None):
        if (path, ref) in files:
            return _encoded(files[(path, ref)])
        raise _not_found()

    provider.get_file_contents.side_effect = get_file_contents
    return provider


def _params(number=7, body="", run_id=1, **metadata):
    metadata = {
        "pull_request_number": number,
        "pull_request_title": "Add checkout",
        "pull_request_body": body,
        "base_branch": "develop",
        "head_sha": HEAD_SHA,
        **metadata,
    }
    return ContextParams(Repository("acme/shop", default_branch="main"), ReviewRun(id=run_id, metadata=metadata))


def _bag(*files, number=7, body="", head_sha=HEAD_SHA):
    bag = ContextBag()
    bag.pull_request = PullRequestInfo(number=number, body=body, head_sha=head_sha)
    bag.files = list(files)
    return bag


# ---------------------------------------------------------------------------
# BaseCollector
# ---------------------------------------------------------------------------


class _StubCollector(BaseCollector):
    name = "stub"

    def __init__(self, ready=True, error=None):
        self.ready = ready
        self.error = error
        self.calls = 0

    def should_collect(self, params):
        return self.ready

    def collect(self, bag, params):
        self.calls += 1
        if self.error:
            raise self.error
        bag.project_context["stub"] = True


class TestBaseCollector:
    def test_completed(self):
        bag = ContextBag()
        result = _StubCollector().run(bag, _params())
        assert result.status == COMPLETED
        assert result.error is None
        assert result.ok
        assert bag.project_context == {"stub": True}

    def test_skipped_without_collecting(self):
        collector = _StubCollector(ready=False)
        result = collector.run(ContextBag(), _params())
        assert result.status == SKIPPED
        assert collector.calls == 0

    def test_failure_is_captured(self):
        result = _StubCollector(error=KeyError("head")).run(ContextBag(), _params())
        assert result.status == FAILED
        assert not result.ok
        assert result.error.collector == "stub"
        assert result.error.category == "KeyError"
        assert "head" in result.error.message


# ---------------------------------------------------------------------------
# DiffCollector
# ---------------------------------------------------------------------------


class TestPullRequestFromMetadata:
    def test_maps_fields(self):
        pr = pull_request_from_metadata(
            {
                "pull_request_number": "12",
                "pull_request_title": "Fix",
                "head_branch": "feature/x",
                "author": {"login": "alice"},
                "labels": [{"name": "bug"}, "urgent", 3],
                "is_draft": True,
            }
        )
        assert pr.number == 12
        assert pr.title == "Fix"
        assert pr.body == ""
        assert pr.base_branch == "main"
        assert pr.author == "alice"
        assert pr.labels == ["bug", "urgent"]
        assert pr.is_draft is True

    def test_sender_login_fallback(self):
        pr = pull_request_from_metadata({"sender_login": "bob"}, default_branch="trunk")
        assert pr.author == "bob"
        assert pr.base_branch == "trunk"
        assert pr.number == 0


class TestNormalizeFile:
    @pytest.mark.parametrize(
        "status, expected",
        [("added", "added"), ("removed", "removed"), ("renamed", "modified"), (None, "modified")],
    )
    def test_status(self, status, expected):
        assert normalize_file({"filename": "a.py", "status": status}).status == expected

    def test_missing_path(self):
        assert normalize_file({"status": "added"}) is None

    def test_changes_default_to_sum(self):
        changed = normalize_file({"filename": "a.py", "additions": 3, "deletions": 2, "patch": 5})
        assert changed.changes == 5
        assert changed.patch is None


class TestDiffCollector:
    def _provider(self, files=None):
        provider = _provider(files)
        provider.get_pull_request_files.return_value = [
            {"filename": "src/app.py", "status": "modified", "additions": 4, "deletions": 1, "patch": "@@ -1 +1 @@"},
            {"filename": "src/old.py", "status": "removed", "deletions": 9},
            "not a file",
            {"status": "added"},
        ]
        return provider

    def test_collects_pull_request_and_files(self):
        provider = self._provider()
        bag = ContextBag()

        result = DiffCollector(provider).run(bag, _params())

        assert result.status == COMPLETED
        assert bag.pull_request.number == 7
        assert bag.pull_request.repository_full_name == "acme/shop"
        assert [(f.path, f.status) for f in bag.files] == [("src/app.py", "modified"), ("src/old.py", "removed")]
        assert bag.metrics.lines_added == 4
        assert bag.metrics.lines_deleted == 10
        provider.get_pull_request_files.assert_called_once_with("acme/shop", 7)

    def test_team_config_falls_back_to_default_branch(self):
        config = "paths:\n  ignore: ['docs/**']\ncontext:\n  token_budget: 30000\n"
        provider = self._provider({(TEAM_CONFIG_PATH, "main"): config})
        bag = ContextBag()

        DiffCollector(provider).run(bag, _params())

        assert bag.config_from_branch == "main"
        assert bag.path_rules.ignore == ["docs/**"]
        assert bag.token_budget == 30000
        refs = [c.kwargs["ref"] for c in provider.get_file_contents.call_args_list]
        assert refs == ["develop", "main"]

    def test_team_config_from_base_branch(self):
        provider = self._provider({(TEAM_CONFIG_PATH, "develop"): "guidelines: [STYLE.md]"})
        bag = ContextBag()

        DiffCollector(provider).run(bag, _params())

        assert bag.config_from_branch == "develop"
        assert [g.path for g in bag.team_config.guidelines] == ["STYLE.md"]
        assert provider.get_file_contents.call_count == 1

    def test_no_team_config(self):
        bag = ContextBag()
        DiffCollector(self._provider()).run(bag, _params())
        assert bag.team_config is None
        assert bag.path_rules is None
        assert bag.config_from_branch is None

    def test_number_zero_skips_file_fetch(self):
        provider = self._provider()
        bag = ContextBag()

        result = DiffCollector(provider).run(bag, _params(number=0))

        assert result.status == COMPLETED
        assert bag.pull_request.number == 0
        assert bag.files == []
        provider.get_pull_request_files.assert_not_called()

    def test_provider_error_is_not_a_failure(self):
        provider = self._provider()
        provider.get_pull_request_files.side_effect = _not_found()
        bag = ContextBag()

        result = DiffCollector(provider).run(bag, _params())

        assert result.status == COMPLETED
        assert bag.pull_request is not None
        assert bag.files == []

    def test_incomplete_params_skip(self):
        provider = self._provider()
        result = DiffCollector(provider).run(ContextBag(), ContextParams(Repository("acme/shop")))
        assert result.status == SKIPPED
        provider.get_pull_request_files.assert_not_called()


# ---------------------------------------------------------------------------
# FileContentCollector
# ---------------------------------------------------------------------------


class TestFileContentCollector:
    def test_fetches_most_changed_files_at_head(self):
        provider = _provider(
            {
                ("src/big.py", HEAD_SHA): "big = 1\n",
                ("src/small.py", HEAD_SHA): "small = 1\n",
                ("src/medium.py", HEAD_SHA): "medium = 1\n",
            }
        )
        bag = _bag(
            ChangedFile("src/small.py", changes=2),
            ChangedFile("src/big.py", changes=50),
            ChangedFile("src/medium.py", changes=10),
            ChangedFile("src/gone.py", status="removed", changes=99),
            ChangedFile("assets/logo.png", changes=80),
        )

        FileContentCollector(provider, max_files=2).run(bag, _params())

        assert list(bag.file_contents) == ["src/big.py", "src/medium.py"]
        assert bag.file_contents["src/big.py"] == "big = 1\n"
        fetched = [c.args[1] for c in provider.get_file_contents.call_args_list]
        assert fetched == ["src/big.py", "src/medium.py"]

    def test_missing_and_oversized_files_skipped(self):
        provider = _provider({("src/huge.py", HEAD_SHA): "x" * 200, ("src/ok.py", HEAD_SHA): "ok"})
        bag = _bag(
            ChangedFile("src/missing.py", changes=3),
            ChangedFile("src/huge.py", changes=2),
            ChangedFile("src/ok.py", changes=1),
        )

        FileContentCollector(provider, max_file_size=100).run(bag, _params())

        assert bag.file_contents == {"src/ok.py": "ok"}

    def test_no_head_sha(self):
        provider = _provider()
        bag = _bag(ChangedFile("src/app.py", changes=1), head_sha=None)

        result = FileContentCollector(provider).run(bag, _params())

        assert result.status == COMPLETED
        provider.get_file_contents.assert_not_called()


# ---------------------------------------------------------------------------
# SemanticCollector
# ---------------------------------------------------------------------------


class TestSemanticCollector:
    def _analyzer(self):
        analyzer = MagicMock()
        analyzer.supports.side_effect = lambda path: path.endswith(".py")
        analyzer.analyze_files.side_effect = lambda files: {p: {"language": "python"} for p in files}
        return analyzer

    def test_analyzes_supported_files(self):
        analyzer = self._analyzer()
        bag = _bag()
        bag.file_contents = {"src/a.py": "a = 1", "README.md": "# hi", "src/b.py": "b = 2"}

        SemanticCollector(analyzer).run(bag, _params())

        assert bag.semantics == {"src/a.py": {"language": "python"}, "src/b.py": {"language": "python"}}

    def test_limits_count_and_size(self):
        analyzer = self._analyzer()
        bag = _bag()
        bag.file_contents = {"src/big.py": "x" * 50, "src/a.py": "a", "src/b.py": "b", "src/c.py": "c"}

        SemanticCollector(analyzer, max_files=2, max_file_size=10).run(bag, _params())

        assert list(bag.semantics) == ["src/a.py", "src/b.py"]

    def test_nothing_to_analyze(self):
        analyzer = self._analyzer()
        SemanticCollector(analyzer).run(_bag(), _params())
        analyzer.analyze_files.assert_not_called()


# ---------------------------------------------------------------------------
# LinkedIssueCollector
# ---------------------------------------------------------------------------


class TestExtractIssueNumbers:
    def test_closing_keywords_first(self):
        assert extract_issue_numbers("Fixes #12, see #40 and closes 7") == [12, 7, 40]

    def test_deduplicated(self):
        assert extract_issue_numbers("Resolves #3. Also #3 and #0.") == [3]

    def test_empty(self):
        assert extract_issue_numbers("") == []
        assert extract_issue_numbers(None) == []


class TestLinkedIssueCollector:
    def _provider(self):
        provider = MagicMock()
        issues = {
            12: {"title": "Checkout fails", "body": "Steps...", "state": "open", "labels": [{"name": "bug"}]},
            40: {"title": "A PR", "pull_request": {"url": "..."}},
        }

        def get_issue(repo, number):
            if number in issues:
                return issues[number]
            raise _not_found()

        provider.get_issue.side_effect = get_issue
        provider.get_issue_comments.return_value = [
            {"user": {"login": "carol"}, "body": "Same here"},
            {"user": {"login": "dave"}, "body": "   "},
            {"body": "anonymous"},
        ]
        return provider

    def test_fetches_referenced_issues(self):
        provider = self._provider()
        body = "Fixes #12, relates to #40, #99 and #7"
        bag = _bag(number=7, body=body)

        LinkedIssueCollector(provider).run(bag, _params(body=body))

        assert [i.number for i in bag.linked_issues] == [12]
        issue = bag.linked_issues[0]
        assert issue.title == "Checkout fails"
        assert issue.labels == ["bug"]
        assert [(c.author, c.body) for c in issue.comments] == [("carol", "Same here"), ("unknown", "anonymous")]
        # The PR's own number is never fetched.
        assert 7 not in [c.args[1] for c in provider.get_issue.call_args_list]

    def test_max_issues(self):
        provider = self._provider()
        body = "#12 #40 #99"
        bag = _bag(body=body)

        LinkedIssueCollector(provider, max_issues=1).run(bag, _params(body=body))

        assert provider.get_issue.call_count == 1

    def test_blank_body_skips(self):
        provider = self._provider()
        result = LinkedIssueCollector(provider).run(_bag(), _params(body="   "))
        assert result.status == SKIPPED
        provider.get_issue.assert_not_called()


# ---------------------------------------------------------------------------
# PullRequestCommentCollector
# ---------------------------------------------------------------------------


class TestPullRequestCommentCollector:
    @pytest.mark.parametrize("login", ["dependabot[bot]", "renovate-bot", "github-actions", "codecov-commenter"])
    def test_is_bot(self, login):
        assert is_bot(login)

    def test_human_is_not_bot(self):
        assert not is_bot("alice")
        assert not is_bot(None)

    def test_filters_noise(self):
        provider = MagicMock()
        provider.get_pull_request_comments.return_value = [
            {"user": {"login": "alice"}, "body": "Can we add a test?", "created_at": "2024-05-01T10:00:00Z"},
            {"user": {"login": "dependabot[bot]"}, "body": "Bumps lodash"},
            {"user": {"login": "ci", "type": "Bot"}, "body": "Coverage 80%"},
            {"user": {"login": "prscope"}, "body": f"{COMMENT_MARKER}\nPrevious review"},
            {"user": {"login": "bob"}, "body": ""},
            {"user": {"login": "bob"}, "body": "LGTM"},
        ]
        bag = _bag()

        PullRequestCommentCollector(provider).run(bag, _params())

        assert [(c.author, c.body) for c in bag.pr_comments] == [("alice", "Can we add a test?"), ("bob", "LGTM")]
        assert bag.pr_comments[0].created_at == "2024-05-01T10:00:00Z"

    def test_max_comments(self):
        provider = MagicMock()
        provider.get_pull_request_comments.return_value = [{"user": {"login": "a"}, "body": str(i)} for i in range(5)]
        bag = _bag()

        PullRequestCommentCollector(provider, max_comments=2).run(bag, _params())

        assert [c.body for c in bag.pr_comments] == ["0", "1"]

    def test_provider_error(self):
        provider = MagicMock()
        provider.get_pull_request_comments.side_effect = _not_found()
        bag = _bag()
        assert PullRequestCommentCollector(provider).run(bag, _params()).status == COMPLETED
        assert bag.pr_comments == []


# ---------------------------------------------------------------------------
# ReviewHistoryCollector
# ---------------------------------------------------------------------------


def _record(run_id, status="completed", summary="", findings=None):
    return ReviewRecord(
        repo="acme/shop",
        pr_number=7,
        run_id=run_id,
        head_sha="a" * 40,
        status=status,
        summary=summary,
        reviewed_at="2024-05-01T12:00:00Z",
        findings=findings or [],
    )


class TestReviewHistoryCollector:
    def test_summarize_findings(self):
        assert summarize_findings({}, 0) == "No findings in previous review."
        assert summarize_findings({"low": 1, "critical": 2}, 3) == "Previous review found: 2 critical, 1 low."
        assert summarize_findings({"odd": 2}, 2) == "Previous review found 2 finding(s)."

    def test_loads_prior_completed_reviews(self):
        findings = [
            FindingRecord("low", "style", "Long line", "src/a.py"),
            FindingRecord("critical", "security", "SQL injection", "src/db.py"),
            FindingRecord("medium", "bug", "Off by one", "src/a.py"),
        ]
        store = MagicMock()
        store.list_reviews.return_value = [
            _record("current"),
            _record("failed", status="failed"),
            _record("previous", findings=findings),
        ]
        bag = _bag()

        ReviewHistoryCollector(store, max_findings=2).run(bag, _params(run_id="current"))

        store.list_reviews.assert_called_once_with("acme/shop", pr_number=7, limit=4)
        assert len(bag.review_history) == 1
        entry = bag.review_history[0]
        assert entry.run_id == "previous"
        assert entry.findings_count == 3
        assert entry.severity_breakdown == {"low": 1, "critical": 1, "medium": 1}
        assert entry.summary == "Previous review found: 1 critical, 1 medium, 1 low."
        assert [f["title"] for f in entry.key_findings] == ["SQL injection", "Off by one"]

    def test_stored_summary_wins(self):
        store = MagicMock()
        store.list_reviews.return_value = [_record("r1", summary="Looks fine")]
        bag = _bag()

        ReviewHistoryCollector(store).run(bag, _params())

        assert bag.review_history[0].summary == "Looks fine"

    def test_max_reviews(self):
        store = MagicMock()
        store.list_reviews.return_value = [_record(f"r{i}") for i in range(5)]
        bag = _bag()

        ReviewHistoryCollector(store, max_reviews=2).run(bag, _params())

        assert [e.run_id for e in bag.review_history] == ["r0", "r1"]

    def test_requires_pr_number(self):
        store = MagicMock()
        result = ReviewHistoryCollector(store).run(_bag(), _params(number=None))
        assert result.status == SKIPPED
        store.list_reviews.assert_not_called()


# ---------------------------------------------------------------------------
# ProjectContextCollector
# ---------------------------------------------------------------------------

COMPOSER_JSON = """{
  "require": {
    "php": "^8.2",
    "monolog/monolog": "^3.0",
    "guzzlehttp/guzzle": "^7.8",
    "laravel/framework": "^11.0"
  },
  "require-dev": {"phpunit/phpunit": "^10.5"}
}"""


class TestNormalizeModuleName:
    @pytest.mark.parametrize(
        "module, expected",
        [
            ("App\\Models\\User", None),
            ("Illuminate\\Support\\Str", "laravel/framework"),
            ("GuzzleHttp\\Client", "GuzzleHttp"),
            ("django.http", "django"),
            ("os.path", None),
            ("json", None),
            ("requests", "requests"),
            ("./utils", None),
            ("package:flutter/material.dart", "flutter"),
            ("std::io", None),
            ("serde::Deserialize", "serde"),
            ("@angular/core", "@angular/core"),
            ("github.com/gin-gonic/gin", "github.com/gin-gonic/gin"),
        ],
    )
    def test_normalize(self, module, expected):
        assert normalize_module_name(module) == expected


class TestLimitDependencies:
    def test_imported_first_then_capped(self):
        deps = [
            {"name": "monolog/monolog", "version": "^3.0"},
            {"name": "guzzlehttp/guzzle", "version": "^7.8"},
            {"name": "laravel/framework", "version": "^11.0"},
            {"name": "phpunit/phpunit", "version": "^10.5", "dev": True},
            {"name": "mockery/mockery", "version": "^1.6", "dev": True},
        ]
        limited = limit_dependencies(deps, ["laravel/framework"], max_main=2, max_dev=1)
        assert [d["name"] for d in limited] == ["laravel/framework", "monolog/monolog", "phpunit/phpunit"]

    def test_no_imports_keeps_manifest_order(self):
        deps = [{"name": "b", "version": "*"}, {"name": "a", "version": "*"}]
        assert limit_dependencies(deps, []) == deps


class TestProjectContextCollector:
    def test_laravel_project(self):
        provider = _provider({("composer.json", HEAD_SHA): COMPOSER_JSON})
        bag = _bag()
        bag.semantics = {"app/Http/Controller.php": {"imports": [{"module": "GuzzleHttp\\Client"}]}}

        ProjectContextCollector(provider).run(bag, _params())

        context = bag.project_context
        assert context["languages"] == ["php"]
        assert context["runtime"] == {"name": "PHP", "version": "^8.2"}
        assert context["frameworks"] == [{"name": "Laravel", "version": "^11.0"}]
        assert [d["name"] for d in context["dependencies"]] == [
            "guzzlehttp/guzzle",
            "monolog/monolog",
            "laravel/framework",
            "phpunit/phpunit",
        ]
        assert context["dependencies"][-1]["dev"] is True

    def test_first_parseable_manifest_per_language(self):
        provider = _provider(
            {
                ("requirements.txt", HEAD_SHA): "django>=4.2\nrequests\n",
                ("Pipfile", HEAD_SHA): "[packages]\nflask = '*'\n",
            }
        )
        bag = _bag()

        ProjectContextCollector(provider).run(bag, _params())

        assert bag.project_context["languages"] == ["python"]
        assert [d["name"] for d in bag.project_context["dependencies"]] == ["django", "requests"]
        assert bag.project_context["frameworks"] == [{"name": "Django", "version": ">=4.2"}]

    def test_no_manifests(self):
        bag = _bag()
        ProjectContextCollector(_provider()).run(bag, _params())
        assert bag.project_context == {}


# ---------------------------------------------------------------------------
# RepositoryContextCollector
# ---------------------------------------------------------------------------


class TestRepositoryContextCollector:
    def test_first_existing_candidate_wins(self):
        provider = _provider(
            {
                ("readme.md", HEAD_SHA): "# Shop\n\nAn online shop.\n",
                ("CONTRIBUTING.md", HEAD_SHA): "   \n",
                (".github/CONTRIBUTING.md", HEAD_SHA): "Run the tests.",
            }
        )
        bag = _bag()

        RepositoryContextCollector(provider).run(bag, _params())

        assert bag.repository_context == {"readme": "# Shop\n\nAn online shop.", "contributing": "Run the tests."}
        assert bag.repository_context_paths == {"readme": "readme.md", "contributing": ".github/CONTRIBUTING.md"}

    def test_long_document_truncated(self):
        provider = _provider({("README.md", HEAD_SHA): "word " * 100})
        bag = _bag()

        RepositoryContextCollector(provider, max_chars=50).run(bag, _params())

        readme = bag.repository_context["readme"]
        assert readme.endswith("[README truncated due to length]")
        assert "contributing" not in bag.repository_context


# ---------------------------------------------------------------------------
# GuidelinesCollector
# ---------------------------------------------------------------------------


class TestGuidelinesCollector:
    def _bag(self, *declarations):
        bag = _bag()
        bag.team_config = TeamConfig(guidelines=list(declarations))
        bag.config_from_branch = "develop"
        return bag

    def test_loads_declared_guidelines_from_config_branch(self):
        provider = _provider({("docs/STYLE.md", "develop"): "Use strict types."})
        bag = self._bag(
            GuidelineDeclaration("docs/STYLE.md", description="House style"),
            GuidelineDeclaration("notes.txt"),
            GuidelineDeclaration("docs/MISSING.md"),
        )

        GuidelinesCollector(provider).run(bag, _params())

        assert [(g.path, g.content, g.description) for g in bag.guidelines] == [
            ("docs/STYLE.md", "Use strict types.", "House style")
        ]
        fetched = [c.args[1] for c in provider.get_file_contents.call_args_list]
        assert fetched == ["docs/STYLE.md", "docs/MISSING.md"]

    def test_oversized_guideline_truncated(self):
        provider = _provider({("STYLE.md", "develop"): "rule\n" * 100})
        bag = self._bag(GuidelineDeclaration("STYLE.md"))

        GuidelinesCollector(provider, max_size=100).run(bag, _params())

        content = bag.guidelines[0].content
        assert content.endswith("[STYLE.md truncated due to size limit]")
        assert content.startswith("rule\n")

    def test_max_guidelines(self):
        provider = _provider({(f"g{i}.md", "develop"): "x" for i in range(3)})
        bag = self._bag(*[GuidelineDeclaration(f"g{i}.md") for i in range(3)])

        GuidelinesCollector(provider, max_guidelines=2).run(bag, _params())

        assert [g.path for g in bag.guidelines] == ["g0.md", "g1.md"]

    def test_no_team_config(self):
        provider = _provider()
        GuidelinesCollector(provider).run(_bag(), _params())
        provider.get_file_contents.assert_not_called()
