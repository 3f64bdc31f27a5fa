"""GitHub access for the context pipeline.

Collectors talk to the hosting provider only through ``GitHubProvider``.
Every method returns plain JSON-shaped data (the REST payload PyGithub
already holds in ``raw_data``) so collectors never touch PyGithub objects
and tests can feed them dictionaries.

Not-found, rate-limit and network errors surface as ``PROVIDER_ERRORS``;
collectors catch that tuple and treat it as "no data".
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from github import Auth, Github, GithubException

logger = logging.getLogger(__name__)

# GithubException covers 404 (UnknownObjectException) and rate limiting
# (RateLimitExceededException); RequestException covers timeouts and
# dropped connections below PyGithub.
PROVIDER_ERRORS = (GithubException, requests.RequestException)

# Marker left in comments posted by prscope itself, so they are not fed
# back to the reviewer as human discussion.
COMMENT_MARKER = "<!-- prscope -->"


class GitHubProvider:
    """Thin request/response wrapper over PyGithub, with a per-call timeout."""

    def __init__(self, token: str | None = None, timeout: int = 15, client: Github | None = None):
        if client is None:
            auth = Auth.Token(token) if token else None
            client = Github(auth=auth, timeout=timeout)
        self._gh = client
        self._repos: dict[str, Any] = {}

    def _repo(self, full_name: str):
        if full_name not in self._repos:
            self._repos[full_name] = self._gh.get_repo(full_name)
        return self._repos[full_name]

    def get_pull_request(self, repo: str, number: int) -> dict:
        return self._repo(repo).get_pull(number).raw_data

    def get_pull_request_files(self, repo: str, number: int) -> list[dict]:
        return [f.raw_data for f in self._repo(repo).get_pull(number).get_files()]

    def get_pull_request_comments(self, repo: str, number: int, limit: int | None = None) -> list[dict]:
        """Conversation comments on the PR (issue comments, not inline review comments)."""
        return self._take(self._repo(repo).get_issue(number).get_comments(), limit)

    def get_issue(self, repo: str, number: int) -> dict:
        return self._repo(repo).get_issue(number).raw_data

    def get_issue_comments(self, repo: str, number: int, limit: int | None = None) -> list[dict]:
        return self._take(self._repo(repo).get_issue(number).get_comments(), limit)

    def get_file_contents(self, repo: str, path: str, ref: str | None = None) -> dict | None:
        """Return ``{content, encoding, size}`` for a file, or None for a directory."""
        if ref:
            contents = self._repo(repo).get_contents(path, ref=ref)
        else:
            contents = self._repo(repo).get_contents(path)
        if isinstance(contents, list):
            return None
        return {"content": contents.content, "encoding": contents.encoding, "size": contents.size}

    def search_code(self, query: str, limit: int) -> list[dict]:
        return self._take(self._gh.search_code(query), limit)

    @staticmethod
    def _take(paginated, limit: int | None) -> list[dict]:
        # Iterate lazily so PyGithub only fetches the pages we actually need.
        items: list[dict] = []
        for i, item in enumerate(paginated):
            if limit is not None and i >= limit:
                break
            items.append(item.raw_data)
        return items


def _login(user) -> str | None:
    if isinstance(user, dict):
        return user.get("login")
    return None


def run_metadata(pull: dict) -> dict[str, Any]:
    """Flatten a pull request payload into the run metadata the diff collector reads."""
    base = pull.get("base") or {}
    head = pull.get("head") or {}
    repo = base.get("repo") or {}
    return {
        "pull_request_number": pull.get("number"),
        "pull_request_title": pull.get("title") or "",
        "pull_request_body": pull.get("body") or "",
        "base_branch": base.get("ref"),
        "head_branch": head.get("ref"),
        "head_sha": head.get("sha"),
        "author": {"login": _login(pull.get("user"))} if _login(pull.get("user")) else None,
        "sender_login": _login(pull.get("user")),
        "is_draft": bool(pull.get("draft")),
        "assignees": [a["login"] for a in pull.get("assignees") or [] if isinstance(a, dict) and a.get("login")],
        "reviewers": [
            r["login"] for r in pull.get("requested_reviewers") or [] if isinstance(r, dict) and r.get("login")
        ],
        "labels": [lbl["name"] for lbl in pull.get("labels") or [] if isinstance(lbl, dict) and lbl.get("name")],
        "repository_full_name": repo.get("full_name"),
    }
