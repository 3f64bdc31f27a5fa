"""Linked-issue collector: the issues a PR says it fixes or references.

The issue is usually where the *intent* of a change is written down, which
is exactly what a reviewer needs to judge whether the diff does the job.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from prscope_core.bag import IssueComment, LinkedIssue
from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import PROVIDER_ERRORS

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)

MAX_ISSUES = 5
MAX_COMMENTS_PER_ISSUE = 10

# Ordered: closing keywords first so "Fixes #12, see #40" lists 12 before 40.
_CLOSING = r"(?:close[sd]?|fix(?:e[sd])?|resolve[sd]?)"
_ISSUE_REFERENCE_PATTERNS = [
    re.compile(_CLOSING + r"\s*#(\d+)", re.IGNORECASE),
    re.compile(_CLOSING + r"\s+(\d+)\b", re.IGNORECASE),
    re.compile(r"#(\d+)\b"),
]


def extract_issue_numbers(body: str | None) -> list[int]:
    """Issue numbers referenced in a PR body, deduplicated, in pattern order."""
    if not body:
        return []
    numbers: list[int] = []
    for pattern in _ISSUE_REFERENCE_PATTERNS:
        for match in pattern.finditer(body):
            number = int(match.group(1))
            if number > 0 and number not in numbers:
                numbers.append(number)
    return numbers


def _author(payload: dict[str, Any]) -> str:
    user = payload.get("user")
    if isinstance(user, dict) and user.get("login"):
        return user["login"]
    return "unknown"


class LinkedIssueCollector(BaseCollector):
    name = "linked_issues"
    priority = 80
    depends_on = ("diff",)

    def __init__(
        self,
        provider: GitHubProvider,
        max_issues: int = MAX_ISSUES,
        max_comments: int = MAX_COMMENTS_PER_ISSUE,
    ):
        self.provider = provider
        self.max_issues = max_issues
        self.max_comments = max_comments

    def should_collect(self, params: ContextParams) -> bool:
        if not params.is_complete():
            return False
        body = params.run.metadata.get("pull_request_body")
        return isinstance(body, str) and bool(body.strip())

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        body = bag.pull_request.body if bag.pull_request else params.run.metadata.get("pull_request_body")
        own_number = bag.pull_request.number if bag.pull_request else 0
        numbers = [n for n in extract_issue_numbers(body) if n != own_number][: self.max_issues]
        if not numbers:
            logger.debug("No issue references in PR body.")
            return

        repo = params.repository.full_name
        for number in numbers:
            issue = self._fetch_issue(repo, number)
            if issue is not None:
                bag.linked_issues.append(issue)

        logger.debug("Linked %d of %d referenced issue(s).", len(bag.linked_issues), len(numbers))

    def _fetch_issue(self, repo: str, number: int) -> LinkedIssue | None:
        try:
            payload = self.provider.get_issue(repo, number)
        except PROVIDER_ERRORS as e:
            logger.debug("Could not fetch issue #%d: %s", number, e)
            return None

        if not isinstance(payload, dict):
            return None
        # GitHub serves PRs through the issues API too; "#41" may be a PR.
        if payload.get("pull_request"):
            logger.debug("#%d is a pull request, not an issue; skipping.", number)
            return None

        try:
            raw_comments = self.provider.get_issue_comments(repo, number, limit=self.max_comments)
        except PROVIDER_ERRORS as e:
            logger.debug("Could not fetch comments for issue #%d: %s", number, e)
            raw_comments = []

        comments = [
            IssueComment(author=_author(c), body=c["body"])
            for c in raw_comments[: self.max_comments]
            if isinstance(c, dict) and isinstance(c.get("body"), str) and c["body"].strip()
        ]
        labels = [lbl["name"] for lbl in payload.get("labels") or [] if isinstance(lbl, dict) and lbl.get("name")]

        return LinkedIssue(
            number=number,
            title=payload.get("title") or "",
            body=payload.get("body") or "",
            state=payload.get("state") or "open",
            labels=labels,
            comments=comments,
        )
