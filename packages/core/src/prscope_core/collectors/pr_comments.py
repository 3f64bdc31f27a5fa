"""PR-comment collector: the human discussion on the pull request."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from prscope_core.bag import PullRequestComment
from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import COMMENT_MARKER, PROVIDER_ERRORS

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)

MAX_COMMENTS = 20

# Bots post status noise (coverage deltas, dependency bumps) that tells the
# reviewer nothing about the change itself.
_BOT_PATTERNS = [
    re.compile(r"\[bot\]$", re.IGNORECASE),
    re.compile(r"^dependabot", re.IGNORECASE),
    re.compile(r"^renovate", re.IGNORECASE),
    re.compile(r"^github-actions", re.IGNORECASE),
    re.compile(r"^codecov", re.IGNORECASE),
    re.compile(r"^sonarcloud", re.IGNORECASE),
]


def is_bot(login: str | None) -> bool:
    return bool(login) and any(p.search(login) for p in _BOT_PATTERNS)


class PullRequestCommentCollector(BaseCollector):
    name = "pr_comments"
    priority = 70
    depends_on = ("diff",)

    def __init__(self, provider: GitHubProvider, max_comments: int = MAX_COMMENTS):
        self.provider = provider
        self.max_comments = max_comments

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete()

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        number = bag.pull_request.number if bag.pull_request else 0
        if number <= 0:
            return

        try:
            raw_comments = self.provider.get_pull_request_comments(params.repository.full_name, number)
        except PROVIDER_ERRORS as e:
            logger.debug("Could not fetch comments for PR #%d: %s", number, e)
            return

        for raw in raw_comments:
            if len(bag.pr_comments) >= self.max_comments:
                break
            if not isinstance(raw, dict):
                continue
            body = raw.get("body")
            if not isinstance(body, str) or not body.strip() or COMMENT_MARKER in body:
                continue
            user = raw.get("user") if isinstance(raw.get("user"), dict) else {}
            login = user.get("login")
            if is_bot(login) or user.get("type") == "Bot":
                continue
            bag.pr_comments.append(
                PullRequestComment(author=login or "unknown", body=body, created_at=raw.get("created_at"))
            )

        logger.debug("Collected %d PR comment(s).", len(bag.pr_comments))
