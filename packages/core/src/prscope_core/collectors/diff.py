"""Diff collector: PR metadata, changed files and the team config.

Runs first. Everything else in the pipeline keys off what it writes:
``bag.pull_request`` (head SHA, body, number), ``bag.files`` (paths and
patches) and the team config (path rules, guideline declarations).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from prscope_core.bag import ChangedFile, PullRequestInfo
from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import PROVIDER_ERRORS
from prscope_core.team_config import TEAM_CONFIG_PATH, parse_team_config
from prscope_core.utils.code import decode_content

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)

# GitHub reports renamed/copied/changed files too; for review purposes they
# are all modifications of a file that exists at head.
_STATUS_MAP = {"added": "added", "removed": "removed", "deleted": "removed"}

_TEAM_CONFIG_MAX_BYTES = 64_000


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    names = []
    for item in value:
        if isinstance(item, str):
            names.append(item)
        elif isinstance(item, dict):
            name = item.get("login") or item.get("name")
            if isinstance(name, str):
                names.append(name)
    return names


def pull_request_from_metadata(metadata: dict[str, Any], default_branch: str = "main") -> PullRequestInfo:
    author = metadata.get("author")
    author_login = author.get("login") if isinstance(author, dict) else author if isinstance(author, str) else None

    return PullRequestInfo(
        number=_int(metadata.get("pull_request_number")),
        title=metadata.get("pull_request_title") or "",
        body=metadata.get("pull_request_body") or "",
        base_branch=metadata.get("base_branch") or default_branch,
        head_branch=metadata.get("head_branch"),
        head_sha=metadata.get("head_sha"),
        author=author_login or metadata.get("sender_login"),
        is_draft=bool(metadata.get("is_draft", False)),
        assignees=_string_list(metadata.get("assignees")),
        reviewers=_string_list(metadata.get("reviewers")),
        labels=_string_list(metadata.get("labels")),
        repository_full_name=metadata.get("repository_full_name"),
    )


def normalize_file(raw: dict[str, Any]) -> ChangedFile | None:
    path = raw.get("filename") or raw.get("path")
    if not isinstance(path, str) or not path:
        return None
    additions = _int(raw.get("additions"))
    deletions = _int(raw.get("deletions"))
    patch = raw.get("patch")
    return ChangedFile(
        path=path,
        status=_STATUS_MAP.get(raw.get("status") or "modified", "modified"),
        additions=additions,
        deletions=deletions,
        changes=_int(raw.get("changes"), additions + deletions),
        patch=patch if isinstance(patch, str) else None,
    )


class DiffCollector(BaseCollector):
    name = "diff"
    priority = 100

    def __init__(self, provider: GitHubProvider):
        self.provider = provider

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete()

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        repo = params.repository
        pr = pull_request_from_metadata(params.run.metadata, repo.default_branch)
        if not pr.repository_full_name:
            pr.repository_full_name = repo.full_name
        bag.pull_request = pr

        if pr.number > 0:
            try:
                raw_files = self.provider.get_pull_request_files(repo.full_name, pr.number)
            except PROVIDER_ERRORS as e:
                logger.debug("Could not fetch files for %s#%d: %s", repo.full_name, pr.number, e)
                raw_files = []
            bag.files = [f for f in (normalize_file(r) for r in raw_files if isinstance(r, dict)) if f]

        self._load_team_config(bag, params)

        metrics = bag.metrics
        logger.debug(
            "Diff collected: %d file(s), +%d/-%d.",
            metrics.files_changed,
            metrics.lines_added,
            metrics.lines_deleted,
        )

    def _load_team_config(self, bag: ContextBag, params: ContextParams) -> None:
        """Read the team config from the base branch, falling back to the default branch.

        Reading it from the base branch (not the PR head) stops a PR from
        loosening its own review rules.
        """
        repo = params.repository
        branches = [bag.pull_request.base_branch, repo.default_branch]

        for branch in dict.fromkeys(b for b in branches if b):
            try:
                response = self.provider.get_file_contents(repo.full_name, TEAM_CONFIG_PATH, ref=branch)
            except PROVIDER_ERRORS:
                logger.debug("No team config on %s@%s.", repo.full_name, branch)
                continue

            config = parse_team_config(decode_content(response, _TEAM_CONFIG_MAX_BYTES))
            if config is None:
                continue

            bag.team_config = config
            bag.path_rules = config.paths
            bag.token_budget = config.token_budget
            bag.config_from_branch = branch
            logger.debug("Loaded team config from %s@%s.", repo.full_name, branch)
            return
