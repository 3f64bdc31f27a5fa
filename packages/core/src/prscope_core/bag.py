"""The context bag: every piece of evidence gathered for one review run.

A bag is created empty by the engine, filled additively by collectors,
narrowed by filters and then handed to the reviewer read-only. It is never
persisted or shared between runs.

Cross-collector signals (team config, path rules, which README the
repository-context collector used) are explicit fields rather than a
free-form metadata map, so a reader can see at a glance who produces and
who consumes each one.
"""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from prscope_core.collectors.base import CollectorResult
    from prscope_core.team_config import TeamConfig
    from prscope_core.utils.paths import PathRules

# Rough chars-to-tokens ratio for English prose and source code. Good enough
# for budgeting; the reviewer applies its own exact limit downstream.
TOKENS_PER_CHAR = 0.25


def estimate_tokens(text: str | None) -> int:
    """Estimate the token count of a piece of text."""
    if not text:
        return 0
    return math.ceil(len(text) * TOKENS_PER_CHAR)


# ---------------------------------------------------------------------- #
# Invocation parameters                                                    #
# ---------------------------------------------------------------------- #


@dataclass
class Repository:
    full_name: str
    default_branch: str = "main"

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.full_name.split("/", 1)[-1]


@dataclass
class ReviewRun:
    """One review invocation.

    ``metadata`` holds the pull request fields captured when the run was
    queued (number, title, body, branches, head SHA, author, ...). The diff
    collector turns it into a typed ``PullRequestInfo``.
    """

    id: int | str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ContextParams:
    repository: Repository | None = None
    run: ReviewRun | None = None

    def is_complete(self) -> bool:
        return isinstance(self.repository, Repository) and isinstance(self.run, ReviewRun)


# ---------------------------------------------------------------------- #
# Evidence records                                                         #
# ---------------------------------------------------------------------- #


@dataclass
class PullRequestInfo:
    number: int
    title: str = ""
    body: str = ""
    base_branch: str = "main"
    head_branch: str | None = None
    head_sha: str | None = None
    author: str | None = None
    is_draft: bool = False
    assignees: list[str] = field(default_factory=list)
    reviewers: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    repository_full_name: str | None = None


@dataclass
class ChangedFile:
    path: str
    status: str = "modified"  # "added" | "modified" | "removed" (renamed maps to modified)
    additions: int = 0
    deletions: int = 0
    changes: int = 0
    patch: str | None = None
    is_sensitive: bool = False


@dataclass
class Guideline:
    path: str
    content: str
    description: str | None = None


@dataclass
class ImpactedFile:
    file_path: str
    content: str
    matched_symbol: str
    match_type: str
    score: float
    match_count: int
    reason: str


@dataclass
class IssueComment:
    author: str
    body: str


@dataclass
class LinkedIssue:
    number: int
    title: str
    body: str = ""
    state: str = "open"
    labels: list[str] = field(default_factory=list)
    comments: list[IssueComment] = field(default_factory=list)


@dataclass
class PullRequestComment:
    author: str
    body: str
    created_at: str | None = None


@dataclass
class ReviewHistoryEntry:
    run_id: int | str
    summary: str
    findings_count: int = 0
    severity_breakdown: dict[str, int] = field(default_factory=dict)
    key_findings: list[dict[str, Any]] = field(default_factory=list)
    created_at: str | None = None


@dataclass(frozen=True)
class ContextMetrics:
    files_changed: int = 0
    lines_added: int = 0
    lines_deleted: int = 0


# ---------------------------------------------------------------------- #
# The bag                                                                  #
# ---------------------------------------------------------------------- #


@dataclass
class ContextBag:
    pull_request: PullRequestInfo | None = None
    files: list[ChangedFile] = field(default_factory=list)
    file_contents: dict[str, str] = field(default_factory=dict)
    semantics: dict[str, dict[str, Any]] = field(default_factory=dict)
    guidelines: list[Guideline] = field(default_factory=list)
    impacted_files: list[ImpactedFile] = field(default_factory=list)
    linked_issues: list[LinkedIssue] = field(default_factory=list)
    pr_comments: list[PullRequestComment] = field(default_factory=list)
    review_history: list[ReviewHistoryEntry] = field(default_factory=list)
    project_context: dict[str, Any] = field(default_factory=dict)
    # Keyed by document kind ("readme", "contributing").
    repository_context: dict[str, str] = field(default_factory=dict)

    # Signals written by one stage and read by a later one.
    team_config: TeamConfig | None = None
    path_rules: PathRules | None = None
    config_from_branch: str | None = None
    repository_context_paths: dict[str, str] = field(default_factory=dict)
    sensitive_files: list[str] = field(default_factory=list)
    token_budget: int | None = None

    # Diagnostics: one entry per collector, in priority order.
    collector_results: list[CollectorResult] = field(default_factory=list)

    @property
    def metrics(self) -> ContextMetrics:
        """Aggregate change counts, always recomputed from the current files."""
        return ContextMetrics(
            files_changed=len(self.files),
            lines_added=sum(f.additions for f in self.files),
            lines_deleted=sum(f.deletions for f in self.files),
        )

    def file_paths(self) -> set[str]:
        return {f.path for f in self.files}

    def prune_to_files(self) -> None:
        """Drop per-file evidence for paths no longer in ``files``."""
        kept = self.file_paths()
        self.file_contents = {p: text for p, text in self.file_contents.items() if p in kept}
        self.semantics = {p: summary for p, summary in self.semantics.items() if p in kept}
        self.sensitive_files = [p for p in self.sensitive_files if p in kept]

    def is_empty(self) -> bool:
        """True when no collector contributed any evidence at all."""
        return not (
            self.pull_request
            or self.files
            or self.file_contents
            or self.semantics
            or self.guidelines
            or self.impacted_files
            or self.linked_issues
            or self.pr_comments
            or self.review_history
            or self.project_context
            or self.repository_context
        )

    def estimate_tokens(self) -> int:
        """Estimate the token cost of everything the reviewer would receive."""
        chars = 0
        if self.pull_request is not None:
            chars += len(json.dumps(asdict(self.pull_request)))
        for f in self.files:
            chars += len(f.path) + len(f.patch or "")
        chars += len(json.dumps(asdict(self.metrics)))
        for issue in self.linked_issues:
            chars += len(issue.title) + len(issue.body or "")
            chars += sum(len(c.body) for c in issue.comments)
        chars += sum(len(c.body) for c in self.pr_comments)
        chars += sum(len(text) for text in self.repository_context.values())
        chars += sum(len(entry.summary) for entry in self.review_history)
        chars += sum(len(g.content) for g in self.guidelines)
        chars += sum(len(text) for text in self.file_contents.values())
        chars += sum(len(i.content) for i in self.impacted_files)
        if self.semantics:
            chars += len(json.dumps(self.semantics))
        if self.project_context:
            chars += len(json.dumps(self.project_context))
        return math.ceil(chars * TOKENS_PER_CHAR)

    def to_dict(self) -> dict[str, Any]:
        """JSON-serializable view handed to the reviewer (and printed by the CLI)."""
        return {
            "pull_request": asdict(self.pull_request) if self.pull_request else None,
            "files": [asdict(f) for f in self.files],
            "metrics": asdict(self.metrics),
            "file_contents": dict(self.file_contents),
            "semantics": self.semantics,
            "guidelines": [asdict(g) for g in self.guidelines],
            "impacted_files": [asdict(i) for i in self.impacted_files],
            "linked_issues": [asdict(i) for i in self.linked_issues],
            "pr_comments": [asdict(c) for c in self.pr_comments],
            "review_history": [asdict(h) for h in self.review_history],
            "project_context": self.project_context,
            "repository_context": dict(self.repository_context),
            "sensitive_files": list(self.sensitive_files),
            "config_from_branch": self.config_from_branch,
            "estimated_tokens": self.estimate_tokens(),
        }
