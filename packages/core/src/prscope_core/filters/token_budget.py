"""Token-budget filter: make the bag fit the reviewer's context window.

Runs last so it only spends budget on evidence that survived every other
filter. Two passes:

1. Section budgets. Each evidence category gets a fixed share of the total
   (patches 45%, impacted files 12%, ...). Oversized entries are truncated
   with a visible marker and entries past the section budget are dropped.
2. Progressive clearing. If the bag is still over budget, whole categories
   are reduced and then cleared, weakest signal first: review history,
   repository docs, project context, PR comments, semantics, linked issues,
   file contents, impacted files, guidelines. Patches go last and are never
   removed entirely.

Every truncated text ends up within its own limit, so running the filter
again on its output changes nothing.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from prscope_core.bag import estimate_tokens
from prscope_core.filters.base import BaseFilter

if TYPE_CHECKING:
    from prscope_core.bag import ChangedFile, ContextBag, Guideline, ImpactedFile, LinkedIssue, ReviewHistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXT_TOKENS = 80_000
MIN_CONTEXT_TOKENS = 8_000
MIN_SECTION_TOKENS = 500

# (share of total budget, absolute cap or None)
SECTION_BUDGETS: dict[str, tuple[float, int | None]] = {
    "files_total": (0.45, 150_000),
    "files_per": (0.08, 20_000),
    "impacted_files": (0.12, 40_000),
    "file_contents": (0.10, 30_000),
    "semantics": (0.05, 15_000),
    "issues": (0.08, None),
    "comments": (0.04, None),
    "guidelines": (0.06, None),
    "repository_context": (0.05, None),
    "review_history": (0.05, None),
    "project_context": (0.03, None),
}
IMPACTED_FILE_SINGLE_RATIO = 0.25
FILE_CONTENT_SINGLE_RATIO = 0.20

# Rough cost of an impacted file's path, symbol and reason.
_IMPACTED_METADATA_TOKENS = 50

FILE_TOO_LARGE = "\n... [truncated - file too large]"
TOKEN_LIMIT = "\n... [truncated - token limit]"
PATCH_OMITTED = "[patch omitted - token limit reached]"
PATCH_OMITTED_TOO_MANY = "[patch omitted - too many files]"
AGGRESSIVE_TRUNCATED = "\n... [aggressively truncated]"

_AGGRESSIVE_MAX_PATCHES = 15
_AGGRESSIVE_MAX_CHARS = 2000


def truncate_text(text: str, max_tokens: int, suffix: str) -> str:
    """Cut ``text`` so that it plus ``suffix`` fits in ``max_tokens``.

    Text already within the limit is returned unchanged.
    """
    if estimate_tokens(text) <= max_tokens:
        return text
    budget = max(max_tokens - estimate_tokens(suffix), 0)
    # estimate_tokens is ceil(len / 4), so 4 * budget chars is the longest prefix that fits.
    return text[: budget * 4] + suffix


def scale_budget(max_tokens: int, ratio: float, cap: int | None = None) -> int:
    scaled = max(round(max_tokens * ratio), MIN_SECTION_TOKENS)
    return min(scaled, cap) if cap is not None else scaled


def _json_tokens(value: Any) -> int:
    return estimate_tokens(json.dumps(value))


class TokenBudgetFilter(BaseFilter):
    name = "token_budget"
    order = 100

    def __init__(self, max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS):
        self.max_tokens = max_tokens

    def resolve_max_tokens(self, bag: ContextBag) -> int:
        """The team config's budget wins, but never below a usable minimum."""
        budget = bag.token_budget
        if isinstance(budget, int) and not isinstance(budget, bool) and budget > 0:
            return max(budget, MIN_CONTEXT_TOKENS)
        return self.max_tokens

    def budgets(self, max_tokens: int) -> dict[str, int]:
        budgets = {key: scale_budget(max_tokens, ratio, cap) for key, (ratio, cap) in SECTION_BUDGETS.items()}
        budgets["files_per"] = min(budgets["files_per"], budgets["files_total"])
        return budgets

    def apply(self, bag: ContextBag) -> None:
        initial = bag.estimate_tokens()
        max_tokens = self.resolve_max_tokens(bag)
        budgets = self.budgets(max_tokens)

        self._truncate_patches(bag.files, budgets["files_per"], budgets["files_total"])
        bag.impacted_files = self._truncate_impacted(bag.impacted_files, budgets["impacted_files"])
        bag.file_contents = self._truncate_file_contents(bag.file_contents, budgets["file_contents"])
        bag.semantics = self._truncate_semantics(bag.semantics, budgets["semantics"])
        bag.linked_issues = self._truncate_issues(bag.linked_issues, budgets["issues"])
        bag.pr_comments = self._take_within(bag.pr_comments, budgets["comments"], lambda c: estimate_tokens(c.body))
        bag.guidelines = self._truncate_guidelines(bag.guidelines, budgets["guidelines"])
        bag.repository_context = self._truncate_repository_context(
            bag.repository_context, budgets["repository_context"]
        )
        bag.review_history = self._truncate_history(bag.review_history, budgets["review_history"])
        bag.project_context = self._truncate_project_context(bag.project_context, budgets["project_context"])

        if bag.estimate_tokens() > max_tokens:
            self._progressive_truncation(bag, max_tokens)

        final = bag.estimate_tokens()
        if final != initial:
            logger.info("Context truncated from %d to %d tokens (budget %d).", initial, final, max_tokens)
        if final > max_tokens:
            logger.warning("Context still over budget after truncation: %d > %d tokens.", final, max_tokens)

    # ------------------------------------------------------------------ #
    # Section budgets                                                      #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _truncate_patches(files: list[ChangedFile], per_file: int, total_budget: int) -> None:
        total = 0
        for changed in files:
            if changed.patch is None:
                continue
            patch = truncate_text(changed.patch, per_file, FILE_TOO_LARGE)

            if total + estimate_tokens(patch) > total_budget:
                remaining = total_budget - total
                if remaining > MIN_SECTION_TOKENS:
                    patch = truncate_text(patch, remaining, TOKEN_LIMIT)
                else:
                    patch = PATCH_OMITTED

            changed.patch = patch
            total += estimate_tokens(patch)

    @staticmethod
    def _truncate_impacted(impacted: list[ImpactedFile], budget: int) -> list[ImpactedFile]:
        per_file = int(budget * IMPACTED_FILE_SINGLE_RATIO)
        total = 0
        kept = []
        for item in impacted:
            item.content = truncate_text(item.content, per_file - _IMPACTED_METADATA_TOKENS, FILE_TOO_LARGE)
            cost = estimate_tokens(item.content) + _IMPACTED_METADATA_TOKENS
            if total + cost > budget:
                remaining = budget - total
                if remaining > MIN_SECTION_TOKENS:
                    item.content = truncate_text(item.content, remaining - _IMPACTED_METADATA_TOKENS, TOKEN_LIMIT)
                    kept.append(item)
                break
            kept.append(item)
            total += cost
        return kept

    @staticmethod
    def _truncate_file_contents(contents: dict[str, str], budget: int) -> dict[str, str]:
        per_file = int(budget * FILE_CONTENT_SINGLE_RATIO)
        total = 0
        kept: dict[str, str] = {}
        for path, text in contents.items():
            text = truncate_text(text, per_file, FILE_TOO_LARGE)
            cost = estimate_tokens(text)
            if total + cost > budget:
                remaining = budget - total
                if remaining > MIN_SECTION_TOKENS:
                    kept[path] = truncate_text(text, remaining, TOKEN_LIMIT)
                break
            kept[path] = text
            total += cost
        return kept

    @staticmethod
    def _truncate_semantics(semantics: dict[str, dict[str, Any]], budget: int) -> dict[str, dict[str, Any]]:
        total = 0
        kept: dict[str, dict[str, Any]] = {}
        for path, summary in semantics.items():
            cost = _json_tokens(summary)
            if total + cost > budget:
                remaining = budget - total
                if remaining > MIN_SECTION_TOKENS:
                    kept[path] = _shrink_summary(summary, remaining)
                break
            kept[path] = summary
            total += cost
        return kept

    @staticmethod
    def _truncate_issues(issues: list[LinkedIssue], budget: int) -> list[LinkedIssue]:
        total = 0
        kept = []
        for issue in issues:
            cost = _issue_tokens(issue)
            if total + cost > budget:
                if total < budget - MIN_SECTION_TOKENS:
                    # Reserve some room for title, labels and state.
                    remaining = budget - total - 200
                    issue.body = truncate_text(issue.body or "", remaining // 2, "... [truncated]")
                    issue.comments = issue.comments[:3]
                    kept.append(issue)
                break
            kept.append(issue)
            total += cost
        return kept

    @staticmethod
    def _take_within(items: list, budget: int, cost_of) -> list:
        total = 0
        kept = []
        for item in items:
            cost = cost_of(item)
            if total + cost > budget:
                break
            kept.append(item)
            total += cost
        return kept

    @staticmethod
    def _truncate_guidelines(guidelines: list[Guideline], budget: int) -> list[Guideline]:
        total = 0
        kept = []
        for guideline in guidelines:
            cost = estimate_tokens(guideline.content) + estimate_tokens(guideline.description)
            if total + cost > budget:
                remaining = budget - total
                if remaining > MIN_SECTION_TOKENS:
                    guideline.content = truncate_text(
                        guideline.content, remaining, "... [truncated - guideline too long]"
                    )
                    kept.append(guideline)
                break
            kept.append(guideline)
            total += cost
        return kept

    @staticmethod
    def _truncate_repository_context(context: dict[str, str], budget: int) -> dict[str, str]:
        total = 0
        kept = dict(context)
        # CONTRIBUTING is the more review-relevant document, so it is budgeted first.
        for kind in sorted(kept, key=lambda k: k != "contributing"):
            cost = estimate_tokens(kept[kind])
            if total + cost > budget:
                remaining = budget - total
                if remaining > MIN_SECTION_TOKENS:
                    kept[kind] = truncate_text(kept[kind], remaining, "... [truncated - repository context too long]")
                    total = budget
                else:
                    del kept[kind]
                continue
            total += cost
        return kept

    @staticmethod
    def _truncate_history(history: list[ReviewHistoryEntry], budget: int) -> list[ReviewHistoryEntry]:
        total = 0
        kept = []
        for entry in history:
            cost = estimate_tokens(entry.summary) + _json_tokens(entry.key_findings)
            if total + cost > budget:
                remaining = budget - total
                if remaining > MIN_SECTION_TOKENS:
                    entry.summary = truncate_text(entry.summary, remaining, "... [truncated - review history too long]")
                    entry.key_findings = entry.key_findings[:5]
                    kept.append(entry)
                break
            kept.append(entry)
            total += cost
        return kept

    @staticmethod
    def _truncate_project_context(context: dict[str, Any], budget: int) -> dict[str, Any]:
        if not context or _json_tokens(context) <= budget:
            return context
        context = dict(context)
        for key, keep in (("dependencies", 10), ("frameworks", 3), ("languages", 3)):
            if isinstance(context.get(key), list):
                context[key] = context[key][:keep]
            if _json_tokens(context) <= budget:
                break
        return context

    # ------------------------------------------------------------------ #
    # Progressive clearing                                                 #
    # ------------------------------------------------------------------ #

    def _progressive_truncation(self, bag: ContextBag, max_tokens: int) -> None:
        steps = [
            ("review_history", lambda: []),
            ("repository_context", lambda: {}),
            ("project_context", lambda: {}),
            ("pr_comments", lambda: bag.pr_comments[:5]),
            ("pr_comments", lambda: []),
            ("semantics", lambda: dict(list(bag.semantics.items())[:5])),
            ("semantics", lambda: {}),
            ("linked_issues", lambda: bag.linked_issues[:2]),
            ("linked_issues", lambda: []),
            ("file_contents", lambda: dict(list(bag.file_contents.items())[:3])),
            ("file_contents", lambda: {}),
            ("impacted_files", lambda: bag.impacted_files[:5]),
            ("impacted_files", lambda: []),
            ("guidelines", lambda: bag.guidelines[:1]),
        ]
        for attribute, reduced in steps:
            if bag.estimate_tokens() <= max_tokens:
                return
            setattr(bag, attribute, reduced())
            logger.debug("Over budget: reduced %s.", attribute)

        if bag.estimate_tokens() > max_tokens:
            _aggressive_truncate_patches(bag.files)


def _aggressive_truncate_patches(files: list[ChangedFile]) -> None:
    """Keep short patches for the most relevant files only."""
    with_patch = 0
    for changed in files:
        if not changed.patch:
            continue
        with_patch += 1
        if with_patch > _AGGRESSIVE_MAX_PATCHES:
            changed.patch = PATCH_OMITTED_TOO_MANY
        elif len(changed.patch) > _AGGRESSIVE_MAX_CHARS:
            changed.patch = changed.patch[: _AGGRESSIVE_MAX_CHARS - len(AGGRESSIVE_TRUNCATED)] + AGGRESSIVE_TRUNCATED


def _issue_tokens(issue: LinkedIssue) -> int:
    tokens = estimate_tokens(issue.title) + estimate_tokens(issue.body)
    return tokens + sum(estimate_tokens(c.body) for c in issue.comments)


def _shrink_summary(summary: dict[str, Any], max_tokens: int) -> dict[str, Any]:
    """Keep the outline of a structural summary: a few functions, classes and imports."""
    classes = [
        {**cls, "methods": cls.get("methods", [])[:5]} if isinstance(cls, dict) else cls
        for cls in (summary.get("classes") or [])[:3]
    ]
    shrunk = {
        "language": summary.get("language", "unknown"),
        "functions": (summary.get("functions") or [])[:5],
        "classes": classes,
        "imports": (summary.get("imports") or [])[:5],
    }
    if _json_tokens(shrunk) <= max_tokens:
        return shrunk
    return {
        "language": shrunk["language"],
        "functions": shrunk["functions"][:2],
        "classes": shrunk["classes"][:1],
        "imports": [],
    }
