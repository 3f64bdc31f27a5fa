"""Review-history collector: what earlier reviews of this PR already found.

Lets the reviewer follow up ("the SQL injection flagged last time is now
fixed") instead of repeating itself on every push.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING

from prscope_core.bag import ReviewHistoryEntry
from prscope_core.collectors.base import BaseCollector

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_store.base import BaseStore

logger = logging.getLogger(__name__)

MAX_REVIEWS = 3
MAX_FINDINGS_PER_REVIEW = 5

SEVERITY_ORDER = ["critical", "high", "medium", "low", "info"]
_SEVERITY_RANK = {severity: i for i, severity in enumerate(SEVERITY_ORDER)}


def summarize_findings(breakdown: dict[str, int], total: int) -> str:
    if total == 0:
        return "No findings in previous review."
    parts = [f"{breakdown[s]} {s}" for s in SEVERITY_ORDER if breakdown.get(s)]
    if not parts:
        return f"Previous review found {total} finding(s)."
    return "Previous review found: " + ", ".join(parts) + "."


class ReviewHistoryCollector(BaseCollector):
    name = "review_history"
    priority = 60
    depends_on = ("diff",)

    def __init__(
        self,
        store: BaseStore,
        max_reviews: int = MAX_REVIEWS,
        max_findings: int = MAX_FINDINGS_PER_REVIEW,
    ):
        self.store = store
        self.max_reviews = max_reviews
        self.max_findings = max_findings

    def should_collect(self, params: ContextParams) -> bool:
        if not params.is_complete():
            return False
        number = params.run.metadata.get("pull_request_number")
        return isinstance(number, int) and number > 0

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        number = params.run.metadata["pull_request_number"]
        # One extra in case the current run was already recorded.
        records = self.store.list_reviews(params.repository.full_name, pr_number=number, limit=self.max_reviews + 1)

        for record in records:
            if len(bag.review_history) >= self.max_reviews:
                break
            if str(record.run_id) == str(params.run.id) or record.status != "completed":
                continue
            bag.review_history.append(self._entry(record))

        logger.debug("Loaded %d prior review(s) for PR #%d.", len(bag.review_history), number)

    def _entry(self, record) -> ReviewHistoryEntry:
        breakdown = dict(Counter(f.severity for f in record.findings))
        ordered = sorted(record.findings, key=lambda f: _SEVERITY_RANK.get(f.severity, len(SEVERITY_ORDER)))
        key_findings = [
            {"severity": f.severity, "category": f.category, "title": f.title, "file_path": f.file_path}
            for f in ordered[: self.max_findings]
        ]
        return ReviewHistoryEntry(
            run_id=record.run_id,
            summary=record.summary or summarize_findings(breakdown, len(record.findings)),
            findings_count=len(record.findings),
            severity_breakdown=breakdown,
            key_findings=key_findings,
            created_at=record.reviewed_at,
        )
