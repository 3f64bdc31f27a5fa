"""No-op store, the default when no store is configured.

With it the review-history collector simply finds nothing, and callers
never need to check for a missing store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prscope_store.base import BaseStore

if TYPE_CHECKING:
    from prscope_store.models import ReviewRecord


class NoOpStore(BaseStore):
    def save(self, record: ReviewRecord) -> None:
        pass

    def list_reviews(self, repo: str, pr_number: int | None = None, limit: int | None = None) -> list[ReviewRecord]:
        return []
