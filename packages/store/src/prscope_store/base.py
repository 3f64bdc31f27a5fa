"""Abstract store interface.

The review-history collector and the ``history`` command depend on
BaseStore only, so a backend can be swapped without touching either.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prscope_store.models import ReviewRecord


class BaseStore(ABC):
    """Persistence layer for past review runs."""

    @abstractmethod
    def save(self, record: ReviewRecord) -> None:
        """Persist one review run."""

    @abstractmethod
    def list_reviews(self, repo: str, pr_number: int | None = None, limit: int | None = None) -> list[ReviewRecord]:
        """Return reviews for a repo, most recent first, optionally for one PR.

        Returns an empty list if no reviews exist. Never raises.
        """

    def close(self) -> None:
        """Release any resources held by the store. No-op by default."""
