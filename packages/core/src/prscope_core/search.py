"""Keyword code search over a repository.

The impact collector asks "which files mention ``calculateTotal(``?". Any
backend that answers with scored ``{file_path, content, score}`` hits can
serve; ``GitHubCodeSearch`` uses GitHub's code search API.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prscope_core.bag import Repository
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)


class BaseCodeSearch(ABC):
    def has_index(self, repository: Repository) -> bool:
        """Whether the repository can be searched at all."""
        return True

    @abstractmethod
    def keyword_search(self, repository: Repository, pattern: str, limit: int) -> list[dict]:
        """Return up to ``limit`` hits as ``{file_path, content, score}``, best first.

        ``score`` is normalised to [0, 1]. May raise provider errors; the
        caller treats those as "no results".
        """


class GitHubCodeSearch(BaseCodeSearch):
    """Code search via the GitHub search API.

    GitHub's relevance scores are unbounded and only meaningful relative to
    each other, so hits are re-scored by rank: the first hit scores 1.0 and
    scores fall off linearly to a floor of 0.5 at the end of the page.
    """

    def __init__(self, provider: GitHubProvider):
        self._provider = provider

    def keyword_search(self, repository: Repository, pattern: str, limit: int) -> list[dict]:
        escaped = pattern.replace('"', '\\"')
        query = f'"{escaped}" repo:{repository.full_name}'
        items = self._provider.search_code(query, limit)

        hits = []
        for rank, item in enumerate(items):
            path = item.get("path")
            if not path:
                continue
            hits.append(
                {
                    "file_path": path,
                    "content": "",
                    "score": 1.0 - 0.5 * rank / max(len(items), 1),
                }
            )
        logger.debug("Code search %r returned %d hit(s).", query, len(hits))
        return hits
