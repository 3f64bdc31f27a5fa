"""Repository-context collector: README and CONTRIBUTING documents."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import PROVIDER_ERRORS
from prscope_core.utils.code import decode_content, truncate_at_boundary

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)

MAX_CHARS = 16_000

# Tried in order; the first that exists is used.
DOCUMENT_CANDIDATES: dict[str, list[str]] = {
    "readme": ["README.md", "readme.md", "README.MD", "README", "README.txt"],
    "contributing": [
        "CONTRIBUTING.md",
        "contributing.md",
        ".github/CONTRIBUTING.md",
        "docs/CONTRIBUTING.md",
        "CONTRIBUTING",
    ],
}

_TRUNCATION_MARKERS = {
    "readme": "\n\n[README truncated due to length]",
    "contributing": "\n\n[CONTRIBUTING truncated due to length]",
}


class RepositoryContextCollector(BaseCollector):
    name = "repository_context"
    priority = 50
    depends_on = ("diff",)

    def __init__(self, provider: GitHubProvider, max_chars: int = MAX_CHARS):
        self.provider = provider
        self.max_chars = max_chars

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete()

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        repo = params.repository.full_name
        ref = bag.pull_request.head_sha if bag.pull_request else None

        for kind, candidates in DOCUMENT_CANDIDATES.items():
            for path in candidates:
                try:
                    response = self.provider.get_file_contents(repo, path, ref=ref)
                except PROVIDER_ERRORS:
                    continue
                text = decode_content(response)
                if not text or not text.strip():
                    continue

                bag.repository_context[kind] = truncate_at_boundary(
                    text.strip(), self.max_chars, _TRUNCATION_MARKERS[kind]
                )
                # The path filter drops the document if its path is excluded.
                bag.repository_context_paths[kind] = path
                logger.debug("Using %s as %s for %s.", path, kind, repo)
                break
