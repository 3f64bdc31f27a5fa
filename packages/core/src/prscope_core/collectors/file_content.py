"""File-content collector: full text of the most-changed files at head.

A patch shows what changed; the surrounding file shows whether the change
fits. Fetching is pinned to the PR head SHA so every file belongs to the
same snapshot as the diff.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import PROVIDER_ERRORS
from prscope_core.utils.code import decode_content, has_context_extension

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)

MAX_FILES = 10
MAX_FILE_SIZE = 50_000  # bytes


class FileContentCollector(BaseCollector):
    name = "file_content"
    priority = 85
    depends_on = ("diff",)

    def __init__(self, provider: GitHubProvider, max_files: int = MAX_FILES, max_file_size: int = MAX_FILE_SIZE):
        self.provider = provider
        self.max_files = max_files
        self.max_file_size = max_file_size

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete()

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        head_sha = bag.pull_request.head_sha if bag.pull_request else None
        if not head_sha or not bag.files:
            logger.debug("No head SHA or no changed files; skipping file contents.")
            return

        candidates = [f for f in bag.files if f.status != "removed" and has_context_extension(f.path)]
        # Stable sort: ties keep the provider's order.
        candidates.sort(key=lambda f: f.changes, reverse=True)

        repo = params.repository.full_name
        for changed in candidates[: self.max_files]:
            try:
                response = self.provider.get_file_contents(repo, changed.path, ref=head_sha)
            except PROVIDER_ERRORS as e:
                logger.debug("Could not fetch %s@%s: %s", changed.path, head_sha[:7], e)
                continue

            text = decode_content(response, self.max_file_size)
            if text is None:
                logger.debug("Dropping %s: empty, undecodable or over %d bytes.", changed.path, self.max_file_size)
                continue
            bag.file_contents[changed.path] = text

        logger.debug("Fetched content for %d of %d candidate file(s).", len(bag.file_contents), len(candidates))
