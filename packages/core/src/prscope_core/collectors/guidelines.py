"""Guidelines collector: team review conventions declared in the team config."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from prscope_core.bag import Guideline
from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import PROVIDER_ERRORS
from prscope_core.utils.code import decode_content, truncate_at_boundary

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)

MAX_GUIDELINES = 5
MAX_FILE_SIZE = 51_200  # bytes

ALLOWED_SUFFIXES = (".md", ".mdx", ".blade.php")


class GuidelinesCollector(BaseCollector):
    name = "guidelines"
    priority = 45
    depends_on = ("diff",)

    def __init__(self, provider: GitHubProvider, max_guidelines: int = MAX_GUIDELINES, max_size: int = MAX_FILE_SIZE):
        self.provider = provider
        self.max_guidelines = max_guidelines
        self.max_size = max_size

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete()

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        if bag.team_config is None or not bag.team_config.guidelines:
            logger.debug("No guidelines declared in team config.")
            return

        declarations = [d for d in bag.team_config.guidelines if d.path.lower().endswith(ALLOWED_SUFFIXES)]
        skipped = len(bag.team_config.guidelines) - len(declarations)
        if skipped:
            logger.debug("Ignoring %d guideline(s) with unsupported extensions.", skipped)

        repo = params.repository.full_name
        # Guidelines are policy, so read them from the same branch as the config.
        ref = bag.config_from_branch

        for declaration in declarations[: self.max_guidelines]:
            try:
                response = self.provider.get_file_contents(repo, declaration.path, ref=ref)
            except PROVIDER_ERRORS as e:
                logger.debug("Guideline %s not found: %s", declaration.path, e)
                continue
            text = decode_content(response)
            if not text or not text.strip():
                continue

            if len(text.encode("utf-8")) > self.max_size:
                # Leave room for the marker within the size limit.
                name = PurePosixPath(declaration.path).name
                text = truncate_at_boundary(text, int(self.max_size * 0.9), f"\n\n[{name} truncated due to size limit]")
            bag.guidelines.append(Guideline(path=declaration.path, content=text, description=declaration.description))

        logger.debug("Loaded %d guideline(s).", len(bag.guidelines))
