"""Relevance filter: most important files first, and no more than the reviewer can use."""

from __future__ import annotations

import logging
import math
import re
from typing import TYPE_CHECKING

from prscope_core.filters.base import BaseFilter

if TYPE_CHECKING:
    from prscope_core.bag import ChangedFile, ContextBag

logger = logging.getLogger(__name__)

MAX_FILES = 50

# First match wins. Application source outranks schema changes, which
# outrank seed data, tests, vendored code and finally documentation.
PRIORITY_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(r"^app/"), 100),
    (re.compile(r"^src/"), 100),
    (re.compile(r"^lib/"), 90),
    (re.compile(r"^database/migrations/"), 85),
    (re.compile(r"(^|/)migrations/"), 85),
    (re.compile(r"^config/"), 80),
    (re.compile(r"^routes/"), 75),
    (re.compile(r"^database/seeders/"), 70),
    (re.compile(r"(^|/)seeders?/"), 70),
    (re.compile(r"\.env\.example$"), 70),
    (re.compile(r"^resources/"), 70),
    (re.compile(r"^components/"), 70),
    (re.compile(r"^pages/"), 70),
    (re.compile(r"^tests?/"), 65),
    (re.compile(r"\.(test|spec)\.(ts|js|tsx|jsx)$"), 65),
    (re.compile(r"Test\.php$"), 65),
    (re.compile(r"(^|/)test_[^/]+\.py$"), 65),
    (re.compile(r"^database/factories/"), 60),
    (re.compile(r"^composer\.json$"), 55),
    (re.compile(r"^package\.json$"), 55),
    (re.compile(r"^Dockerfile"), 40),
    (re.compile(r"^docker-compose"), 40),
    (re.compile(r"^(vendor|node_modules|third_party)/"), 35),
    (re.compile(r"^\.github/"), 35),
    (re.compile(r"^\.circleci/"), 35),
    (re.compile(r"\.md$", re.IGNORECASE), 30),
    (re.compile(r"phpstan\."), 30),
    (re.compile(r"phpunit\."), 30),
    (re.compile(r"^docs/"), 25),
    (re.compile(r"eslint"), 25),
    (re.compile(r"^composer\.lock$"), 20),
    (re.compile(r"prettier"), 20),
    (re.compile(r"^(package-lock\.json|yarn\.lock|pnpm-lock\.yaml)$"), 15),
]

DEFAULT_SCORE = 50


def pattern_score(path: str) -> int:
    for pattern, score in PRIORITY_PATTERNS:
        if pattern.search(path):
            return score
    return DEFAULT_SCORE


def relevance_score(changed: ChangedFile) -> int:
    """Path category plus a log-scaled boost for the size of the change.

    Tiny changes (two lines or fewer) are usually typo or formatting fixes
    and lose a little; files GitHub returned a patch for gain a little.
    """
    changes = changed.changes or (changed.additions + changed.deletions)
    boost = int(min(30, math.log2(changes + 1) * 5))
    penalty = -10 if changes <= 2 else 0
    patch_boost = 15 if changed.patch is not None else 0
    return pattern_score(changed.path) + boost + penalty + patch_boost


class RelevanceFilter(BaseFilter):
    name = "relevance"
    order = 40

    def __init__(self, max_files: int = MAX_FILES):
        self.max_files = max_files

    def apply(self, bag: ContextBag) -> None:
        if not bag.files:
            return

        before = len(bag.files)
        # sorted() is stable, so equal scores keep their current order.
        ranked = sorted(bag.files, key=relevance_score, reverse=True)
        bag.files = ranked[: self.max_files]
        bag.prune_to_files()

        if len(bag.files) < before:
            logger.debug("Relevance filter kept the top %d of %d file(s).", len(bag.files), before)
