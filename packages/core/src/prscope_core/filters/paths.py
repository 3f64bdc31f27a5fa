"""Path filter: apply the team's ignore/include/sensitive path rules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prscope_core.filters.base import BaseFilter
from prscope_core.utils.paths import PathRules

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag

logger = logging.getLogger(__name__)


class ConfiguredPathFilter(BaseFilter):
    """Drop excluded paths everywhere and tag sensitive ones.

    Sensitive here means "review with extra care" (auth, billing, crypto
    code); those files stay in the bag and their paths are listed in
    ``bag.sensitive_files`` for the reviewer.
    """

    name = "configured_path"
    order = 15

    def apply(self, bag: ContextBag) -> None:
        rules = bag.path_rules
        if not isinstance(rules, PathRules) or rules.is_empty():
            return

        before = len(bag.files)
        bag.files = [f for f in bag.files if rules.is_included(f.path)]
        bag.prune_to_files()

        bag.guidelines = [g for g in bag.guidelines if rules.is_included(g.path)]
        bag.impacted_files = [i for i in bag.impacted_files if rules.is_included(i.file_path)]

        for kind, path in list(bag.repository_context_paths.items()):
            if not rules.is_included(path):
                bag.repository_context.pop(kind, None)
                del bag.repository_context_paths[kind]

        sensitive = []
        for changed in bag.files:
            if rules.is_sensitive(changed.path):
                changed.is_sensitive = True
                sensitive.append(changed.path)
        if sensitive:
            bag.sensitive_files = sensitive

        logger.debug(
            "Path rules kept %d of %d file(s); %d sensitive.",
            len(bag.files),
            before,
            len(sensitive),
        )
