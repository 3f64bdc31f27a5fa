"""Binary-file filter: drop assets, lock files and generated bundles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prscope_core.filters.base import BaseFilter
from prscope_core.utils.code import is_code_file

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag

logger = logging.getLogger(__name__)


class BinaryFileFilter(BaseFilter):
    name = "binary_file"
    order = 20

    def apply(self, bag: ContextBag) -> None:
        dropped = [f.path for f in bag.files if not is_code_file(f.path)]
        if not dropped:
            return
        bag.files = [f for f in bag.files if is_code_file(f.path)]
        bag.prune_to_files()
        logger.debug("Dropped %d non-code file(s): %s", len(dropped), ", ".join(dropped[:10]))
