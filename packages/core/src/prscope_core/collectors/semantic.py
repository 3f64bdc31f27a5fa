"""Semantic collector: structural summaries of the fetched file contents."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prscope_core.collectors.base import BaseCollector

if TYPE_CHECKING:
    from prscope_core.analysis import BaseAnalyzer
    from prscope_core.bag import ContextBag, ContextParams

logger = logging.getLogger(__name__)

MAX_FILES = 15
MAX_FILE_SIZE = 100_000  # bytes


class SemanticCollector(BaseCollector):
    name = "semantic"
    priority = 80
    depends_on = ("file_content",)

    def __init__(self, analyzer: BaseAnalyzer, max_files: int = MAX_FILES, max_file_size: int = MAX_FILE_SIZE):
        self.analyzer = analyzer
        self.max_files = max_files
        self.max_file_size = max_file_size

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete()

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        if not bag.file_contents:
            logger.debug("No file contents to analyze.")
            return

        selected: dict[str, str] = {}
        for path, text in bag.file_contents.items():
            if len(selected) >= self.max_files:
                break
            if not self.analyzer.supports(path) or len(text.encode("utf-8")) > self.max_file_size:
                continue
            selected[path] = text

        if not selected:
            return

        for path, summary in self.analyzer.analyze_files(selected).items():
            bag.semantics[path] = summary
        logger.debug("Analyzed %d file(s).", len(selected))
