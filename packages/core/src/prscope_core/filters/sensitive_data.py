"""Sensitive-data filter: redact secrets from every text bound for the reviewer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from prscope_core.filters.base import BaseFilter
from prscope_core.utils.redaction import REDACTED_FILE_MARKER, is_sensitive_file, redact

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag

logger = logging.getLogger(__name__)


def _redact_nested(value: Any) -> Any:
    if isinstance(value, str):
        return redact(value)
    if isinstance(value, list):
        return [_redact_nested(v) for v in value]
    if isinstance(value, dict):
        return {k: _redact_nested(v) for k, v in value.items()}
    return value


class SensitiveDataFilter(BaseFilter):
    name = "sensitive_data"
    order = 30

    def apply(self, bag: ContextBag) -> None:
        redacted_files = 0

        for changed in bag.files:
            if changed.patch is None:
                continue
            if is_sensitive_file(changed.path):
                if changed.patch != REDACTED_FILE_MARKER:
                    redacted_files += 1
                changed.patch = REDACTED_FILE_MARKER
            else:
                changed.patch = redact(changed.patch)

        bag.file_contents = {
            path: REDACTED_FILE_MARKER if is_sensitive_file(path) else redact(text)
            for path, text in bag.file_contents.items()
        }

        if bag.pull_request is not None:
            bag.pull_request.title = redact(bag.pull_request.title)
            bag.pull_request.body = redact(bag.pull_request.body)

        for issue in bag.linked_issues:
            issue.title = redact(issue.title)
            issue.body = redact(issue.body)
            for comment in issue.comments:
                comment.body = redact(comment.body)

        for comment in bag.pr_comments:
            comment.body = redact(comment.body)

        for guideline in bag.guidelines:
            guideline.content = redact(guideline.content)

        for impacted in bag.impacted_files:
            impacted.content = REDACTED_FILE_MARKER if is_sensitive_file(impacted.file_path) else redact(impacted.content)

        for entry in bag.review_history:
            entry.summary = redact(entry.summary)

        bag.repository_context = {kind: redact(text) for kind, text in bag.repository_context.items()}
        bag.semantics = _redact_nested(bag.semantics)
        bag.project_context = _redact_nested(bag.project_context)

        if redacted_files:
            logger.info("Redacted %d sensitive file(s) wholesale.", redacted_files)
