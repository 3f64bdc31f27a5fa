"""Review history records.

Kept apart from prscope_core so the store can be used on its own; the core
only reads these records through ``BaseStore.list_reviews``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FindingRecord:
    """One finding raised by an earlier review."""

    severity: str  # "critical" | "high" | "medium" | "low" | "info"
    category: str
    title: str
    file_path: str = ""
    line_start: int | None = None


@dataclass
class ReviewRecord:
    repo: str
    pr_number: int
    run_id: str
    head_sha: str
    status: str  # "completed" | "failed" | "cancelled"
    summary: str
    reviewed_at: str  # ISO-8601 UTC timestamp
    findings: list[FindingRecord] = field(default_factory=list)
