"""Assemble the standard collector and filter lists from configuration.

The engine itself knows nothing about GitHub, stores or config keys; this
module is the single place where the concrete pipeline is wired together.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prscope_core.analysis import CompositeAnalyzer
from prscope_core.collectors.diff import DiffCollector
from prscope_core.collectors.file_content import FileContentCollector
from prscope_core.collectors.guidelines import GuidelinesCollector
from prscope_core.collectors.impact import ImpactAnalysisCollector
from prscope_core.collectors.linked_issues import LinkedIssueCollector
from prscope_core.collectors.pr_comments import PullRequestCommentCollector
from prscope_core.collectors.project_context import ProjectContextCollector
from prscope_core.collectors.repository_context import RepositoryContextCollector
from prscope_core.collectors.review_history import ReviewHistoryCollector
from prscope_core.collectors.semantic import SemanticCollector
from prscope_core.config import DEFAULT_CONFIG
from prscope_core.engine import ContextEngine
from prscope_core.filters.binary import BinaryFileFilter
from prscope_core.filters.paths import ConfiguredPathFilter
from prscope_core.filters.relevance import RelevanceFilter
from prscope_core.filters.sensitive_data import SensitiveDataFilter
from prscope_core.filters.token_budget import TokenBudgetFilter
from prscope_core.search import GitHubCodeSearch

if TYPE_CHECKING:
    from prscope_core.analysis import BaseAnalyzer
    from prscope_core.collectors.base import BaseCollector
    from prscope_core.filters.base import BaseFilter
    from prscope_core.gh.pull_request import GitHubProvider
    from prscope_core.search import BaseCodeSearch
    from prscope_store.base import BaseStore


def default_collectors(
    provider: GitHubProvider,
    store: BaseStore,
    config: dict | None = None,
    analyzer: BaseAnalyzer | None = None,
    search: BaseCodeSearch | None = None,
) -> list[BaseCollector]:
    cfg = {**DEFAULT_CONFIG, **(config or {})}
    analyzer = analyzer or CompositeAnalyzer()
    search = search or GitHubCodeSearch(provider)

    return [
        DiffCollector(provider),
        FileContentCollector(
            provider,
            max_files=cfg["file_context_max_files"],
            max_file_size=cfg["file_context_max_size"],
        ),
        SemanticCollector(
            analyzer,
            max_files=cfg["semantic_max_files"],
            max_file_size=cfg["semantic_max_size"],
        ),
        LinkedIssueCollector(
            provider,
            max_issues=cfg["linked_issues_max"],
            max_comments=cfg["linked_issue_comments_max"],
        ),
        ImpactAnalysisCollector(
            provider,
            search,
            max_symbols=cfg["impact_max_symbols"],
            max_files=cfg["impact_max_files"],
            max_file_size=cfg["impact_max_file_size"],
            search_limit=cfg["impact_search_limit"],
            min_score=cfg["impact_min_score"],
        ),
        PullRequestCommentCollector(provider, max_comments=cfg["pr_comments_max"]),
        ReviewHistoryCollector(
            store,
            max_reviews=cfg["review_history_max"],
            max_findings=cfg["review_history_findings_max"],
        ),
        ProjectContextCollector(
            provider,
            max_main=cfg["project_dependencies_max"],
            max_dev=cfg["project_dev_dependencies_max"],
        ),
        RepositoryContextCollector(provider, max_chars=cfg["repository_context_max_chars"]),
        GuidelinesCollector(
            provider,
            max_guidelines=cfg["guidelines_max"],
            max_size=cfg["guidelines_max_size"],
        ),
    ]


def default_filters(config: dict | None = None) -> list[BaseFilter]:
    cfg = {**DEFAULT_CONFIG, **(config or {})}
    return [
        ConfiguredPathFilter(),
        BinaryFileFilter(),
        SensitiveDataFilter(),
        RelevanceFilter(max_files=cfg["relevance_max_files"]),
        TokenBudgetFilter(max_tokens=cfg["max_context_tokens"]),
    ]


def build_engine(
    provider: GitHubProvider,
    store: BaseStore,
    config: dict | None = None,
    analyzer: BaseAnalyzer | None = None,
    search: BaseCodeSearch | None = None,
) -> ContextEngine:
    cfg = {**DEFAULT_CONFIG, **(config or {})}
    return ContextEngine(
        default_collectors(provider, store, cfg, analyzer=analyzer, search=search),
        default_filters(cfg),
        parallel=bool(cfg["parallel_collectors"]),
        max_workers=cfg["max_workers"],
    )
