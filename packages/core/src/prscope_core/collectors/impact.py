"""Impact collector: files outside the diff that use a symbol the diff changed.

A signature change in ``calculate_total`` is only safe if its callers were
updated too, and the callers are usually not in the diff. The algorithm:

1. Map each patch to the new-file lines it touched.
2. Pick the functions, classes and methods whose line range covers one of
   those lines (structure comes from ``bag.semantics``).
3. Search the repository for kind-specific usage patterns of each symbol.
4. Rank hits by how often a file matched, then by search score, and fetch
   the top files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from prscope_core.bag import ImpactedFile
from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import PROVIDER_ERRORS
from prscope_core.utils.code import decode_content
from prscope_core.utils.diff import modified_lines, symbol_overlaps

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider
    from prscope_core.search import BaseCodeSearch

logger = logging.getLogger(__name__)

MAX_SYMBOLS = 25
MAX_FILES = 20
MAX_FILE_SIZE = 50_000  # bytes
SEARCH_LIMIT_PER_SYMBOL = 50
MIN_RELEVANCE_SCORE = 0.3

_REASONS = {
    "function_call": "Calls function `{name}()`",
    "class_instantiation": "Instantiates class `{name}`",
    "method_call": "Calls method `{name}()`",
    "extends": "Extends class `{name}`",
    "implements": "Implements interface `{name}`",
}


@dataclass(frozen=True)
class ModifiedSymbol:
    name: str
    kind: str  # "function" | "class" | "method"
    file_path: str


@dataclass
class _Candidate:
    file_path: str
    symbol: str
    match_type: str
    score: float
    match_count: int = 1


def modified_symbols(bag: ContextBag) -> list[ModifiedSymbol]:
    """Symbols whose line range intersects the lines each patch touched."""
    found: dict[tuple[str, str], ModifiedSymbol] = {}

    def add(symbol: dict[str, Any], kind: str, path: str) -> None:
        name = symbol.get("name")
        if isinstance(name, str) and name and (name, kind) not in found:
            found[(name, kind)] = ModifiedSymbol(name=name, kind=kind, file_path=path)

    for changed in bag.files:
        summary = bag.semantics.get(changed.path)
        if not summary:
            continue
        lines = modified_lines(changed.patch)
        if not lines:
            continue

        for function in summary.get("functions") or []:
            if symbol_overlaps(function, lines):
                add(function, "function", changed.path)
        for cls in summary.get("classes") or []:
            if symbol_overlaps(cls, lines):
                add(cls, "class", changed.path)
            for method in cls.get("methods") or []:
                if symbol_overlaps(method, lines):
                    add(method, "method", changed.path)

    return list(found.values())


def search_patterns(symbol: ModifiedSymbol) -> list[tuple[str, str]]:
    """Return ``(pattern, match_type)`` pairs to search for one symbol."""
    name = symbol.name
    if symbol.kind == "function":
        return [(f"{name}(", "function_call")]
    if symbol.kind == "class":
        patterns = [
            (f"new {name}", "class_instantiation"),
            (f"extends {name}", "extends"),
            (f"implements {name}", "implements"),
        ]
        if symbol.file_path.endswith((".py", ".pyi")):
            patterns += [
                (f"{name}(", "class_instantiation"),
                (f"({name})", "extends"),
                (f"({name},", "extends"),
            ]
        return patterns
    if symbol.kind == "method":
        return [
            (f"->{name}(", "method_call"),
            (f"::{name}(", "method_call"),
            (f".{name}(", "method_call"),
        ]
    return [(name, "reference")]


def describe_match(match_type: str, symbol: str) -> str:
    return _REASONS.get(match_type, "References `{name}`").format(name=symbol)


class ImpactAnalysisCollector(BaseCollector):
    name = "impact_analysis"
    priority = 75
    depends_on = ("semantic", "file_content")

    def __init__(
        self,
        provider: GitHubProvider,
        search: BaseCodeSearch,
        max_symbols: int = MAX_SYMBOLS,
        max_files: int = MAX_FILES,
        max_file_size: int = MAX_FILE_SIZE,
        search_limit: int = SEARCH_LIMIT_PER_SYMBOL,
        min_score: float = MIN_RELEVANCE_SCORE,
    ):
        self.provider = provider
        self.search = search
        self.max_symbols = max_symbols
        self.max_files = max_files
        self.max_file_size = max_file_size
        self.search_limit = search_limit
        self.min_score = min_score

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete()

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        if not bag.semantics:
            logger.debug("No semantic data; skipping impact analysis.")
            return
        if not self.search.has_index(params.repository):
            logger.debug("No code index for %s; skipping impact analysis.", params.repository.full_name)
            return

        symbols = modified_symbols(bag)[: self.max_symbols]
        if not symbols:
            logger.debug("No modified symbols found in the diff.")
            return

        candidates = self._search(bag, params, symbols)
        if not candidates:
            return

        ranked = sorted(candidates, key=lambda c: (-c.match_count, -c.score))
        head_sha = bag.pull_request.head_sha if bag.pull_request else None

        seen_files: set[str] = set()
        for candidate in ranked:
            if len(bag.impacted_files) >= self.max_files:
                break
            if candidate.file_path in seen_files:
                continue
            seen_files.add(candidate.file_path)

            content = self._fetch(params.repository.full_name, candidate.file_path, head_sha)
            if content is None:
                continue
            bag.impacted_files.append(
                ImpactedFile(
                    file_path=candidate.file_path,
                    content=content,
                    matched_symbol=candidate.symbol,
                    match_type=candidate.match_type,
                    score=candidate.score,
                    match_count=candidate.match_count,
                    reason=describe_match(candidate.match_type, candidate.symbol),
                )
            )

        logger.debug(
            "Impact analysis: %d symbol(s), %d candidate(s), %d file(s) kept.",
            len(symbols),
            len(candidates),
            len(bag.impacted_files),
        )

    def _search(self, bag: ContextBag, params: ContextParams, symbols: list[ModifiedSymbol]) -> list[_Candidate]:
        diff_paths = bag.file_paths()
        candidates: dict[str, _Candidate] = {}

        for symbol in symbols:
            for pattern, match_type in search_patterns(symbol):
                try:
                    hits = self.search.keyword_search(params.repository, pattern, self.search_limit)
                except PROVIDER_ERRORS as e:
                    logger.debug("Search for %r failed: %s", pattern, e)
                    continue

                for hit in hits:
                    path = hit.get("file_path")
                    score = float(hit.get("score") or 0.0)
                    if not path or path in diff_paths or score < self.min_score:
                        continue
                    key = f"{path}:{symbol.name}"
                    existing = candidates.get(key)
                    if existing is None:
                        candidates[key] = _Candidate(path, symbol.name, match_type, score)
                    else:
                        existing.match_count += 1
                        existing.score = max(existing.score, score)

        return list(candidates.values())

    def _fetch(self, repo: str, path: str, ref: str | None) -> str | None:
        try:
            response = self.provider.get_file_contents(repo, path, ref=ref)
        except PROVIDER_ERRORS as e:
            logger.debug("Could not fetch impacted file %s: %s", path, e)
            return None
        return decode_content(response, self.max_file_size)
