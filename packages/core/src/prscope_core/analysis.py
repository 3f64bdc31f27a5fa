"""Structural analysis of source files.

An analyzer turns file text into a fixed-schema summary::

    {
        "language": "python",
        "functions": [{"name", "line_start", "line_end"}],
        "classes": [{"name", "line_start", "line_end", "methods": [...]}],
        "imports": [{"module", "names"}],
        "calls": ["name", ...],
        "errors": ["message", ...],
    }

The semantic collector and the impact collector only rely on this schema,
never on a particular analyzer, so new languages are added by registering
another ``BaseAnalyzer`` with ``CompositeAnalyzer``.
"""

from __future__ import annotations

import ast
import logging
from abc import ABC, abstractmethod
from typing import Any

from prscope_core.utils.code import extension

logger = logging.getLogger(__name__)


def empty_summary(language: str) -> dict[str, Any]:
    return {"language": language, "functions": [], "classes": [], "imports": [], "calls": [], "errors": []}


class BaseAnalyzer(ABC):
    #: File extensions (without the dot) this analyzer understands.
    extensions: frozenset[str] = frozenset()

    def supports(self, path: str) -> bool:
        return extension(path) in self.extensions

    @abstractmethod
    def analyze(self, path: str, text: str) -> dict[str, Any]:
        """Return the structural summary of one file.

        Parse errors belong in the summary's ``errors`` list; raising is
        reserved for bugs.
        """

    def analyze_files(self, files: dict[str, str]) -> dict[str, dict[str, Any]]:
        """Analyze every supported file; unsupported files are left out."""
        results: dict[str, dict[str, Any]] = {}
        for path, text in files.items():
            if self.supports(path):
                results[path] = self.analyze(path, text)
        return results


class PythonAnalyzer(BaseAnalyzer):
    extensions = frozenset({"py", "pyi"})

    def analyze(self, path: str, text: str) -> dict[str, Any]:
        summary = empty_summary("python")
        try:
            tree = ast.parse(text, filename=path)
        except (SyntaxError, ValueError) as e:
            summary["errors"].append(f"{type(e).__name__}: {e}")
            return summary

        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                summary["functions"].append(_symbol(node))
            elif isinstance(node, ast.ClassDef):
                cls = _symbol(node)
                cls["methods"] = [
                    _symbol(child)
                    for child in node.body
                    if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef))
                ]
                summary["classes"].append(cls)

        seen_calls: set[str] = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    summary["imports"].append({"module": alias.name, "names": []})
            elif isinstance(node, ast.ImportFrom):
                module = "." * node.level + (node.module or "")
                summary["imports"].append({"module": module, "names": [a.name for a in node.names]})
            elif isinstance(node, ast.Call):
                name = _call_name(node.func)
                if name and name not in seen_calls:
                    seen_calls.add(name)
                    summary["calls"].append(name)

        return summary


def _symbol(node) -> dict[str, Any]:
    return {
        "name": node.name,
        "line_start": node.lineno,
        "line_end": getattr(node, "end_lineno", None) or node.lineno,
    }


def _call_name(func) -> str | None:
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return None


class CompositeAnalyzer(BaseAnalyzer):
    """Dispatches each file to the first analyzer that supports it."""

    def __init__(self, analyzers: list[BaseAnalyzer] | None = None):
        self.analyzers = analyzers if analyzers is not None else [PythonAnalyzer()]
        self.extensions = frozenset().union(*(a.extensions for a in self.analyzers))

    def analyze(self, path: str, text: str) -> dict[str, Any]:
        for analyzer in self.analyzers:
            if analyzer.supports(path):
                return analyzer.analyze(path, text)
        return empty_summary(extension(path) or "unknown")
