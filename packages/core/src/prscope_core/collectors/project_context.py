"""Project-context collector: languages, runtime, frameworks and dependencies.

Knowing that a project runs Laravel 11 on PHP 8.3, or Django 5 on Python
3.12, lets the reviewer give version-specific advice instead of generic
advice. Dependencies the changed files actually import are listed first,
so the truncated list still contains what matters for this diff.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from prscope_core.collectors.base import BaseCollector
from prscope_core.gh.pull_request import PROVIDER_ERRORS
from prscope_core.manifests import MANIFEST_FILES, parse_manifest
from prscope_core.utils.code import decode_content

if TYPE_CHECKING:
    from prscope_core.bag import ContextBag, ContextParams
    from prscope_core.gh.pull_request import GitHubProvider

logger = logging.getLogger(__name__)

MAX_MAIN_DEPENDENCIES = 50
MAX_DEV_DEPENDENCIES = 20
_MAX_MANIFEST_BYTES = 500_000

_RUST_STD_MODULES = {"std", "core", "alloc", "self", "super", "crate"}

# Roots that belong to a language's standard library, never to a dependency.
STD_LIB_ROOTS = {
    # Java
    "java",
    "javax",
    "sun",
    "com.sun",
    # .NET
    "System",
    "Microsoft",
    # Python
    "os",
    "sys",
    "io",
    "re",
    "json",
    "typing",
    "collections",
    "functools",
    "itertools",
    # Elixir
    "Kernel",
    "Enum",
    "List",
    "Map",
    "String",
    "IO",
    "File",
}

_GO_MODULE_RE = re.compile(r"^[a-z]+\.[a-z]+/")


def normalize_module_name(module: str) -> str | None:
    """Reduce an import to the token a dependency name would contain.

    Returns None for imports that cannot come from a third-party package
    (project namespaces, relative imports, standard library roots).
    """
    if not module or module.startswith("."):
        return None

    # PHP namespaces
    if module.startswith(("App\\", "Tests\\")):
        return None
    if module.startswith("Illuminate\\"):
        return "laravel/framework"
    if module.startswith("Symfony\\"):
        return "Symfony"
    if "\\" in module:
        return module.split("\\", 1)[0]

    # Dart: package:flutter/material.dart
    if module.startswith("package:"):
        return module[len("package:") :].split("/", 1)[0]

    # Rust, Perl, R
    if "::" in module:
        root = module.split("::", 1)[0]
        return None if root in _RUST_STD_MODULES else root

    # Go module paths are matched whole, against go.mod.
    if _GO_MODULE_RE.match(module):
        return module

    # Scoped or qualified names: @angular/core, clojure.core/map
    if "/" in module:
        if module.startswith("@"):
            return module
        namespace = module.split("/", 1)[0]
        return namespace.split(".", 1)[0]

    # Dotted imports: django.http, com.example.Thing, Phoenix.Controller
    if "." in module:
        root = module.split(".", 1)[0]
        return None if root in STD_LIB_ROOTS else root

    return None if module in STD_LIB_ROOTS else module


def imported_modules(semantics: dict[str, dict[str, Any]]) -> list[str]:
    modules: list[str] = []
    for summary in semantics.values():
        for entry in summary.get("imports") or []:
            module = entry.get("module") if isinstance(entry, dict) else None
            normalized = normalize_module_name(module) if isinstance(module, str) else None
            if normalized and normalized not in modules:
                modules.append(normalized)
    return modules


def dependency_matches_import(name: str, modules: list[str]) -> bool:
    name_lower = name.lower()
    package = name_lower.rsplit("/", 1)[-1]
    for module in modules:
        module_lower = module.lower()
        if module_lower == name_lower or module_lower in name_lower or name_lower in module_lower:
            return True
        if package == module_lower:
            return True
    return False


def limit_dependencies(
    dependencies: list[dict[str, Any]],
    modules: list[str],
    max_main: int = MAX_MAIN_DEPENDENCIES,
    max_dev: int = MAX_DEV_DEPENDENCIES,
) -> list[dict[str, Any]]:
    """Put imported dependencies first, then cap main and dev lists separately."""
    main = [d for d in dependencies if not d.get("dev")]
    dev = [d for d in dependencies if d.get("dev")]
    if modules:
        # sorted() is stable: used-first, otherwise manifest order.
        main = sorted(main, key=lambda d: not dependency_matches_import(d["name"], modules))
        dev = sorted(dev, key=lambda d: not dependency_matches_import(d["name"], modules))
    return main[:max_main] + dev[:max_dev]


def _dedupe_by_name(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    seen: set[str] = set()
    unique = []
    for item in items:
        if item["name"] not in seen:
            seen.add(item["name"])
            unique.append(item)
    return unique


class ProjectContextCollector(BaseCollector):
    name = "project_context"
    priority = 55
    depends_on = ("file_content", "semantic")

    def __init__(
        self,
        provider: GitHubProvider,
        max_main: int = MAX_MAIN_DEPENDENCIES,
        max_dev: int = MAX_DEV_DEPENDENCIES,
    ):
        self.provider = provider
        self.max_main = max_main
        self.max_dev = max_dev

    def should_collect(self, params: ContextParams) -> bool:
        return params.is_complete() and "/" in params.repository.full_name

    def collect(self, bag: ContextBag, params: ContextParams) -> None:
        repo = params.repository.full_name
        ref = bag.pull_request.head_sha if bag.pull_request else None

        languages: list[str] = []
        runtime: dict[str, str] | None = None
        frameworks: list[dict[str, str]] = []
        dependencies: list[dict[str, Any]] = []

        for language, filenames in MANIFEST_FILES.items():
            for filename in filenames:
                content = self._fetch(repo, filename, ref)
                if content is None:
                    continue
                manifest = parse_manifest(filename, content)
                if manifest is None:
                    continue

                languages.append(language)
                if manifest.runtime:
                    runtime = manifest.runtime
                frameworks.extend(manifest.frameworks)
                dependencies.extend(manifest.dependencies)
                break

        if not languages and not dependencies:
            logger.debug("No recognised manifests in %s.", repo)
            return

        modules = imported_modules(bag.semantics)
        bag.project_context = {
            "languages": list(dict.fromkeys(languages)),
            "runtime": runtime,
            "frameworks": _dedupe_by_name(frameworks),
            "dependencies": limit_dependencies(dependencies, modules, self.max_main, self.max_dev),
        }
        logger.info(
            "Project context for %s: languages=%s, %d framework(s), %d dependenc(ies).",
            repo,
            bag.project_context["languages"],
            len(bag.project_context["frameworks"]),
            len(bag.project_context["dependencies"]),
        )

    def _fetch(self, repo: str, path: str, ref: str | None) -> str | None:
        try:
            response = self.provider.get_file_contents(repo, path, ref=ref)
        except PROVIDER_ERRORS:
            return None
        return decode_content(response, _MAX_MANIFEST_BYTES)
