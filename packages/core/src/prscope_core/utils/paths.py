"""Glob-style path rules from the team config.

Patterns are matched against the full repository-relative path:

    *      any run of characters within one path segment
    **     any run of characters across segments ("**/" may match nothing)
    ?      exactly one character other than "/"

A trailing "/" is shorthand for everything below that directory, so
"vendor/" behaves like "vendor/**". Matching is case-insensitive, so
"**/*auth*" also flags "src/Services/AuthService.php".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache

logger = logging.getLogger(__name__)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    if pattern.endswith("/"):
        pattern += "**"

    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts), re.IGNORECASE)


def matches(pattern: str, path: str) -> bool:
    """Return True if ``path`` matches the glob ``pattern``."""
    if not pattern:
        return False
    return _compile(pattern).fullmatch(path.lstrip("/")) is not None


def matches_any(patterns: list[str], path: str) -> bool:
    return any(matches(p, path) for p in patterns)


def _string_list(value, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("Ignoring path rule %r: expected a list of patterns, got %s.", key, type(value).__name__)
        return []
    return [p for p in value if isinstance(p, str) and p.strip()]


@dataclass
class PathRules:
    """Ignore/include/sensitive pattern sets.

    ``include`` is an allowlist only when non-empty; an empty include list
    means no restriction. Ignore always wins over include.
    """

    ignore: list[str] = field(default_factory=list)
    include: list[str] = field(default_factory=list)
    sensitive: list[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, raw) -> PathRules:
        """Build rules from a team-config ``paths`` mapping.

        Anything malformed degrades to "no rules" for that list.
        """
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning("Ignoring 'paths' section: expected a mapping, got %s.", type(raw).__name__)
            return cls()
        return cls(
            ignore=_string_list(raw.get("ignore"), "ignore"),
            include=_string_list(raw.get("include"), "include"),
            sensitive=_string_list(raw.get("sensitive"), "sensitive"),
        )

    def is_empty(self) -> bool:
        return not (self.ignore or self.include or self.sensitive)

    def is_included(self, path: str) -> bool:
        if matches_any(self.ignore, path):
            return False
        if self.include and not matches_any(self.include, path):
            return False
        return True

    def is_sensitive(self, path: str) -> bool:
        return matches_any(self.sensitive, path)
