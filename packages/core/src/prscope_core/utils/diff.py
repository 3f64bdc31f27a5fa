"""Unified diff helpers: which new-file lines did a patch touch?

GitHub's per-file ``patch`` is a unified diff without the ``---``/``+++``
file headers. Each hunk starts with ``@@ -a,b +c,d @@`` where ``c`` is the
first line of the hunk in the new file.
"""

from __future__ import annotations

import re
from typing import Any

_HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")


def modified_lines(patch: str | None) -> list[int]:
    """Return new-file line numbers of every added line, in diff order.

    Context lines advance the cursor, removed lines do not (they have no
    position in the new file), and ``\\ No newline at end of file`` markers
    are ignored. Lines before the first hunk header are skipped.
    """
    if not patch:
        return []

    lines: list[int] = []
    current: int | None = None

    for raw in patch.split("\n"):
        header = _HUNK_HEADER_RE.match(raw)
        if header:
            current = int(header.group(1))
            continue
        if current is None:
            continue
        if raw.startswith("+") and not raw.startswith("+++"):
            lines.append(current)
            current += 1
        elif raw.startswith("-"):
            continue
        elif raw.startswith("\\"):
            continue
        else:
            current += 1

    return lines


def symbol_overlaps(symbol: dict[str, Any], lines: list[int] | set[int]) -> bool:
    """True when any touched line falls inside ``[line_start, line_end]``.

    A symbol without ``line_end`` is treated as a single line.
    """
    start = symbol.get("line_start")
    if not isinstance(start, int):
        return False
    end = symbol.get("line_end")
    if not isinstance(end, int):
        end = start
    return any(start <= line <= end for line in lines)
