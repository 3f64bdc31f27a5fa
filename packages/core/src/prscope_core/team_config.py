"""Team configuration committed to the reviewed repository.

Lives at ``.prscope/config.yaml`` on the PR's base branch (falling back to
the default branch). Example::

    paths:
      ignore: ["docs/**", "**/*.generated.php"]
      include: []
      sensitive: ["**/*auth*", "config/billing/**"]
    guidelines:
      - path: docs/CODING_STANDARDS.md
        description: House style for PHP code
    context:
      token_budget: 60000

Each section degrades independently: a broken ``paths`` block means no path
rules, a broken guideline entry is skipped, and unparseable YAML means no
team config at all. Nothing here ever raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import yaml

from prscope_core.utils.paths import PathRules

logger = logging.getLogger(__name__)

TEAM_CONFIG_PATH = ".prscope/config.yaml"


@dataclass
class GuidelineDeclaration:
    path: str
    description: str | None = None


@dataclass
class TeamConfig:
    paths: PathRules = field(default_factory=PathRules)
    guidelines: list[GuidelineDeclaration] = field(default_factory=list)
    token_budget: int | None = None


def _parse_guidelines(raw) -> list[GuidelineDeclaration]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("Ignoring 'guidelines' section: expected a list, got %s.", type(raw).__name__)
        return []

    declarations = []
    for entry in raw:
        if isinstance(entry, str) and entry.strip():
            declarations.append(GuidelineDeclaration(path=entry.strip()))
        elif isinstance(entry, dict) and isinstance(entry.get("path"), str) and entry["path"].strip():
            description = entry.get("description")
            declarations.append(
                GuidelineDeclaration(
                    path=entry["path"].strip(),
                    description=description if isinstance(description, str) else None,
                )
            )
        else:
            logger.warning("Skipping malformed guideline entry: %r", entry)
    return declarations


def _parse_token_budget(raw) -> int | None:
    if not isinstance(raw, dict):
        return None
    budget = raw.get("token_budget")
    # bool is an int subclass; "token_budget: yes" is not a budget.
    if isinstance(budget, int) and not isinstance(budget, bool) and budget > 0:
        return budget
    if budget is not None:
        logger.warning("Ignoring invalid context.token_budget: %r", budget)
    return None


def parse_team_config(text: str | None) -> TeamConfig | None:
    """Parse the team config YAML, or return None if it is unusable."""
    if not text or not text.strip():
        return None

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.warning("Team config is not valid YAML: %s", e)
        return None

    if not isinstance(data, dict):
        logger.warning("Team config must be a mapping, got %s.", type(data).__name__)
        return None

    return TeamConfig(
        paths=PathRules.from_config(data.get("paths")),
        guidelines=_parse_guidelines(data.get("guidelines")),
        token_budget=_parse_token_budget(data.get("context")),
    )
