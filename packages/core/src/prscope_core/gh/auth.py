"""Token lookup for ``GitHubProvider``.

Sources are tried in order and the first non-empty one wins:

1. ``GITHUB_TOKEN`` (injected by Actions, or set by hand)
2. ``GH_TOKEN`` (the variable the GitHub CLI itself reads)
3. ``gh auth token`` (a local ``gh auth login`` session)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
GH_CLI_TIMEOUT = 5  # seconds


def token_from_environment() -> str | None:
    for name in TOKEN_ENV_VARS:
        token = (os.environ.get(name) or "").strip()
        if token:
            logger.debug("Using GitHub token from %s.", name)
            return token
    return None


def token_from_gh_cli() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=GH_CLI_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI unavailable: %s", e)
        return None

    token = result.stdout.strip() if result.returncode == 0 else ""
    if not token:
        logger.debug("gh CLI has no active session.")
        return None
    logger.debug("Using GitHub token from the gh CLI session.")
    return token


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None when no source has one. Never raises."""
    return token_from_environment() or token_from_gh_cli()
