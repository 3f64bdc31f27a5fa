import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "github_timeout": 15,  # seconds per provider call
    "parallel_collectors": False,
    "max_workers": 4,
    "max_context_tokens": 80000,
    "store": "noop",  # "noop" | "sqlite"
    "store_path": ".prscope.db",
    # Collector limits
    "file_context_max_files": 10,
    "file_context_max_size": 50000,  # bytes
    "semantic_max_files": 15,
    "semantic_max_size": 100000,  # bytes
    "impact_max_symbols": 25,
    "impact_max_files": 20,
    "impact_max_file_size": 50000,  # bytes
    "impact_search_limit": 50,
    "impact_min_score": 0.3,
    "linked_issues_max": 5,
    "linked_issue_comments_max": 10,
    "pr_comments_max": 20,
    "review_history_max": 3,
    "review_history_findings_max": 5,
    "project_dependencies_max": 50,
    "project_dev_dependencies_max": 20,
    "repository_context_max_chars": 16000,
    "guidelines_max": 5,
    "guidelines_max_size": 51200,  # bytes
    "relevance_max_files": 50,
}

# Keys that must hold a positive integer. A typo here would silently turn
# a limit into "fetch nothing", so it is rejected at load time instead.
_POSITIVE_INT_KEYS = [
    key for key, value in DEFAULT_CONFIG.items() if isinstance(value, int) and not isinstance(value, bool)
]


def _validate(config: dict) -> None:
    for key in _POSITIVE_INT_KEYS:
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"Invalid config value for {key!r}: expected a positive integer, got {value!r}")

    score = config.get("impact_min_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not 0 <= score <= 1:
        raise ValueError(f"Invalid config value for 'impact_min_score': expected a number in [0, 1], got {score!r}")

    if config.get("store") not in ("noop", "sqlite"):
        raise ValueError(f"Unknown store: {config.get('store')!r}. Choose 'noop' or 'sqlite'.")


def load_config(config_path: str = ".prscope.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prscope.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a YAML mapping.")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    _validate(config)

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config
