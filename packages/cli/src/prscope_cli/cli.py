"""CLI entry point for prscope.

Commands:
  context   build the review context for a pull request and print it
  pipeline  show the collectors and filters in execution order
  history   display past review records from the configured store
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prscope_cli.commands.context import context_cmd
from prscope_cli.commands.history import history_cmd
from prscope_cli.commands.pipeline import pipeline_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .prscope.yml settings.

      store: sqlite → SQLiteStore (store_path, default .prscope.db)
      (default)     → NoOpStore  (no history)
    """
    from prscope_store.noop import NoOpStore

    if config.get("store") == "sqlite":
        from prscope_store.sqlite import SQLiteStore

        return SQLiteStore(db_path=config.get("store_path", ".prscope.db"))

    return NoOpStore()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    # PyGithub and urllib3 are noisy at debug level.
    for name in ("github", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("prscope"),
    prog_name="prscope",
)
@click.option(
    "--config",
    "config_path",
    default=".prscope.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSCOPE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every collector and filter step.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Assemble review context for GitHub pull requests."""
    from prscope_core.gh.auth import resolve_github_token
    from prscope_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(context_cmd)
main.add_command(pipeline_cmd)
main.add_command(history_cmd)
