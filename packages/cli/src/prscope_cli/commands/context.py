"""context command: build the review context for one pull request."""

from __future__ import annotations

import json
import uuid

import click
from rich.console import Console
from rich.table import Table

from prscope_core.bag import ContextParams, Repository, ReviewRun
from prscope_core.gh.pull_request import PROVIDER_ERRORS, GitHubProvider, run_metadata
from prscope_core.pipeline import build_engine

console = Console()

_STATUS_STYLE = {
    "completed": "green",
    "skipped": "dim",
    "failed": "red",
    "cancelled": "yellow",
}


def _evidence_counts(bag) -> list[tuple[str, int]]:
    return [
        ("Changed files", len(bag.files)),
        ("File contents", len(bag.file_contents)),
        ("Semantic summaries", len(bag.semantics)),
        ("Impacted files", len(bag.impacted_files)),
        ("Linked issues", len(bag.linked_issues)),
        ("PR comments", len(bag.pr_comments)),
        ("Prior reviews", len(bag.review_history)),
        ("Guidelines", len(bag.guidelines)),
        ("Repository documents", len(bag.repository_context)),
        ("Sensitive files", len(bag.sensitive_files)),
    ]


def _print_summary(bag, repo: str, pr_number: int) -> None:
    results = Table(title=f"Collectors: {repo}#{pr_number}", show_header=True, header_style="bold cyan")
    results.add_column("Collector", style="bold")
    results.add_column("Status", width=10)
    results.add_column("Time", justify="right", width=8)
    results.add_column("Error", max_width=60)
    for r in bag.collector_results:
        style = _STATUS_STYLE.get(r.status, "white")
        error = f"{r.error.category}: {r.error.message}" if r.error else ""
        results.add_row(r.name, f"[{style}]{r.status}[/{style}]", f"{r.duration:.2f}s", error)

    evidence = Table(title="Evidence", show_header=True, header_style="bold cyan")
    evidence.add_column("Kind")
    evidence.add_column("Count", justify="right")
    for kind, count in _evidence_counts(bag):
        evidence.add_row(kind, str(count))

    metrics = bag.metrics
    console.print(results)
    console.print(evidence)
    console.print(
        f"{metrics.files_changed} file(s) changed, "
        f"[green]+{metrics.lines_added}[/green] [red]-{metrics.lines_deleted}[/red], "
        f"~[bold]{bag.estimate_tokens()}[/bold] tokens"
    )
    if bag.config_from_branch:
        console.print(f"Team config read from [bold]{bag.config_from_branch}[/bold].")


@click.command("context")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--run-id", default=None, help="Identifier for this run. Defaults to a random id.")
@click.option(
    "--parallel/--sequential",
    default=None,
    help="Run independent collectors concurrently. Defaults to the parallel_collectors setting.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the context as JSON instead of a summary.")
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Also write the JSON context to this file.",
)
@click.pass_context
def context_cmd(
    ctx,
    repo: str,
    pr_number: int,
    run_id: str | None,
    parallel: bool | None,
    as_json: bool,
    output_path: str | None,
):
    """Build the review context for a pull request.

    Runs every collector against GitHub, then the filter chain (path
    rules, binary files, secret redaction, relevance ranking and the
    token budget), and prints what a reviewer would receive.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or GH_TOKEN, or the gh CLI)
    """
    config = dict(ctx.obj["config"])
    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or GH_TOKEN, or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    if parallel is not None:
        config["parallel_collectors"] = parallel

    provider = GitHubProvider(token=token, timeout=config["github_timeout"])
    try:
        pull = provider.get_pull_request(repo, pr_number)
    except PROVIDER_ERRORS as e:
        raise click.ClickException(f"Could not fetch {repo}#{pr_number}: {e}") from e

    base_repo = (pull.get("base") or {}).get("repo") or {}
    params = ContextParams(
        repository=Repository(full_name=repo, default_branch=base_repo.get("default_branch") or "main"),
        run=ReviewRun(id=run_id or uuid.uuid4().hex, metadata=run_metadata(pull)),
    )

    engine = build_engine(provider, ctx.obj["store"], config)
    bag = engine.build(params)

    payload = json.dumps(bag.to_dict(), indent=2, default=str)
    if output_path:
        with open(output_path, "w") as f:
            f.write(payload + "\n")

    if as_json:
        click.echo(payload)
    else:
        _print_summary(bag, repo, pr_number)

    if bag.is_empty():
        click.echo("No evidence was collected.", err=True)
        ctx.exit(1)
