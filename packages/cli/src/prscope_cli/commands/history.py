"""history command: past review runs from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()

_STATUS_STYLE = {
    "completed": "green",
    "failed": "red",
    "cancelled": "yellow",
}


@click.command("history")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, default=None, help="Filter by PR number.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.pass_context
def history_cmd(ctx, repo: str, pr_number: int | None, limit: int):
    """Show past review runs for a repository, most recent first.

    These are the records the review-history collector feeds back into
    the context of later runs.
    """
    from prscope_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError("No store configured. Add 'store: sqlite' to .prscope.yml.")

    records = store.list_reviews(repo, pr_number=pr_number, limit=limit)
    if not records:
        console.print("[yellow]No review records found.[/yellow]")
        return

    table = Table(title=f"Review History: {repo}", show_header=True, header_style="bold cyan")
    table.add_column("PR", style="bold", width=6)
    table.add_column("Run", width=8)
    table.add_column("SHA", width=8)
    table.add_column("Status", width=10)
    table.add_column("Findings", justify="right", width=9)
    table.add_column("Summary", max_width=30)
    table.add_column("Reviewed At", width=16)

    for r in records:
        style = _STATUS_STYLE.get(r.status, "white")
        table.add_row(
            f"#{r.pr_number}",
            str(r.run_id)[:8],
            r.head_sha[:7],
            f"[{style}]{r.status}[/{style}]",
            str(len(r.findings)),
            r.summary[:30],
            r.reviewed_at[:16].replace("T", " "),
        )

    console.print(table)
