"""pipeline command: the collectors and filters a context build runs."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()


@click.command("pipeline")
@click.pass_context
def pipeline_cmd(ctx):
    """Show collectors (highest priority first) and filters (in order)."""
    from prscope_core.engine import dependency_tiers
    from prscope_core.pipeline import build_engine

    config = ctx.obj["config"]
    engine = build_engine(provider=None, store=ctx.obj["store"], config=config)
    tier_of = {c.name: i for i, tier in enumerate(dependency_tiers(engine.collectors)) for c in tier}

    collectors = Table(title="Collectors", show_header=True, header_style="bold cyan")
    collectors.add_column("Priority", justify="right", width=9)
    collectors.add_column("Name", style="bold")
    collectors.add_column("Depends on")
    collectors.add_column("Tier", justify="right", width=5)
    for c in engine.collectors:
        collectors.add_row(str(c.priority), c.name, ", ".join(c.depends_on) or "-", str(tier_of[c.name]))

    filters = Table(title="Filters", show_header=True, header_style="bold cyan")
    filters.add_column("Order", justify="right", width=6)
    filters.add_column("Name", style="bold")
    for f in engine.filters:
        filters.add_row(str(f.order), f.name)

    console.print(collectors)
    console.print(filters)
    mode = f"parallel tiers ({config['max_workers']} workers)" if engine.parallel else "sequential"
    console.print(f"Collection mode: [bold]{mode}[/bold]")
