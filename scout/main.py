"""Scout CLI — the user interface.

Commands:
    scout research    — Discover, select, research, review and commit in one run
    scout categories  — Print the categories discovered for a query
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from scout.utils import setup_logging

# Initialize logging on import
setup_logging()

app = typer.Typer(
    name="scout",
    help="🔎 Scout — concurrent product research pipeline",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_STATUS_STYLE = {
    "idle": "dim",
    "pending": "yellow",
    "in-progress": "cyan",
    "complete": "green",
    "error": "red",
}


def _parse_choice(raw: str, options: list[str]) -> list[str]:
    """Turn '1,3' / 'all' / '' into the chosen option values."""
    raw = raw.strip().lower()
    if raw in ("", "all", "*"):
        return list(options)
    if raw in ("none", "-"):
        return []
    chosen: list[str] = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit() and 1 <= int(part) <= len(options):
            value = options[int(part) - 1]
            if value not in chosen:
                chosen.append(value)
    return chosen


def _batch_table(batch, status) -> Table:
    table = Table(title=f"Pipeline #{batch.id} — [{_STATUS_STYLE[status.value]}]{status.value}[/]")
    table.add_column("Product", style="white")
    table.add_column("Category", style="dim")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    for job in batch.jobs:
        style = _STATUS_STYLE[job.status.value]
        detail = job.error or (job.result.product_id if job.result else "")
        table.add_row(job.product_name, job.category, f"[{style}]{job.status.value}[/]", detail)
    return table


# ── scout categories ──────────────────────────────────────────


@app.command()
def categories(query: str = typer.Argument(..., help="What are you researching?")):
    """🗂 List product categories for a query."""
    asyncio.run(_categories(query))


async def _categories(query: str) -> None:
    from scout.tools.gemini import GeminiClient

    client = GeminiClient()
    try:
        found = await client.discover_categories(query)
    except Exception as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(1)
    finally:
        await client.close()

    if not found:
        console.print("[yellow]No categories found for this query.[/]")
        return
    for i, cat in enumerate(found, 1):
        console.print(f"  [cyan]{i:>2}[/] {cat}")


# ── scout research ────────────────────────────────────────────


@app.command()
def research(
    query: str = typer.Argument(..., help="What are you researching?"),
    export: bool = typer.Option(False, "--export", help="Also append committed records to Google Sheets"),
    as_json: bool = typer.Option(False, "--json", help="Print committed records as JSON"),
):
    """🔬 Discover categories, research chosen products, and commit the results."""
    asyncio.run(_research(query, export=export, as_json=as_json))


async def _research(query: str, *, export: bool, as_json: bool) -> None:
    from scout.config import settings
    from scout.models.synapse import SynapseEventBus
    from scout.pipeline import (
        AggregationSession,
        BatchOrchestrator,
        DiscoverySession,
        KnowledgeStore,
        SelectionTracker,
    )
    from scout.tools.gemini import GeminiClient
    from scout.tools.sheets import SheetsExporter

    gemini = GeminiClient()
    exporter = SheetsExporter() if export else None
    store = KnowledgeStore()
    orchestrator = BatchOrchestrator(gemini, SynapseEventBus(persist=settings.trace_persist))
    tracker = SelectionTracker(store, orchestrator)
    session = DiscoverySession(gemini, gemini, tracker, orchestrator)

    try:
        # Stage 1: categories
        with console.status("[cyan]Discovering categories…[/]"):
            found = await session.discover(query)
        if not found:
            console.print(f"[red]{session.error_message or 'No categories found for this query.'}[/]")
            raise typer.Exit(1)

        for i, cat in enumerate(found, 1):
            console.print(f"  [cyan]{i:>2}[/] {cat}")
        for cat in _parse_choice(typer.prompt("Categories to explore (e.g. 1,3 or all)", default="all"), found):
            session.toggle_category(cat)

        # Stage 2: products
        with console.status("[cyan]Identifying products…[/]"):
            identified = await session.identify()
        if session.error_message:
            console.print(f"[red]{session.error_message}[/]")
            raise typer.Exit(1)

        for cat, products in identified.items():
            console.print(Panel("\n".join(f"{i:>2}. {p}" for i, p in enumerate(products, 1)), title=cat))
            keep = set(_parse_choice(typer.prompt(f"Products to research in {cat!r}", default="all"), products))
            for name in products:
                if (name in keep) != (name in session.selected_products.get(cat, set())):
                    session.toggle_product(cat, name)

        # Stage 3: batch
        batch = session.launch()
        if batch is None:
            console.print("[yellow]Nothing selected — no research launched.[/]")
            return

        with Live(_batch_table(batch, orchestrator.overall_status(batch)), console=console) as live:
            waiter = asyncio.ensure_future(orchestrator.wait(batch.id))
            while not waiter.done():
                live.update(_batch_table(batch, orchestrator.overall_status(batch)))
                await asyncio.sleep(0.25)
            live.update(_batch_table(batch, orchestrator.overall_status(batch)))

        for job in batch.errored_jobs:
            console.print(f"[red]✖ {job.product_name}:[/] {job.error}")
        if not batch.completed_jobs:
            console.print("[red]No successful results to aggregate.[/]")
            orchestrator.dismiss(batch.id)
            raise typer.Exit(1)

        # Stage 4: aggregation
        agg = AggregationSession(batch, store, orchestrator)
        for dup in agg.duplicate_results:
            console.print(f"[dim]already known: {dup.product_name} ({dup.product_id})[/]")
        new_ids = [r.product_id for r in agg.new_results]
        chosen = _parse_choice(
            typer.prompt(
                "Results to add " + ", ".join(f"{i}={pid}" for i, pid in enumerate(new_ids, 1)),
                default="all",
            ),
            new_ids,
        )
        outcome = await agg.finalize(chosen, exporter=exporter)

        console.print(
            f"[green]✔ {len(outcome.committed)} record(s) added[/]  "
            f"[dim](knowledge base: {len(store)})[/]"
        )
        if outcome.export is not None:
            if outcome.export.ok:
                console.print(f"[green]✔ exported {outcome.export.exported} row(s) to Sheets[/]")
            else:
                console.print(f"[red]✖ export failed:[/] {outcome.export.error}")
        if as_json and outcome.committed:
            console.print_json(store.to_json(outcome.committed))
    finally:
        await gemini.close()
        if exporter is not None:
            await exporter.close()


if __name__ == "__main__":
    app()
