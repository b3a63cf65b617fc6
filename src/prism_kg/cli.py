"""CLI interface for prism-kg."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from prism_kg.config import PrismConfig

app = typer.Typer(
    name="prism",
    help="AI-populated knowledge graph with duplicate consolidation",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    # Suppress noisy libraries
    logging.getLogger("litellm").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_config(data_dir: str | None) -> PrismConfig:
    if data_dir:
        return PrismConfig(data_dir=data_dir)
    return PrismConfig()


def _open_store(config: PrismConfig, seed_missing: bool = False):
    from prism_kg.graph.store import GraphStore

    if not seed_missing and not config.graph_path.exists():
        console.print("[yellow]No graph found.[/yellow] Run [cyan]prism seed[/cyan] first.")
        raise typer.Exit(1)
    try:
        return GraphStore.open(config.graph_path)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Cannot read {config.graph_path}: {e}")
        raise typer.Exit(1)


def _provider_context(config: PrismConfig, provider: str | None, model: str | None):
    from prism_kg.generate.providers import ProviderContext

    context = ProviderContext.from_config(config)
    if provider:
        context.auto_mode = False
        context.selected_provider = provider
        context.selected_model = model
    return context


def _print_generation(outcome, result) -> None:
    for attempt in outcome.attempts:
        if attempt.success:
            console.print(f"  [green]✓[/green] {attempt.provider}::{attempt.model} ({attempt.tokens_used} tokens)")
        else:
            console.print(f"  [red]✗[/red] {attempt.provider}::{attempt.model}: {attempt.error}")
    console.print()
    console.print("[green]Graph updated![/green]")
    console.print(f"  New entities: {len(outcome.data.entities) - result.merged_count}")
    console.print(f"  Merged duplicates: {result.merged_count}")
    console.print(f"  Dropped relations: {result.dropped_relations}")
    console.print(f"  Graph: {len(result.entities)} entities, {len(result.relations)} relations")


# ============================================================================
# Graph Commands
# ============================================================================


@app.command()
def seed(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing graph"),
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Create the graph from the bundled seed dataset."""
    _setup_logging(verbose)
    config = _load_config(data_dir)

    from prism_kg.graph.seed import load_seed
    from prism_kg.graph.store import GraphStore

    if config.graph_path.exists() and not force:
        console.print(f"[yellow]Graph already exists:[/yellow] {config.graph_path}")
        console.print("Use [cyan]--force[/cyan] to overwrite it.")
        raise typer.Exit(1)

    store = GraphStore(load_seed(), path=config.graph_path)
    store.save()

    console.print("[green]Graph seeded![/green]")
    console.print(f"  Entities: {store.entity_count}")
    console.print(f"  Relations: {store.relation_count}")
    console.print(f"  Output: {config.graph_path}")
    console.print()
    console.print('Next: [cyan]prism explore "topic"[/cyan] to grow the graph')


@app.command()
def explore(
    topic: str = typer.Argument(..., help="Topic to generate a graph around"),
    provider: str | None = typer.Option(None, help="Use only this provider (disables auto mode)"),
    model: str | None = typer.Option(None, help="Model id for --provider"),
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Generate entities for a topic and merge them into the graph."""
    _setup_logging(verbose)
    config = _load_config(data_dir)

    from prism_kg.generate.providers import GenerationError
    from prism_kg.pipeline import run_explore

    store = _open_store(config, seed_missing=True)
    context = _provider_context(config, provider, model)

    console.print(f"[cyan]Topic:[/cyan] {topic}")
    console.print(f"[cyan]Mode:[/cyan] {'auto' if context.auto_mode else context.selected_provider}")
    console.print()

    try:
        outcome, result = run_explore(store, context, topic)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    except GenerationError as e:
        for attempt in e.attempts:
            console.print(f"  [red]✗[/red] {attempt.provider}::{attempt.model}: {attempt.error}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    finally:
        context.save_quota(config.quota_path)

    _print_generation(outcome, result)


@app.command()
def correlate(
    source_id: str = typer.Argument(..., help="Id of the first entity"),
    target_id: str = typer.Argument(..., help="Id of the second entity"),
    provider: str | None = typer.Option(None, help="Use only this provider (disables auto mode)"),
    model: str | None = typer.Option(None, help="Model id for --provider"),
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Generate bridging entities between two entities already in the graph."""
    _setup_logging(verbose)
    config = _load_config(data_dir)

    from prism_kg.generate.providers import GenerationError
    from prism_kg.pipeline import run_correlate

    store = _open_store(config)
    context = _provider_context(config, provider, model)

    try:
        outcome, result = run_correlate(store, context, source_id, target_id)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    except GenerationError as e:
        for attempt in e.attempts:
            console.print(f"  [red]✗[/red] {attempt.provider}::{attempt.model}: {attempt.error}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    finally:
        context.save_quota(config.quota_path)

    _print_generation(outcome, result)


@app.command()
def ingest(
    file: str = typer.Argument(..., help="JSON file with entities and relations"),
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Merge a graph JSON file into the graph."""
    import json

    _setup_logging(verbose)
    config = _load_config(data_dir)

    from prism_kg.pipeline import run_ingest_file

    store = _open_store(config, seed_missing=True)

    try:
        result = run_ingest_file(store, Path(file))
    except (FileNotFoundError, ValueError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    console.print("[green]Batch ingested![/green]")
    console.print(f"  Merged duplicates: {result.merged_count}")
    console.print(f"  Dropped relations: {result.dropped_relations}")
    console.print(f"  Graph: {len(result.entities)} entities, {len(result.relations)} relations")


@app.command()
def export(
    fmt: str = typer.Option("json", "--format", help="Export format: json, graphml, gexf, csv"),
    output: str | None = typer.Option(None, "-o", help="Export file/directory path"),
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Export the graph to JSON, GraphML, GEXF, or CSV."""
    _setup_logging(verbose)
    config = _load_config(data_dir)

    from prism_kg.export import SUPPORTED_FORMATS
    from prism_kg.pipeline import run_export

    if fmt.lower() not in SUPPORTED_FORMATS:
        console.print(f"[red]Unsupported format:[/red] {fmt}")
        console.print(f"Supported: {', '.join(SUPPORTED_FORMATS)}")
        raise typer.Exit(1)

    store = _open_store(config)
    result = run_export(store, fmt, Path(output) if output else None)

    console.print(f"[green]Exported![/green] ({fmt.upper()})")
    console.print(f"  Entities: {store.entity_count}")
    console.print(f"  Relations: {store.relation_count}")
    if fmt.lower() == "csv":
        console.print(f"  Output: {result}/entities.csv, {result}/relations.csv")
    else:
        console.print(f"  Output: {result}")


# ============================================================================
# Project Commands
# ============================================================================


@app.command()
def providers(
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Show AI providers, their models and remaining quota."""
    _setup_logging(verbose)
    config = _load_config(data_dir)

    from prism_kg.generate.providers import ProviderContext

    context = ProviderContext.from_config(config)

    table = Table(title="AI Providers", show_header=True, header_style="bold cyan")
    table.add_column("Provider", style="green")
    table.add_column("Model")
    table.add_column("Tier")
    table.add_column("Remaining", justify="right")
    table.add_column("Status")
    table.add_column("Key")

    for stats in context.provider_stats():
        provider = context.get_provider(stats.name)
        has_key = config.has_api_key(provider.prefix) if provider else False
        status = "[green]ACTIVE[/green]" if stats.status == "ACTIVE" else "[red]EXHAUSTED[/red]"
        for i, m in enumerate(stats.models):
            table.add_row(
                stats.name if i == 0 else "",
                m.name,
                m.tier,
                f"{m.remaining_tokens:,}/{m.max_tokens:,}",
                status if i == 0 else "",
                ("yes" if has_key else "[yellow]missing[/yellow]") if i == 0 else "",
            )

    console.print(table)
    console.print(f"Mode: [cyan]{'auto' if config.auto_mode else config.selected_provider}[/cyan]")


@app.command()
def init(
    provider: str | None = typer.Option(None, help="Provider to pin in project config (disables auto mode)"),
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory to write into prism.yaml"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Initialize a new prism-kg project in the current directory."""
    _setup_logging(verbose)
    env_example_path = Path(".env.example")
    prism_yaml_path = Path("prism.yaml")

    if not env_example_path.exists() or typer.confirm("Overwrite existing .env.example?", default=False):
        env_template = """# prism-kg Configuration
# Copy this file to .env and fill in your API keys

# === LLM API Keys ===
# Auto mode tries every provider with a key, heavy models first.
PRISM_GEMINI_API_KEY=
PRISM_OPENAI_API_KEY=
PRISM_XAI_API_KEY=
PRISM_ANTHROPIC_API_KEY=
PRISM_DEEPSEEK_API_KEY=

# === Generation ===
PRISM_AUTO_MODE=true
PRISM_RPM=40
"""
        env_example_path.write_text(env_template)
        console.print("[green]Created .env.example[/green]")

    if not prism_yaml_path.exists() or typer.confirm("Overwrite existing prism.yaml?", default=False):
        project_config = "# prism-kg project config\n# All commands pick up these settings automatically.\n\n"
        project_config += f"data_dir: {data_dir or 'prism_data'}\n"
        if provider:
            project_config += f"auto_mode: false\nprovider: {provider}\n"
        else:
            project_config += "# auto_mode: false\n# provider: Gemini\n"
        project_config += "# model: gemini-2.5-flash\n"
        prism_yaml_path.write_text(project_config)
        console.print("[green]Created prism.yaml[/green]")

    console.print("\nNext steps:")
    console.print("  1. cp .env.example .env")
    console.print("  2. Add at least one API key to .env")
    console.print("  3. prism seed")
    console.print('  4. prism explore "your topic"')
    raise typer.Exit(0)


@app.command()
def info(
    data_dir: str | None = typer.Option(None, "--data-dir", help="Data directory"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Display project configuration and graph stats."""
    _setup_logging(verbose)
    config = _load_config(data_dir)

    table = Table(title="prism-kg Project Info", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="dim")
    table.add_column("Value")

    table.add_row("Data Directory", str(config.data_dir))
    table.add_row("Mode", "auto" if config.auto_mode else f"manual ({config.selected_provider})")

    categories: dict[str, int] = {}
    if config.graph_path.exists():
        store = _open_store(config)
        table.add_row("Graph", f"{store.entity_count} entities, {store.relation_count} relations")
        table.add_row("Last Updated", store.updated_at.strftime("%Y-%m-%d %H:%M"))
        table.add_row("Status", store.status.value)
        for entity in store.entities:
            categories[entity.category] = categories.get(entity.category, 0) + 1
    else:
        table.add_row("Graph", "Not seeded")

    console.print(table)

    if categories:
        cat_table = Table(title="Categories", show_header=True, header_style="bold cyan")
        cat_table.add_column("Category", style="green")
        cat_table.add_column("Entities", justify="right")
        for name, count in sorted(categories.items(), key=lambda kv: -kv[1]):
            cat_table.add_row(name, str(count))
        console.print(cat_table)
    raise typer.Exit(0)


if __name__ == "__main__":
    app()
