"""Typer-based CLI for the codecontext engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config, config_manager
from .config_manager import EngineSettings
from .engine import CodeContextEngine
from .graph_export import EXPORT_FORMATS, export_graph, to_dot, to_json, to_mermaid
from .models import ITEM_KINDS
from .tokens import estimate_tokens

console = Console()

app = typer.Typer(
    help="Codebase intelligence: definitions, dependency graphs, search and token-budgeted context.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="Show or change engine settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codecontext v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("codecontext")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging."),
):
    """Local codebase intelligence for LLM context building."""
    _configure_logging(verbose)


def _engine(project_path: Path) -> CodeContextEngine:
    if not project_path.is_dir():
        raise typer.BadParameter(f"'{project_path}' is not a directory.")
    return CodeContextEngine(project_path, EngineSettings.from_config())


def _format_score(score: float) -> str:
    return f"{score:.3f}"


@app.command("index")
def index_project(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
):
    """Build the search index for a project and save it to the project cache."""
    engine = _engine(project_path)
    count = engine.index()
    saved = engine.save_index()
    stats = engine.indexer.get_stats()
    typer.echo(f"Indexed '{engine.root}'.")
    typer.echo(f"Items: {count} | Files: {stats['files_indexed']} | Tokens: {stats['token_count']}")
    typer.echo(f"Saved index to {saved}")


@app.command("search")
def search(
    query: str = typer.Argument(..., help="Keywords to search for."),
    project_path: Path = typer.Option(Path("."), "--path", "-p", help="Project root."),
    limit: int = typer.Option(10, min=1, max=100, help="Maximum number of matches."),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Restrict to one item kind."),
    file_filter: Optional[str] = typer.Option(None, "--file", "-f", help="Only items whose path contains this."),
):
    """Search indexed files, definitions and comments."""
    if kind is not None and kind not in ITEM_KINDS:
        raise typer.BadParameter(f"Kind must be one of: {', '.join(ITEM_KINDS)}")

    engine = _engine(project_path)
    if not engine.load_index():
        engine.index()
        engine.save_index()

    results = engine.search(query, limit=limit, kind=kind, file_path=file_filter)
    if not results:
        typer.echo("No matches found.")
        raise typer.Exit(code=0)

    for result in results:
        item = result.item
        typer.echo(f"[{item.kind}] {item.name}  score={_format_score(result.score)}")
        typer.echo(f"  {item.file_path}:{item.line_start}-{item.line_end}")
        for line in result.highlights[:2]:
            typer.echo(f"  {line[:120]}")


@app.command("select")
def select(
    query: str = typer.Argument(..., help="What the context is for."),
    max_tokens: int = typer.Option(8000, "--max-tokens", "-t", min=0, help="Token budget."),
    project_path: Path = typer.Option(Path("."), "--path", "-p", help="Project root."),
    min_relevance: Optional[float] = typer.Option(None, help="Drop files scoring below this."),
    recent: bool = typer.Option(True, "--recent/--no-recent", help="Boost recently modified files."),
):
    """Pick the most relevant files that fit in a token budget."""
    engine = _engine(project_path)
    result = engine.select_relevant_files(
        query, max_tokens, prioritize_recent=recent, min_relevance=min_relevance
    )

    if not result.files:
        if result.skipped_files:
            typer.echo(f"No relevant file fits in {max_tokens} tokens ({len(result.skipped_files)} skipped).")
        else:
            typer.echo("No relevant files found.")
        raise typer.Exit(code=0)

    table = Table(title="Selected Files", show_header=True, show_lines=False)
    table.add_column("File", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Reasons")
    for file in result.files:
        table.add_row(file.file_path, _format_score(file.score), str(file.token_count), "; ".join(file.match_reasons))
    console.print(table)

    typer.echo(f"Total tokens: {result.total_tokens} / {max_tokens}")
    if result.truncated:
        typer.echo(f"Skipped: {len(result.skipped_files)} file(s) over budget")
    if result.chunking_required:
        typer.echo("Budget nearly full; consider chunking large files.")


@app.command("graph")
def graph(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    fmt: str = typer.Option("dot", "--format", "-f", help="Export format: dot, mermaid or json."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
    focus: str = typer.Option("", "--focus", help="Only show files matching this and their neighbours."),
):
    """Build the file dependency graph and print or export it."""
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(EXPORT_FORMATS)}")

    dependency_graph = _engine(project_path).build_graph()
    if output is not None:
        export_graph(dependency_graph, output, fmt, focus=focus)
        typer.echo(f"Exported graph to {output}")
        return

    if fmt == "dot":
        typer.echo(to_dot(dependency_graph, focus))
    elif fmt == "mermaid":
        typer.echo(to_mermaid(dependency_graph, focus))
    else:
        typer.echo(to_json(dependency_graph))


@app.command("cycles")
def cycles(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
):
    """Report circular import dependencies and graph metrics."""
    dependency_graph = _engine(project_path).build_graph()
    metrics = dependency_graph.metrics

    table = Table(title="Graph Metrics", show_header=True, show_lines=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files", str(metrics.total_nodes))
    table.add_row("Edges", str(metrics.total_edges))
    table.add_row("Average degree", f"{metrics.average_degree:.2f}")
    table.add_row("Max depth", str(metrics.max_depth))
    table.add_row("Density", f"{metrics.density:.3f}")
    table.add_row("Cycles", str(metrics.cycle_count))
    console.print(table)

    if not dependency_graph.has_cycles:
        typer.echo("No circular dependencies found.")
        return

    for number, cycle in enumerate(dependency_graph.find_circular_dependencies(), start=1):
        typer.echo(f"Cycle {number}: " + " -> ".join(cycle.files + cycle.files[:1]))


@app.command("tokens")
def tokens(
    file_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to measure."),
):
    """Estimate the token cost of a file (heuristic, about 4 characters per token)."""
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        typer.echo(f"Cannot read {file_path}: {exc}", err=True)
        raise typer.Exit(code=1)

    estimate = estimate_tokens(content)
    table = Table(title=str(file_path.name), show_header=True, show_lines=False)
    table.add_column("Span", style="cyan")
    table.add_column("Tokens", justify="right")
    table.add_row("Code", str(estimate.breakdown.code))
    table.add_row("Comments", str(estimate.breakdown.comments))
    table.add_row("Strings", str(estimate.breakdown.strings))
    table.add_row("Whitespace (not counted)", str(estimate.breakdown.whitespace))
    console.print(table)
    typer.echo(f"Total: {estimate.tokens} tokens | {estimate.characters} chars | {estimate.lines} lines")


@app.command("chunks")
def chunks(
    file_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to split."),
    max_tokens: int = typer.Option(2000, "--max-tokens", "-t", min=1, help="Token budget per chunk."),
    project_path: Path = typer.Option(Path("."), "--path", "-p", help="Project root."),
):
    """Split a large file into line-aligned chunks that fit a token budget."""
    engine = _engine(project_path)
    parts = engine.split_large_file(file_path.resolve(), max_tokens)
    if not parts:
        typer.echo(f"Cannot read {file_path}", err=True)
        raise typer.Exit(code=1)

    for number, chunk in enumerate(parts, start=1):
        typer.echo(
            f"Chunk {number}: lines {chunk.start_line}-{chunk.end_line} ({chunk.token_count} tokens)"
        )


@app.command("clear-cache")
def clear_cache(
    project_path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
):
    """Delete the project's cached summary and search index."""
    engine = _engine(project_path)
    engine.clear_cache()
    typer.echo(f"Cleared cache in {engine.cache_dir}")


@config_app.command("show")
def show_config():
    """Show current engine settings."""
    values = config_manager.load_engine_config()
    table = Table(title="Engine Settings", show_header=True, show_lines=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in values.items():
        rendered = ", ".join(value) if isinstance(value, list) else str(value)
        table.add_row(key, rendered)
    console.print(table)
    source = config.CONFIG_FILE if config.CONFIG_FILE.exists() else "defaults"
    typer.echo(f"Source: {source}")


@config_app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Setting name, e.g. max_workers."),
    value: str = typer.Argument(..., help="New value; lists are comma-separated."),
):
    """Change one engine setting."""
    try:
        coerced = config_manager.coerce_setting(key, value)
    except KeyError:
        known = ", ".join(config_manager.DEFAULT_ENGINE_CONFIG)
        raise typer.BadParameter(f"Unknown setting '{key}'. Known settings: {known}")
    except ValueError:
        raise typer.BadParameter(f"Invalid value for '{key}': {value}")

    if not config_manager.save_engine_config(**{key: coerced}):
        typer.echo(f"Could not save settings to {config.CONFIG_FILE}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Set {key} = {coerced}")
