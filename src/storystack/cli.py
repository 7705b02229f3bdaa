"""StoryStack CLI - typer application entry point."""

from __future__ import annotations

import atexit
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from storystack.config import EngineConfig, load_config
from storystack.errors import CardNotFoundError, StoryStackError
from storystack.graph.analysis import analyze, completeness_policy
from storystack.graph.navigation import KEY_DIRECTIONS, build_navigation_map
from storystack.graph.orphans import suggest_parents
from storystack.graph.progress import path_progress
from storystack.graph.validation import validate_story
from storystack.loader import load_story
from storystack.observability import close_file_logging, configure_logging, get_logger
from storystack.render import build_render_graph, render_dot, render_mermaid
from storystack.session import GraphSession

if TYPE_CHECKING:
    from storystack.graph.analysis import GraphAnalysis
    from storystack.models.story import StoryStack

# Load environment variables from .env file
load_dotenv()

log = get_logger(__name__)

app = typer.Typer(
    name="storystack",
    help="StoryStack: consistency checks and navigation for branching stories.",
    no_args_is_help=True,
)
console = Console()

# Global state (set by callback, used by commands)
_config: EngineConfig = EngineConfig()


class ExportFormat(StrEnum):
    DOT = "dot"
    MERMAID = "mermaid"


StoryArg = Annotated[
    Path,
    typer.Argument(help="Story file (JSON or YAML)."),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            help="Also write every log event to this JSONL file.",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file (default: ./storystack.yaml if present).",
            envvar="STORYSTACK_CONFIG",
        ),
    ] = None,
) -> None:
    """StoryStack: consistency checks and navigation for branching stories."""
    global _config

    configure_logging(verbosity=verbose, log_file=log_file)
    if log_file is not None:
        atexit.register(close_file_logging)

    try:
        _config = load_config(config)
    except StoryStackError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


# =============================================================================
# Helpers
# =============================================================================


def _load(path: Path) -> StoryStack:
    """Load a story or exit with an error message."""
    try:
        return load_story(path)
    except StoryStackError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _analyze(story: StoryStack) -> GraphAnalysis:
    return analyze(
        story.cards,
        story.choices,
        story.first_card_id,
        is_complete=completeness_policy(_config.placeholder_title),
    )


def _require_card(story: StoryStack, card_id: str, context: str) -> None:
    """Exit with close-match suggestions when a card id is unknown."""
    if story.get_card(card_id) is not None:
        return
    error = CardNotFoundError(card_id, available=story.card_ids(), context=context)
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


def _card_flags(card_id: str, story: StoryStack, analysis: GraphAnalysis) -> str:
    flags: list[str] = []
    if card_id == story.first_card_id:
        flags.append("[green]start[/green]")
    if card_id in analysis.orphan_cards:
        flags.append("[yellow]orphan[/yellow]")
    if card_id in analysis.dead_end_cards:
        flags.append("[magenta]dead end[/magenta]")
    if card_id in analysis.incomplete_cards:
        flags.append("[dim]incomplete[/dim]")
    return ", ".join(flags)


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from storystack import __version__

    console.print(f"StoryStack v{__version__}")


@app.command("analyze")
def analyze_command(story_path: StoryArg) -> None:
    """Show depth and status of every card."""
    story = _load(story_path)
    analysis = _analyze(story)

    table = Table(title=f"Story: {story.title or story.id or story_path.name}")
    table.add_column("Card", style="cyan")
    table.add_column("Title")
    table.add_column("Depth", justify="right")
    table.add_column("Choices", justify="right")
    table.add_column("Flags")

    for card in story.cards:
        depth = analysis.depth.get(card.id)
        table.add_row(
            card.id,
            card.title or "[dim]Untitled[/dim]",
            str(depth) if depth is not None else "-",
            str(analysis.choice_count.get(card.id, 0)),
            _card_flags(card.id, story, analysis),
        )

    console.print()
    console.print(table)
    console.print()
    console.print(f"  Cards: {len(story.cards)}  Choices: {len(story.choices)}")
    console.print(f"  Reachable: {len(analysis.reachable)}  Max depth: {analysis.max_depth}")
    console.print(
        f"  Orphans: {len(analysis.orphan_cards)}  "
        f"Dead ends: {len(analysis.dead_end_cards)}  "
        f"Incomplete: {len(analysis.incomplete_cards)}"
    )


@app.command()
def validate(story_path: StoryArg) -> None:
    """Check a story for problems. Exits with 1 when errors are found."""
    story = _load(story_path)
    result = validate_story(
        story.cards,
        story.choices,
        story.first_card_id,
        placeholder_title=_config.placeholder_title,
    )

    if not result.issues:
        console.print("[green]✓[/green] No issues found")
        return

    severity_styles = {
        "error": "[red]✗ error[/red]",
        "warning": "[yellow]⚠ warning[/yellow]",
        "info": "[blue]ℹ info[/blue]",
    }
    table = Table(title=f"Validation: {result.summary}")
    table.add_column("Severity")
    table.add_column("Card", style="cyan")
    table.add_column("Issue", style="bold")
    table.add_column("Details")
    table.add_column("Fix", style="dim")

    for issue in result.issues:
        table.add_row(
            severity_styles[issue.severity],
            issue.card_id or "-",
            issue.title,
            issue.message,
            issue.fix.label if issue.fix else "",
        )

    console.print()
    console.print(table)
    console.print()

    if not result.is_valid:
        raise typer.Exit(1)


@app.command()
def suggest(
    story_path: StoryArg,
    orphan_id: Annotated[str, typer.Argument(help="Card that needs a parent.")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum suggestions (default from config)."),
    ] = None,
) -> None:
    """Rank cards that could link to an orphaned card."""
    story = _load(story_path)
    _require_card(story, orphan_id, "orphan")
    analysis = _analyze(story)

    suggestions = suggest_parents(
        orphan_id,
        story.cards,
        story.choices,
        analysis.depth,
        story.first_card_id,
        limit=limit if limit is not None else _config.suggestion_limit,
    )
    if not suggestions:
        console.print(f"[yellow]No parent suggestions for {orphan_id}[/yellow]")
        return

    table = Table(title=f"Parent suggestions for {orphan_id}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Card", style="cyan")
    table.add_column("Title")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Reasons")

    for rank, suggestion in enumerate(suggestions, start=1):
        table.add_row(
            str(rank),
            suggestion.card_id,
            suggestion.card_title,
            str(suggestion.score),
            ", ".join(suggestion.reasons),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def path(
    story_path: StoryArg,
    card_id: Annotated[str, typer.Argument(help="Selected card.")],
    previous: Annotated[
        str | None,
        typer.Option("--previous", "-p", help="Previously selected card."),
    ] = None,
) -> None:
    """Show the path from the start card and progress through the story."""
    story = _load(story_path)
    _require_card(story, card_id, "selected card")
    if previous is not None:
        _require_card(story, previous, "previous card")
    analysis = _analyze(story)

    progress = path_progress(
        card_id,
        story.first_card_id,
        analysis,
        story.choices,
        previous_id=previous,
        total_nodes=len(story.cards),
    )

    if len(progress.ordered_path) <= 1 and card_id != story.first_card_id:
        console.print(f"[yellow]{card_id} is not reachable from the start card[/yellow]")
    else:
        console.print(f"Path: {' → '.join(progress.ordered_path)}")
    console.print(f"  Depth: {progress.current_depth} of {progress.max_depth}")
    console.print(f"  Progress: {progress.progress:.0%}")
    if previous is not None:
        direction = "forward" if progress.is_moving_forward else "back"
        console.print(f"  Moving {direction} (was {progress.previous_progress:.0%})")
    if progress.is_terminal:
        console.print("  [magenta]Terminal card[/magenta]")

    if progress.milestones:
        console.print("  Milestones:")
        for milestone in progress.milestones:
            tags = [
                name
                for name, on in (
                    ("start", milestone.is_start),
                    ("branch", milestone.is_branch_point),
                    ("end", milestone.is_terminal),
                    ("current", milestone.is_current),
                )
                if on
            ]
            console.print(
                f"    {milestone.position:>4.0%}  [cyan]{milestone.card_id}[/cyan]  "
                f"[dim]{', '.join(tags)}[/dim]"
            )


@app.command()
def navigate(
    story_path: StoryArg,
    card_id: Annotated[str, typer.Argument(help="Focused card.")],
    key: Annotated[str, typer.Argument(help="Key name, e.g. ArrowRight or PageDown.")],
) -> None:
    """Show which card a navigation key moves focus to."""
    story = _load(story_path)
    _require_card(story, card_id, "focused card")
    if key not in KEY_DIRECTIONS:
        console.print(
            f"[red]Error:[/red] Unknown key '{key}'. Use one of: {', '.join(KEY_DIRECTIONS)}"
        )
        raise typer.Exit(1)

    analysis = _analyze(story)
    graph = build_render_graph(
        story.cards,
        story.choices,
        story.first_card_id,
        analysis=analysis,
        current_id=card_id,
        placeholder_title=_config.placeholder_title,
    )
    nav = build_navigation_map(graph.nodes, story.choices, story.first_card_id)
    result = nav.navigate(key, card_id)

    if result.node_id is None:
        console.print(f"[dim]No card {result.direction} of {card_id}[/dim]")
        return
    console.print(f"{key}: {card_id} → [cyan]{result.node_id}[/cyan]")


@app.command()
def search(
    story_path: StoryArg,
    query: Annotated[str, typer.Argument(help="Text to look for in card titles and ids.")],
) -> None:
    """Find cards by title or id, tolerating typos."""
    session = GraphSession(_load(story_path), _config)
    session.refresh()
    results = session.search(query)
    if not results:
        console.print(f"[yellow]No cards match '{query}'[/yellow]")
        return

    table = Table(title=f"Cards matching '{query}'")
    table.add_column("Card", style="cyan")
    table.add_column("Title")
    table.add_column("Score", justify="right", style="dim")
    for result in results:
        table.add_row(result.node_id, result.label, f"{result.score:.2f}")

    console.print()
    console.print(table)
    console.print()


@app.command()
def clusters(story_path: StoryArg) -> None:
    """Group reachable cards by their depth from the start card."""
    session = GraphSession(_load(story_path), _config)
    session.refresh()
    groups = session.clusters()
    if not groups:
        console.print("[yellow]No depth has enough cards to form a cluster[/yellow]")
        return

    table = Table(title="Depth clusters")
    table.add_column("Depth", justify="right", style="dim")
    table.add_column("Stage", style="bold")
    table.add_column("Cards", style="cyan")
    for group in groups:
        table.add_row(str(group.depth), group.label, ", ".join(group.node_ids))

    console.print()
    console.print(table)
    console.print()


@app.command()
def render(
    story_path: StoryArg,
    export_format: Annotated[
        ExportFormat,
        typer.Option("--format", "-f", help="Output format."),
    ] = ExportFormat.DOT,
    collapse: Annotated[
        list[str] | None,
        typer.Option("--collapse", help="Hide the descendants of this card. Repeatable."),
    ] = None,
    no_labels: Annotated[
        bool,
        typer.Option("--no-labels", help="Omit choice labels on edges."),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write to a file instead of stdout."),
    ] = None,
) -> None:
    """Export the story graph as DOT or Mermaid markup."""
    story = _load(story_path)
    for card_id in collapse or []:
        _require_card(story, card_id, "collapse")

    graph = build_render_graph(
        story.cards,
        story.choices,
        story.first_card_id,
        analysis=_analyze(story),
        collapsed=collapse or (),
        placeholder_title=_config.placeholder_title,
    )
    if export_format is ExportFormat.MERMAID:
        text = render_mermaid(graph, no_labels=no_labels)
    else:
        text = render_dot(graph, no_labels=no_labels)

    if output is None:
        typer.echo(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    log.info("graph_exported", path=str(output), format=str(export_format))
    console.print(f"[green]✓[/green] Wrote {export_format} to [cyan]{output}[/cyan]")
