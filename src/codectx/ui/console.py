"""Rich-powered console output for codectx."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from codectx import __version__
from codectx.context.models import ContextSelectionResult, ExcludedFile, FileRepresentation
from codectx.graph.models import GraphStats

_REPRESENTATION_STYLES = {
    FileRepresentation.FULL: "green",
    FileRepresentation.SIGNATURE: "cyan",
    FileRepresentation.TYPES_ONLY: "magenta",
    FileRepresentation.SUMMARY: "yellow",
}


class Console:
    """Terminal output for codectx using Rich."""

    def __init__(self, console: RichConsole | None = None) -> None:
        self.console = console or RichConsole()

    def banner(self) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]codectx[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Budgeted code context for generation requests[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def show_stats(self, stats: GraphStats) -> None:
        """Display graph statistics in a table."""
        table = Table(title="Dependency Graph Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right", style="cyan")

        table.add_row("Files", str(stats.total_files))
        table.add_row("Edges", str(stats.total_edges))
        table.add_row("Max Depth", str(stats.max_depth))
        table.add_row("Avg In-Degree", f"{stats.avg_in_degree:.2f}")
        table.add_row("Avg Out-Degree", f"{stats.avg_out_degree:.2f}")
        table.add_row("Cycles", str(stats.circular_dependencies))

        self.console.print(table)

    def show_cycles(self, cycles: list[list[str]]) -> None:
        if not cycles:
            return
        self.console.print("\n[bold]Circular dependencies:[/bold]")
        for cycle in cycles:
            self.console.print(f"  [red]{' → '.join(cycle)}[/red]")

    def show_paths(self, title: str, paths: list[str]) -> None:
        """Display a file list as a tree under a heading."""
        tree = Tree(f"[bold cyan]{title}[/bold cyan]")
        for path in paths:
            tree.add(f"[cyan]{path}[/cyan]")
        if not paths:
            tree.add("[dim](none)[/dim]")
        self.console.print(tree)

    def show_selection(self, result: ContextSelectionResult) -> None:
        """Display selected files with their fidelity and reason."""
        table = Table(
            title=f"Context Selection [dim]({result.strategy})[/dim]",
            border_style="cyan",
        )
        table.add_column("File", style="bold")
        table.add_column("Representation")
        table.add_column("Tokens", justify="right", style="cyan")
        table.add_column("Priority", justify="right")
        table.add_column("Reason", style="dim")

        for f in result.files:
            style = _REPRESENTATION_STYLES.get(f.representation, "white")
            table.add_row(
                f.path,
                f"[{style}]{f.representation.value}[/{style}]",
                str(f.token_count),
                f"{f.priority:.2f}",
                f.reason,
            )

        self.console.print(table)
        self.console.print(
            f"[bold]Total:[/bold] {len(result.files)} files, "
            f"[cyan]{result.total_tokens:,}[/cyan] tokens"
        )

        for w in result.warnings:
            self.warning(w)

    def show_excluded(self, excluded: list[ExcludedFile]) -> None:
        if not excluded:
            return
        table = Table(title="Excluded", border_style="yellow")
        table.add_column("File")
        table.add_column("Reason", style="dim")
        for e in excluded:
            table.add_row(e.path, e.reason)
        self.console.print(table)
