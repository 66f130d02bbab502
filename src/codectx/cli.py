"""Command-line interface for codectx."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.logging import RichHandler

from codectx import __version__
from codectx.analysis.corpus import load_corpus
from codectx.config import (
    ProjectConfig,
    find_project_root,
    get_codectx_dir,
    load_config,
    save_config,
    set_config_value,
)
from codectx.context.models import (
    ContextSelectionRequest,
    CrossReferenceIntent,
    FullContextIntent,
    ModificationIntent,
    NewPhaseIntent,
    TypeCheckIntent,
)
from codectx.exceptions import CodeCtxError, GraphError
from codectx.service import CodeContextService
from codectx.ui.console import Console

console = Console()

INTENTS = ["modification", "new-phase", "cross-reference", "type-check", "full-context"]


def _setup_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console.console, show_path=False)],
    )


def _project_config(path: str | None) -> ProjectConfig:
    """Config from --path, the enclosing project, or defaults."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return load_config(root)

    root = find_project_root()
    if root is None:
        return ProjectConfig()
    return load_config(root)


def _load_service(corpus: str, path: str | None) -> CodeContextService:
    """Load a corpus into a fresh service, warning about unanalyzed files."""
    config = _project_config(path)
    service = CodeContextService(
        app_id=Path(corpus).stem, app_name=config.name or Path(corpus).stem, config=config
    )
    result = service.update_context(load_corpus(corpus))
    for missing in result.needs_analysis:
        console.warning(f"No analysis for {missing}; skipped")
    return service


@click.group()
@click.version_option(version=__version__, prog_name="codectx")
@click.option("--verbose", "-v", is_flag=True, help="Log graph, cache and selection decisions.")
def main(verbose: bool):
    """codectx - budgeted code context over a file dependency graph."""
    _setup_logging(verbose)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def init(path: str | None):
    """Create a .codectx/config.json with default settings."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing codectx for: {root}")

    try:
        config = load_config(root)
    except CodeCtxError as e:
        console.error(str(e))
        sys.exit(1)
    config.name = config.name or root.name
    save_config(root, config)
    console.success(f"Configuration saved to {get_codectx_dir(root)}")


@main.command()
@click.argument("corpus", type=click.Path(exists=True, dir_okay=False))
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--json", "as_json", is_flag=True, help="Output JSON instead of tables.")
def graph(corpus: str, path: str | None, as_json: bool):
    """Build the dependency graph of a corpus and show its shape."""
    try:
        service = _load_service(corpus, path)
    except CodeCtxError as e:
        console.error(str(e))
        sys.exit(1)

    g = service.graph
    if as_json:
        click.echo(
            json.dumps(
                {
                    "stats": g.stats.as_dict(),
                    "roots": g.roots,
                    "leaves": g.leaves,
                    "cycles": g.cycles,
                },
                indent=2,
            )
        )
        return

    console.show_stats(g.stats)
    console.show_paths("Roots", g.roots)
    console.show_paths("Leaves", g.leaves)
    console.show_cycles(g.cycles)


@main.command()
@click.argument("corpus", type=click.Path(exists=True, dir_okay=False))
@click.argument("file")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--reverse", "-r", is_flag=True, help="Show files that import FILE instead.")
@click.option("--transitive", "-t", is_flag=True, help="Follow imports transitively.")
def deps(corpus: str, file: str, path: str | None, reverse: bool, transitive: bool):
    """Show what FILE imports (or, with --reverse, what imports it)."""
    try:
        service = _load_service(corpus, path)
        if file not in service.graph:
            raise GraphError(f"File not in graph: {file}")
    except CodeCtxError as e:
        console.error(str(e))
        sys.exit(1)

    query = service.query
    if reverse:
        found = query.transitive_dependents(file) if transitive else query.dependents(file)
        title = f"Files depending on {file}"
    else:
        found = query.transitive_dependencies(file) if transitive else query.dependencies(file)
        title = f"Dependencies of {file}"
    console.show_paths(title, found)


@main.command()
@click.argument("corpus", type=click.Path(exists=True, dir_okay=False))
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option(
    "--intent", "-i", "intent_type",
    type=click.Choice(INTENTS), default="full-context", help="Selection intent.",
)
@click.option("--budget", "-b", default=None, type=int, help="Max tokens (default from config).")
@click.option("--reserved", default=0, type=int, help="Tokens held back from the budget.")
@click.option("--target", default=None, help="Modification target file.")
@click.option("--change", default="", help="Description of the intended change.")
@click.option("--symbol", default=None, help="Symbol for cross-reference.")
@click.option("--from-file", default="", help="File the cross-reference starts from.")
@click.option("--feature", multiple=True, help="Phase feature (repeatable).")
@click.option("--focus", multiple=True, help="File that must be included (repeatable).")
@click.option("--exclude", multiple=True, help="File to leave out (repeatable).")
@click.option("--summary", "show_summary", is_flag=True, help="Print a plain-text summary.")
@click.option("--render", "show_render", is_flag=True, help="Print the rendered context.")
@click.option("--json", "as_json", is_flag=True, help="Output the full result as JSON.")
def select(
    corpus: str,
    path: str | None,
    intent_type: str,
    budget: int | None,
    reserved: int,
    target: str | None,
    change: str,
    symbol: str | None,
    from_file: str,
    feature: tuple[str, ...],
    focus: tuple[str, ...],
    exclude: tuple[str, ...],
    show_summary: bool,
    show_render: bool,
    as_json: bool,
):
    """Select budgeted context from a corpus for an intent."""
    if intent_type == "modification" and not target:
        console.error("--target is required for a modification intent")
        sys.exit(1)
    if intent_type == "cross-reference" and not symbol:
        console.error("--symbol is required for a cross-reference intent")
        sys.exit(1)

    try:
        service = _load_service(corpus, path)
    except CodeCtxError as e:
        console.error(str(e))
        sys.exit(1)

    if intent_type == "modification":
        intent = ModificationIntent(target_file=target, change_description=change)
    elif intent_type == "new-phase":
        features = list(feature)
        intent = NewPhaseIntent(
            features=features, dependencies=service.infer_dependencies(features)
        )
    elif intent_type == "cross-reference":
        intent = CrossReferenceIntent(from_file=from_file, symbol=symbol)
    elif intent_type == "type-check":
        intent = TypeCheckIntent(files=list(focus))
    else:
        intent = FullContextIntent()

    request = ContextSelectionRequest(
        intent=intent,
        max_tokens=budget if budget is not None else service.config.selector.default_max_tokens,
        reserved_tokens=reserved,
        focus_files=list(focus),
        exclude_files=list(exclude),
    )
    result = service.selector.select(service.state, request)

    if as_json:
        click.echo(result.model_dump_json(indent=2))
    elif show_render:
        click.echo(result.render())
    elif show_summary:
        click.echo(result.summary())
    else:
        console.show_selection(result)
        console.show_excluded(result.excluded)


# =========================================================================
# Config Management
# =========================================================================

@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage codectx configuration."""
    root = Path(path).resolve() if path else find_project_root()
    if root is None or not root.exists():
        console.error("No codectx project found. Run 'codectx init' first, or pass --path.")
        sys.exit(1)

    try:
        config = load_config(root)
    except CodeCtxError as e:
        console.error(str(e))
        sys.exit(1)

    if action == "show":
        click.echo(json.dumps(config.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: codectx config get <key>")
            sys.exit(1)
        data = config.model_dump()
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        click.echo(f"{key} = {json.dumps(data)}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: codectx config set <key> <value>")
            sys.exit(1)
        # Try to parse as JSON for non-string values
        try:
            parsed_value = json.loads(value)
        except json.JSONDecodeError:
            parsed_value = value
        try:
            config = set_config_value(config, key, parsed_value)
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except CodeCtxError as e:
            console.error(str(e))
            sys.exit(1)
        save_config(root, config)
        console.success(f"Set {key} = {parsed_value}")


if __name__ == "__main__":
    main()
