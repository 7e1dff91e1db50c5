"""CLI entrypoints for TaskMind."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from taskmind.config import load_settings
from taskmind.core.session import MindMapSession
from taskmind.export import load_document, to_markdown
from taskmind.logging import configure_logging, get_logger
from taskmind.models.node import Node, NodeStatus

app = typer.Typer(add_completion=False, help="TaskMind task breakdown mind map CLI")
logger = get_logger(__name__)

_STATUS_MARKS = {
    NodeStatus.NOT_STARTED: "",
    NodeStatus.IN_PROGRESS: " [yellow](in progress)[/yellow]",
    NodeStatus.DONE: " [green](done)[/green]",
    NodeStatus.SKIPPED: " [dim](skipped)[/dim]",
}


@app.command()
def generate(
    topic: str = typer.Argument(..., help="Task or goal to break down."),
    depth: int = typer.Option(1, "--depth", "-d", min=1, max=5, help="Levels to generate below the root"),
    output: Path = typer.Option(Path("mindmap.json"), "--output", "-o", help="Output JSON file"),
    markdown: Path | None = typer.Option(None, "--markdown", help="Also write a Markdown outline"),
) -> None:
    """Generate a mind map for TOPIC and write it as JSON."""

    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info("CLI generate requested")

    session = MindMapSession.from_settings(settings)

    async def _run() -> None:
        await session.generate(topic)
        if depth > 1:
            await session.expand_to_depth(depth)

    asyncio.run(_run())

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(session.export_json(), encoding="utf-8")
    if markdown is not None:
        markdown.parent.mkdir(parents=True, exist_ok=True)
        markdown.write_text(session.export_markdown(), encoding="utf-8")
    typer.echo(str(output))


@app.command()
def render(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported JSON mind map"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write Markdown here instead of stdout"),
) -> None:
    """Render an exported mind map as a Markdown outline."""

    tree = load_document(document.read_text(encoding="utf-8"))
    text = to_markdown(tree.snapshot())
    if output is None:
        typer.echo(text, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    typer.echo(str(output))


@app.command()
def show(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="Exported JSON mind map"),
) -> None:
    """Print an exported mind map as a tree."""

    root = load_document(document.read_text(encoding="utf-8")).snapshot()
    console = Console()
    console.print(build_rich_tree(root))
    console.print(f"[dim]{sum(1 for _ in root.iter_nodes())} nodes[/dim]")


def build_rich_tree(root: Node) -> Tree:
    """Convert a nested node into a ``rich`` tree for terminal display."""

    tree = Tree(f"[bold]{escape(root.name)}[/bold]")
    _add_children(tree, root)
    return tree


def _add_children(branch: Tree, node: Node) -> None:
    for child in node.subtopics:
        label = f"{escape(child.name)}{_STATUS_MARKS[child.status]}"
        if child.links:
            label += f" [dim]({len(child.links)} links)[/dim]"
        _add_children(branch.add(label), child)


if __name__ == "__main__":
    app()
