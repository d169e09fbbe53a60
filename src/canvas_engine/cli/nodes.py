from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from canvas_engine.core.errors import DocumentFormatError
from canvas_engine.core.persistence import load_document
from canvas_engine.models import SceneNode

nodes_app = typer.Typer(help="Inspect document nodes.")
console = Console()


def _label(node: SceneNode) -> str:
    name = f" [bold]{escape(node.name)}[/bold]" if node.name else ""
    extra = f" -> {node.prop('componentId')}" if node.type == "ref" else ""
    return f"[cyan]{node.type}[/cyan]{name} [dim]{node.id}[/dim] ({node.width:g}x{node.height:g}){extra}"


def _add(branch: Tree, node: SceneNode, depth: int) -> None:
    child_branch = branch.add(_label(node))
    if node.children is None:
        return
    if depth <= 0 and node.children:
        child_branch.add("[dim]...[/dim]")
        return
    for child in node.children:
        _add(child_branch, child, depth - 1)


@nodes_app.command("show")
def show(
    document_path: Annotated[Path, typer.Argument(help="Document JSON file.")],
    depth: Annotated[int, typer.Option(help="Levels of children to show.")] = 3,
) -> None:
    """Print the document's node tree."""
    try:
        document = load_document(document_path)
    except DocumentFormatError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    root = Tree(f"[bold]{document_path.name}[/bold]")
    for node in document.tree():
        _add(root, node, depth)
    console.print(root)
    console.print(f"({len(document.store.nodes_by_id)} nodes)")
