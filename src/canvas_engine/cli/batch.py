import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from canvas_engine.core.batch import execute_batch
from canvas_engine.core.errors import DocumentFormatError
from canvas_engine.core.persistence import load_document, save_document
from canvas_engine.models import BatchSuccess

batch_app = typer.Typer(help="Run operation scripts.")
console = Console()


@batch_app.command("run")
def run(
    document_path: Annotated[Path, typer.Argument(help="Document JSON file.")],
    script: Annotated[str, typer.Argument(help="Script file, or '-' to read standard input.")],
    write: Annotated[bool, typer.Option("--write", "-w", help="Save the document when the batch succeeds.")] = False,
) -> None:
    """Apply a script to a document and print the result payload."""
    try:
        document = load_document(document_path)
    except DocumentFormatError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    try:
        text = typer.get_text_stream("stdin").read() if script == "-" else Path(script).read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Cannot read script: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc
    result = execute_batch(document, text)
    console.print_json(json.dumps(result.to_payload()))

    if not isinstance(result, BatchSuccess):
        raise typer.Exit(code=1)
    if write:
        save_document(document, document_path)
        console.print(f"[green]Saved {document_path}[/green]")
