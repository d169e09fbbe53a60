from typing import Annotated

import typer
from rich.console import Console

serve_app = typer.Typer(help="Start servers.")
console = Console()
err_console = Console(stderr=True)


@serve_app.command("api")
def api(
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    """Start the FastAPI REST API server."""
    import uvicorn

    from canvas_engine.api.app import create_app

    app = create_app()
    console.print(f"[green]Starting API server on {host}:{port}[/green]")
    uvicorn.run(app, host=host, port=port)


@serve_app.command("mcp")
def mcp(
    document: Annotated[str | None, typer.Option(help="Document file to open (defaults to CANVAS_ENGINE_DOCUMENT).")] = None,
    transport: str = "stdio",
) -> None:
    """Start the MCP server."""
    from canvas_engine.core.persistence import load_document, new_document
    from canvas_engine.mcp.server import create_mcp_server
    from canvas_engine.settings import get_settings

    path = document or get_settings().document_path
    server = create_mcp_server(load_document(path) if path else new_document(), path)
    err_console.print(f"[green]Starting MCP server (transport: {transport})[/green]")
    server.run(transport=transport)  # type: ignore[arg-type]
