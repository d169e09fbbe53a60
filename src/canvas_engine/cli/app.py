import typer

from canvas_engine.cli.batch import batch_app
from canvas_engine.cli.nodes import nodes_app
from canvas_engine.cli.serve import serve_app
from canvas_engine.settings import configure_logging

app = typer.Typer(
    name="canvas-engine",
    help="Canvas Engine CLI — apply operation scripts to design documents.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(batch_app, name="batch")
app.add_typer(nodes_app, name="nodes")
app.add_typer(serve_app, name="serve")


def main() -> None:
    configure_logging()
    app()
