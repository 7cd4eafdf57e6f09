"""
VectoDB CLI - Main entry point
"""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from vectodb.cli.commands import vector_store
from vectodb.core.config.settings import settings
from vectodb.core.logging.logger import get_logger

# Initialize CLI app
app = typer.Typer(
    name="vectodb",
    help="Embedded vector database with incremental FAISS indexing",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
logger = get_logger(__name__)

app.add_typer(vector_store.app, name="store", help="Vector store commands")


def _version_table() -> Table:
    import faiss
    import numpy as np

    table = Table(title="VectoDB Version Information")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Environment", style="yellow")

    table.add_row("VectoDB", settings.APP_VERSION, settings.ENVIRONMENT)
    table.add_row("FAISS", getattr(faiss, "__version__", "unknown"), "Index backend")
    table.add_row("NumPy", np.__version__, "Required")
    return table


def version_callback(value: bool) -> None:
    """Handle version callback"""
    if value:
        console.print(_version_table())
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show VectoDB version and exit",
    ),
) -> None:
    """
    VectoDB CLI - Embedded vector database with incremental FAISS indexing

    Run 'vectodb --help' for available commands.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.info("Verbose logging enabled")


@app.command()
def version() -> None:
    """Show VectoDB version information"""
    console.print(_version_table())


if __name__ == "__main__":
    app()
