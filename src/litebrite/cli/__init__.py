"""
litebrite CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from rich.console import Console

from litebrite import __version__
from litebrite.cli import dep, item, sync
from litebrite.core.config.env import load_layered_env

# Help panel names for command grouping
PANEL_ITEMS = "Work with Items"
PANEL_SYNC = "Share with Your Team"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

app = typer.Typer(
    name="lb",
    help="Git-backed work tracker with safe concurrent claims",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def configure_logging(debug: bool) -> None:
    """Send log records to stderr; DEBUG with --debug, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    litebrite - lightweight work items on a git branch.

    Items live in a JSON snapshot on the `litebrite` branch, so they travel
    with the repository without touching the working tree.

    Quick Start:
        1. lb init                      # Create the litebrite branch
        2. lb create "Title"            # Create an item
        3. lb ready                     # See what can be worked on
        4. lb claim lb-a1               # Take it, visible to everyone
        5. lb sync                      # Share other edits
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()
    configure_logging(debug)

    ctx.obj = {"debug": debug}


# =============================================================================
# Work with Items
# =============================================================================

app.command(name="create", rich_help_panel=PANEL_ITEMS)(item.create)
app.command(name="show", rich_help_panel=PANEL_ITEMS)(item.show)
app.command(name="list", rich_help_panel=PANEL_ITEMS)(item.list_items)
app.command(name="update", rich_help_panel=PANEL_ITEMS)(item.update)
app.command(name="close", rich_help_panel=PANEL_ITEMS)(item.close)
app.command(name="delete", rich_help_panel=PANEL_ITEMS)(item.delete)
app.command(name="ready", rich_help_panel=PANEL_ITEMS)(item.ready)
app.add_typer(dep.app, name="dep", rich_help_panel=PANEL_ITEMS)


# =============================================================================
# Share with Your Team
# =============================================================================

app.command(name="init", rich_help_panel=PANEL_SYNC)(sync.init)
app.command(name="claim", rich_help_panel=PANEL_SYNC)(item.claim)
app.command(name="unclaim", rich_help_panel=PANEL_SYNC)(item.unclaim)
app.add_typer(sync.app, name="sync", rich_help_panel=PANEL_SYNC)


@app.command()
def version() -> None:
    """Show litebrite version and exit."""
    console.print(f"litebrite version {__version__}", highlight=False)
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main", "configure_logging"]
