"""
litebrite CLI - Sync commands for the litebrite branch.

`lb sync` reconciles the local branch with the remote one; `lb sync status`
reports how they relate. `lb init` creates (or adopts) the branch.
"""

import typer
from rich.console import Console
from rich.markup import escape

from litebrite.cli import context
from litebrite.cli.errors import ExitCode, handle_errors
from litebrite.core.sync import SyncStatus

console = Console()
app = typer.Typer(
    name="sync",
    help="Synchronize the litebrite branch with the remote",
    no_args_is_help=False,
)


@app.callback(invoke_without_command=True)
def sync(ctx: typer.Context) -> None:
    """
    Fetch, merge if diverged, and push the litebrite branch.

    Examples:
        lb sync              # Reconcile with the remote
        lb sync status       # Show how local and remote relate
    """
    # If a subcommand was invoked, don't run the default action
    if ctx.invoked_subcommand is not None:
        return

    with handle_errors():
        result = context.get_sync_service().sync()

    console.print(escape(result.message), highlight=False)
    for conflict in result.conflicts:
        console.print(
            f"[yellow]conflict[/yellow] {conflict.item_id}.{conflict.field}: "
            f"{conflict.winner} version kept",
            highlight=False,
        )


@app.command()
def status(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show refs and settings",
    ),
) -> None:
    """
    Show sync status.

    Examples:
        lb sync status
        lb sync status -v
    """
    with handle_errors():
        service = context.get_sync_service()
        sync_status = service.get_status()

    status_icons = {
        SyncStatus.IN_SYNC: ("✓", "green", "In sync with remote"),
        SyncStatus.AHEAD: ("↑", "yellow", "Local changes not pushed"),
        SyncStatus.BEHIND: ("↓", "yellow", "Remote changes available"),
        SyncStatus.DIVERGED: ("⚠", "red", "Local and remote have diverged"),
        SyncStatus.NO_REMOTE: ("○", "blue", "No remote configured"),
        SyncStatus.UNINITIALIZED: ("✗", "red", "Not initialized"),
    }
    icon, color, message = status_icons[sync_status]
    console.print(f"[{color}]{icon}[/{color}] {message}")

    if sync_status == SyncStatus.UNINITIALIZED:
        console.print("\nRun [bold]lb init[/bold] to initialize.")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if verbose:
        local_ref = service.transport.local_head()
        remote_ref = service.transport.remote_head()
        console.print(f"[dim]Branch:[/dim] {service.config.sync.branch}")
        console.print(f"[dim]Local:[/dim] {local_ref[:8] if local_ref else '-'}")
        console.print(f"[dim]Remote:[/dim] {remote_ref[:8] if remote_ref else '-'}")

    if sync_status in (SyncStatus.AHEAD, SyncStatus.BEHIND, SyncStatus.DIVERGED):
        console.print("\n[dim]→ Run [bold]lb sync[/bold] to reconcile[/dim]")


def init() -> None:
    """
    Initialize the litebrite branch.

    Adopts the remote branch if one was already published, otherwise
    creates an empty store (and pushes it when a remote exists).

    Examples:
        lb init
    """
    with handle_errors():
        result = context.get_sync_service().initialize()

    console.print(escape(result.message), highlight=False)
