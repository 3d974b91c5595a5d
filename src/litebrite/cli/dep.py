"""
litebrite CLI - dependency commands.
"""

import typer
from rich.console import Console
from rich.markup import escape

from litebrite.cli import context
from litebrite.cli.errors import handle_errors

console = Console()
app = typer.Typer(help="Manage blocking dependencies")


@app.command("add")
def add(
    blocker: str = typer.Argument(..., help="Item that must be closed first"),
    blocked: str = typer.Option(
        ...,
        "--blocks",
        "-b",
        help="Item that waits on the blocker",
    ),
) -> None:
    """
    Record that BLOCKER blocks another item.

    Examples:
        lb dep add lb-a1 --blocks lb-b2
    """
    with handle_errors():
        with context.edit_store() as edit:
            blocker_id = edit.graph.resolve(blocker)
            blocked_id = edit.graph.resolve(blocked)
            edit.graph.add_blocking(blocker_id, blocked_id)
            edit.message = f"{blocker_id} blocks {blocked_id}"

    console.print(f"{blocker_id} now blocks {blocked_id}", highlight=False)


@app.command("rm")
def remove(
    from_ref: str = typer.Argument(..., help="Blocker (or child) item"),
    to_ref: str = typer.Argument(..., help="Blocked (or parent) item"),
) -> None:
    """
    Remove the dependency from one item to another.

    Parent links are removed too when FROM is the child and TO the parent.

    Examples:
        lb dep rm lb-a1 lb-b2
    """
    with handle_errors():
        with context.edit_store("Remove dependency") as edit:
            edit.graph.remove_dependency(from_ref, to_ref)

    console.print("removed dependency")


@app.command("list")
def list_deps(
    item_ref: str = typer.Argument(..., help="Item ID or prefix"),
) -> None:
    """
    Show everything an item is linked to.

    Examples:
        lb dep list lb-a1
    """
    with handle_errors():
        graph = context.load_graph()
        item_id = graph.resolve(item_ref)

    sections = [
        ("Parent", [p for p in [graph.parent(item_id)] if p is not None]),
        ("Children", graph.children(item_id)),
        ("Blocked by", graph.blockers(item_id)),
        ("Blocks", graph.blocking(item_id)),
    ]
    if not any(ids for _, ids in sections):
        console.print(f"{item_id} has no dependencies", highlight=False)
        return

    for label, ids in sections:
        if not ids:
            continue
        console.print(f"[bold]{label}:[/bold]")
        for related_id in ids:
            related = graph.items[related_id]
            console.print(
                f"  {related_id} \\[{related.status.value}] {escape(related.title)}",
                highlight=False,
            )
