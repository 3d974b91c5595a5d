"""
litebrite CLI - item commands.

create, show, list, update, close, delete, ready, claim and unclaim.
Edits are committed to the local litebrite branch; only claim and
unclaim talk to the remote.
"""

import json

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from litebrite.cli import context
from litebrite.cli.errors import handle_errors
from litebrite.core.items.graph import ItemGraph
from litebrite.core.items.models import ItemStatus, ItemType, WorkItem
from litebrite.core.sync.claims import ClaimService

console = Console()


def _status_label(item: WorkItem) -> str:
    if item.claimant is not None and not item.is_closed:
        return "open (claimed)"
    return item.status.value


def _should_show(
    item: WorkItem,
    show_all: bool,
    item_type: ItemType | None,
    status: ItemStatus | None,
) -> bool:
    # Closed items are hidden unless asked for explicitly
    if not show_all and status is None and item.is_closed:
        return False
    if item_type is not None and item.type != item_type:
        return False
    if status is not None and item.status != status:
        return False
    return True


def _items_table(items: list[WorkItem]) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Type", width=8)
    table.add_column("Status", width=14)
    table.add_column("P", justify="right")
    table.add_column("Title", overflow="fold")

    status_colors = {ItemStatus.OPEN: "white", ItemStatus.CLOSED: "green"}
    for item in items:
        color = "yellow" if item.is_claimed else status_colors.get(item.status, "white")
        table.add_row(
            item.id,
            item.type.value,
            f"[{color}]{_status_label(item)}[/{color}]",
            f"P{item.priority}",
            escape(item.title),
        )
    return table


def _print_tree(
    graph: ItemGraph,
    show_all: bool,
    item_type: ItemType | None,
    status: ItemStatus | None,
) -> None:
    # Depth-first, children in id order; hidden items pass their depth on
    stack = [(root_id, 0) for root_id in reversed(graph.roots())]
    while stack:
        item_id, depth = stack.pop()
        item = graph.items[item_id]
        child_depth = depth
        if _should_show(item, show_all, item_type, status):
            claimed = " *claimed*" if item.is_claimed else ""
            console.print(
                f"{'  ' * depth}{item.id} [{item.status.value}] P{item.priority} "
                f"{item.title} ({item.type.value}){claimed}",
                markup=False,
                highlight=False,
            )
            child_depth = depth + 1
        for child_id in reversed(graph.children(item_id)):
            stack.append((child_id, child_depth))


def _print_related(graph: ItemGraph, label: str, ids: list[str]) -> None:
    if not ids:
        return
    console.print(f"[dim]{label}:[/dim]")
    for related_id in ids:
        related = graph.items[related_id]
        console.print(
            f"  {related_id} \\[{related.status.value}] {escape(related.title)}",
            highlight=False,
        )


def create(
    title: str = typer.Argument(..., help="Item title"),
    item_type: ItemType = typer.Option(
        ItemType.TASK,
        "--type",
        "-t",
        case_sensitive=False,
        help="Item type: epic, feature, task",
    ),
    priority: int = typer.Option(
        2,
        "--priority",
        "-p",
        min=0,
        max=255,
        help="Priority (0 is most urgent)",
    ),
    parent: str | None = typer.Option(
        None,
        "--parent",
        help="Parent item ID or prefix",
    ),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="Item description",
    ),
) -> None:
    """
    Create a new item.

    Examples:
        lb create "Parser" --type epic --priority 1
        lb create "Tokenizer" --parent lb-a1
    """
    with handle_errors():
        with context.edit_store() as edit:
            item_id = edit.graph.create(
                title,
                item_type=item_type,
                priority=priority,
                description=description,
                parent=parent,
            )
            edit.message = f"Create {item_type.value} {item_id}"

    console.print(f"created {item_id}", highlight=False)


def show(
    item_ref: str = typer.Argument(..., help="Item ID or prefix"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON",
    ),
) -> None:
    """
    Show detailed information about an item.

    Examples:
        lb show lb-a1b2
        lb show lb-a1 --json
    """
    with handle_errors():
        graph = context.load_graph()
        item = graph.get(item_ref)

    if json_output:
        console.print_json(
            json.dumps(item.model_dump(mode="json", by_alias=True, exclude_none=True))
        )
        return

    console.print(f"[bold cyan]{item.id}[/bold cyan] - {escape(item.title)}")
    console.print(f"[dim]Type:[/dim] {item.type.value}")
    console.print(f"[dim]Status:[/dim] {item.status.value}")
    console.print(f"[dim]Priority:[/dim] P{item.priority}", highlight=False)
    if item.claimant:
        console.print(f"[dim]Claimed by:[/dim] {escape(item.claimant)}")
    console.print(f"[dim]Created:[/dim] {item.created_at:%Y-%m-%d %H:%M}")
    console.print(f"[dim]Updated:[/dim] {item.updated_at:%Y-%m-%d %H:%M}")

    parent_id = graph.parent(item.id)
    if parent_id is not None:
        parent = graph.items[parent_id]
        console.print(f"[dim]Parent:[/dim] {parent_id} ({escape(parent.title)})")

    _print_related(graph, "Children", graph.children(item.id))
    _print_related(graph, "Blocked by", graph.blockers(item.id))
    _print_related(graph, "Blocks", graph.blocking(item.id))

    if item.description:
        console.print(f"\n[bold]Description:[/bold]\n{escape(item.description)}")


def list_items(
    show_all: bool = typer.Option(
        False,
        "--all",
        help="Include closed items",
    ),
    item_type: ItemType | None = typer.Option(
        None,
        "--type",
        "-t",
        case_sensitive=False,
        help="Filter by type: epic, feature, task",
    ),
    status: ItemStatus | None = typer.Option(
        None,
        "--status",
        "-s",
        case_sensitive=False,
        help="Filter by status: open, closed",
    ),
    tree: bool = typer.Option(
        False,
        "--tree",
        help="Show the parent/child hierarchy",
    ),
) -> None:
    """
    List items, most urgent first.

    Closed items are hidden unless --all or --status is given.

    Examples:
        lb list
        lb list --type epic --tree
        lb list --status closed
    """
    with handle_errors():
        graph = context.load_graph()

    if tree:
        _print_tree(graph, show_all, item_type, status)
        return

    items = sorted(graph.items.values(), key=lambda item: (item.priority, item.id))
    items = [item for item in items if _should_show(item, show_all, item_type, status)]
    if not items:
        console.print("[dim]No items found[/dim]")
        return

    console.print(_items_table(items))


def update(
    item_ref: str = typer.Argument(..., help="Item ID or prefix"),
    title: str | None = typer.Option(None, "--title", help="New title"),
    status: ItemStatus | None = typer.Option(
        None,
        "--status",
        "-s",
        case_sensitive=False,
        help="New status: open, closed",
    ),
    item_type: ItemType | None = typer.Option(
        None,
        "--type",
        "-t",
        case_sensitive=False,
        help="New type: epic, feature, task",
    ),
    priority: int | None = typer.Option(
        None,
        "--priority",
        "-p",
        min=0,
        max=255,
        help="New priority",
    ),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="New description (empty string clears it)",
    ),
    parent: str | None = typer.Option(None, "--parent", help="New parent item ID or prefix"),
) -> None:
    """
    Update fields of an item.

    Examples:
        lb update lb-a1 --priority 0
        lb update lb-a1 --status closed
        lb update lb-a1 --parent lb-e5
    """
    with handle_errors():
        with context.edit_store() as edit:
            item = edit.graph.update(
                item_ref,
                title=title,
                item_type=item_type,
                priority=priority,
                description=description,
                status=status,
                parent=parent,
            )
            edit.message = f"Update item {item.id}"

    console.print(f"updated {item.id}", highlight=False)


def close(
    item_ref: str = typer.Argument(..., help="Item ID or prefix"),
) -> None:
    """
    Close an item. Fails while any child is still open.

    Examples:
        lb close lb-a1b2
    """
    with handle_errors():
        with context.edit_store() as edit:
            item = edit.graph.close(item_ref)
            edit.message = f"Close item {item.id}"

    console.print(f"closed {item.id}", highlight=False)


def delete(
    item_ref: str = typer.Argument(..., help="Item ID or prefix"),
) -> None:
    """
    Delete an item and every dependency that mentions it.

    Examples:
        lb delete lb-a1b2
    """
    with handle_errors():
        with context.edit_store() as edit:
            item = edit.graph.delete(item_ref)
            edit.message = f"Delete item {item.id}"

    console.print(f"deleted {item.id}", highlight=False)


def ready() -> None:
    """
    Show open, unclaimed items whose blockers are all closed.

    Examples:
        lb ready
    """
    with handle_errors():
        items = context.load_graph().ready_items()

    if not items:
        console.print("no ready items")
        return

    console.print(_items_table(items))


def claim(
    item_ref: str = typer.Argument(..., help="Item ID or prefix"),
) -> None:
    """
    Claim an item: fetch, set yourself as claimant, push.

    Fails if someone else claimed it first.

    Examples:
        lb claim lb-a1b2
    """
    with handle_errors():
        result = ClaimService(context.get_sync_service()).claim(item_ref)

    console.print(escape(result.message), highlight=False)


def unclaim(
    item_ref: str = typer.Argument(..., help="Item ID or prefix"),
) -> None:
    """
    Release your claim on an item: fetch, clear claimant, push.

    Examples:
        lb unclaim lb-a1b2
    """
    with handle_errors():
        result = ClaimService(context.get_sync_service()).unclaim(item_ref)

    console.print(escape(result.message), highlight=False)
