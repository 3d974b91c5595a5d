"""
Service construction for CLI commands.

Commands reach the store only through get_sync_service(), so tests can
swap in a SyncService backed by MemoryTransport.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from litebrite.core.items.graph import ItemGraph
from litebrite.core.sync.service import SyncService
from litebrite.core.sync.service import get_sync_service as _build_sync_service


def get_sync_service() -> SyncService:
    """SyncService for the project containing the current directory."""
    return _build_sync_service()


def load_graph() -> ItemGraph:
    """Read-only graph over the local head."""
    service = get_sync_service()
    return service.graph(service.load())


@dataclass
class StoreEdit:
    """A pending change to the local head: the graph to mutate and its commit message."""

    graph: ItemGraph
    message: str


@contextmanager
def edit_store(message: str = "Update items") -> Iterator[StoreEdit]:
    """
    Load the local head, yield a graph over it, and commit on exit.

    The commit message may be refined inside the block once ids are
    resolved. Nothing is committed if the block raises.

    Example::

        with edit_store() as edit:
            item = edit.graph.close(ref)
            edit.message = f"Close item {item.id}"
    """
    service = get_sync_service()
    head, document = service.load_head()
    edit = StoreEdit(graph=service.graph(document), message=message)
    yield edit
    service.commit(document, edit.message, parent=head)
