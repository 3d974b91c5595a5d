"""
Transport protocol for replicating snapshots.

This module defines the Transport protocol that the sync controller and
claim protocol run against. A transport stores immutable snapshots, each
with zero, one or two parents, and keeps two named heads: the local head
this actor writes to and a remote-tracking head refreshed by fetch().
Both heads move only by compare-and-swap.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """
    Protocol for snapshot transports.

    Implementations: GitTransport (git plumbing on a dedicated branch) and
    MemoryTransport (in-process fake for tests).
    """

    def has_remote(self) -> bool:
        """Whether a remote is configured at all."""
        ...

    def local_head_exists(self) -> bool:
        ...

    def remote_head_exists(self) -> bool:
        """Whether the last fetch found a published remote head."""
        ...

    def local_head(self) -> str | None:
        """Ref of the local head, or None if it does not exist."""
        ...

    def remote_head(self) -> str | None:
        """Ref of the remote-tracking head as of the last fetch, or None."""
        ...

    def fetch(self) -> bool:
        """
        Refresh the remote-tracking head.

        Returns:
            True if the remote head exists, False if it was never published.

        Raises:
            TransportUnavailableError: If no remote is configured.
            IOFailureError: If the remote cannot be reached.
        """
        ...

    def read_snapshot(self, ref: str) -> bytes:
        """
        Read the snapshot stored at *ref*.

        Raises:
            NotFoundError: If the ref or its snapshot does not exist.
        """
        ...

    def write_snapshot(self, data: bytes, parents: list[str], message: str) -> str:
        """
        Durably store a snapshot and return its ref. Does not move any head.
        """
        ...

    def update_head(self, expected: str | None, new: str) -> None:
        """
        Compare-and-swap the local head from *expected* to *new*.

        *expected* None means the head must not exist yet.

        Raises:
            TransportRejectedError: If the head is not at *expected*.
        """
        ...

    def push(self) -> None:
        """
        Publish the local head to the remote.

        Raises:
            TransportUnavailableError: If no remote is configured.
            TransportRejectedError: If the remote head is not an ancestor
                of the local head (someone published first).
        """
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """True if *ancestor* is reachable from *descendant* (or equal)."""
        ...

    def merge_base(self, a: str, b: str) -> str | None:
        """Best common ancestor of two refs, or None if histories are unrelated."""
        ...

    def current_actor_identity(self) -> str:
        """
        Name identifying the acting user.

        Raises:
            IOFailureError: If no identity is configured.
        """
        ...
