"""
Exceptions raised by the litebrite engine.

Graph, merge and sync operations raise these instead of recovering
silently. The CLI renders any of them as a one-line ``Error:`` message.

Exception Hierarchy:
    LitebriteError (base)
    ├── NotFoundError (unknown item, edge, ref or snapshot)
    ├── AmbiguousPrefixError (id prefix matches several items)
    ├── CycleDetectedError (parent edge would close a loop)
    ├── SelfReferenceError (edge from an item to itself)
    ├── DuplicateDependencyError (blocking edge already present)
    ├── AlreadyClaimedError (item claimed by someone)
    ├── NotClaimedError (unclaim of an unclaimed item)
    ├── ItemClosedError (claim of a closed item)
    ├── HasOpenChildrenError (close with open children)
    ├── AlreadyInitializedError (local head already exists)
    ├── TransportUnavailableError (no remote configured or published)
    ├── TransportRejectedError (compare-and-swap lost)
    │   └── TransportTimeoutError (transport call timed out)
    ├── MalformedSnapshotError (snapshot cannot be parsed)
    ├── IOFailureError (underlying transport failure)
    │   └── GitError (git subprocess failed)
    └── IdExhaustedError (no free id found)

Example:
    >>> from litebrite.core.exceptions import AlreadyClaimedError
    >>> try:
    ...     raise AlreadyClaimedError("lb-a1b2", "alice")
    ... except AlreadyClaimedError as e:
    ...     print(e.actor)
    alice
"""

from __future__ import annotations


class LitebriteError(Exception):
    """
    Base exception for all litebrite errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class NotFoundError(LitebriteError):
    """Raised when an item, dependency, ref or snapshot does not exist."""


class AmbiguousPrefixError(LitebriteError):
    """
    Raised when an id prefix matches more than one item.

    Attributes:
        prefix: The prefix that was looked up
        matches: Matching ids in sorted order
    """

    def __init__(self, prefix: str, matches: list[str]) -> None:
        self.prefix = prefix
        self.matches = sorted(matches)
        super().__init__(
            f"ambiguous id prefix '{prefix}': matches {', '.join(self.matches)}",
            prefix=prefix,
            matches=self.matches,
        )


class CycleDetectedError(LitebriteError):
    """Raised when a parent edge would make an item its own ancestor."""

    def __init__(self, child: str, parent: str) -> None:
        self.child = child
        self.parent = parent
        super().__init__(
            f"setting parent of {child} to {parent} would create a cycle",
            child=child,
            parent=parent,
        )


class SelfReferenceError(LitebriteError):
    """Raised when an edge would point from an item to itself."""


class DuplicateDependencyError(LitebriteError):
    """Raised when adding a blocking edge that already exists."""


class AlreadyClaimedError(LitebriteError):
    """
    Raised when claiming an item that someone already holds.

    Attributes:
        item_id: The contested item
        actor: Who currently holds the claim
    """

    def __init__(self, item_id: str, actor: str) -> None:
        self.item_id = item_id
        self.actor = actor
        super().__init__(
            f"{item_id} is already claimed by {actor}",
            item_id=item_id,
            actor=actor,
        )


class NotClaimedError(LitebriteError):
    """Raised when unclaiming an item with no claimant."""


class ItemClosedError(LitebriteError):
    """Raised when claiming an item that is closed."""


class HasOpenChildrenError(LitebriteError):
    """
    Raised when closing an item whose children are not all closed.

    Attributes:
        item_id: The item that could not be closed
        open_children: Ids of the children still open
    """

    def __init__(self, item_id: str, open_children: list[str]) -> None:
        self.item_id = item_id
        self.open_children = sorted(open_children)
        super().__init__(
            f"cannot close {item_id}: open children {', '.join(self.open_children)}",
            item_id=item_id,
            open_children=self.open_children,
        )


class AlreadyInitializedError(LitebriteError):
    """Raised when initializing a store whose local head already exists."""


class TransportUnavailableError(LitebriteError):
    """Raised when a remote is required but not configured or not published."""


class TransportRejectedError(LitebriteError):
    """Raised when a compare-and-swap on a head is lost to a concurrent writer."""


class TransportTimeoutError(TransportRejectedError):
    """Raised when a transport call exceeds its time limit.

    Retried exactly like a rejected publish.
    """


class MalformedSnapshotError(LitebriteError):
    """Raised when a stored snapshot cannot be parsed."""


class IOFailureError(LitebriteError):
    """Raised when the underlying transport fails for any other reason."""


class GitError(IOFailureError):
    """
    Raised when a git subprocess fails.

    Attributes:
        command: The argv that was run
        stderr: Captured standard error of the command
    """

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = "") -> None:
        super().__init__(message, command=command, stderr=stderr)
        self.command = command
        self.stderr = stderr


class IdExhaustedError(LitebriteError):
    """Raised when id generation cannot find an unused id."""
