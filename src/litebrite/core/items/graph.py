"""
Graph invariant engine for work items.

ItemGraph wraps a Document and is the only code that mutates it. Every
operation resolves id prefixes first and keeps the structural invariants
intact: every edge endpoint exists, parent edges form a forest, and ids
never change or collide. Violations raise; nothing is repaired silently.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from datetime import datetime
from functools import partial

from litebrite.core.exceptions import (
    AlreadyClaimedError,
    AmbiguousPrefixError,
    CycleDetectedError,
    DuplicateDependencyError,
    HasOpenChildrenError,
    ItemClosedError,
    NotClaimedError,
    NotFoundError,
    SelfReferenceError,
)
from litebrite.core.ids.generator import DEFAULT_PREFIX, generate_id
from litebrite.core.items.models import (
    Dependency,
    DepKind,
    Document,
    ItemStatus,
    ItemType,
    WorkItem,
    utc_now,
)

logger = logging.getLogger(__name__)

IdFactory = Callable[[str, Collection[str]], str]


class ItemGraph:
    """Mutations and queries over a Document.

    The wrapped document is modified in place; callers commit it afterwards.

    Example::

        graph = ItemGraph(Document())
        epic = graph.create("Parser", ItemType.EPIC, priority=1)
        task = graph.create("Tokenizer", ItemType.TASK, parent=epic)
        graph.ready_items()  # both items, epic first
    """

    __slots__ = ("document", "_clock", "_id_factory")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def __init__(
        self,
        document: Document,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: IdFactory | None = None,
        id_prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self.document = document
        self._clock = clock
        self._id_factory: IdFactory = id_factory or partial(generate_id, prefix=id_prefix)

    @property
    def items(self) -> dict[str, WorkItem]:
        return self.document.items

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, ref: str) -> str:
        """
        Resolve a full id or a unique id prefix.

        An exact match always wins, even when the same string is also a
        prefix of other ids.

        Raises:
            NotFoundError: If nothing matches.
            AmbiguousPrefixError: If the prefix matches several items.
        """
        if ref in self.items:
            return ref
        matches = sorted(item_id for item_id in self.items if ref and item_id.startswith(ref))
        if not matches:
            raise NotFoundError(f"no item matching '{ref}'", ref=ref)
        if len(matches) > 1:
            raise AmbiguousPrefixError(ref, matches)
        return matches[0]

    def get(self, ref: str) -> WorkItem:
        return self.items[self.resolve(ref)]

    # ------------------------------------------------------------------
    # Item lifecycle
    # ------------------------------------------------------------------

    def create(
        self,
        title: str,
        item_type: ItemType = ItemType.TASK,
        priority: int = 2,
        description: str | None = None,
        parent: str | None = None,
    ) -> str:
        """
        Create an open, unclaimed item.

        Args:
            title: Item title
            item_type: Epic, feature or task
            priority: 0-255, lower is more urgent
            description: Optional description; empty means none
            parent: Optional parent id or prefix

        Returns:
            The new item's id.

        Raises:
            NotFoundError: If *parent* does not resolve.
        """
        parent_id = self.resolve(parent) if parent is not None else None
        item_id = self._id_factory(title, self.items.keys())
        now = self._clock()
        self.items[item_id] = WorkItem(
            id=item_id,
            title=title,
            description=description or None,
            type=item_type,
            priority=priority,
            created_at=now,
            updated_at=now,
        )
        if parent_id is not None:
            self.document.deps.append(
                Dependency(from_id=item_id, to_id=parent_id, kind=DepKind.PARENT)
            )
        logger.debug("Created %s %s (%s)", item_type.value, item_id, title)
        return item_id

    def delete(self, ref: str) -> WorkItem:
        """Remove an item and every edge that mentions it."""
        item_id = self.resolve(ref)
        removed = self.items.pop(item_id)
        self.document.deps = [dep for dep in self.document.deps if not dep.touches(item_id)]
        logger.debug("Deleted %s", item_id)
        return removed

    def update(
        self,
        ref: str,
        *,
        title: str | None = None,
        item_type: ItemType | None = None,
        priority: int | None = None,
        description: str | None = None,
        status: ItemStatus | None = None,
        parent: str | None = None,
    ) -> WorkItem:
        """
        Change the given fields of an item, leaving the rest untouched.

        An empty *description* clears it. Closing goes through close() so an
        item with open children cannot be closed this way either; a new
        *parent* goes through set_parent().
        """
        item_id = self.resolve(ref)
        item = self.items[item_id]
        changed = False

        if parent is not None:
            self.set_parent(item_id, parent)
        if status == ItemStatus.CLOSED and not item.is_closed:
            self.close(item_id)
        elif status == ItemStatus.OPEN and item.is_closed:
            self.reopen(item_id)

        if title is not None and title != item.title:
            item.title = title
            changed = True
        if item_type is not None and item_type != item.type:
            item.type = item_type
            changed = True
        if priority is not None and priority != item.priority:
            item.priority = priority
            changed = True
        if description is not None and (description or None) != item.description:
            item.description = description or None
            changed = True

        if changed:
            item.touch(self._clock())
        return item

    def close(self, ref: str) -> WorkItem:
        """
        Close an item and release its claim.

        Raises:
            HasOpenChildrenError: If any child is not closed.
        """
        item_id = self.resolve(ref)
        open_children = [
            child_id for child_id in self.children(item_id) if not self.items[child_id].is_closed
        ]
        if open_children:
            raise HasOpenChildrenError(item_id, open_children)
        item = self.items[item_id]
        item.close(self._clock())
        return item

    def reopen(self, ref: str) -> WorkItem:
        item = self.get(ref)
        item.reopen(self._clock())
        return item

    def claim(self, ref: str, actor: str) -> WorkItem:
        """
        Set *actor* as the item's claimant.

        Raises:
            ItemClosedError: If the item is closed.
            AlreadyClaimedError: If anyone already holds the item.
        """
        item = self.get(ref)
        if item.is_closed:
            raise ItemClosedError(f"{item.id} is closed", item_id=item.id)
        if item.claimant is not None:
            raise AlreadyClaimedError(item.id, item.claimant)
        item.claimant = actor
        item.touch(self._clock())
        return item

    def unclaim(self, ref: str) -> WorkItem:
        """
        Clear the item's claimant.

        Raises:
            NotClaimedError: If the item has no claimant.
        """
        item = self.get(ref)
        if item.claimant is None:
            raise NotClaimedError(f"{item.id} is not claimed", item_id=item.id)
        item.claimant = None
        item.touch(self._clock())
        return item

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def set_parent(self, child_ref: str, parent_ref: str) -> None:
        """
        Make *parent_ref* the parent of *child_ref*, replacing any old parent.

        Raises:
            SelfReferenceError: If child and parent are the same item.
            CycleDetectedError: If the child is an ancestor of the parent.
        """
        child = self.resolve(child_ref)
        parent = self.resolve(parent_ref)
        if child == parent:
            raise SelfReferenceError(f"{child} cannot be its own parent", item_id=child)

        visited: set[str] = set()
        current: str | None = parent
        while current is not None and current not in visited:
            if current == child:
                raise CycleDetectedError(child, parent)
            visited.add(current)
            current = self.document.parent_of(current)

        self.document.deps = [
            dep
            for dep in self.document.deps
            if not (dep.kind == DepKind.PARENT and dep.from_id == child)
        ]
        self.document.deps.append(Dependency(from_id=child, to_id=parent, kind=DepKind.PARENT))

    def add_blocking(self, blocker_ref: str, blocked_ref: str) -> None:
        """
        Record that *blocker_ref* blocks *blocked_ref*.

        Raises:
            SelfReferenceError: If both refer to the same item.
            DuplicateDependencyError: If the edge already exists.
        """
        blocker = self.resolve(blocker_ref)
        blocked = self.resolve(blocked_ref)
        if blocker == blocked:
            raise SelfReferenceError(f"{blocker} cannot block itself", item_id=blocker)
        dep = Dependency(from_id=blocker, to_id=blocked, kind=DepKind.BLOCKS)
        if dep in self.document.deps:
            raise DuplicateDependencyError(
                f"{blocker} already blocks {blocked}", blocker=blocker, blocked=blocked
            )
        self.document.deps.append(dep)

    def remove_dependency(self, from_ref: str, to_ref: str) -> None:
        """
        Remove every edge from *from_ref* to *to_ref*, of either kind.

        Raises:
            NotFoundError: If no such edge exists.
        """
        from_id = self.resolve(from_ref)
        to_id = self.resolve(to_ref)
        kept = [
            dep
            for dep in self.document.deps
            if not (dep.from_id == from_id and dep.to_id == to_id)
        ]
        if len(kept) == len(self.document.deps):
            raise NotFoundError(
                f"no dependency from '{from_id}' to '{to_id}'", from_id=from_id, to_id=to_id
            )
        self.document.deps = kept

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def parent(self, ref: str) -> str | None:
        return self.document.parent_of(self.resolve(ref))

    def children(self, ref: str) -> list[str]:
        return self.document.children_of(self.resolve(ref))

    def blockers(self, ref: str) -> list[str]:
        """Ids of the items blocking *ref*."""
        return self.document.blockers_of(self.resolve(ref))

    def blocking(self, ref: str) -> list[str]:
        """Ids of the items *ref* blocks."""
        return self.document.blocked_by(self.resolve(ref))

    def roots(self) -> list[str]:
        return self.document.roots()

    def is_ready(self, item: WorkItem) -> bool:
        """Open, unclaimed, and every blocker closed."""
        if item.is_closed or item.is_claimed:
            return False
        for blocker_id in self.document.blockers_of(item.id):
            blocker = self.items.get(blocker_id)
            if blocker is None or not blocker.is_closed:
                return False
        return True

    def ready_items(self) -> list[WorkItem]:
        """Items that can be picked up now, most urgent first."""
        ready = [item for item in self.items.values() if self.is_ready(item)]
        ready.sort(key=lambda item: (item.priority, item.id))
        return ready
