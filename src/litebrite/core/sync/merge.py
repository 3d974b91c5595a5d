"""
Three-way merge of work-item documents.

merge_documents() reconciles two diverged copies of a Document against
their common ancestor. It is a pure function: the inputs are never
modified and equal inputs always give equal output.

Item presence (base, local, remote):

    - added on one side only: kept
    - added on both sides: the remote copy wins (it was published first)
    - deleted on either side: dropped
    - present everywhere: merged field by field

Field merge takes local's value wherever local changed the field,
otherwise remote's. ``claimant`` is the exception: remote's value wins
whenever remote changed it, so the claim that published first survives
even when the losing side runs the merge. ``updated_at`` is the later of
the two.

An edge survives unless the other side removed it relative to base.
Edges touching dropped items are discarded. If the surviving parent
edges give a child two parents or close a loop, local's new parent edges
are kept first and the rest are discarded in (from, to) order.
"""

from __future__ import annotations

import logging
from typing import Any

from litebrite.core.items.models import (
    Dependency,
    DepKind,
    Document,
    WorkItem,
    sort_dependencies,
)
from litebrite.core.sync.models import SyncConflict

logger = logging.getLogger(__name__)

REMOTE_PREFERRED_FIELDS = frozenset({"claimant"})
LATEST_WINS_FIELDS = frozenset({"updated_at"})


def merge_item(base: WorkItem, local: WorkItem, remote: WorkItem) -> WorkItem:
    """Field-level merge of an item present in all three snapshots."""
    values: dict[str, Any] = {}
    for name in WorkItem.model_fields:
        base_value = getattr(base, name)
        local_value = getattr(local, name)
        remote_value = getattr(remote, name)
        if name in LATEST_WINS_FIELDS:
            values[name] = max(local_value, remote_value)
        elif name in REMOTE_PREFERRED_FIELDS:
            values[name] = remote_value if remote_value != base_value else local_value
        else:
            values[name] = local_value if local_value != base_value else remote_value
    return local.model_copy(update=values, deep=True)


def _merge_items(base: Document, local: Document, remote: Document) -> dict[str, WorkItem]:
    merged: dict[str, WorkItem] = {}
    for item_id in sorted(set(local.items) | set(remote.items)):
        in_base = item_id in base.items
        local_item = local.items.get(item_id)
        remote_item = remote.items.get(item_id)

        if in_base:
            if local_item is None or remote_item is None:
                continue
            merged[item_id] = merge_item(base.items[item_id], local_item, remote_item)
        elif remote_item is not None:
            merged[item_id] = remote_item.model_copy(deep=True)
        elif local_item is not None:
            merged[item_id] = local_item.model_copy(deep=True)
    return merged


def _merge_edges(
    base: Document, local: Document, remote: Document, items: dict[str, WorkItem]
) -> set[Dependency]:
    base_set = set(base.deps)
    local_set = set(local.deps)
    remote_set = set(remote.deps)

    kept = {dep for dep in local_set if not (dep in base_set and dep not in remote_set)}
    kept |= {dep for dep in remote_set if not (dep in base_set and dep not in local_set)}
    return {dep for dep in kept if dep.from_id in items and dep.to_id in items}


def _repair_parent_forest(
    edges: set[Dependency], base: Document, local: Document
) -> set[Dependency]:
    """Keep at most one parent per child and no parent loops."""
    base_set = set(base.deps)
    local_set = set(local.deps)

    def precedence(dep: Dependency) -> tuple[int, tuple[str, str, str]]:
        local_change = dep in local_set and dep not in base_set
        return (0 if local_change else 1, dep.sort_key)

    parent_edges = sorted((dep for dep in edges if dep.kind == DepKind.PARENT), key=precedence)
    parent_of: dict[str, str] = {}
    accepted: set[Dependency] = set()

    for dep in parent_edges:
        if dep.from_id in parent_of:
            logger.warning(
                "Dropping parent edge %s -> %s: %s already has parent %s",
                dep.from_id,
                dep.to_id,
                dep.from_id,
                parent_of[dep.from_id],
            )
            continue

        visited: set[str] = set()
        current: str | None = dep.to_id
        creates_cycle = False
        while current is not None and current not in visited:
            if current == dep.from_id:
                creates_cycle = True
                break
            visited.add(current)
            current = parent_of.get(current)
        if creates_cycle:
            logger.warning(
                "Dropping parent edge %s -> %s: would form a cycle", dep.from_id, dep.to_id
            )
            continue

        parent_of[dep.from_id] = dep.to_id
        accepted.add(dep)

    return {dep for dep in edges if dep.kind != DepKind.PARENT} | accepted


def merge_documents(base: Document, local: Document, remote: Document) -> Document:
    """
    Merge two diverged documents against their common ancestor.

    Args:
        base: Snapshot at the merge base (empty when histories are unrelated)
        local: This actor's snapshot
        remote: The published snapshot

    Returns:
        A new Document with deduplicated, sorted edges.
    """
    items = _merge_items(base, local, remote)
    edges = _merge_edges(base, local, remote, items)
    edges = _repair_parent_forest(edges, base, local)
    return Document(items=items, deps=sort_dependencies(edges))


def find_conflicts(base: Document, local: Document, remote: Document) -> list[SyncConflict]:
    """
    List every field both sides changed to different values.

    An item added on both sides with different content is reported with
    field ``item``. The winner follows the merge_documents() rules.
    """
    conflicts: list[SyncConflict] = []
    for item_id in sorted(set(local.items) & set(remote.items)):
        local_item = local.items[item_id]
        remote_item = remote.items[item_id]
        base_item = base.items.get(item_id)

        if base_item is None:
            if local_item != remote_item:
                conflicts.append(
                    SyncConflict(
                        item_id=item_id,
                        field="item",
                        local_value=local_item.model_dump(mode="json", exclude_none=True),
                        remote_value=remote_item.model_dump(mode="json", exclude_none=True),
                        winner="remote",
                    )
                )
            continue

        local_dump = local_item.model_dump(mode="json")
        remote_dump = remote_item.model_dump(mode="json")
        base_dump = base_item.model_dump(mode="json")
        for name in WorkItem.model_fields:
            if name in LATEST_WINS_FIELDS:
                continue
            local_value = local_dump[name]
            remote_value = remote_dump[name]
            base_value = base_dump[name]
            if local_value == remote_value:
                continue
            if local_value == base_value or remote_value == base_value:
                continue
            conflicts.append(
                SyncConflict(
                    item_id=item_id,
                    field=name,
                    local_value=local_value,
                    remote_value=remote_value,
                    winner="remote" if name in REMOTE_PREFERRED_FIELDS else "local",
                )
            )
    return conflicts
