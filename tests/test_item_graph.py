"""Tests for ItemGraph: mutations, invariants and queries."""

from __future__ import annotations

import pytest

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
from litebrite.core.items.graph import ItemGraph
from litebrite.core.items.models import (
    Dependency,
    DepKind,
    Document,
    ItemStatus,
    ItemType,
    WorkItem,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _graph_with_ids(*item_ids: str) -> ItemGraph:
    doc = Document(items={item_id: WorkItem(id=item_id, title=item_id) for item_id in item_ids})
    return ItemGraph(doc)


def _parent_edges(graph: ItemGraph) -> list[Dependency]:
    return [dep for dep in graph.document.deps if dep.kind == DepKind.PARENT]


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


class TestResolve:
    def test_exact_match(self) -> None:
        graph = _graph_with_ids("lb-a1b2", "lb-c3d4")
        assert graph.resolve("lb-a1b2") == "lb-a1b2"

    def test_unique_prefix(self) -> None:
        graph = _graph_with_ids("lb-a1b2", "lb-c3d4")
        assert graph.resolve("lb-a") == "lb-a1b2"

    def test_exact_match_wins_over_prefix(self) -> None:
        """An id that is also a prefix of other ids resolves to itself."""
        graph = _graph_with_ids("lb-a", "lb-ab", "lb-abc")
        assert graph.resolve("lb-a") == "lb-a"

    def test_ambiguous_prefix(self) -> None:
        graph = _graph_with_ids("lb-a1b2", "lb-a1zz")
        with pytest.raises(AmbiguousPrefixError) as exc_info:
            graph.resolve("lb-a1")
        assert exc_info.value.matches == ["lb-a1b2", "lb-a1zz"]

    def test_not_found(self) -> None:
        graph = _graph_with_ids("lb-a1b2")
        with pytest.raises(NotFoundError, match="no item matching 'lb-zz'"):
            graph.resolve("lb-zz")

    def test_empty_ref_not_found(self) -> None:
        graph = _graph_with_ids("lb-a1b2")
        with pytest.raises(NotFoundError):
            graph.resolve("")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestCreate:
    def test_create_defaults(self, graph: ItemGraph) -> None:
        item_id = graph.create("Write parser")
        item = graph.items[item_id]
        assert item.title == "Write parser"
        assert item.type == ItemType.TASK
        assert item.priority == 2
        assert item.status == ItemStatus.OPEN
        assert item.claimant is None
        assert item.created_at == item.updated_at

    def test_create_with_parent(self, graph: ItemGraph) -> None:
        epic = graph.create("Parser", ItemType.EPIC, priority=1)
        task = graph.create("Tokenizer", parent=epic[:5])
        assert graph.parent(task) == epic
        assert graph.children(epic) == [task]

    def test_create_with_unknown_parent(self, graph: ItemGraph) -> None:
        with pytest.raises(NotFoundError):
            graph.create("Orphan", parent="lb-nope")
        assert graph.items == {}

    def test_empty_description_is_none(self, graph: ItemGraph) -> None:
        item_id = graph.create("t", description="")
        assert graph.items[item_id].description is None

    def test_ids_are_distinct(self) -> None:
        """Real id generation never reuses an id."""
        graph = ItemGraph(Document())
        ids = {graph.create("same title") for _ in range(200)}
        assert len(ids) == 200
        assert all(item_id.startswith("lb-") for item_id in ids)

    def test_custom_prefix(self) -> None:
        graph = ItemGraph(Document(), id_prefix="web-")
        assert graph.create("t").startswith("web-")


class TestDelete:
    def test_delete_removes_touching_edges(self, graph: ItemGraph) -> None:
        """Every edge mentioning the deleted item goes with it."""
        epic = graph.create("epic")
        a = graph.create("a", parent=epic)
        b = graph.create("b", parent=a)
        c = graph.create("c")
        graph.add_blocking(a, c)
        graph.add_blocking(c, b)

        removed = graph.delete(a)

        assert removed.id == a
        assert a not in graph.items
        assert all(not dep.touches(a) for dep in graph.document.deps)
        assert graph.blockers(b) == [c]
        assert graph.parent(b) is None

    def test_delete_unknown(self, graph: ItemGraph) -> None:
        with pytest.raises(NotFoundError):
            graph.delete("lb-nope")


class TestUpdate:
    def test_update_fields(self, graph: ItemGraph) -> None:
        item_id = graph.create("t", description="old")
        before = graph.items[item_id].updated_at

        item = graph.update(
            item_id, title="new", item_type=ItemType.FEATURE, priority=0, description=""
        )

        assert item.title == "new"
        assert item.type == ItemType.FEATURE
        assert item.priority == 0
        assert item.description is None
        assert item.updated_at > before

    def test_update_nothing_keeps_timestamp(self, graph: ItemGraph) -> None:
        item_id = graph.create("t")
        before = graph.items[item_id].updated_at
        graph.update(item_id, title="t")
        assert graph.items[item_id].updated_at == before

    def test_update_status_closed_checks_children(self, graph: ItemGraph) -> None:
        epic = graph.create("epic")
        graph.create("child", parent=epic)
        with pytest.raises(HasOpenChildrenError):
            graph.update(epic, status=ItemStatus.CLOSED)

    def test_update_reopen(self, graph: ItemGraph) -> None:
        item_id = graph.create("t")
        graph.close(item_id)
        assert graph.update(item_id, status=ItemStatus.OPEN).status == ItemStatus.OPEN

    def test_update_parent(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b")
        graph.update(b, parent=a)
        assert graph.parent(b) == a


class TestClose:
    def test_close_with_open_children_scenario(self, graph: ItemGraph) -> None:
        """Epic E closes only once both children C1 and C2 are closed."""
        epic = graph.create("E", ItemType.EPIC)
        c1 = graph.create("C1", parent=epic)
        c2 = graph.create("C2", parent=epic)
        graph.claim(epic, "alice")

        with pytest.raises(HasOpenChildrenError) as exc_info:
            graph.close(epic)
        assert exc_info.value.open_children == [c1, c2]

        graph.close(c1)
        with pytest.raises(HasOpenChildrenError) as exc_info:
            graph.close(epic)
        assert exc_info.value.open_children == [c2]

        graph.close(c2)
        item = graph.close(epic)
        assert item.is_closed
        assert item.claimant is None

    def test_close_releases_claim(self, graph: ItemGraph) -> None:
        item_id = graph.create("t")
        graph.claim(item_id, "alice")
        assert graph.close(item_id).claimant is None


class TestClaim:
    def test_claim_and_unclaim(self, graph: ItemGraph) -> None:
        item_id = graph.create("t")
        assert graph.claim(item_id, "alice").claimant == "alice"
        assert graph.unclaim(item_id).claimant is None

    def test_claim_already_claimed(self, graph: ItemGraph) -> None:
        item_id = graph.create("t")
        graph.claim(item_id, "alice")
        with pytest.raises(AlreadyClaimedError) as exc_info:
            graph.claim(item_id, "bob")
        assert exc_info.value.actor == "alice"

    def test_claim_closed(self, graph: ItemGraph) -> None:
        item_id = graph.create("t")
        graph.close(item_id)
        with pytest.raises(ItemClosedError):
            graph.claim(item_id, "alice")

    def test_unclaim_unclaimed(self, graph: ItemGraph) -> None:
        item_id = graph.create("t")
        with pytest.raises(NotClaimedError):
            graph.unclaim(item_id)


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


class TestSetParent:
    def test_replaces_old_parent(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b")
        child = graph.create("child", parent=a)
        graph.set_parent(child, b)
        assert graph.parent(child) == b
        assert len(_parent_edges(graph)) == 1

    def test_self_parent(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        with pytest.raises(SelfReferenceError):
            graph.set_parent(a, a)

    def test_cycle_rejected(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b", parent=a)
        c = graph.create("c", parent=b)
        with pytest.raises(CycleDetectedError):
            graph.set_parent(a, c)
        assert graph.parent(a) is None

    def test_parents_stay_acyclic(self, graph: ItemGraph) -> None:
        """Random reparenting never produces a parent loop."""
        ids = [graph.create(f"item {n}") for n in range(8)]
        for n, child in enumerate(ids):
            for parent in ids[(n * 3) % 8 :: 3]:
                try:
                    graph.set_parent(child, parent)
                except (CycleDetectedError, SelfReferenceError):
                    pass

        for item_id in ids:
            seen: set[str] = set()
            current: str | None = item_id
            while current is not None:
                assert current not in seen
                seen.add(current)
                current = graph.parent(current)


class TestBlocking:
    def test_add_blocking(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b")
        graph.add_blocking(a, b)
        assert graph.blockers(b) == [a]
        assert graph.blocking(a) == [b]

    def test_self_block(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        with pytest.raises(SelfReferenceError):
            graph.add_blocking(a, a)

    def test_duplicate(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b")
        graph.add_blocking(a, b)
        with pytest.raises(DuplicateDependencyError):
            graph.add_blocking(a, b)

    def test_blocking_cycles_allowed(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b")
        graph.add_blocking(a, b)
        graph.add_blocking(b, a)
        assert graph.blockers(a) == [b]

    def test_remove_dependency(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b")
        graph.add_blocking(a, b)
        graph.remove_dependency(a, b)
        assert graph.blockers(b) == []

    def test_remove_parent_edge(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b", parent=a)
        graph.remove_dependency(b, a)
        assert graph.parent(b) is None

    def test_remove_missing(self, graph: ItemGraph) -> None:
        a = graph.create("a")
        b = graph.create("b")
        with pytest.raises(NotFoundError):
            graph.remove_dependency(a, b)


# ---------------------------------------------------------------------------
# Ready work
# ---------------------------------------------------------------------------


class TestReadyItems:
    def test_ready_excludes_closed_claimed_and_blocked(self, graph: ItemGraph) -> None:
        free = graph.create("free", priority=3)
        urgent = graph.create("urgent", priority=0)
        closed = graph.create("closed")
        claimed = graph.create("claimed")
        blocked = graph.create("blocked")
        graph.close(closed)
        graph.claim(claimed, "alice")
        graph.add_blocking(free, blocked)

        assert [item.id for item in graph.ready_items()] == [urgent, free]

    def test_closed_blocker_unblocks(self, graph: ItemGraph) -> None:
        blocker = graph.create("blocker")
        blocked = graph.create("blocked")
        graph.add_blocking(blocker, blocked)
        graph.close(blocker)
        assert [item.id for item in graph.ready_items()] == [blocked]

    def test_ties_broken_by_id(self, graph: ItemGraph) -> None:
        first = graph.create("x")
        second = graph.create("y")
        assert [item.id for item in graph.ready_items()] == [first, second]
