"""
Work item data models for litebrite.

Defines the WorkItem, Dependency and Document models plus the enums they
use. A Document is the whole replicated state: every item keyed by id and
the list of edges between them. It serializes to a single pretty-printed
JSON snapshot that is stored on the litebrite branch.

Legacy snapshots written with ``item_type``, ``claimed_by``, ``from_id``,
``to_id`` and ``dep_type`` keys, or with retired status tokens such as
``in_progress``, are accepted on read.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from litebrite.core.exceptions import MalformedSnapshotError


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class ItemType(str, Enum):
    """Kinds of work item, from broadest to narrowest."""

    EPIC = "epic"
    FEATURE = "feature"
    TASK = "task"


class ItemStatus(str, Enum):
    """Item status values.

    Only two states are stored. Anything other than ``closed`` found in a
    snapshot is read as ``open``.
    """

    OPEN = "open"
    CLOSED = "closed"


class DepKind(str, Enum):
    """Kinds of edge between two items.

    PARENT edges run from child to parent. BLOCKS edges run from the
    blocker to the item it blocks.
    """

    PARENT = "parent"
    BLOCKS = "blocks"


class WorkItem(BaseModel):
    """
    A single epic, feature or task.

    Example:
        >>> item = WorkItem(id="lb-a1b2", title="Write parser", priority=1)
        >>> item.status
        <ItemStatus.OPEN: 'open'>
        >>> item.is_claimed
        False
    """

    id: str = Field(..., description="Unique, stable item identifier (e.g. 'lb-a1b2')")
    title: str = Field(..., description="Short item title")
    description: str | None = Field(default=None, description="Optional free-form description")
    type: ItemType = Field(
        default=ItemType.TASK,
        validation_alias=AliasChoices("type", "item_type"),
        description="Item type",
    )
    status: ItemStatus = Field(default=ItemStatus.OPEN, description="Current item status")
    priority: int = Field(default=2, ge=0, le=255, description="Priority, lower is more urgent")
    claimant: str | None = Field(
        default=None,
        validation_alias=AliasChoices("claimant", "claimed_by"),
        description="Actor currently holding an exclusive claim",
    )
    created_at: datetime = Field(default_factory=utc_now, description="When the item was created")
    updated_at: datetime = Field(
        default_factory=utc_now, description="When the item was last modified"
    )

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> ItemStatus:
        """Map legacy tokens (in_progress, blocked, deferred, ...) to open."""
        if isinstance(v, ItemStatus):
            return v
        if isinstance(v, str) and v.strip().lower() == ItemStatus.CLOSED.value:
            return ItemStatus.CLOSED
        return ItemStatus.OPEN

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, ItemType):
            return v.strip().lower()
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Treat naive datetimes as UTC and convert aware ones to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def is_closed(self) -> bool:
        return self.status == ItemStatus.CLOSED

    @property
    def is_claimed(self) -> bool:
        return self.claimant is not None

    def touch(self, now: datetime | None = None) -> None:
        """
        Bump ``updated_at`` after a mutation.

        The timestamp never moves backwards, even when the supplied clock
        reads earlier than the stored value.
        """
        self.updated_at = max(now or utc_now(), self.updated_at, self.created_at)

    def close(self, now: datetime | None = None) -> None:
        """Mark the item closed and release any claim."""
        self.status = ItemStatus.CLOSED
        self.claimant = None
        self.touch(now)

    def reopen(self, now: datetime | None = None) -> None:
        """Mark the item open again."""
        self.status = ItemStatus.OPEN
        self.touch(now)


class Dependency(BaseModel):
    """
    A directed edge between two items.

    Serialized as ``{"from": ..., "to": ..., "kind": ...}``. Instances are
    immutable and hashable so edge sets can be compared directly.
    """

    model_config = ConfigDict(frozen=True)

    from_id: str = Field(
        ...,
        validation_alias=AliasChoices("from", "from_id"),
        serialization_alias="from",
        description="Child (parent edge) or blocker (blocks edge)",
    )
    to_id: str = Field(
        ...,
        validation_alias=AliasChoices("to", "to_id"),
        serialization_alias="to",
        description="Parent (parent edge) or blocked item (blocks edge)",
    )
    kind: DepKind = Field(
        ...,
        validation_alias=AliasChoices("kind", "dep_type"),
        description="Edge kind",
    )

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.from_id, self.to_id, self.kind.value)

    def touches(self, item_id: str) -> bool:
        """Check whether either endpoint is *item_id*."""
        return self.from_id == item_id or self.to_id == item_id


def sort_dependencies(deps: list[Dependency] | set[Dependency]) -> list[Dependency]:
    """Deduplicate edges and sort them by (from, to, kind)."""
    return sorted(set(deps), key=lambda d: d.sort_key)


class Document(BaseModel):
    """
    The whole replicated work-item store.

    Example:
        >>> doc = Document()
        >>> doc.items["lb-a1b2"] = WorkItem(id="lb-a1b2", title="Epic")
        >>> Document.from_json(doc.to_json()) == doc.normalized()
        True
    """

    items: dict[str, WorkItem] = Field(default_factory=dict, description="Items keyed by id")
    deps: list[Dependency] = Field(default_factory=list, description="Edges between items")

    @field_validator("items", mode="before")
    @classmethod
    def fill_item_ids(cls, v: Any) -> Any:
        """Items stored without an ``id`` take it from their key."""
        if not isinstance(v, dict):
            return v
        filled: dict[str, Any] = {}
        for key, raw in v.items():
            if isinstance(raw, dict) and "id" not in raw:
                raw = {**raw, "id": key}
            filled[key] = raw
        return filled

    @model_validator(mode="after")
    def check_item_keys(self) -> Document:
        for key, item in self.items.items():
            if key != item.id:
                raise ValueError(f"item keyed '{key}' has id '{item.id}'")
        return self

    # ------------------------------------------------------------------
    # Structural queries
    # ------------------------------------------------------------------

    def parent_of(self, item_id: str) -> str | None:
        """Return the parent id of *item_id*, or None for a root."""
        for dep in self.deps:
            if dep.kind == DepKind.PARENT and dep.from_id == item_id:
                return dep.to_id
        return None

    def children_of(self, item_id: str) -> list[str]:
        return sorted(
            dep.from_id for dep in self.deps if dep.kind == DepKind.PARENT and dep.to_id == item_id
        )

    def blockers_of(self, item_id: str) -> list[str]:
        """Ids of items that block *item_id*."""
        return sorted(
            dep.from_id for dep in self.deps if dep.kind == DepKind.BLOCKS and dep.to_id == item_id
        )

    def blocked_by(self, item_id: str) -> list[str]:
        """Ids of items that *item_id* blocks."""
        return sorted(
            dep.to_id for dep in self.deps if dep.kind == DepKind.BLOCKS and dep.from_id == item_id
        )

    def roots(self) -> list[str]:
        """Ids of items with no parent."""
        with_parent = {dep.from_id for dep in self.deps if dep.kind == DepKind.PARENT}
        return sorted(item_id for item_id in self.items if item_id not in with_parent)

    # ------------------------------------------------------------------
    # Codec
    # ------------------------------------------------------------------

    def normalized(self) -> Document:
        """Return a deep copy with edges deduplicated and sorted."""
        doc = self.model_copy(deep=True)
        doc.deps = sort_dependencies(doc.deps)
        return doc

    def to_json(self) -> str:
        """
        Serialize to the snapshot format.

        Items are written in id order, edges sorted, absent optional fields
        omitted. The output is stable: equal documents serialize to equal
        text.
        """
        payload = {
            "items": {
                item_id: self.items[item_id].model_dump(
                    mode="json", by_alias=True, exclude_none=True
                )
                for item_id in sorted(self.items)
            },
            "deps": [
                dep.model_dump(mode="json", by_alias=True) for dep in sort_dependencies(self.deps)
            ],
        }
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"

    @classmethod
    def from_json(cls, data: str | bytes) -> Document:
        """
        Parse a snapshot.

        Args:
            data: Snapshot text or raw UTF-8 bytes.

        Returns:
            The parsed document.

        Raises:
            MalformedSnapshotError: If the data is not a valid snapshot.
        """
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return cls.model_validate_json(data)
        except (UnicodeDecodeError, ValidationError) as e:
            raise MalformedSnapshotError(f"invalid snapshot: {e}") from e
