"""
Work item models and the graph engine that mutates them.

Public API:
    - WorkItem, Dependency, Document: the replicated data model
    - ItemType, ItemStatus, DepKind: enums used by the model
    - ItemGraph: invariant-preserving mutations and queries
"""

from litebrite.core.items.graph import ItemGraph
from litebrite.core.items.models import (
    Dependency,
    DepKind,
    Document,
    ItemStatus,
    ItemType,
    WorkItem,
)

__all__ = [
    "Dependency",
    "DepKind",
    "Document",
    "ItemGraph",
    "ItemStatus",
    "ItemType",
    "WorkItem",
]
