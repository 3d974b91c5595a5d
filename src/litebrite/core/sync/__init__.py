"""
Snapshot replication for litebrite.

The store lives as a single JSON snapshot on the `litebrite` git branch,
written with git plumbing so the working tree is never touched. Diverged
copies are reconciled by a three-way merge; every head move is a
compare-and-swap, so concurrent actors never overwrite each other.

Example:
    >>> from litebrite.core.sync import ClaimService, get_sync_service
    >>> sync = get_sync_service()
    >>> result = sync.sync()
    >>> if result.conflicts:
    ...     print(f"Resolved {len(result.conflicts)} conflicts")
    >>> ClaimService(sync).claim("lb-a1b2")
"""

from litebrite.core.sync.claims import ClaimService
from litebrite.core.sync.git import GitTransport
from litebrite.core.sync.memory import MemoryRemote, MemoryTransport
from litebrite.core.sync.merge import find_conflicts, merge_documents
from litebrite.core.sync.models import SyncConflict, SyncResult, SyncStatus
from litebrite.core.sync.service import MergeOutcome, SyncService, get_sync_service
from litebrite.core.sync.transport import Transport

__all__ = [
    "ClaimService",
    "GitTransport",
    "MemoryRemote",
    "MemoryTransport",
    "MergeOutcome",
    "SyncConflict",
    "SyncResult",
    "SyncService",
    "SyncStatus",
    "Transport",
    "find_conflicts",
    "get_sync_service",
    "merge_documents",
]
