"""
Data models for the sync layer.

Defines Pydantic models for sync status, merge conflicts and operation
results.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Relationship between the local head and the remote head."""

    IN_SYNC = "in_sync"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    NO_REMOTE = "no_remote"
    UNINITIALIZED = "uninitialized"


class SyncConflict(BaseModel):
    """
    A field both sides changed to different values during a merge.

    The merge still produces a result; this records which side won so it
    can be logged and reported.
    """

    item_id: str = Field(description="ID of the item with the conflicting field")
    field: str = Field(description="Name of the conflicting field")
    local_value: Any = Field(default=None, description="Value on the local side")
    remote_value: Any = Field(default=None, description="Value on the remote side")
    winner: str = Field(description="Which side won (local or remote)")


class SyncResult(BaseModel):
    """
    Result of a sync, claim or unclaim operation.

    Failures raise instead of being reported here.
    """

    operation: str = Field(description="Type of operation (sync, claim, unclaim, init)")

    status: SyncStatus | None = Field(
        default=None,
        description="Classification that decided the action taken",
    )

    commit_sha: str | None = Field(
        default=None,
        description="Ref of the resulting local head (if any)",
    )

    message: str = Field(
        default="",
        description="Human-readable result message",
    )

    conflicts: list[SyncConflict] = Field(
        default_factory=list,
        description="Fields resolved by the merge rules",
    )

    attempts: int = Field(
        default=1,
        ge=1,
        description="Number of publish attempts made",
    )

    # Timing
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate operation duration in seconds."""
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            return delta.total_seconds()
        return None

    def summary(self) -> str:
        """Generate a human-readable summary of the result."""
        parts = [f"{self.operation} succeeded"]

        if self.commit_sha:
            parts.append(f"commit {self.commit_sha[:8]}")

        if self.conflicts:
            parts.append(f"{len(self.conflicts)} conflicts resolved")

        if self.attempts > 1:
            parts.append(f"{self.attempts} attempts")

        if self.message:
            parts.append(self.message)

        return ", ".join(parts)
