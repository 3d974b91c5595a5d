"""
Configuration data models for litebrite.

These models define the structure of .litebrite.json and
~/.config/litebrite/config.json files, with validation and type safety
via Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncConfig(BaseModel):
    """
    Where snapshots are stored and how publishing is retried.
    """
    branch: str = Field(
        default="litebrite",
        min_length=1,
        description="Git branch that holds the snapshot history"
    )
    remote: str = Field(
        default="origin",
        min_length=1,
        description="Remote the branch is exchanged with"
    )
    snapshot_file: str = Field(
        default="store.json",
        min_length=1,
        description="Path of the snapshot file inside the branch tree"
    )
    git_timeout_seconds: float = Field(
        default=60,
        gt=0,
        description="Seconds before a git subprocess is abandoned"
    )
    max_publish_retries: int = Field(
        default=1,
        ge=0,
        description="Re-fetch and retry this many times after a rejected publish"
    )

    @field_validator("snapshot_file")
    @classmethod
    def validate_snapshot_file(cls, v: str) -> str:
        """Snapshot path must be relative and stay inside the tree."""
        v = v.strip("/")
        if not v or ".." in v.split("/"):
            raise ValueError(f"invalid snapshot path: {v!r}")
        return v


class LitebriteConfig(BaseModel):
    """
    Top-level litebrite configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = LitebriteConfig(actor="alice", sync=SyncConfig(remote="upstream"))
        >>> config.sync.branch
        'litebrite'
    """
    actor: Optional[str] = Field(
        default=None,
        description="Name recorded as claimant; defaults to git user.name"
    )
    id_prefix: str = Field(
        default="lb-",
        min_length=1,
        description="Prefix for generated item ids"
    )
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Snapshot storage and publishing"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )
