"""
Synchronization controller for the litebrite branch.

SyncService reads and writes snapshots through a Transport and keeps the
local head in step with the remote one:

- in sync: nothing to do
- behind: fast-forward the local head, no merge
- ahead: push
- diverged: three-way merge, commit with both heads as parents, push

Every head move is a compare-and-swap. A rejected publish re-fetches and
re-classifies, up to ``sync.max_publish_retries`` extra attempts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import NamedTuple

from litebrite.core.config import LitebriteConfig, load_config
from litebrite.core.exceptions import (
    AlreadyInitializedError,
    NotFoundError,
    TransportRejectedError,
    TransportUnavailableError,
)
from litebrite.core.items.graph import ItemGraph
from litebrite.core.items.models import Document, utc_now
from litebrite.core.sync.git import GitTransport
from litebrite.core.sync.merge import find_conflicts, merge_documents
from litebrite.core.sync.models import SyncConflict, SyncResult, SyncStatus
from litebrite.core.sync.transport import Transport
from litebrite.utils.project import find_project_root

logger = logging.getLogger(__name__)

NOT_INITIALIZED = "litebrite is not initialized; run `lb init`"
NOT_PUBLISHED = "litebrite branch not found on remote; run `lb sync` to push it first"


class MergeOutcome(NamedTuple):
    """Result of merge_and_publish()."""

    commit_sha: str
    document: Document
    conflicts: list[SyncConflict]


class SyncService:
    """
    Service for reading, committing and synchronizing snapshots.

    Example:
        >>> sync = SyncService(GitTransport(Path(".")))
        >>> if not sync.is_initialized():
        ...     sync.initialize()
        >>> head, doc = sync.load_head()
        >>> sync.graph(doc).create("Write docs")
        >>> sync.commit(doc, "Create item", parent=head)
        >>> print(sync.sync().summary())
    """

    def __init__(
        self,
        transport: Transport,
        config: LitebriteConfig | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the sync service.

        Args:
            transport: Where snapshots are stored and exchanged.
            config: Loaded configuration. Defaults to built-in defaults.
            clock: Source of timestamps for item mutations and results.
        """
        self.transport = transport
        self.config = config or LitebriteConfig()
        self.clock = clock

    # ------------------------------------------------------------------
    # Local snapshots
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self.transport.local_head_exists()

    def initialize(self) -> SyncResult:
        """
        Create the local head.

        Adopts the published branch when the remote already has one.
        Otherwise writes an empty root snapshot and publishes it if a
        remote is configured.

        Raises:
            AlreadyInitializedError: If the local head already exists.
        """
        started_at = self.clock()
        if self.transport.local_head_exists():
            raise AlreadyInitializedError(
                f"litebrite is already initialized (branch {self.config.sync.branch})"
            )

        has_remote = self.transport.has_remote()
        if has_remote and self.transport.fetch():
            remote_ref = self.transport.remote_head()
            assert remote_ref is not None
            self.transport.update_head(None, remote_ref)
            logger.info("Adopted remote litebrite branch at %s", remote_ref[:8])
            commit_sha = remote_ref
            message = "adopted litebrite branch from remote"
        else:
            commit_sha = self.transport.write_snapshot(
                Document().to_json().encode("utf-8"), [], "Initialize litebrite"
            )
            self.transport.update_head(None, commit_sha)
            logger.info("Created litebrite branch at %s", commit_sha[:8])
            message = "initialized litebrite branch"
            if has_remote:
                self.transport.push()
                message = "initialized and pushed litebrite branch to remote"

        return SyncResult(
            operation="init",
            commit_sha=commit_sha,
            message=message,
            started_at=started_at,
            completed_at=self.clock(),
        )

    def load_ref(self, ref: str) -> Document:
        """Parse the snapshot stored at *ref*."""
        return Document.from_json(self.transport.read_snapshot(ref))

    def load_head(self) -> tuple[str, Document]:
        """
        Read the local head snapshot.

        Returns:
            The head ref and its document. Pass the ref to commit() as
            *parent* so a concurrent local writer is detected.

        Raises:
            NotFoundError: If the local head does not exist.
        """
        head = self.transport.local_head()
        if head is None:
            raise NotFoundError(NOT_INITIALIZED)
        return head, self.load_ref(head)

    def load(self) -> Document:
        return self.load_head()[1]

    def graph(self, document: Document) -> ItemGraph:
        """Wrap *document* in an ItemGraph using this service's clock and id prefix."""
        return ItemGraph(document, clock=self.clock, id_prefix=self.config.id_prefix)

    def commit(self, document: Document, message: str, *, parent: str | None = None) -> str:
        """
        Write *document* as a new snapshot on top of the local head.

        Unchanged content is not committed again; the current head is
        returned instead.

        Args:
            document: Document to store.
            message: Commit message.
            parent: Head the document was loaded from (defaults to the
                current local head).

        Returns:
            Ref of the local head after the commit.

        Raises:
            NotFoundError: If the local head does not exist.
            TransportRejectedError: If the local head moved away from *parent*.
        """
        if parent is None:
            parent = self.transport.local_head()
            if parent is None:
                raise NotFoundError(NOT_INITIALIZED)

        data = document.to_json().encode("utf-8")
        if self.transport.read_snapshot(parent) == data:
            logger.info("No changes to commit (snapshot unchanged)")
            return parent

        commit_sha = self.transport.write_snapshot(data, [parent], message)
        self.transport.update_head(parent, commit_sha)
        logger.info("Committed %s (%s)", commit_sha[:8], message)
        return commit_sha

    # ------------------------------------------------------------------
    # Remote synchronization
    # ------------------------------------------------------------------

    def current_actor(self) -> str:
        """Configured actor, else the transport's identity (git user.name)."""
        if self.config.actor:
            return self.config.actor
        return self.transport.current_actor_identity()

    def classify(self, local_ref: str, remote_ref: str | None) -> SyncStatus:
        """Relationship between two heads; a missing remote counts as ahead."""
        if remote_ref is None:
            return SyncStatus.AHEAD
        if local_ref == remote_ref:
            return SyncStatus.IN_SYNC
        if self.transport.is_ancestor(local_ref, remote_ref):
            return SyncStatus.BEHIND
        if self.transport.is_ancestor(remote_ref, local_ref):
            return SyncStatus.AHEAD
        return SyncStatus.DIVERGED

    def get_status(self) -> SyncStatus:
        """
        Fetch and classify the local head against the remote.

        Returns:
            UNINITIALIZED or NO_REMOTE when there is nothing to compare,
            otherwise the classification.
        """
        local_ref = self.transport.local_head()
        if local_ref is None:
            return SyncStatus.UNINITIALIZED
        if not self.transport.has_remote():
            return SyncStatus.NO_REMOTE
        self.transport.fetch()
        return self.classify(local_ref, self.transport.remote_head())

    def merge_and_publish(
        self, local_ref: str, remote_ref: str, message: str = "Sync litebrite stores"
    ) -> MergeOutcome:
        """
        Merge two diverged heads, commit the result and push it.

        The merge base is empty when the histories share no ancestor. The
        new commit records both heads as parents.

        Raises:
            TransportRejectedError: If the local head moved or the push lost
                a race.
        """
        base_ref = self.transport.merge_base(local_ref, remote_ref)
        base = self.load_ref(base_ref) if base_ref is not None else Document()
        local = self.load_ref(local_ref)
        remote = self.load_ref(remote_ref)

        conflicts = find_conflicts(base, local, remote)
        for conflict in conflicts:
            logger.warning(
                "Conflict on %s.%s: %s version used (local: %r, remote: %r)",
                conflict.item_id,
                conflict.field,
                conflict.winner,
                conflict.local_value,
                conflict.remote_value,
            )

        merged = merge_documents(base, local, remote)
        commit_sha = self.transport.write_snapshot(
            merged.to_json().encode("utf-8"), [local_ref, remote_ref], message
        )
        self.transport.update_head(local_ref, commit_sha)
        logger.info(
            "Merged %s and %s into %s", local_ref[:8], remote_ref[:8], commit_sha[:8]
        )
        self.transport.push()
        return MergeOutcome(commit_sha, merged, conflicts)

    def _sync_once(self) -> SyncResult:
        self.transport.fetch()
        local_ref = self.transport.local_head()
        if local_ref is None:
            raise NotFoundError(NOT_INITIALIZED)
        remote_ref = self.transport.remote_head()
        status = self.classify(local_ref, remote_ref)
        conflicts: list[SyncConflict] = []

        if status == SyncStatus.IN_SYNC:
            commit_sha = local_ref
            message = "already in sync"
        elif status == SyncStatus.BEHIND:
            assert remote_ref is not None
            self.transport.update_head(local_ref, remote_ref)
            logger.info("Fast-forwarded to %s", remote_ref[:8])
            commit_sha = remote_ref
            message = "fast-forwarded to remote"
        elif status == SyncStatus.AHEAD:
            self.transport.push()
            commit_sha = local_ref
            if remote_ref is None:
                message = "pushed litebrite branch to remote"
            else:
                message = "pushed local changes to remote"
        else:
            assert remote_ref is not None
            outcome = self.merge_and_publish(local_ref, remote_ref)
            commit_sha = outcome.commit_sha
            conflicts = outcome.conflicts
            message = "synced with remote"

        return SyncResult(
            operation="sync",
            status=status,
            commit_sha=commit_sha,
            message=message,
            conflicts=conflicts,
        )

    def sync(self) -> SyncResult:
        """
        Bring local and remote heads together.

        Returns:
            SyncResult describing the action taken.

        Raises:
            TransportUnavailableError: If no remote is configured.
            NotFoundError: If the local head does not exist.
            TransportRejectedError: If every publish attempt lost a race.
        """
        started_at = self.clock()
        if not self.transport.has_remote():
            raise TransportUnavailableError("no remote configured; nothing to sync")
        if not self.transport.local_head_exists():
            raise NotFoundError(NOT_INITIALIZED)

        max_attempts = self.config.sync.max_publish_retries + 1
        last_error: TransportRejectedError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                result = self._sync_once()
            except TransportRejectedError as e:
                last_error = e
                logger.warning(
                    "Publish rejected (attempt %d of %d): %s", attempt, max_attempts, e
                )
                continue
            result.attempts = attempt
            result.started_at = started_at
            result.completed_at = self.clock()
            return result

        raise TransportRejectedError(
            f"sync failed after {max_attempts} attempts: remote kept moving ({last_error})",
            attempts=max_attempts,
        ) from last_error

    def fast_forward(self) -> bool:
        """
        Fetch and fast-forward the local head; never merges.

        A missing local head adopts the remote one.

        Returns:
            True if a remote is in play, False for local-only operation.

        Raises:
            TransportUnavailableError: If a remote is configured but the
                branch was never published.
        """
        if not self.transport.has_remote():
            return False
        if not self.transport.fetch():
            raise TransportUnavailableError(NOT_PUBLISHED)

        remote_ref = self.transport.remote_head()
        assert remote_ref is not None
        local_ref = self.transport.local_head()
        if local_ref is None or self.classify(local_ref, remote_ref) == SyncStatus.BEHIND:
            self.transport.update_head(local_ref, remote_ref)
            logger.info("Fast-forwarded to %s", remote_ref[:8])
        return True


def get_sync_service(
    project_dir: Path | None = None, config: LitebriteConfig | None = None
) -> SyncService:
    """
    Build a SyncService on the git repository containing *project_dir*.

    Args:
        project_dir: Any directory inside the project (defaults to cwd).
        config: Configuration (defaults to load_config() for the project).
    """
    root = find_project_root(project_dir) or (project_dir or Path.cwd()).resolve()
    if config is None:
        config = load_config(root)
    transport = GitTransport(
        root,
        branch_name=config.sync.branch,
        remote_name=config.sync.remote,
        snapshot_file=config.sync.snapshot_file,
        timeout=config.sync.git_timeout_seconds,
    )
    return SyncService(transport, config)
