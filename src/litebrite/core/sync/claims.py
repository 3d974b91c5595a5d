"""
Optimistic claim protocol.

A claim is an exclusive, advisory assignment of an item to one actor. No
lock is taken: the claim is committed locally and pushed, and the push
itself is the compare-and-swap that decides the race.

claim():
    1. Fast-forward to the remote (never merge, so a concurrent claim is
       not merged away before it can be seen).
    2. Check the item is open and unclaimed, set the claimant, commit.
    3. Push. If the push is rejected, fetch and look at the remote copy of
       the item. A different claimant there means we lost: the local head
       is rolled back and AlreadyClaimedError is raised. Otherwise the
       rejection came from unrelated edits, so merge and publish once.

unclaim() mirrors this without the claimant check on rejection.
"""

from __future__ import annotations

import logging

from litebrite.core.exceptions import (
    AlreadyClaimedError,
    NotFoundError,
    TransportRejectedError,
)
from litebrite.core.sync.models import SyncResult, SyncStatus
from litebrite.core.sync.service import MergeOutcome, SyncService
from litebrite.core.sync.transport import Transport

logger = logging.getLogger(__name__)


class ClaimService:
    """
    Claim and release items on top of a SyncService.

    Example:
        >>> claims = ClaimService(sync)
        >>> claims.claim("lb-a1", actor="alice").message
        'claimed lb-a1b2 (alice)'
    """

    def __init__(self, sync: SyncService) -> None:
        self.sync = sync

    @property
    def transport(self) -> Transport:
        return self.sync.transport

    def claim(self, ref: str, actor: str | None = None) -> SyncResult:
        """
        Claim an item for *actor*.

        Args:
            ref: Item id or unique prefix.
            actor: Claimant name (defaults to the configured actor).

        Returns:
            SyncResult for the published claim.

        Raises:
            NotFoundError: If the item does not exist (or was deleted
                concurrently).
            ItemClosedError: If the item is closed.
            AlreadyClaimedError: If anyone else holds or just won the item.
            TransportUnavailableError: If the remote branch was never pushed.
            TransportRejectedError: If the merged claim also lost a race.
        """
        started_at = self.sync.clock()
        actor = actor or self.sync.current_actor()
        has_remote = self.sync.fast_forward()

        previous_head, document = self.sync.load_head()
        item = self.sync.graph(document).claim(ref, actor)
        item_id = item.id
        claim_head = self.sync.commit(document, f"{actor} claims {item_id}", parent=previous_head)

        result = SyncResult(
            operation="claim",
            commit_sha=claim_head,
            message=f"claimed {item_id} ({actor})",
            started_at=started_at,
        )
        if not has_remote:
            result.completed_at = self.sync.clock()
            return result

        try:
            self.transport.push()
            result.status = SyncStatus.AHEAD
        except TransportRejectedError:
            logger.warning("Claim push for %s rejected; checking remote copy", item_id)
            remote_ref = self._refetch_remote()
            remote_item = self.sync.load_ref(remote_ref).items.get(item_id)
            if (
                remote_item is not None
                and remote_item.claimant is not None
                and remote_item.claimant != actor
            ):
                self.transport.update_head(claim_head, previous_head)
                logger.info("Lost claim race for %s to %s", item_id, remote_item.claimant)
                raise AlreadyClaimedError(item_id, remote_item.claimant) from None

            outcome = self._merge_once(
                claim_head, remote_ref, f"Merge: {actor} claims {item_id}", item_id
            )
            merged_item = outcome.document.items.get(item_id)
            if merged_item is None:
                raise NotFoundError(f"{item_id} was deleted concurrently", item_id=item_id)
            if merged_item.claimant != actor:
                raise AlreadyClaimedError(item_id, merged_item.claimant or "another actor")
            result.status = SyncStatus.DIVERGED
            result.commit_sha = outcome.commit_sha
            result.conflicts = outcome.conflicts
            result.attempts = 2

        result.completed_at = self.sync.clock()
        return result

    def unclaim(self, ref: str, actor: str | None = None) -> SyncResult:
        """
        Release the claim on an item.

        Args:
            ref: Item id or unique prefix.
            actor: Who is releasing it (recorded in the commit message).

        Raises:
            NotFoundError: If the item does not exist.
            NotClaimedError: If the item has no claimant.
            TransportUnavailableError: If the remote branch was never pushed.
            TransportRejectedError: If the merged release also lost a race.
        """
        started_at = self.sync.clock()
        has_remote = self.sync.fast_forward()

        previous_head, document = self.sync.load_head()
        item = self.sync.graph(document).unclaim(ref)
        item_id = item.id
        who = actor or self.sync.config.actor
        message = f"{who} unclaims {item_id}" if who else f"Unclaim {item_id}"
        unclaim_head = self.sync.commit(document, message, parent=previous_head)

        result = SyncResult(
            operation="unclaim",
            commit_sha=unclaim_head,
            message=f"unclaimed {item_id}",
            started_at=started_at,
        )
        if not has_remote:
            result.completed_at = self.sync.clock()
            return result

        try:
            self.transport.push()
            result.status = SyncStatus.AHEAD
        except TransportRejectedError:
            logger.warning("Unclaim push for %s rejected; merging", item_id)
            remote_ref = self._refetch_remote()
            outcome = self._merge_once(unclaim_head, remote_ref, f"Merge: {message}", item_id)
            if item_id not in outcome.document.items:
                raise NotFoundError(f"{item_id} was deleted concurrently", item_id=item_id)
            result.status = SyncStatus.DIVERGED
            result.commit_sha = outcome.commit_sha
            result.conflicts = outcome.conflicts
            result.attempts = 2

        result.completed_at = self.sync.clock()
        return result

    def _refetch_remote(self) -> str:
        if not self.transport.fetch():
            raise NotFoundError("litebrite branch disappeared from remote")
        remote_ref = self.transport.remote_head()
        assert remote_ref is not None
        return remote_ref

    def _merge_once(
        self, local_ref: str, remote_ref: str, message: str, item_id: str
    ) -> MergeOutcome:
        try:
            return self.sync.merge_and_publish(local_ref, remote_ref, message)
        except TransportRejectedError as e:
            raise TransportRejectedError(
                f"could not publish change to {item_id}: remote moved again, retry",
                item_id=item_id,
            ) from e
