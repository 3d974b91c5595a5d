"""
In-memory transport.

MemoryRemote stands in for a shared remote repository: an object store
of immutable snapshots plus one published head guarded by a lock.
Several MemoryTransport instances attached to the same MemoryRemote
behave like independent clones of one git remote, which makes race
scenarios between actors reproducible in a single test process.

Example:
    >>> remote = MemoryRemote()
    >>> alice = MemoryTransport(remote, actor="alice")
    >>> bob = MemoryTransport(remote, actor="bob")
    >>> ref = alice.write_snapshot(b"{}", [], "root")
    >>> alice.update_head(None, ref)
    >>> alice.push()
    >>> bob.fetch()
    True
"""

from __future__ import annotations

import hashlib
import itertools
import logging
import threading
from dataclasses import dataclass

from litebrite.core.exceptions import (
    IOFailureError,
    NotFoundError,
    TransportRejectedError,
    TransportUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredSnapshot:
    """An immutable snapshot node in the in-memory history."""

    data: bytes
    parents: tuple[str, ...]
    message: str
    generation: int


class MemoryRemote:
    """Shared object store and published head."""

    def __init__(self) -> None:
        self.objects: dict[str, StoredSnapshot] = {}
        self.head: str | None = None
        self.lock = threading.Lock()
        self._nonce = itertools.count()

    def store(self, data: bytes, parents: list[str], message: str) -> str:
        with self.lock:
            for parent in parents:
                if parent not in self.objects:
                    raise NotFoundError(f"unknown parent ref {parent}", ref=parent)
            generation = 1 + max((self.objects[p].generation for p in parents), default=0)
            hasher = hashlib.sha1()
            hasher.update(data)
            for parent in parents:
                hasher.update(parent.encode())
            hasher.update(message.encode())
            hasher.update(str(next(self._nonce)).encode())
            ref = hasher.hexdigest()
            self.objects[ref] = StoredSnapshot(data, tuple(parents), message, generation)
            return ref

    def get(self, ref: str) -> StoredSnapshot:
        try:
            return self.objects[ref]
        except KeyError:
            raise NotFoundError(f"unknown ref {ref}", ref=ref) from None

    def ancestors(self, ref: str) -> set[str]:
        """All refs reachable from *ref*, including itself."""
        seen: set[str] = set()
        stack = [ref]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.get(current).parents)
        return seen


class MemoryTransport:
    """
    Transport backed by a MemoryRemote.

    Args:
        remote: Shared remote, or None for a transport with no remote
        actor: Identity returned by current_actor_identity()
    """

    def __init__(self, remote: MemoryRemote | None = None, actor: str | None = None) -> None:
        self.remote = remote
        self.actor = actor
        self._store = remote if remote is not None else MemoryRemote()
        self._local: str | None = None
        self._tracking: str | None = None
        self._lock = threading.Lock()

    def has_remote(self) -> bool:
        return self.remote is not None

    def local_head_exists(self) -> bool:
        return self._local is not None

    def remote_head_exists(self) -> bool:
        return self._tracking is not None

    def local_head(self) -> str | None:
        return self._local

    def remote_head(self) -> str | None:
        return self._tracking

    def _require_remote(self) -> MemoryRemote:
        if self.remote is None:
            raise TransportUnavailableError("no remote configured")
        return self.remote

    def fetch(self) -> bool:
        remote = self._require_remote()
        with remote.lock:
            self._tracking = remote.head
        return self._tracking is not None

    def read_snapshot(self, ref: str) -> bytes:
        return self._store.get(ref).data

    def write_snapshot(self, data: bytes, parents: list[str], message: str) -> str:
        return self._store.store(data, parents, message)

    def update_head(self, expected: str | None, new: str) -> None:
        self._store.get(new)
        with self._lock:
            if self._local != expected:
                raise TransportRejectedError(
                    f"local head moved: expected {expected}, found {self._local}",
                    expected=expected,
                    actual=self._local,
                )
            self._local = new

    def push(self) -> None:
        remote = self._require_remote()
        local = self._local
        if local is None:
            raise NotFoundError("nothing to push: local head does not exist")
        with remote.lock:
            published = remote.head
            if published is not None and not self.is_ancestor(published, local):
                raise TransportRejectedError(
                    "push rejected: remote head moved", remote_head=published, local_head=local
                )
            remote.head = local
        self._tracking = local
        logger.debug("Pushed %s", local[:8])

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        return ancestor in self._store.ancestors(descendant)

    def merge_base(self, a: str, b: str) -> str | None:
        common = self._store.ancestors(a) & self._store.ancestors(b)
        if not common:
            return None
        return max(common, key=lambda ref: (self._store.get(ref).generation, ref))

    def current_actor_identity(self) -> str:
        if not self.actor:
            raise IOFailureError("no actor identity configured")
        return self.actor
