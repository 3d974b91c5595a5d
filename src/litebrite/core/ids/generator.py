"""
Short id generation for work items.

Ids look like ``lb-k3x9``: a prefix followed by base36 characters taken
from a SHA-256 digest of the title, the current time in nanoseconds and a
retry nonce. Collisions with existing ids are retried with the next nonce,
up to MAX_ATTEMPTS times.

Example:
    >>> new_id = generate_id("Write parser", existing={"lb-0000"})
    >>> new_id.startswith("lb-"), len(new_id)
    (True, 7)
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable, Collection

from litebrite.core.exceptions import IdExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "lb-"
DEFAULT_LENGTH = 4
MAX_ATTEMPTS = 1000

BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(digest: bytes, length: int) -> str:
    """Map digest bytes onto *length* base36 characters, cycling if needed."""
    return "".join(BASE36[digest[i % len(digest)] % 36] for i in range(length))


def generate_id(
    title: str,
    existing: Collection[str],
    *,
    prefix: str = DEFAULT_PREFIX,
    length: int = DEFAULT_LENGTH,
    max_attempts: int = MAX_ATTEMPTS,
    clock_ns: Callable[[], int] = time.time_ns,
) -> str:
    """
    Generate a fresh item id not present in *existing*.

    Args:
        title: Title of the new item, mixed into the hash
        existing: Ids already in use
        prefix: Id prefix (default "lb-")
        length: Number of base36 characters after the prefix
        max_attempts: Upper bound on collision retries
        clock_ns: Nanosecond clock, injectable for tests

    Returns:
        An id not contained in *existing*.

    Raises:
        IdExhaustedError: If every attempt collided.
    """
    for nonce in range(max_attempts):
        hasher = hashlib.sha256()
        hasher.update(title.encode("utf-8"))
        hasher.update(clock_ns().to_bytes(8, "little", signed=True))
        hasher.update(nonce.to_bytes(4, "little"))
        candidate = f"{prefix}{to_base36(hasher.digest(), length)}"
        if candidate not in existing:
            return candidate
        logger.debug("Id collision on %s (attempt %d)", candidate, nonce + 1)

    raise IdExhaustedError(
        f"could not generate a unique id after {max_attempts} attempts",
        attempts=max_attempts,
    )
