"""
Id generation for work items.

Public API:
    - generate_id: Generate a fresh, collision-retried ``lb-xxxx`` id
    - MAX_ATTEMPTS: Default bound on collision retries
"""

from litebrite.core.ids.generator import DEFAULT_PREFIX, MAX_ATTEMPTS, generate_id

__all__ = ["DEFAULT_PREFIX", "MAX_ATTEMPTS", "generate_id"]
