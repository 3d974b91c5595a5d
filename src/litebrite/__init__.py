"""
litebrite - work item tracking on a git branch

Epics, features and tasks with a dependency graph, stored as one JSON
snapshot that concurrent actors edit and exchange through git.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from litebrite.core.config.models import LitebriteConfig
from litebrite.core.items.models import Document, ItemStatus, ItemType, WorkItem

__all__ = ["Document", "ItemStatus", "ItemType", "LitebriteConfig", "WorkItem", "__version__"]
