"""
Background task management for sync operations.
"""

from .sync_tasks import (
    SyncScheduler,
    bootstrap_hub
)

__all__ = [
    "SyncScheduler",
    "bootstrap_hub"
]
