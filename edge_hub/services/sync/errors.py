"""
Error taxonomy for the sync engine.

Sub-operation errors are folded into per-entity results by the orchestrator;
only a failed cloud fetch ends a run early.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base class for sync engine errors."""
    pass


class TransientNetworkError(SyncError):
    """Timeout or connection failure talking to the cloud."""
    pass


class CloudAPIError(SyncError):
    """The cloud answered with a non-2xx status or an unusable body."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class SafetyGateViolation(SyncError):
    """Content cleanup would remove a suspicious share of local content."""

    def __init__(self, removal_count: int, local_count: int, cloud_count: int):
        self.removal_count = removal_count
        self.local_count = local_count
        self.cloud_count = cloud_count
        self.removal_percentage = (removal_count / local_count) * 100 if local_count else 0.0
        super().__init__(
            f"Attempted to remove {self.removal_percentage:.1f}% of content "
            f"({removal_count}/{local_count}) while cloud only has {cloud_count} items"
        )


class PersistenceError(SyncError):
    """Storage failure during a read or write."""
    pass


@dataclass
class IntegrityWarning:
    """A suspicious-but-non-fatal finding from an integrity check."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message
