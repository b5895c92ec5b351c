"""
Result types reported by the sync engine.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from edge_hub.utils.timestamps import to_iso_z


class SyncOutcome(str, enum.Enum):
    """Classification of a finished run."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class HealthLevel(str, enum.Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class EntitySyncResult:
    """Outcome of one sub-operation (a reconciler or the analytics upload)."""
    success: bool
    count: int = 0
    errors: List[str] = field(default_factory=list)

    @classmethod
    def failed(cls, *errors: str) -> "EntitySyncResult":
        return cls(success=False, count=0, errors=list(errors))

    def to_dict(self) -> Dict[str, Any]:
        data = {'success': self.success, 'count': self.count}
        if self.errors:
            data['errors'] = list(self.errors)
        return data


@dataclass
class SyncDetails:
    content: EntitySyncResult = field(default_factory=lambda: EntitySyncResult(success=False))
    devices: EntitySyncResult = field(default_factory=lambda: EntitySyncResult(success=False))
    students: EntitySyncResult = field(default_factory=lambda: EntitySyncResult(success=False))
    analytics: EntitySyncResult = field(default_factory=lambda: EntitySyncResult(success=False))

    def items(self):
        return [
            ('content', self.content),
            ('devices', self.devices),
            ('students', self.students),
            ('analytics', self.analytics),
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {name: result.to_dict() for name, result in self.items()}


@dataclass
class SyncResult:
    """Aggregate outcome of one orchestrated run."""
    success: bool = False
    synced: int = 0
    duration: float = 0.0  # milliseconds
    errors: List[str] = field(default_factory=list)
    partial_sync: bool = False
    sync_details: Optional[SyncDetails] = None
    started_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'synced': self.synced,
            'duration': self.duration,
            'errors': list(self.errors),
            'partial_sync': self.partial_sync,
            'sync_details': self.sync_details.to_dict() if self.sync_details else None,
            'started_at': to_iso_z(self.started_at),
        }


@dataclass
class SyncStatus:
    """Point-in-time view of the orchestrator's running state and counters."""
    is_running: bool
    last_sync: Optional[datetime]
    last_successful_sync: Optional[datetime]
    consecutive_failures: int
    total_syncs: int
    successful_syncs: int
    failed_syncs: int
    partial_syncs: int
    average_duration: float
    last_sync_result: Optional[SyncResult]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_running': self.is_running,
            'last_sync': to_iso_z(self.last_sync),
            'last_successful_sync': to_iso_z(self.last_successful_sync),
            'consecutive_failures': self.consecutive_failures,
            'total_syncs': self.total_syncs,
            'successful_syncs': self.successful_syncs,
            'failed_syncs': self.failed_syncs,
            'partial_syncs': self.partial_syncs,
            'average_duration': self.average_duration,
            'last_sync_result': self.last_sync_result.to_dict() if self.last_sync_result else None,
        }


@dataclass
class HealthStatus:
    status: HealthLevel
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status.value, 'message': self.message, 'details': self.details}
