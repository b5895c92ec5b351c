"""
Pydantic schemas for hub sync endpoints
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Any, Optional
from enum import Enum


class HealthLevel(str, Enum):
    """Sync health classification"""
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class EntitySyncResultResponse(BaseModel):
    success: bool
    count: int = 0
    errors: Optional[List[str]] = None


class SyncDetailsResponse(BaseModel):
    content: EntitySyncResultResponse
    devices: EntitySyncResultResponse
    students: EntitySyncResultResponse
    analytics: EntitySyncResultResponse


class SyncResultResponse(BaseModel):
    """Outcome of one sync run"""
    success: bool
    synced: int
    duration: float = Field(description="Run duration in milliseconds")
    errors: List[str] = []
    partial_sync: bool = False
    sync_details: Optional[SyncDetailsResponse] = None
    started_at: Optional[str] = None


class SyncStatusResponse(BaseModel):
    is_running: bool
    last_sync: Optional[str] = None
    last_successful_sync: Optional[str] = None
    consecutive_failures: int
    total_syncs: int
    successful_syncs: int
    failed_syncs: int
    partial_syncs: int
    average_duration: float
    last_sync_result: Optional[SyncResultResponse] = None


class SyncStatsResponse(SyncStatusResponse):
    success_rate: float
    history_size: int


class HealthStatusResponse(BaseModel):
    status: HealthLevel
    message: str
    details: Dict[str, Any] = {}


class IntegrityReportResponse(BaseModel):
    """Startup / on-demand integrity check result"""
    is_healthy: bool
    issues: List[str] = []
    stats: Dict[str, Any] = {}
    needs_full_resync: bool = False
    completeness: Optional[Dict[str, Any]] = None


class StorageStatsResponse(BaseModel):
    total_content: int
    recent_content: int
    storage_used: int = Field(description="Total HTML size in characters")


class HubStatusResponse(BaseModel):
    hub_id: str
    sync: SyncStatsResponse
    health: HealthStatusResponse
    storage: StorageStatsResponse
    engagement: Dict[str, Any]
