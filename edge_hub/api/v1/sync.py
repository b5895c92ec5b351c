"""
API endpoints for hub status and cloud sync control
"""

from fastapi import APIRouter, HTTPException, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from edge_hub.core.config import settings
from edge_hub.core.database import get_db
from edge_hub.services.analytics import HubAnalyticsService
from edge_hub.services.sync import SyncOrchestrator
from edge_hub.schemas.sync import (
    SyncResultResponse,
    SyncStatusResponse,
    SyncStatsResponse,
    HealthStatusResponse,
    IntegrityReportResponse,
    HubStatusResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """The orchestrator owned by the running application."""
    return request.app.state.orchestrator


@router.get("/status", response_model=HubStatusResponse)
async def get_hub_status(
    db: AsyncSession = Depends(get_db),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator)
):
    """Hub overview: sync statistics, health, storage and local engagement"""
    try:
        return {
            'hub_id': settings.HUB_ID,
            'sync': orchestrator.get_sync_stats(),
            'health': orchestrator.get_health_status().to_dict(),
            'storage': await orchestrator.get_storage_stats(),
            'engagement': await HubAnalyticsService(db).get_local_engagement(),
        }
    except Exception as e:
        logger.error(f"Failed to get hub status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get hub status: {str(e)}"
        )


@router.post("/sync", response_model=SyncResultResponse)
async def trigger_sync(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Force an immediate full sync"""
    result = await orchestrator.force_sync_now()
    logger.info(f"Manual sync finished: success={result.success}, synced={result.synced}")
    return result.to_dict()


@router.get("/sync/status", response_model=SyncStatusResponse)
async def get_sync_status(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_sync_status().to_dict()


@router.get("/sync/stats", response_model=SyncStatsResponse)
async def get_sync_stats(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_sync_stats()


@router.get("/sync/history", response_model=List[SyncResultResponse])
async def get_sync_history(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Recent sync results, oldest first"""
    return [result.to_dict() for result in orchestrator.get_sync_history()]


@router.get("/sync/health", response_model=HealthStatusResponse)
async def get_sync_health(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_health_status().to_dict()


@router.post("/integrity", response_model=IntegrityReportResponse)
async def run_integrity_check(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Run the integrity check plus the post-sync completeness check"""
    report = await orchestrator.integrity_checker.check()
    data = report.to_dict()
    data['completeness'] = await orchestrator.validate_sync_completeness()
    return data
