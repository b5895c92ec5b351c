"""
API endpoints for locally recorded learning activity
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from edge_hub.core.database import get_db
from edge_hub.services.analytics import HubAnalyticsService
from edge_hub.schemas.activity import ActivityCreate, ActivityResponse, EngagementResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/activities", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def record_activity(activity: ActivityCreate, db: AsyncSession = Depends(get_db)):
    """Append an activity event; it is uploaded on the next sync"""
    return await HubAnalyticsService(db).record_activity(**activity.model_dump())


@router.get("/engagement", response_model=EngagementResponse)
async def get_engagement(db: AsyncSession = Depends(get_db)):
    return await HubAnalyticsService(db).get_local_engagement()
