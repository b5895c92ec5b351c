"""
API endpoints for device registration and heartbeats
"""

from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from edge_hub.core.database import get_db
from edge_hub.services.devices import DeviceService, DeviceNotFoundError, NoAvailableDeviceError
from edge_hub.schemas.device import (
    DeviceRegisterRequest,
    DeviceAutoRegisterRequest,
    DeviceResponse,
    DeviceStatsResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=DeviceResponse)
async def register_device(
    request: DeviceRegisterRequest,
    db: AsyncSession = Depends(get_db)
):
    """Register a device against a code synced from the cloud"""
    try:
        return await DeviceService(db).register_device(request.device_code, request.device_info)
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/auto-register", response_model=DeviceResponse)
async def auto_register_device(
    request: DeviceAutoRegisterRequest,
    db: AsyncSession = Depends(get_db)
):
    """Assign the next free device code to the calling device"""
    try:
        return await DeviceService(db).auto_register_device(request.device_info)
    except NoAvailableDeviceError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{device_code}/heartbeat")
async def device_heartbeat(device_code: str, db: AsyncSession = Depends(get_db)):
    if not await DeviceService(db).update_last_seen(device_code):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return {"device_code": device_code, "status": "ok"}


@router.get("/stats", response_model=DeviceStatsResponse)
async def get_device_stats(db: AsyncSession = Depends(get_db)):
    try:
        return await DeviceService(db).get_device_stats()
    except Exception as e:
        logger.error(f"Failed to get device stats: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get device stats: {str(e)}"
        )
