"""
Pydantic schemas for device registration endpoints.
"""

from pydantic import BaseModel, Field, validator, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime

from edge_hub.models.device import DeviceStatus
from edge_hub.services.sync.data_validator import is_valid_device_code


class DeviceRegisterRequest(BaseModel):
    """A device claiming its pre-provisioned code."""
    device_code: str = Field(..., min_length=6, max_length=8)
    device_info: Optional[Dict[str, Any]] = None

    @validator('device_code')
    def validate_device_code(cls, v):
        v = v.strip()
        if not is_valid_device_code(v):
            raise ValueError('Device code must be 6-8 letters or digits')
        return v


class DeviceAutoRegisterRequest(BaseModel):
    """A device asking the hub to hand it any free code."""
    device_info: Optional[Dict[str, Any]] = None


class DeviceResponse(BaseModel):
    id: str
    device_code: str
    name: Optional[str] = None
    status: DeviceStatus
    registered_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    device_info: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)


class DeviceStatsResponse(BaseModel):
    total_devices: int
    active_devices: int
    registered_devices: int
    pending_devices: int
    last_activity: Optional[datetime] = None
