"""
Pydantic schemas for local analytics endpoints.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Any
from datetime import datetime


class ActivityCreate(BaseModel):
    """A learning event reported by a device."""
    session_id: str = Field(..., min_length=1, max_length=100)
    content_id: str = Field(..., min_length=1, max_length=64)
    time_spent: int = Field(default=0, ge=0)
    device_id: Optional[str] = None
    student_id: Optional[str] = None
    event_type: Optional[str] = Field(None, max_length=50)
    event_data: Optional[Any] = None
    quiz_score: Optional[int] = Field(None, ge=0, le=100)
    module_completed: bool = False


class ActivityResponse(BaseModel):
    id: str
    session_id: str
    content_id: str
    device_id: Optional[str] = None
    student_id: Optional[str] = None
    event_type: Optional[str] = None
    event_data: Optional[Any] = None
    time_spent: int
    quiz_score: Optional[int] = None
    module_completed: bool
    synced: bool
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class EngagementResponse(BaseModel):
    total_sessions: int
    completed_sessions: int
    completion_rate: float
    avg_time_spent: float
