from sqlalchemy import Column, String, Boolean, DateTime, JSON, Enum as SQLEnum
import enum
import uuid

from edge_hub.core.database import Base
from edge_hub.utils.timestamps import utcnow


class DeviceStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class LocalDevice(Base):
    """A learner device known to this hub."""

    __tablename__ = "local_devices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    device_code = Column(String(16), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    status = Column(SQLEnum(DeviceStatus), nullable=False, default=DeviceStatus.PENDING)

    # Write-once: set by the device-initiated registration, never by sync
    registered_at = Column(DateTime, nullable=True)
    last_seen = Column(DateTime, nullable=True)

    device_info = Column(JSON, nullable=True)
    synced = Column(Boolean, default=False, nullable=False)

    cached_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_registered(self) -> bool:
        return self.registered_at is not None and self.status == DeviceStatus.ACTIVE

    def __repr__(self):
        return f"<LocalDevice(id={self.id}, device_code={self.device_code!r}, status={self.status})>"
