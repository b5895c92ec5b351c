from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Index
import uuid

from edge_hub.core.database import Base
from edge_hub.utils.timestamps import utcnow


class LocalActivity(Base):
    """
    Append-only learning event recorded on the hub.

    device_id / student_id are weak references: the device or student may
    have been removed since the event was recorded. Rows are never updated
    after creation except to flip ``synced``.
    """

    __tablename__ = "local_activity"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(100), nullable=False, index=True)
    content_id = Column(String(64), nullable=False, index=True)
    device_id = Column(String(36), nullable=True)
    student_id = Column(String(36), nullable=True)

    event_type = Column(String(50), nullable=True)  # reading, quiz, navigation, ...
    event_data = Column(JSON, nullable=True)

    time_spent = Column(Integer, nullable=False, default=0)  # seconds
    quiz_score = Column(Integer, nullable=True)  # 0-100
    module_completed = Column(Boolean, default=False, nullable=False)

    synced = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_activity_synced_timestamp', 'synced', 'timestamp'),
    )

    def __repr__(self):
        return f"<LocalActivity(id={self.id}, session_id={self.session_id!r}, synced={self.synced})>"
