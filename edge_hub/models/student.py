from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Enum as SQLEnum
import enum
import uuid

from edge_hub.core.database import Base
from edge_hub.utils.timestamps import utcnow


class StudentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class LocalStudent(Base):
    """A student registered on this hub; student codes are stored uppercase."""

    __tablename__ = "local_students"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_code = Column(String(8), unique=True, index=True, nullable=False)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    grade = Column(String(20), nullable=True)
    age = Column(Integer, nullable=True)

    # "metadata" is reserved on declarative classes
    student_metadata = Column("metadata", JSON, nullable=True)

    status = Column(SQLEnum(StudentStatus), nullable=False, default=StudentStatus.ACTIVE)
    synced = Column(Boolean, default=False, nullable=False)

    cached_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<LocalStudent(id={self.id}, student_code={self.student_code!r}, status={self.status})>"
