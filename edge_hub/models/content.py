from sqlalchemy import Column, Integer, String, DateTime, Text, JSON

from edge_hub.core.database import Base
from edge_hub.utils.timestamps import utcnow


class LocalContent(Base):
    """Educational content mirrored from the cloud."""

    __tablename__ = "local_content"

    id = Column(Integer, primary_key=True, index=True)
    cloud_id = Column(String(64), unique=True, index=True, nullable=True)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    html_content = Column(Text, nullable=False)

    category = Column(String(255), nullable=False, default="General")
    language = Column(String(20), nullable=False, default="en")
    original_language = Column(String(20), nullable=True)
    author = Column(String(255), nullable=True)
    age_group = Column(String(100), nullable=True)
    contributor_id = Column(String(64), nullable=True)

    # Structured sub-records
    target_countries = Column(JSON, nullable=True)  # list of country codes
    comprehension_questions = Column(JSON, nullable=True)  # list of question objects

    # Image references: remote URLs and locally cached paths
    cover_image_url = Column(String(1000), nullable=True)
    images = Column(JSON, nullable=True)
    local_images = Column(JSON, nullable=True)

    # Timestamps
    cached_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)  # last modified on the cloud

    def __repr__(self):
        return f"<LocalContent(id={self.id}, cloud_id={self.cloud_id!r}, title={self.title!r})>"
