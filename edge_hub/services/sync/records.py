"""
Typed records built from a validated cloud payload.

The cloud sends loosely shaped JSON. Batches are checked by the data
validator first and then converted into these records, so reconcilers never
deal with raw dictionaries.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from edge_hub.models.device import DeviceStatus
from edge_hub.models.student import StudentStatus
from edge_hub.utils.timestamps import parse_iso_datetime


def _first_name_of(relations: Any, key: Optional[str] = None) -> Optional[str]:
    """Return ``relations[0][key]['name']`` (or ``relations[0]['name']``) if present."""
    if not isinstance(relations, list) or not relations:
        return None
    first = relations[0]
    if not isinstance(first, dict):
        return None
    if key is not None:
        first = first.get(key)
        if not isinstance(first, dict):
            return None
    name = first.get('name')
    return name if isinstance(name, str) and name else None


def _as_list(value: Any) -> List[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return [value]
        return decoded if isinstance(decoded, list) else [decoded]
    return [value]


def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            return {'raw': value}
        return decoded if isinstance(decoded, dict) else {'value': decoded}
    return {'value': value}


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class ContentRecord:
    """A content item as published by the cloud."""
    cloud_id: str
    title: str
    html_content: str
    description: str = ""
    category: str = "General"
    language: str = "en"
    original_language: Optional[str] = None
    author: str = ""
    age_group: str = ""
    contributor_id: Optional[str] = None
    target_countries: List[Any] = field(default_factory=list)
    comprehension_questions: List[Any] = field(default_factory=list)
    cover_image_url: str = ""
    images: List[Any] = field(default_factory=list)
    local_images: List[Any] = field(default_factory=list)
    updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def remote_timestamp(self) -> Optional[datetime]:
        """Last-modified time on the cloud, falling back to creation time."""
        return self.updated_at or self.created_at

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ContentRecord":
        category = (
            _first_name_of(data.get('contentCategories'), 'category')
            or _first_name_of(data.get('categories'))
            or (data.get('category') if isinstance(data.get('category'), str) else None)
            or "General"
        )
        author = (
            _first_name_of(data.get('contentAuthors'), 'author')
            or (data.get('author') if isinstance(data.get('author'), str) else None)
            or ""
        )
        age_group = data.get('ageGroup')
        if isinstance(age_group, dict):
            age_group = age_group.get('name')

        return cls(
            cloud_id=str(data['id']),
            title=data['title'],
            html_content=data['htmlContent'],
            description=data.get('description') or "",
            category=category,
            language=data.get('language') or data.get('originalLanguage') or "en",
            original_language=_optional_str(data.get('originalLanguage')),
            author=author,
            age_group=str(age_group) if age_group else "",
            contributor_id=_optional_str(data.get('contributorId')),
            target_countries=_as_list(data.get('targetCountries')),
            comprehension_questions=_as_list(data.get('comprehensionQuestions')),
            cover_image_url=data.get('localCoverImageUrl') or data.get('coverImageUrl') or "",
            images=_as_list(data.get('images')),
            local_images=_as_list(data.get('localImages')),
            updated_at=parse_iso_datetime(data.get('updatedAt')),
            created_at=parse_iso_datetime(data.get('createdAt')),
        )

    def column_values(self) -> Dict[str, Any]:
        """Mutable LocalContent columns carried by this record."""
        return {
            'title': self.title,
            'description': self.description,
            'html_content': self.html_content,
            'category': self.category,
            'language': self.language,
            'original_language': self.original_language,
            'author': self.author,
            'age_group': self.age_group,
            'contributor_id': self.contributor_id,
            'target_countries': self.target_countries,
            'comprehension_questions': self.comprehension_questions,
            'cover_image_url': self.cover_image_url,
            'images': self.images,
            'local_images': self.local_images,
        }


@dataclass
class DeviceRecord:
    """A device code provisioned for this hub on the cloud."""
    device_code: str
    hub_id: str
    cloud_id: Optional[str] = None
    name: Optional[str] = None
    status: Optional[DeviceStatus] = None
    device_info: Optional[Dict[str, Any]] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "DeviceRecord":
        status = data.get('status')
        return cls(
            device_code=data['deviceCode'].strip(),
            hub_id=str(data['hubId']),
            cloud_id=_optional_str(data.get('id')),
            name=_optional_str(data.get('name')),
            status=DeviceStatus(status) if status else None,
            device_info=_as_dict(data.get('metadata', data.get('deviceInfo'))),
        )


@dataclass
class StudentRecord:
    """A student enrolled at this hub on the cloud."""
    student_code: str
    hub_id: str
    cloud_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    grade: Optional[str] = None
    age: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
    status: StudentStatus = StudentStatus.ACTIVE

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "StudentRecord":
        status = data.get('status')
        return cls(
            student_code=data['studentCode'].strip().upper(),
            hub_id=str(data['hubId']),
            cloud_id=_optional_str(data.get('id')),
            first_name=_optional_str(data.get('firstName')),
            last_name=_optional_str(data.get('lastName')),
            grade=_optional_str(data.get('grade')),
            age=data.get('age'),
            metadata=_as_dict(data.get('metadata')),
            status=StudentStatus(status) if status else StudentStatus.ACTIVE,
        )
