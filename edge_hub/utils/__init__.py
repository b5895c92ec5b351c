"""
Utility modules for the Edge Hub.
"""

from .timestamps import (
    utcnow,
    parse_iso_datetime,
    is_iso_datetime,
    to_iso_z
)

__all__ = [
    "utcnow",
    "parse_iso_datetime",
    "is_iso_datetime",
    "to_iso_z"
]
