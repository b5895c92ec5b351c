"""
Data Validation Service

Shape, type and range checks for cloud batches before they reach a
reconciler. Every violation in a batch is reported, not just the first one,
and validation never raises: a failing batch is rejected as a whole for its
entity kind only.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Sequence, Tuple, Type, Union

from edge_hub.utils.timestamps import is_iso_datetime

logger = logging.getLogger(__name__)


DEVICE_CODE_PATTERN = re.compile(r'^[A-Z0-9]{6,8}$', re.IGNORECASE)
STUDENT_CODE_PATTERN = re.compile(r'^[A-Z0-9]{4,6}$', re.IGNORECASE)

DEVICE_STATUSES = ('pending', 'active', 'inactive')
STUDENT_STATUSES = ('active', 'inactive')

MAX_HTML_CONTENT_BYTES = 1_000_000
STUDENT_MIN_AGE = 3
STUDENT_MAX_AGE = 18

_TYPE_NAMES = {str: 'string', dict: 'object', list: 'array'}


@dataclass
class ValidationResult:
    """Result of validating one batch."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'valid': self.is_valid, 'errors': list(self.errors)}


@dataclass
class FieldRule:
    """Declarative constraints for one field of an incoming record."""
    field_name: str
    required: bool = False
    expected_type: Optional[Union[Type, Tuple[Type, ...]]] = None
    pattern: Optional[Pattern] = None
    allowed: Optional[Sequence[str]] = None
    value_range: Optional[Tuple[float, float]] = None
    max_bytes: Optional[int] = None
    is_date: bool = False
    unique: bool = False


DEVICE_RULES = [
    FieldRule('id', required=True, expected_type=str),
    FieldRule('deviceCode', required=True, expected_type=str, pattern=DEVICE_CODE_PATTERN),
    FieldRule('hubId', required=True),
    FieldRule('name', expected_type=str),
    FieldRule('status', allowed=DEVICE_STATUSES),
]

STUDENT_RULES = [
    FieldRule('id', required=True, expected_type=str),
    FieldRule('studentCode', required=True, expected_type=str, pattern=STUDENT_CODE_PATTERN),
    FieldRule('hubId', required=True),
    FieldRule('age', value_range=(STUDENT_MIN_AGE, STUDENT_MAX_AGE)),
    FieldRule('status', allowed=STUDENT_STATUSES),
    FieldRule('updatedAt', is_date=True),
]

CONTENT_RULES = [
    FieldRule('id', required=True, expected_type=str, unique=True),
    FieldRule('title', required=True, expected_type=str),
    FieldRule('htmlContent', required=True, expected_type=str, max_bytes=MAX_HTML_CONTENT_BYTES),
    FieldRule('updatedAt', is_date=True),
    FieldRule('createdAt', is_date=True),
]


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_field(rule: FieldRule, value: Any, label: str) -> List[str]:
    """Return every violation of ``rule`` by ``value``."""
    errors = []

    if _is_missing(value):
        if rule.required:
            errors.append(f"{label} missing required field: {rule.field_name}")
        return errors

    if rule.expected_type is not None and not isinstance(value, rule.expected_type):
        type_name = _TYPE_NAMES.get(rule.expected_type, getattr(rule.expected_type, '__name__', 'value'))
        errors.append(f"{label} has invalid {rule.field_name} type (expected {type_name})")
        # Format checks below only make sense on a correctly typed value
        return errors

    if rule.pattern is not None and not rule.pattern.fullmatch(value):
        errors.append(f"{label} has invalid {rule.field_name} format: {value}")

    if rule.allowed is not None and value not in rule.allowed:
        errors.append(f"{label} has invalid {rule.field_name}: {value}")

    if rule.value_range is not None:
        low, high = rule.value_range
        if not _is_number(value) or value < low or value > high:
            errors.append(f"{label} has invalid {rule.field_name}: {value} (must be {low}-{high})")

    if rule.max_bytes is not None:
        size = len(value.encode('utf-8'))
        if size > rule.max_bytes:
            errors.append(f"{label} exceeds size limit ({size} bytes)")

    if rule.is_date and not is_iso_datetime(value):
        errors.append(f"{label} has invalid {rule.field_name} date: {value}")

    return errors


def _validate_batch(items: Any, rules: List[FieldRule], noun: str, plural: str) -> ValidationResult:
    if not isinstance(items, list):
        return ValidationResult(is_valid=False, errors=[f"{plural} data must be an array"])

    errors: List[str] = []
    seen: Dict[str, set] = {rule.field_name: set() for rule in rules if rule.unique}
    for index, item in enumerate(items):
        label = f"{noun} at index {index}"
        if not isinstance(item, dict):
            errors.append(f"{label} is not a valid object")
            continue
        for rule in rules:
            value = item.get(rule.field_name)
            errors.extend(_check_field(rule, value, label))
            if rule.unique and isinstance(value, str) and value:
                if value in seen[rule.field_name]:
                    errors.append(f"{label} has duplicate {rule.field_name}: {value}")
                seen[rule.field_name].add(value)

    if errors:
        logger.debug(f"{plural} batch failed validation with {len(errors)} errors")
    return ValidationResult(is_valid=not errors, errors=errors)


def validate_devices_data(devices: Any) -> ValidationResult:
    """Validate a device batch from the cloud."""
    return _validate_batch(devices, DEVICE_RULES, "Device", "Devices")


def validate_students_data(students: Any) -> ValidationResult:
    """Validate a student batch from the cloud."""
    return _validate_batch(students, STUDENT_RULES, "Student", "Students")


def validate_content_data(content: Any) -> ValidationResult:
    """Validate a content batch from the cloud."""
    return _validate_batch(content, CONTENT_RULES, "Content", "Content")


def is_valid_student_code(code: str) -> bool:
    return isinstance(code, str) and bool(STUDENT_CODE_PATTERN.fullmatch(code.strip()))


def is_valid_device_code(code: str) -> bool:
    return isinstance(code, str) and bool(DEVICE_CODE_PATTERN.fullmatch(code.strip()))
