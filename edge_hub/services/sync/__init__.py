"""
Cloud Synchronization Engine

Pulls authoritative state from the cloud and merges it into the hub's local
store, then pushes locally recorded analytics back.

Components:
- Batch validation of the cloud payload
- Reconcilers for content, devices and students
- Analytics upload with all-or-nothing marking
- Orchestration with partial-failure aggregation and health reporting
- Startup and on-demand integrity checks
"""

from .orchestrator import SyncOrchestrator, classify_run
from .results import (
    EntitySyncResult,
    SyncDetails,
    SyncResult,
    SyncStatus,
    HealthStatus,
    HealthLevel,
    SyncOutcome
)
from .content_sync import ContentReconciler, check_removal_safety
from .device_sync import DeviceReconciler
from .student_sync import StudentReconciler
from .analytics_uploader import AnalyticsUploader
from .cloud_client import CloudClient
from .integrity import IntegrityChecker, IntegrityReport
from .data_validator import (
    ValidationResult,
    validate_content_data,
    validate_devices_data,
    validate_students_data
)
from .errors import (
    SyncError,
    TransientNetworkError,
    CloudAPIError,
    SafetyGateViolation,
    PersistenceError,
    IntegrityWarning
)

__all__ = [
    # Orchestration
    'SyncOrchestrator',
    'classify_run',
    'EntitySyncResult',
    'SyncDetails',
    'SyncResult',
    'SyncStatus',
    'HealthStatus',
    'HealthLevel',
    'SyncOutcome',

    # Reconcilers and upload
    'ContentReconciler',
    'check_removal_safety',
    'DeviceReconciler',
    'StudentReconciler',
    'AnalyticsUploader',
    'CloudClient',
    'IntegrityChecker',
    'IntegrityReport',

    # Validation
    'ValidationResult',
    'validate_content_data',
    'validate_devices_data',
    'validate_students_data',

    # Errors
    'SyncError',
    'TransientNetworkError',
    'CloudAPIError',
    'SafetyGateViolation',
    'PersistenceError',
    'IntegrityWarning'
]
