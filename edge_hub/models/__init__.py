from .content import LocalContent
from .device import LocalDevice, DeviceStatus
from .student import LocalStudent, StudentStatus
from .activity import LocalActivity

__all__ = [
    "LocalContent",
    "LocalDevice",
    "DeviceStatus",
    "LocalStudent",
    "StudentStatus",
    "LocalActivity",
]
