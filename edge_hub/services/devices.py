"""
Device Service

Persistence for learner devices: device-initiated registration and
heartbeats, plus the lookups and bulk updates used by device sync.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from edge_hub.models.device import LocalDevice, DeviceStatus
from edge_hub.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class DeviceNotFoundError(Exception):
    """The device code is not provisioned on this hub."""
    pass


class NoAvailableDeviceError(Exception):
    """No pending device code is left for auto-registration."""
    pass


class DeviceService:
    """Store for LocalDevice rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_device_by_code(self, device_code: str) -> Optional[LocalDevice]:
        result = await self.db.execute(
            select(LocalDevice).where(LocalDevice.device_code == device_code)
        )
        return result.scalar_one_or_none()

    async def register_device(
        self,
        device_code: str,
        device_info: Optional[Dict[str, Any]] = None
    ) -> LocalDevice:
        """
        Register a device against a code provisioned by the cloud.

        Args:
            device_code: Code the device was configured with
            device_info: Optional device metadata reported by the device

        Returns:
            The registered device

        Raises:
            DeviceNotFoundError: If the code is unknown to this hub
        """
        device = await self.get_device_by_code(device_code.strip())
        if not device:
            raise DeviceNotFoundError(
                "Device code not found. Please ensure the device is configured for this hub."
            )

        now = utcnow()
        if device.status == DeviceStatus.ACTIVE and device.registered_at:
            logger.debug(f"Device {device.device_code} already registered, refreshing last seen")
        else:
            device.status = DeviceStatus.ACTIVE
            if device.registered_at is None:
                device.registered_at = now
            logger.info(f"Registered device {device.device_code}")

        device.last_seen = now
        if device_info:
            device.device_info = device_info

        await self.db.commit()
        await self.db.refresh(device)
        return device

    async def auto_register_device(self, device_info: Optional[Dict[str, Any]] = None) -> LocalDevice:
        """Claim the oldest pending, never-registered device code."""
        result = await self.db.execute(
            select(LocalDevice)
            .where(
                and_(
                    LocalDevice.status == DeviceStatus.PENDING,
                    LocalDevice.registered_at.is_(None)
                )
            )
            .order_by(LocalDevice.cached_at.asc())
            .limit(1)
        )
        device = result.scalar_one_or_none()
        if not device:
            raise NoAvailableDeviceError(
                "No available device codes. Please contact your administrator to create more device codes."
            )

        now = utcnow()
        device.status = DeviceStatus.ACTIVE
        device.registered_at = now
        device.last_seen = now
        if device_info:
            device.device_info = device_info

        await self.db.commit()
        await self.db.refresh(device)
        logger.info(f"Auto-registered device {device.device_code}")
        return device

    async def update_last_seen(self, device_code: str) -> bool:
        result = await self.db.execute(
            update(LocalDevice)
            .where(LocalDevice.device_code == device_code)
            .values(last_seen=utcnow())
        )
        await self.db.commit()
        return result.rowcount > 0

    async def get_device_auth_info(self, device_code: str) -> Dict[str, Any]:
        device = await self.get_device_by_code(device_code)
        return {
            'is_valid': device is not None,
            'is_registered': bool(device and device.is_registered),
            'device': device,
        }

    async def is_device_authenticated(self, device_code: str) -> bool:
        info = await self.get_device_auth_info(device_code)
        return info['is_registered']

    async def find_devices_not_in_list(self, device_codes: Iterable[str]) -> List[LocalDevice]:
        """Devices whose code is absent from ``device_codes``."""
        codes = list(device_codes)
        query = select(LocalDevice)
        if codes:
            query = query.where(LocalDevice.device_code.not_in(codes))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def deactivate_devices(self, device_ids: List[str]) -> int:
        if not device_ids:
            return 0
        result = await self.db.execute(
            update(LocalDevice)
            .where(LocalDevice.id.in_(device_ids))
            .values(status=DeviceStatus.INACTIVE, updated_at=utcnow())
        )
        await self.db.commit()
        return result.rowcount

    async def remove_devices(self, device_ids: List[str]) -> int:
        if not device_ids:
            return 0
        result = await self.db.execute(
            delete(LocalDevice).where(LocalDevice.id.in_(device_ids))
        )
        await self.db.commit()
        return result.rowcount

    async def count(self) -> int:
        result = await self.db.execute(select(func.count(LocalDevice.id)))
        return result.scalar_one()

    async def get_device_stats(self) -> Dict[str, Any]:
        total = await self.count()

        result = await self.db.execute(
            select(func.count(LocalDevice.id)).where(LocalDevice.status == DeviceStatus.ACTIVE)
        )
        active = result.scalar_one()

        result = await self.db.execute(
            select(func.count(LocalDevice.id)).where(
                and_(
                    LocalDevice.status == DeviceStatus.ACTIVE,
                    LocalDevice.registered_at.is_not(None)
                )
            )
        )
        registered = result.scalar_one()

        result = await self.db.execute(
            select(func.count(LocalDevice.id)).where(LocalDevice.status == DeviceStatus.PENDING)
        )
        pending = result.scalar_one()

        result = await self.db.execute(select(func.max(LocalDevice.last_seen)))
        last_activity = result.scalar_one_or_none()

        return {
            'total_devices': total,
            'active_devices': active,
            'registered_devices': registered,
            'pending_devices': pending,
            'last_activity': last_activity,
        }
