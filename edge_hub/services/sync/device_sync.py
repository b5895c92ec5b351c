"""
Device reconciler.

Applies the cloud's authoritative device list to the local registry. Devices
are upserted by code; devices the cloud no longer lists are deactivated (or
deleted when the hub runs with ``DEVICE_REMOVAL_POLICY=delete``).
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from edge_hub.core.config import settings
from edge_hub.models.device import LocalDevice, DeviceStatus
from edge_hub.services.devices import DeviceService
from edge_hub.services.sync.conflicts import detect_recent_activity, log_conflicts
from edge_hub.services.sync.data_validator import validate_devices_data
from edge_hub.services.sync.errors import PersistenceError
from edge_hub.services.sync.records import DeviceRecord
from edge_hub.services.sync.results import EntitySyncResult

logger = logging.getLogger(__name__)


class DeviceReconciler:
    """Merges a cloud device batch into the local device table."""

    def __init__(
        self,
        session_factory,
        removal_policy: Optional[str] = None,
        conflict_window_hours: Optional[float] = None
    ):
        self.session_factory = session_factory
        self.removal_policy = removal_policy or settings.DEVICE_REMOVAL_POLICY
        self.conflict_window_hours = conflict_window_hours or settings.SYNC_CONFLICT_WINDOW_HOURS

    async def reconcile(self, devices: Any) -> EntitySyncResult:
        validation = validate_devices_data(devices)
        if not validation.is_valid:
            logger.warning(f"Device data validation failed: {validation.errors}")
            return EntitySyncResult.failed(*validation.errors)

        if not devices:
            logger.info("No devices to sync")
            return EntitySyncResult(success=True, count=0)

        records = [DeviceRecord.from_payload(item) for item in devices]

        try:
            applied = await self._upsert(records)
        except PersistenceError as e:
            logger.error(f"Device upsert failed: {e}")
            return EntitySyncResult.failed(str(e))

        errors = []
        try:
            await self._handle_removed(records)
        except PersistenceError as e:
            logger.error(f"Device cleanup failed: {e}")
            errors.append(str(e))

        logger.info(f"Synced {applied} devices from cloud")
        return EntitySyncResult(success=not errors, count=applied, errors=errors)

    async def _upsert(self, records: List[DeviceRecord]) -> int:
        async with self.session_factory() as db:
            try:
                result = await db.execute(
                    select(LocalDevice).where(
                        LocalDevice.device_code.in_([r.device_code for r in records])
                    )
                )
                by_code: Dict[str, LocalDevice] = {d.device_code: d for d in result.scalars().all()}

                for record in records:
                    device = by_code.get(record.device_code)
                    if device is None:
                        # registered_at stays unset until the device registers itself
                        device = LocalDevice(
                            device_code=record.device_code,
                            name=record.name,
                            status=record.status or DeviceStatus.PENDING,
                            device_info=record.device_info,
                            synced=True
                        )
                        db.add(device)
                        by_code[record.device_code] = device
                        logger.debug(f"Created device {record.device_code}")
                    else:
                        if record.name is not None:
                            device.name = record.name
                        if record.status is not None:
                            device.status = record.status
                        if record.device_info is not None:
                            device.device_info = record.device_info
                        device.synced = True
                        logger.debug(f"Updated device {record.device_code}")

                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Failed to save devices: {e}") from e

        return len(records)

    async def _handle_removed(self, records: List[DeviceRecord]) -> int:
        cloud_codes = {r.device_code for r in records}

        async with self.session_factory() as db:
            service = DeviceService(db)
            try:
                removed = await service.find_devices_not_in_list(cloud_codes)
                if self.removal_policy != "delete":
                    removed = [d for d in removed if d.status != DeviceStatus.INACTIVE]
                if not removed:
                    return 0

                conflicts = detect_recent_activity(
                    "device", removed, "device_code", "last_seen", self.conflict_window_hours
                )
                log_conflicts(conflicts, "devices", "last seen")

                device_ids = [d.id for d in removed]
                if self.removal_policy == "delete":
                    count = await service.remove_devices(device_ids)
                    logger.info(f"Removed {count} devices no longer in cloud")
                else:
                    count = await service.deactivate_devices(device_ids)
                    logger.info(f"Deactivated {count} devices no longer in cloud")
                return count
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Device cleanup failed: {e}") from e
