"""
Tests for the device reconciler.
"""

import logging
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from edge_hub.models.device import LocalDevice, DeviceStatus
from edge_hub.services.devices import DeviceService
from edge_hub.services.sync.device_sync import DeviceReconciler
from edge_hub.utils.timestamps import utcnow


async def _all_devices(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(LocalDevice).order_by(LocalDevice.device_code))
        return {d.device_code: d for d in result.scalars().all()}


async def _add_device(session_factory, **kwargs):
    async with session_factory() as db:
        device = LocalDevice(**kwargs)
        db.add(device)
        await db.commit()
        return device


class TestDeviceReconciler:

    @pytest.mark.asyncio
    async def test_inserts_new_devices_unregistered(self, session_factory, device_payload):
        reconciler = DeviceReconciler(session_factory)

        result = await reconciler.reconcile([
            device_payload("ABC123", metadata={"model": "T1"}),
            device_payload("DEF456", status="active")
        ])

        assert result.success
        assert result.count == 2
        devices = await _all_devices(session_factory)
        assert devices["ABC123"].status == DeviceStatus.PENDING
        assert devices["ABC123"].device_info == {"model": "T1"}
        assert devices["ABC123"].synced is True
        assert devices["ABC123"].registered_at is None
        assert devices["DEF456"].status == DeviceStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_registered_at_is_never_overwritten(self, session_factory, device_payload):
        registered_at = datetime(2024, 1, 5, 8, 30)
        await _add_device(
            session_factory,
            device_code="ABC123",
            name="Old name",
            status=DeviceStatus.ACTIVE,
            registered_at=registered_at
        )
        reconciler = DeviceReconciler(session_factory)

        result = await reconciler.reconcile([
            device_payload("ABC123", name="New name", status="pending", registeredAt=None)
        ])

        assert result.success
        device = (await _all_devices(session_factory))["ABC123"]
        assert device.registered_at == registered_at
        assert device.name == "New name"
        assert device.status == DeviceStatus.PENDING
        assert device.synced is True

    @pytest.mark.asyncio
    async def test_same_batch_twice_is_idempotent(self, session_factory, device_payload):
        reconciler = DeviceReconciler(session_factory)
        batch = [device_payload("ABC123"), device_payload("DEF456")]

        await reconciler.reconcile(batch)
        first = {
            code: (d.id, d.name, d.status, d.updated_at)
            for code, d in (await _all_devices(session_factory)).items()
        }
        await reconciler.reconcile(batch)
        second = {
            code: (d.id, d.name, d.status, d.updated_at)
            for code, d in (await _all_devices(session_factory)).items()
        }

        assert first == second

    @pytest.mark.asyncio
    async def test_duplicate_codes_in_batch_do_not_create_duplicates(self, session_factory, device_payload):
        reconciler = DeviceReconciler(session_factory)

        result = await reconciler.reconcile([
            device_payload("ABC123", name="First"),
            device_payload("ABC123", name="Second")
        ])

        assert result.success
        devices = await _all_devices(session_factory)
        assert list(devices) == ["ABC123"]
        assert devices["ABC123"].name == "Second"

    @pytest.mark.asyncio
    async def test_absent_devices_are_deactivated(self, session_factory, device_payload):
        await _add_device(session_factory, device_code="OLD001", status=DeviceStatus.ACTIVE)
        reconciler = DeviceReconciler(session_factory, removal_policy="deactivate")

        result = await reconciler.reconcile([device_payload("ABC123")])

        assert result.success
        assert result.count == 1
        devices = await _all_devices(session_factory)
        assert devices["OLD001"].status == DeviceStatus.INACTIVE
        assert "ABC123" in devices

    @pytest.mark.asyncio
    async def test_absent_devices_are_deleted_with_delete_policy(self, session_factory, device_payload):
        await _add_device(session_factory, device_code="OLD001", status=DeviceStatus.ACTIVE)
        reconciler = DeviceReconciler(session_factory, removal_policy="delete")

        result = await reconciler.reconcile([device_payload("ABC123")])

        assert result.success
        assert set(await _all_devices(session_factory)) == {"ABC123"}

    @pytest.mark.asyncio
    async def test_recently_seen_device_is_logged_as_conflict_and_still_removed(
        self, session_factory, device_payload, caplog
    ):
        await _add_device(
            session_factory,
            device_code="OLD001",
            status=DeviceStatus.ACTIVE,
            last_seen=utcnow() - timedelta(hours=1)
        )
        reconciler = DeviceReconciler(session_factory, removal_policy="deactivate")

        with caplog.at_level(logging.WARNING):
            result = await reconciler.reconcile([device_payload("ABC123")])

        assert result.success
        assert "Recently active removed device: OLD001" in caplog.text
        devices = await _all_devices(session_factory)
        assert devices["OLD001"].status == DeviceStatus.INACTIVE

    @pytest.mark.asyncio
    async def test_device_seen_long_ago_is_not_a_conflict(self, session_factory, device_payload, caplog):
        await _add_device(
            session_factory,
            device_code="OLD001",
            status=DeviceStatus.ACTIVE,
            last_seen=utcnow() - timedelta(days=3)
        )
        reconciler = DeviceReconciler(session_factory)

        with caplog.at_level(logging.WARNING):
            await reconciler.reconcile([device_payload("ABC123")])

        assert "sync conflict" not in caplog.text

    @pytest.mark.asyncio
    async def test_empty_batch_is_vacuous_success(self, session_factory):
        await _add_device(session_factory, device_code="OLD001", status=DeviceStatus.ACTIVE)
        reconciler = DeviceReconciler(session_factory)

        result = await reconciler.reconcile([])

        assert result.success
        assert result.count == 0
        devices = await _all_devices(session_factory)
        assert devices["OLD001"].status == DeviceStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_invalid_batch_is_rejected_without_writes(self, session_factory, device_payload):
        reconciler = DeviceReconciler(session_factory)

        result = await reconciler.reconcile([device_payload("ABC123"), device_payload("BAD")])

        assert not result.success
        assert result.count == 0
        assert result.errors == ["Device at index 1 has invalid deviceCode format: BAD"]
        assert await _all_devices(session_factory) == {}

    @pytest.mark.asyncio
    async def test_removal_failure_keeps_applied_count(self, session_factory, device_payload):
        await _add_device(session_factory, device_code="OLD001", status=DeviceStatus.ACTIVE)
        reconciler = DeviceReconciler(session_factory, removal_policy="deactivate")

        with patch.object(DeviceService, "deactivate_devices", side_effect=SQLAlchemyError("database is locked")):
            result = await reconciler.reconcile([device_payload("ABC123"), device_payload("DEF456")])

        assert not result.success
        assert result.count == 2
        assert result.errors == ["Device cleanup failed: database is locked"]
        devices = await _all_devices(session_factory)
        assert set(devices) == {"ABC123", "DEF456", "OLD001"}
        assert devices["OLD001"].status == DeviceStatus.ACTIVE
