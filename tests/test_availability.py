"""Driver availability reducer and tracker."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.client.tracker import DriverAvailabilityTracker
from src.domain.availability import reduce_status
from src.domain.enums import DriverStatus
from src.domain.errors import NotConnectedError
from tests.conftest import DRIVER_PAYLOAD, wait_until


class TestReduceStatus:
    @pytest.mark.parametrize(
        "label, expected",
        [
            ("available", DriverStatus.AVAILABLE),
            ("Busy", DriverStatus.BUSY),
            (" OFFLINE ", DriverStatus.OFFLINE),
        ],
    )
    def test_known_labels(self, label, expected):
        assert reduce_status(DriverStatus.OFFLINE, "driverStatusUpdate", {"status": label}) == expected

    def test_unknown_label_keeps_previous(self):
        current = DriverStatus.BUSY
        assert reduce_status(current, "driverStatusUpdate", {"status": "accepted"}) == current

    def test_missing_or_malformed_payload_keeps_previous(self):
        assert reduce_status(DriverStatus.AVAILABLE, "driverStatusUpdate", {}) == DriverStatus.AVAILABLE
        assert reduce_status(DriverStatus.AVAILABLE, "driverStatusUpdate", None) == DriverStatus.AVAILABLE
        assert reduce_status(DriverStatus.BUSY, "driverStatusUpdate", {"status": 1}) == DriverStatus.BUSY

    def test_passenger_app_status(self):
        assert reduce_status(DriverStatus.AVAILABLE, "passengerAppStatus", {"isOffline": True}) == DriverStatus.OFFLINE
        assert reduce_status(DriverStatus.OFFLINE, "passengerAppStatus", {"isOffline": False}) == DriverStatus.AVAILABLE
        assert reduce_status(DriverStatus.BUSY, "passengerAppStatus", {"isOffline": "yes"}) == DriverStatus.BUSY


def _mock_transport():
    transport = MagicMock()
    transport.send = AsyncMock()
    return transport


class TestTracker:
    def test_starts_offline(self):
        tracker = DriverAvailabilityTracker(_mock_transport())
        assert tracker.status == DriverStatus.OFFLINE
        assert tracker.driver_info is None

    def test_last_received_wins(self):
        tracker = DriverAvailabilityTracker(_mock_transport())
        tracker.apply("driverStatusUpdate", {"status": "available"})
        tracker.apply("driverStatusUpdate", {"status": "busy"})
        assert tracker.status == DriverStatus.BUSY

    def test_keeps_driver_info(self):
        tracker = DriverAvailabilityTracker(_mock_transport())
        tracker.apply("driverStatusUpdate", {"status": "available", "driverInfo": DRIVER_PAYLOAD})
        assert tracker.driver_info.name == "James"
        assert tracker.driver_info.vehicle == "Black Toyota Camry"

    def test_listeners_only_notified_on_change(self):
        tracker = DriverAvailabilityTracker(_mock_transport())
        seen = []
        tracker.subscribe(lambda status, info: seen.append(status))
        tracker.apply("driverStatusUpdate", {"status": "available"})
        tracker.apply("driverStatusUpdate", {"status": "available"})
        tracker.apply("driverStatusUpdate", {"status": "nonsense"})
        assert seen == [DriverStatus.AVAILABLE]

    @pytest.mark.asyncio
    async def test_refresh_uses_get_driver_status(self):
        transport = _mock_transport()
        transport.send.return_value = {"status": "busy", "driverInfo": DRIVER_PAYLOAD}
        tracker = DriverAvailabilityTracker(transport, deadline_ms=500)

        assert await tracker.refresh() == DriverStatus.BUSY
        transport.send.assert_awaited_once_with("getDriverStatus", {}, 500)

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_status(self):
        transport = _mock_transport()
        transport.send.side_effect = NotConnectedError("down")
        tracker = DriverAvailabilityTracker(transport)
        tracker.apply("driverStatusUpdate", {"status": "available"})

        assert await tracker.refresh() == DriverStatus.AVAILABLE


class TestTrackerOverTransport:
    @pytest.mark.asyncio
    async def test_refreshes_on_connect_and_follows_events(self, transport, backend):
        backend.replies["getDriverStatus"] = {"status": "available", "driverInfo": DRIVER_PAYLOAD}
        tracker = DriverAvailabilityTracker(transport)
        tracker.attach()

        await transport.connect()
        await wait_until(lambda: tracker.status == DriverStatus.AVAILABLE)

        await backend.live.deliver("passengerAppStatus", {"isOffline": True})
        await transport.drain()
        assert tracker.status == DriverStatus.OFFLINE

        tracker.detach()
        await backend.live.deliver("driverStatusUpdate", {"status": "busy"})
        await transport.drain()
        assert tracker.status == DriverStatus.OFFLINE
