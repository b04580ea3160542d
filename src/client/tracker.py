"""
Driver Availability Tracker
===========================

Single writer of the process-wide ``DriverStatus``.  Inbound
``driverStatusUpdate`` / ``passengerAppStatus`` events and
``getDriverStatus`` replies all funnel through ``apply()``, which runs the
pure reducer and assigns the result.  Last received wins.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from src.domain.availability import APP_STATUS_EVENT, STATUS_EVENT, reduce_status
from src.domain.entities import DriverInfo
from src.domain.enums import DriverStatus
from src.domain.errors import TransportError
from src.infrastructure.transport import TransportManager

logger = logging.getLogger(__name__)

StatusListener = Callable[[DriverStatus, Optional[DriverInfo]], Any]


class DriverAvailabilityTracker:
    def __init__(self, transport: TransportManager, deadline_ms: int = 10_000):
        self._transport = transport
        self._deadline_ms = deadline_ms
        self._status = DriverStatus.OFFLINE
        self._driver_info: Optional[DriverInfo] = None
        self._listeners: list[StatusListener] = []
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def status(self) -> DriverStatus:
        return self._status

    @property
    def driver_info(self) -> Optional[DriverInfo]:
        return self._driver_info

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def attach(self) -> None:
        self._transport.on(STATUS_EVENT, self._on_status_update, owner=self)
        self._transport.on(APP_STATUS_EVENT, self._on_app_status, owner=self)
        self._transport.add_listener("connect", self._on_connect)

    def detach(self) -> None:
        self._transport.off(STATUS_EVENT, owner=self)
        self._transport.off(APP_STATUS_EVENT, owner=self)
        self._transport.remove_listener("connect", self._on_connect)
        if self._refresh_task and not self._refresh_task.done():
            self._refresh_task.cancel()

    def apply(self, event_name: str, payload: Any) -> DriverStatus:
        previous = self._status
        self._status = reduce_status(previous, event_name, payload)

        if isinstance(payload, dict) and "driverInfo" in payload:
            info = DriverInfo.from_payload(payload["driverInfo"])
            if info is not None:
                self._driver_info = info

        if self._status is not previous:
            logger.info("Driver status %s -> %s", previous.value, self._status.value)
            for listener in list(self._listeners):
                try:
                    listener(self._status, self._driver_info)
                except Exception:
                    logger.exception("Driver status listener failed")
        return self._status

    async def refresh(self) -> DriverStatus:
        """Ask the backend for the current status (``getDriverStatus``)."""
        try:
            ack = await self._transport.send("getDriverStatus", {}, self._deadline_ms)
        except TransportError as exc:
            logger.warning("Could not fetch driver status: %s", exc)
            return self._status
        return self.apply("getDriverStatus", ack)

    # ── Transport callbacks ──────────────────────────────────────────

    def _on_status_update(self, payload: Any) -> None:
        self.apply(STATUS_EVENT, payload)

    def _on_app_status(self, payload: Any) -> None:
        self.apply(APP_STATUS_EVENT, payload)

    def _on_connect(self) -> None:
        # Runs in the background so the connect path never waits on an ack
        if self._refresh_task and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self.refresh())
