"""Wires transport, tracker, quotes, booking machine and monitor together."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from src.config import Settings, settings as default_settings
from src.domain.pricing import FareEstimator
from src.infrastructure.transport import TransportManager, default_client_factory
from src.workers.connectivity import ConnectivityMonitor

from .booking import BookingSessionMachine
from .estimates import FareQuoteService
from .tracker import DriverAvailabilityTracker

logger = logging.getLogger(__name__)


class PassengerClient:
    def __init__(
        self,
        config: Settings = default_settings,
        *,
        client_factory: Callable[[], Any] = default_client_factory,
        transport: Optional[TransportManager] = None,
        monitor: Optional[ConnectivityMonitor] = None,
    ):
        self.config = config
        self.transport = transport or TransportManager(config, client_factory)
        self.estimator = FareEstimator.from_settings(config)
        self.tracker = DriverAvailabilityTracker(
            self.transport, deadline_ms=config.request_deadline_ms
        )
        self.quotes = FareQuoteService(
            self.transport, self.estimator, deadline_ms=config.request_deadline_ms
        )
        self.booking = BookingSessionMachine(
            self.transport, self.tracker, self.estimator, config=config
        )
        self.monitor = monitor or ConnectivityMonitor(self.transport, config)
        self.transport.add_listener("reconnect_failed", self._on_reconnect_failed)

    async def start(self) -> None:
        self.tracker.attach()
        self.quotes.attach()
        self.booking.attach()
        await self.transport.connect()
        await self.monitor.start()

    async def stop(self) -> None:
        await self.monitor.stop()
        self.booking.close()
        self.booking.detach()
        self.quotes.detach()
        self.tracker.detach()
        await self.transport.close()

    def _on_reconnect_failed(self) -> None:
        logger.error(
            "Offline: automatic reconnection gave up; waiting for the network "
            "to return or a manual reconnect"
        )
