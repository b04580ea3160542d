"""
Connectivity Monitor
====================

Runs every ``CONNECTIVITY_PROBE_INTERVAL_SECONDS`` (default 5 s).

Each cycle sends an HTTP ``GET`` to the backend base URL.  Any HTTP
response, whatever its status code, means the network path is up; a
transport error means it is down.  On a down -> up edge the transport
manager is told the network is back, which skips any remaining backoff
and forces a reconnect.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from src.config import Settings, settings as default_settings
from src.infrastructure.transport import TransportManager

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    def __init__(
        self,
        transport: TransportManager,
        config: Settings = default_settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._transport = transport
        self._config = config
        self._http = http_client
        self._owns_http = http_client is None
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.reachable: Optional[bool] = None

    # ── Public API ────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self._config.connectivity_probe_timeout_seconds
            )
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Connectivity monitor started (interval=%ss)",
            self._config.connectivity_probe_interval_seconds,
        )

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
        logger.info("Connectivity monitor stopped")

    async def probe_once(self) -> bool:
        """Probe the backend; returns reachability and fires on a down -> up edge."""
        assert self._http is not None
        try:
            await self._http.get(self._transport.url)
            reachable = True
        except httpx.TransportError as exc:
            logger.debug("Backend unreachable: %s", exc)
            reachable = False

        previous, self.reachable = self.reachable, reachable
        if previous is False and reachable:
            self._transport.network_restored()
        elif previous is not False and not reachable:
            logger.warning("Network to %s appears down", self._transport.url)
        return reachable

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        """Periodic loop: probe then sleep."""
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await self.probe_once()
            except Exception:
                logger.exception("Unhandled error in connectivity probe")
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.connectivity_probe_interval_seconds,
                )
                break
            except asyncio.TimeoutError:
                pass  # next probe
