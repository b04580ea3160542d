"""
Transport Resilience Manager
============================

Owns the single socket.io connection to the dispatch backend.

Connection policy
-----------------
* ``connect()`` tries the streaming transport (websocket) first and
  downgrades to long-polling within the same call.
* A lost connection (or a connect where every transport failed) bumps
  ``retry_count`` and retries after ``min(base * 2^n, ceiling)`` seconds;
  a failed websocket attempt is followed by a polling attempt.
* Past ``reconnect_max_attempts`` the manager stops, sets ``exhausted``
  and emits ``reconnect_failed``.  Only ``force_reconnect()`` (or a
  network-restored signal while disconnected) starts it again, always
  from polling.  ``send()`` on an exhausted manager raises
  ``ReconnectionExhausted``.

socket.io's own reconnection is disabled; this module is the only place
that decides when to reconnect.

Ordering
--------
Inbound application events go through one queue drained by one task, so
handlers observe them in arrival order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Optional

import socketio
from socketio import exceptions as sio_exceptions

from src.config import Settings, settings as default_settings
from src.domain.backoff import backoff_delay
from src.domain.enums import ConnectionState, TransportMode
from src.domain.errors import (
    ConfigurationError,
    NotConnectedError,
    RequestTimeout,
    ReconnectionExhausted,
    ServerError,
)

logger = logging.getLogger(__name__)

CONNECTION_SIGNALS = (
    "connect",
    "disconnect",
    "connect_error",
    "reconnect_attempt",
    "reconnect",
    "reconnect_failed",
)

Handler = Callable[..., Any]


def default_client_factory() -> socketio.AsyncClient:
    return socketio.AsyncClient(
        reconnection=False, logger=False, engineio_logger=False
    )


async def _invoke(callback: Handler, *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class TransportManager:
    def __init__(
        self,
        config: Settings = default_settings,
        client_factory: Callable[[], Any] = default_client_factory,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        if not config.backend_url:
            raise ConfigurationError(
                "backend_url is not configured; set BACKEND_URL"
            )
        self.url = config.backend_url
        self._config = config
        self._client_factory = client_factory
        self._sleep = sleep

        self._client: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._active_transport = TransportMode.PRIMARY
        self._preferred = TransportMode.PRIMARY
        self._retry_count = 0
        self._exhausted = False
        self._closed = False

        self._handlers: dict[str, list[tuple[Any, Handler]]] = defaultdict(list)
        self._listeners: dict[str, list[Handler]] = defaultdict(list)
        self._inbox: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()

    # ── Read-only state ──────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def active_transport(self) -> TransportMode:
        return self._active_transport

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # ── Handler registration ─────────────────────────────────────────

    def on(self, event_name: str, handler: Handler, *, owner: Any = None) -> None:
        """Register ``handler(payload)`` for an inbound event."""
        self._handlers[event_name].append((owner, handler))

    def off(
        self,
        event_name: str,
        handler: Optional[Handler] = None,
        *,
        owner: Any = None,
    ) -> int:
        """Remove the handlers ``owner`` added for ``event_name``; returns how many."""
        registered = self._handlers.get(event_name, [])
        kept = [
            (o, h)
            for o, h in registered
            if not (o is owner and (handler is None or h == handler))
        ]
        self._handlers[event_name] = kept
        return len(registered) - len(kept)

    def add_listener(self, signal: str, callback: Handler) -> None:
        if signal not in CONNECTION_SIGNALS:
            raise ValueError(f"Unknown connection signal: {signal}")
        self._listeners[signal].append(callback)

    def remove_listener(self, signal: str, callback: Handler) -> None:
        if callback in self._listeners.get(signal, []):
            self._listeners[signal].remove(callback)

    # ── Public API ───────────────────────────────────────────────────

    async def connect(self) -> bool:
        """Open the connection; no-op while connecting or connected."""
        if self._state is not ConnectionState.DISCONNECTED:
            return self._state is ConnectionState.CONNECTED

        self._closed = False
        self._cancel_reconnect()
        self._ensure_dispatcher()
        self._state = ConnectionState.CONNECTING

        order = [self._preferred]
        if self._preferred is TransportMode.PRIMARY:
            order.append(TransportMode.FALLBACK)

        for transport in order:
            if await self._attempt(transport):
                await self._on_connected()
                return True

        self._state = ConnectionState.DISCONNECTED
        self._schedule_reconnect(order[-1])
        return False

    async def send(
        self,
        event_name: str,
        payload: Optional[dict] = None,
        deadline_ms: Optional[int] = None,
    ) -> dict:
        """Emit ``event_name`` and wait for its acknowledgement."""
        client = self._client
        if self._exhausted:
            raise ReconnectionExhausted(
                f"Cannot send {event_name}: gave up reconnecting after "
                f"{self._config.reconnect_max_attempts} attempts"
            )
        if self._state is not ConnectionState.CONNECTED or client is None:
            raise NotConnectedError(
                f"Cannot send {event_name}: connection is {self._state.value.lower()}"
            )
        if deadline_ms is None:
            deadline_ms = self._config.request_deadline_ms

        try:
            ack = await client.call(
                event_name, payload or {}, timeout=deadline_ms / 1000
            )
        except sio_exceptions.TimeoutError as exc:
            raise RequestTimeout(
                f"No response to {event_name} within {deadline_ms} ms"
            ) from exc
        except sio_exceptions.SocketIOError as exc:
            raise NotConnectedError(
                f"Connection lost while sending {event_name}"
            ) from exc

        if not isinstance(ack, dict):
            raise ServerError(f"Malformed acknowledgement for {event_name}: {ack!r}")
        # an explicit decline may carry a reason; it is not a server error
        if ack.get("error") and not (ack.get("success") or ack.get("declined")):
            raise ServerError(str(ack["error"]))
        return ack

    async def force_reconnect(self) -> bool:
        """Drop the connection and start over from the fallback transport."""
        logger.info("Forcing reconnect")
        self._cancel_reconnect()
        await self._teardown()
        self._retry_count = 0
        self._exhausted = False
        self._preferred = TransportMode.FALLBACK
        await self._sleep(self._config.force_reconnect_delay_seconds)
        return await self.connect()

    def network_restored(self) -> None:
        """Host connectivity came back: skip any remaining backoff."""
        if self._closed or self._state is not ConnectionState.DISCONNECTED:
            logger.debug("Network restored while %s; nothing to do", self._state.value)
            return
        logger.info("Network restored; reconnecting now")
        self._spawn(self.force_reconnect())

    async def close(self) -> None:
        """Process teardown: no reconnection after this."""
        self._closed = True
        self._cancel_reconnect()
        for task in list(self._background):
            task.cancel()
        await self._teardown()
        if self._dispatcher:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None
        logger.info("Transport closed")

    async def drain(self) -> None:
        """Wait until every queued inbound event has been dispatched."""
        if self._inbox is not None:
            await self._inbox.join()

    # ── Internals ────────────────────────────────────────────────────

    def _new_client(self) -> Any:
        client = self._client_factory()

        async def on_disconnect(*args: Any) -> None:
            await self._handle_lost(client, args[0] if args else None)

        async def on_event(event: str, *args: Any) -> None:
            self._enqueue(event, args[0] if args else None)

        client.on("disconnect", on_disconnect)
        client.on("*", on_event)
        return client

    async def _attempt(self, transport: TransportMode) -> bool:
        client = self._new_client()
        try:
            await client.connect(
                self.url,
                transports=[transport.value],
                wait_timeout=self._config.connect_timeout_seconds,
            )
        except asyncio.CancelledError:
            await client.disconnect()
            raise
        except (sio_exceptions.ConnectionError, OSError) as exc:
            logger.warning("Connecting over %s failed: %s", transport.value, exc)
            await self._emit("connect_error", str(exc))
            return False

        self._client = client
        self._active_transport = transport
        return True

    async def _on_connected(self) -> int:
        attempt = self._retry_count
        self._state = ConnectionState.CONNECTED
        self._retry_count = 0
        self._exhausted = False
        self._cancel_reconnect()
        logger.info(
            "Connected to %s over %s", self.url, self._active_transport.value
        )
        await self._emit("connect")
        return attempt

    async def _handle_lost(self, client: Any, reason: Any) -> None:
        if client is not self._client:
            return  # stale client, or one we tore down ourselves
        failed = self._active_transport
        self._client = None
        self._state = ConnectionState.DISCONNECTED
        logger.warning("Disconnected from server (%s)", reason)
        await self._emit("disconnect", reason)
        self._schedule_reconnect(failed)

    def _schedule_reconnect(self, failed: TransportMode) -> None:
        if self._closed:
            return
        self._retry_count += 1
        if self._retry_count > self._config.reconnect_max_attempts:
            self._exhausted = True
            logger.error(
                "Reconnection exhausted after %d attempts",
                self._config.reconnect_max_attempts,
            )
            self._spawn(self._emit("reconnect_failed"))
            return

        delay = backoff_delay(
            self._retry_count,
            self._config.reconnect_base_delay_seconds,
            self._config.reconnect_max_delay_seconds,
        )
        next_transport = (
            TransportMode.FALLBACK if failed is TransportMode.PRIMARY else failed
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay, next_transport)
        )

    async def _reconnect_after(self, delay: float, transport: TransportMode) -> None:
        attempt = self._retry_count
        logger.info(
            "Reconnect attempt %d over %s in %.1fs", attempt, transport.value, delay
        )
        await self._sleep(delay)
        await self._emit("reconnect_attempt", attempt)

        self._state = ConnectionState.CONNECTING
        if await self._attempt(transport):
            await self._on_connected()
            await self._emit("reconnect", attempt)
        else:
            self._state = ConnectionState.DISCONNECTED
            self._schedule_reconnect(transport)

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._reconnect_task = None

    async def _teardown(self) -> None:
        client, self._client = self._client, None
        self._state = ConnectionState.DISCONNECTED
        if client is not None:
            await client.disconnect()

    def _ensure_dispatcher(self) -> None:
        if self._inbox is None:
            self._inbox = asyncio.Queue()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_loop())

    def _enqueue(self, event_name: str, payload: Any) -> None:
        self._ensure_dispatcher()
        assert self._inbox is not None
        self._inbox.put_nowait((event_name, payload))

    async def _dispatch_loop(self) -> None:
        assert self._inbox is not None
        while True:
            event_name, payload = await self._inbox.get()
            try:
                for _owner, handler in list(self._handlers.get(event_name, ())):
                    try:
                        await _invoke(handler, payload)
                    except Exception:
                        logger.exception("Handler for %s failed", event_name)
            finally:
                self._inbox.task_done()

    async def _emit(self, signal: str, *args: Any) -> None:
        for callback in list(self._listeners.get(signal, ())):
            try:
                await _invoke(callback, *args)
            except Exception:
                logger.exception("Listener for %s failed", signal)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
