"""
Booking Session State Machine
=============================

IDLE -> VALIDATING -> SUBMITTING -> PENDING -> ACCEPTED | DECLINED | FAILED

Idempotency
-----------
``submit()`` is synchronous: it validates, schedules the send task and
moves the session to PENDING without ever yielding to the event loop, so
no other submit can observe SUBMITTING.  Any submit while a session is
in flight raises ``DuplicateSubmission``; ``send`` therefore runs at most
once per ``session_id``.

Reconciliation
--------------
Whichever arrives first wins: the send acknowledgement, a correlated
``rideAccepted`` / ``rideDeclined`` event, or a transport error.  Later
deliveries hit a terminal session and are dropped.  Reaching a terminal
state cancels the outstanding send task.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from src.config import Settings, settings as default_settings
from src.domain.entities import (
    BookingForm,
    BookingRequest,
    DriverInfo,
    SessionSnapshot,
    new_session_id,
)
from src.domain.enums import (
    SESSION_TRANSITIONS,
    TERMINAL_STATES,
    BookingKind,
    DriverStatus,
    SessionState,
)
from src.domain.errors import (
    AdmissionDenied,
    DuplicateSubmission,
    InvalidEstimateInput,
    InvalidStateTransition,
    TransportError,
    ValidationError,
)
from src.domain.pricing import FareBreakdown, FareEstimator
from src.domain.validation import build_request
from src.infrastructure.transport import TransportManager

from .tracker import DriverAvailabilityTracker

logger = logging.getLogger(__name__)

ACCEPTED_EVENT = "rideAccepted"
DECLINED_EVENT = "rideDeclined"

IN_FLIGHT_STATES = frozenset(
    {SessionState.VALIDATING, SessionState.SUBMITTING, SessionState.PENDING}
)

MSG_ACCEPTED_NOW = "Ride request sent! Please wait for driver confirmation."
MSG_ACCEPTED_SCHEDULED = (
    "Booking request sent! You will receive a confirmation once the driver accepts."
)
MSG_DECLINED = "The driver declined this request."
MSG_SUBMIT_FAILED = "Failed to submit booking request"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BookingSession:
    session_id: str = field(default_factory=new_session_id)
    state: SessionState = SessionState.IDLE
    request: Optional[BookingRequest] = None
    message: Optional[str] = None
    error: Optional[str] = None
    fare: Optional[FareBreakdown] = None
    driver_info: Optional[DriverInfo] = None
    history: list[SessionState] = field(default_factory=lambda: [SessionState.IDLE])
    send_task: Optional[asyncio.Task] = None
    outcome: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition_to(self, new_state: SessionState) -> None:
        """Move to *new_state* if the transition is legal, else raise."""
        allowed = SESSION_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            state=self.state,
            request=self.request,
            message=self.message,
            error=self.error,
            fare=self.fare,
            driver_info=self.driver_info,
            history=tuple(self.history),
        )


class BookingSessionMachine:
    def __init__(
        self,
        transport: TransportManager,
        tracker: DriverAvailabilityTracker,
        estimator: FareEstimator,
        *,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._transport = transport
        self._tracker = tracker
        self._estimator = estimator
        self._config = config
        self._clock = clock
        self._session = BookingSession()

    # ── Read side ────────────────────────────────────────────────────

    @property
    def session(self) -> SessionSnapshot:
        return self._session.snapshot()

    def can_request_now(self) -> bool:
        """Whether the UI may offer the immediate "Request Ride" path."""
        return (
            self._tracker.status is DriverStatus.AVAILABLE
            and self._session.state not in IN_FLIGHT_STATES
        )

    async def wait_for_outcome(self, timeout: Optional[float] = None) -> SessionSnapshot:
        session = self._session
        await asyncio.wait_for(session.outcome.wait(), timeout)
        return session.snapshot()

    # ── Commands ─────────────────────────────────────────────────────

    def attach(self) -> None:
        self._transport.on(ACCEPTED_EVENT, self._on_ride_accepted, owner=self)
        self._transport.on(DECLINED_EVENT, self._on_ride_declined, owner=self)

    def detach(self) -> None:
        self._transport.off(ACCEPTED_EVENT, owner=self)
        self._transport.off(DECLINED_EVENT, owner=self)

    def submit(self, form: BookingForm) -> SessionSnapshot:
        session = self._session
        if session.state in IN_FLIGHT_STATES:
            logger.warning(
                "Rejected duplicate submit for session %s (%s)",
                session.session_id,
                session.state.value,
            )
            raise DuplicateSubmission("A booking request is already in progress")
        if session.terminal:
            session = self._open_session()

        if (
            form.kind is BookingKind.IMMEDIATE
            and self._tracker.status is not DriverStatus.AVAILABLE
        ):
            raise AdmissionDenied(
                f"Immediate rides need an available driver "
                f"(driver is {self._tracker.status.value.lower()})"
            )

        session.transition_to(SessionState.VALIDATING)
        try:
            request = build_request(
                form,
                session.session_id,
                now=self._clock(),
                timezone=self._config.service_timezone,
                start_hour=self._config.schedule_window_start_hour,
                end_hour=self._config.schedule_window_end_hour,
            )
        except ValidationError as exc:
            session.error = str(exc)
            session.transition_to(SessionState.IDLE)
            raise

        session.request = request
        session.error = None
        session.message = None
        session.transition_to(SessionState.SUBMITTING)
        session.send_task = asyncio.create_task(self._deliver(session))
        session.transition_to(SessionState.PENDING)
        logger.info(
            "Session %s submitted %s", session.session_id, request.event_name
        )
        return session.snapshot()

    def reset(self) -> SessionSnapshot:
        """Start a fresh form; not allowed while a booking is in flight."""
        if self._session.state in IN_FLIGHT_STATES:
            raise InvalidStateTransition(
                f"Cannot reset a session in state {self._session.state.value}"
            )
        return self._open_session().snapshot()

    def close(self) -> None:
        task = self._session.send_task
        if task and not task.done():
            task.cancel()

    # ── Internals ────────────────────────────────────────────────────

    def _open_session(self) -> BookingSession:
        self._session = BookingSession()
        return self._session

    async def _deliver(self, session: BookingSession) -> None:
        request = session.request
        assert request is not None
        try:
            ack = await self._transport.send(
                request.event_name,
                request.to_payload(),
                self._config.request_deadline_ms,
            )
        except TransportError as exc:
            self._finish(session, SessionState.FAILED, error=str(exc))
            return
        self._reconcile(session, ack)

    def _reconcile(self, session: BookingSession, ack: dict) -> None:
        if ack.get("success"):
            self._accept(session, ack)
        elif ack.get("declined"):
            self._finish(session, SessionState.DECLINED, message=MSG_DECLINED)
        else:
            self._finish(
                session,
                SessionState.FAILED,
                error=str(ack.get("error") or MSG_SUBMIT_FAILED),
            )

    def _accept(self, session: BookingSession, payload: dict) -> None:
        request = session.request
        assert request is not None
        driver_info = (
            DriverInfo.from_payload(payload.get("driverInfo"))
            or self._tracker.driver_info
        )
        self._finish(
            session,
            SessionState.ACCEPTED,
            message=(
                MSG_ACCEPTED_SCHEDULED
                if request.kind is BookingKind.SCHEDULED
                else MSG_ACCEPTED_NOW
            ),
            fare=self._fare_from(payload.get("fareDetails"), request.destination),
            driver_info=driver_info,
        )

    def _fare_from(self, details: Any, destination: str) -> Optional[FareBreakdown]:
        if details is None:
            return None
        if isinstance(details, dict) and details.get("destination"):
            destination = str(details["destination"])
        try:
            return self._estimator.estimate_from_details(details, destination)
        except InvalidEstimateInput as exc:
            logger.warning("Ignoring fare details on accepted ride: %s", exc)
            return None

    def _finish(
        self,
        session: BookingSession,
        state: SessionState,
        *,
        message: Optional[str] = None,
        error: Optional[str] = None,
        fare: Optional[FareBreakdown] = None,
        driver_info: Optional[DriverInfo] = None,
    ) -> bool:
        if session.terminal:
            logger.debug(
                "Session %s already %s; dropping %s",
                session.session_id,
                session.state.value,
                state.value,
            )
            return False

        session.transition_to(state)
        session.message = message
        session.error = error
        session.fare = fare
        session.driver_info = driver_info

        task = session.send_task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
        session.outcome.set()

        if state is SessionState.FAILED:
            logger.warning("Session %s failed: %s", session.session_id, error)
        else:
            logger.info("Session %s %s", session.session_id, state.value.lower())
        return True

    def _correlate(self, event_name: str, payload: Any) -> Optional[BookingSession]:
        session = self._session
        session_id = payload.get("sessionId") if isinstance(payload, dict) else None
        if session_id and session_id != session.session_id:
            logger.debug("Ignoring %s for unknown session %s", event_name, session_id)
            return None
        if session.state is not SessionState.PENDING:
            logger.debug(
                "Ignoring %s for session %s in %s",
                event_name,
                session.session_id,
                session.state.value,
            )
            return None
        return session

    def _on_ride_accepted(self, payload: Any) -> None:
        session = self._correlate(ACCEPTED_EVENT, payload)
        if session is not None:
            self._accept(session, payload if isinstance(payload, dict) else {})

    def _on_ride_declined(self, payload: Any) -> None:
        session = self._correlate(DECLINED_EVENT, payload)
        if session is not None:
            self._finish(session, SessionState.DECLINED, message=MSG_DECLINED)
