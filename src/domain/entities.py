"""
Domain entities and value objects.

- ``BookingRequest`` is immutable once built; its status lives on the
  owning ``BookingSession``, never on the record.
- ``BookingForm`` holds raw user input before validation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import BookingKind, SessionState


def new_session_id() -> str:
    return uuid.uuid4().hex


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class ResolvedPlace:
    """A place picked from address suggestions."""

    formatted_address: str
    place_id: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return bool(self.formatted_address and self.formatted_address.strip())


@dataclass(frozen=True)
class DriverInfo:
    name: str = ""
    car_color: str = ""
    car_make_model: str = ""
    license_plate: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["DriverInfo"]:
        if not isinstance(payload, dict):
            return None
        return cls(
            name=str(payload.get("name") or ""),
            car_color=str(payload.get("carColor") or ""),
            car_make_model=str(payload.get("carMakeModel") or ""),
            license_plate=payload.get("licensePlate"),
        )

    @property
    def vehicle(self) -> str:
        return f"{self.car_color} {self.car_make_model}".strip()

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "carColor": self.car_color,
            "carMakeModel": self.car_make_model,
            "licensePlate": self.license_plate,
        }


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class BookingForm:
    kind: BookingKind = BookingKind.IMMEDIATE
    rider_name: str = ""
    rider_phone: str = ""
    origin: Optional[ResolvedPlace] = None
    destination: Optional[ResolvedPlace] = None
    scheduled_date: str = ""  # YYYY-MM-DD
    scheduled_time: str = ""  # HH:MM


@dataclass(frozen=True)
class BookingRequest:
    session_id: str
    kind: BookingKind
    origin: str
    destination: str
    rider_name: str
    rider_phone: str
    scheduled_at: Optional[datetime] = None

    @property
    def event_name(self) -> str:
        if self.kind is BookingKind.SCHEDULED:
            return "futureBookingRequest"
        return "rideRequest"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "booking-app",
            "sessionId": self.session_id,
            "kind": self.kind.value,
            "origin": self.origin,
            "destination": self.destination,
            "riderName": self.rider_name,
            "riderPhone": self.rider_phone,
        }
        if self.scheduled_at is not None:
            payload["scheduledAt"] = self.scheduled_at.isoformat()
        return payload


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a booking session handed to the UI layer."""

    session_id: str
    state: SessionState
    request: Optional[BookingRequest] = None
    message: Optional[str] = None
    error: Optional[str] = None
    fare: Optional[Any] = None  # FareBreakdown
    driver_info: Optional[DriverInfo] = None
    history: tuple[SessionState, ...] = field(default_factory=tuple)
