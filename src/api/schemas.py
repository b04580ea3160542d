"""Pydantic request / response schemas for the local HTTP facade."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.entities import (
    BookingForm,
    DriverInfo,
    ResolvedPlace,
    SessionSnapshot,
)
from src.domain.enums import BookingKind
from src.domain.pricing import DISCLAIMER, FareBreakdown
from src.domain.validation import display_phone_number


# ── Requests ──────────────────────────────────────────────────────────


class PlaceIn(BaseModel):
    formatted_address: str = Field("", description="Address picked from suggestions.")
    place_id: Optional[str] = None


class BookingCreateRequest(BaseModel):
    booking_type: BookingKind = BookingKind.IMMEDIATE
    name: str = ""
    phone_number: str = ""
    pickup: Optional[PlaceIn] = None
    destination: Optional[PlaceIn] = None
    scheduled_date: str = Field("", description="YYYY-MM-DD, service local time.")
    scheduled_time: str = Field("", description="HH:MM, service local time.")

    def to_form(self) -> BookingForm:
        return BookingForm(
            kind=self.booking_type,
            rider_name=self.name,
            rider_phone=self.phone_number,
            origin=ResolvedPlace(**self.pickup.model_dump()) if self.pickup else None,
            destination=(
                ResolvedPlace(**self.destination.model_dump())
                if self.destination
                else None
            ),
            scheduled_date=self.scheduled_date,
            scheduled_time=self.scheduled_time,
        )


class FareEstimateRequest(BaseModel):
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)


# ── Responses ─────────────────────────────────────────────────────────


class DriverInfoResponse(BaseModel):
    name: str
    vehicle: str
    license_plate: Optional[str] = None

    @classmethod
    def from_domain(cls, info: Optional[DriverInfo]) -> Optional["DriverInfoResponse"]:
        if info is None:
            return None
        return cls(name=info.name, vehicle=info.vehicle, license_plate=info.license_plate)


class FareLine(BaseModel):
    label: str
    amount: str


class FareBreakdownResponse(BaseModel):
    available: bool = True
    total: Optional[float] = None
    lines: list[FareLine] = []
    disclaimer: str = DISCLAIMER

    @classmethod
    def from_domain(cls, fare: Optional[FareBreakdown]) -> "FareBreakdownResponse":
        if fare is None:
            return cls(available=False)
        return cls(
            total=round(fare.total, 2),
            lines=[FareLine(label=label, amount=amount) for label, amount in fare.lines()],
        )


class SessionResponse(BaseModel):
    session_id: str
    state: str
    booking_type: Optional[BookingKind] = None
    pickup: Optional[str] = None
    destination: Optional[str] = None
    rider_name: Optional[str] = None
    rider_phone: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    message: Optional[str] = None
    error: Optional[str] = None
    fare: Optional[FareBreakdownResponse] = None
    driver: Optional[DriverInfoResponse] = None

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "SessionResponse":
        request = snapshot.request
        return cls(
            session_id=snapshot.session_id,
            state=snapshot.state.value,
            booking_type=request.kind if request else None,
            pickup=request.origin if request else None,
            destination=request.destination if request else None,
            rider_name=request.rider_name if request else None,
            rider_phone=display_phone_number(request.rider_phone) if request else None,
            scheduled_at=request.scheduled_at if request else None,
            message=snapshot.message,
            error=snapshot.error,
            fare=FareBreakdownResponse.from_domain(snapshot.fare) if snapshot.fare else None,
            driver=DriverInfoResponse.from_domain(snapshot.driver_info),
        )


class DriverStatusResponse(BaseModel):
    status: str
    can_request_now: bool
    driver: Optional[DriverInfoResponse] = None


class ConnectionResponse(BaseModel):
    state: str
    transport: str
    retry_count: int
    offline: bool = Field(
        ..., description="True once automatic reconnection has given up."
    )


class HealthResponse(BaseModel):
    status: str = "ok"
    connection: str


class ErrorResponse(BaseModel):
    detail: str
