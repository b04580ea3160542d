"""
Booking form validation and normalisation.

``build_request`` turns a ``BookingForm`` into an immutable
``BookingRequest`` or raises ``ValidationError`` carrying the message
shown to the rider. Checks run in a fixed order and the first failure
wins.
"""

from __future__ import annotations

import re
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from .entities import BookingForm, BookingRequest
from .enums import BookingKind
from .errors import ValidationError

MSG_REQUIRED = "Please fill in all required fields"
MSG_SCHEDULE_REQUIRED = "Please select both date and time for future bookings"
MSG_PHONE = "Please enter a valid phone number (XXX-XXX-XXXX)"
MSG_UNRESOLVED_PLACE = (
    "Please choose pickup and drop-off addresses from the suggestions"
)
MSG_SCHEDULE_INVALID = "Please select a valid date and time"
MSG_SCHEDULE_PAST = "Scheduled time must be in the future"
MSG_SCHEDULE_HOURS = "Scheduled rides are available between 7:00 PM and 8:00 AM"

PHONE_PATTERN = re.compile(r"^\d{3}-\d{3}-\d{4}$")


# ── Phone numbers ─────────────────────────────────────────────────────


def format_phone_number(value: Optional[str]) -> Optional[str]:
    """Progressive ``XXX-XXX-XXXX`` formatting, usable while the rider types."""
    if not value:
        return value
    digits = re.sub(r"\D", "", value)
    if len(digits) < 4:
        return digits
    if len(digits) < 7:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:10]}"


def display_phone_number(value: str) -> str:
    """``(XXX) XXX-XXXX`` for ride cards; anything else is returned untouched."""
    digits = re.sub(r"\D", "", str(value))
    match = re.fullmatch(r"(\d{3})(\d{3})(\d{4})", digits)
    if match:
        return f"({match[1]}) {match[2]}-{match[3]}"
    return value


# ── Scheduling window ─────────────────────────────────────────────────


def is_within_service_hours(
    moment: datetime, tz: tzinfo, start_hour: int = 19, end_hour: int = 8
) -> bool:
    hour = moment.astimezone(tz).hour
    if start_hour > end_hour:  # window wraps past midnight
        return hour >= start_hour or hour < end_hour
    return start_hour <= hour < end_hour


def parse_scheduled_at(date_text: str, time_text: str, tz: tzinfo) -> datetime:
    try:
        naive = datetime.fromisoformat(f"{date_text.strip()}T{time_text.strip()}")
    except ValueError as exc:
        raise ValidationError(MSG_SCHEDULE_INVALID) from exc
    if naive.tzinfo is not None:
        return naive.astimezone(tz)
    return naive.replace(tzinfo=tz)


# ── Form ──────────────────────────────────────────────────────────────


def build_request(
    form: BookingForm,
    session_id: str,
    *,
    now: datetime,
    timezone: str | tzinfo = "America/Chicago",
    start_hour: int = 19,
    end_hour: int = 8,
) -> BookingRequest:
    tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone

    name = (form.rider_name or "").strip()
    if not name or not form.rider_phone or form.origin is None or form.destination is None:
        raise ValidationError(MSG_REQUIRED)

    scheduled = form.kind is BookingKind.SCHEDULED
    if scheduled and (not form.scheduled_date or not form.scheduled_time):
        raise ValidationError(MSG_SCHEDULE_REQUIRED)

    phone = format_phone_number(form.rider_phone) or ""
    if not PHONE_PATTERN.match(phone):
        raise ValidationError(MSG_PHONE)

    if not (form.origin.is_resolved and form.destination.is_resolved):
        raise ValidationError(MSG_UNRESOLVED_PLACE)

    scheduled_at = None
    if scheduled:
        scheduled_at = parse_scheduled_at(form.scheduled_date, form.scheduled_time, tz)
        if scheduled_at <= now.astimezone(tz):
            raise ValidationError(MSG_SCHEDULE_PAST)
        if not is_within_service_hours(scheduled_at, tz, start_hour, end_hour):
            raise ValidationError(MSG_SCHEDULE_HOURS)

    return BookingRequest(
        session_id=session_id,
        kind=form.kind,
        origin=form.origin.formatted_address.strip(),
        destination=form.destination.formatted_address.strip(),
        rider_name=name,
        rider_phone=phone,
        scheduled_at=scheduled_at,
    )
