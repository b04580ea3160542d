"""Booking form validation, phone formatting and the scheduling window."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from src.domain.entities import BookingForm, ResolvedPlace
from src.domain.enums import BookingKind
from src.domain.errors import ValidationError
from src.domain.validation import (
    MSG_PHONE,
    MSG_REQUIRED,
    MSG_SCHEDULE_HOURS,
    MSG_SCHEDULE_INVALID,
    MSG_SCHEDULE_PAST,
    MSG_SCHEDULE_REQUIRED,
    MSG_UNRESOLVED_PLACE,
    build_request,
    display_phone_number,
    format_phone_number,
    is_within_service_hours,
)
from tests.conftest import CHICAGO, NOON


def _form(**overrides) -> BookingForm:
    form = BookingForm(
        kind=BookingKind.IMMEDIATE,
        rider_name="Ana",
        rider_phone="(214) 555-1234",
        origin=ResolvedPlace("100 Main St, Dallas, TX"),
        destination=ResolvedPlace("DFW Airport, TX"),
    )
    return replace(form, **overrides)


def _scheduled(date: str, time: str) -> BookingForm:
    return _form(kind=BookingKind.SCHEDULED, scheduled_date=date, scheduled_time=time)


class TestPhoneNumbers:
    @pytest.mark.parametrize(
        "raw, formatted",
        [
            ("", ""),
            ("214", "214"),
            ("21455", "214-55"),
            ("2145551", "214-555-1"),
            ("(214) 555-1234", "214-555-1234"),
            ("214555123499", "214-555-1234"),
        ],
    )
    def test_progressive_formatting(self, raw, formatted):
        assert format_phone_number(raw) == formatted

    def test_display_format(self):
        assert display_phone_number("214-555-1234") == "(214) 555-1234"
        assert display_phone_number("555") == "555"


class TestServiceHours:
    @pytest.mark.parametrize("hour, inside", [(18, False), (19, True), (23, True),
                                              (0, True), (7, True), (8, False), (12, False)])
    def test_window_wraps_midnight(self, hour, inside):
        moment = datetime(2026, 10, 18, hour, 30, tzinfo=CHICAGO)
        assert is_within_service_hours(moment, CHICAGO) is inside

    def test_evaluated_in_service_timezone(self):
        # 01:00 UTC is 20:00 in Chicago (CDT)
        moment = datetime(2026, 10, 19, 1, 0, tzinfo=timezone.utc)
        assert is_within_service_hours(moment, CHICAGO) is True


class TestBuildRequest:
    def test_immediate_request(self):
        request = build_request(_form(), "sess-1", now=NOON)
        assert request.session_id == "sess-1"
        assert request.rider_phone == "214-555-1234"
        assert request.origin == "100 Main St, Dallas, TX"
        assert request.scheduled_at is None
        assert request.event_name == "rideRequest"

    def test_required_fields(self):
        with pytest.raises(ValidationError, match=MSG_REQUIRED):
            build_request(_form(rider_name="  "), "s", now=NOON)
        with pytest.raises(ValidationError, match=MSG_REQUIRED):
            build_request(_form(destination=None), "s", now=NOON)

    def test_scheduled_needs_date_and_time(self):
        with pytest.raises(ValidationError, match=MSG_SCHEDULE_REQUIRED):
            build_request(_scheduled("2026-10-18", ""), "s", now=NOON)

    def test_phone_must_have_ten_digits(self):
        with pytest.raises(ValidationError) as exc_info:
            build_request(_form(rider_phone="214-555"), "s", now=NOON)
        assert str(exc_info.value) == MSG_PHONE

    def test_places_must_be_resolved(self):
        with pytest.raises(ValidationError, match=MSG_UNRESOLVED_PLACE):
            build_request(_form(origin=ResolvedPlace("  ")), "s", now=NOON)

    def test_scheduled_tonight_is_accepted(self):
        request = build_request(_scheduled("2026-10-18", "21:30"), "s", now=NOON)
        assert request.event_name == "futureBookingRequest"
        assert request.scheduled_at == datetime(2026, 10, 18, 21, 30, tzinfo=CHICAGO)
        assert request.to_payload()["scheduledAt"] == "2026-10-18T21:30:00-05:00"

    def test_scheduled_early_morning_is_accepted(self):
        request = build_request(_scheduled("2026-10-19", "07:59"), "s", now=NOON)
        assert request.scheduled_at.hour == 7

    def test_scheduled_outside_hours_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_request(_scheduled("2026-10-19", "08:00"), "s", now=NOON)
        assert str(exc_info.value) == MSG_SCHEDULE_HOURS

    def test_scheduled_in_past_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_request(_scheduled("2026-10-18", "07:00"), "s", now=NOON)
        assert str(exc_info.value) == MSG_SCHEDULE_PAST

    def test_scheduled_now_is_not_strictly_future(self):
        now = datetime(2026, 10, 18, 20, 0, tzinfo=CHICAGO)
        with pytest.raises(ValidationError, match=MSG_SCHEDULE_PAST):
            build_request(_scheduled("2026-10-18", "20:00"), "s", now=now)

    def test_unparseable_schedule(self):
        with pytest.raises(ValidationError, match=MSG_SCHEDULE_INVALID):
            build_request(_scheduled("tomorrow", "9pm"), "s", now=NOON)

    def test_now_in_other_timezone_is_compared_correctly(self):
        # 02:30 UTC on the 19th is 21:30 on the 18th in Chicago
        now = datetime(2026, 10, 19, 2, 30, tzinfo=timezone.utc)
        with pytest.raises(ValidationError, match=MSG_SCHEDULE_PAST):
            build_request(_scheduled("2026-10-18", "21:00"), "s", now=now)
