"""
Booking endpoints
=================

POST /api/v1/bookings          -- submit the current form (returns 202 Pending)
GET  /api/v1/bookings/current  -- current session state, fare and driver
POST /api/v1/bookings/reset    -- start a fresh session after a terminal one
POST /api/v1/fare-estimates    -- fare breakdown for a pickup / drop-off pair
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.dependencies import get_client
from src.api.middleware import limiter
from src.api.schemas import (
    BookingCreateRequest,
    ErrorResponse,
    FareBreakdownResponse,
    FareEstimateRequest,
    SessionResponse,
)
from src.client.container import PassengerClient
from src.domain.errors import (
    AdmissionDenied,
    DuplicateSubmission,
    InvalidStateTransition,
    ValidationError,
)

router = APIRouter(tags=["bookings"])


@router.post(
    "/bookings",
    status_code=202,
    response_model=SessionResponse,
    summary="Submit a booking request",
    responses={
        202: {"description": "Request sent; outcome arrives asynchronously."},
        409: {
            "model": ErrorResponse,
            "description": "A request is already pending, or no driver is available.",
        },
        422: {"model": ErrorResponse, "description": "Form validation failed; nothing was sent."},
    },
)
@limiter.limit("30/minute")
async def submit_booking(
    request: Request,
    body: BookingCreateRequest,
    client: PassengerClient = Depends(get_client),
):
    try:
        snapshot = client.booking.submit(body.to_form())
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except (DuplicateSubmission, AdmissionDenied) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return SessionResponse.from_snapshot(snapshot)


@router.get(
    "/bookings/current",
    response_model=SessionResponse,
    summary="Get the current booking session",
)
async def get_current_booking(client: PassengerClient = Depends(get_client)):
    return SessionResponse.from_snapshot(client.booking.session)


@router.post(
    "/bookings/reset",
    response_model=SessionResponse,
    summary="Open a new booking session",
    responses={409: {"model": ErrorResponse, "description": "The current session is still in flight."}},
)
@limiter.limit("30/minute")
async def reset_booking(
    request: Request,
    client: PassengerClient = Depends(get_client),
):
    try:
        snapshot = client.booking.reset()
    except InvalidStateTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return SessionResponse.from_snapshot(snapshot)


@router.post(
    "/fare-estimates",
    response_model=FareBreakdownResponse,
    summary="Estimate the fare between two addresses",
    description=(
        "Returns ``available: false`` when the backend cannot quote; "
        "booking is unaffected."
    ),
)
@limiter.limit("60/minute")
async def estimate_fare(
    request: Request,
    body: FareEstimateRequest,
    client: PassengerClient = Depends(get_client),
):
    fare = await client.quotes.request_estimate(body.origin, body.destination)
    return FareBreakdownResponse.from_domain(fare)
