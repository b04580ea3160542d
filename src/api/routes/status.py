"""
Status endpoints
================

GET  /api/v1/health               -- simple health check
GET  /api/v1/connection           -- connection state for the offline banner
POST /api/v1/connection/reconnect -- manual reconnect (returns 202)
GET  /api/v1/driver               -- driver availability and card
"""

import asyncio

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_client
from src.api.middleware import limiter
from src.api.schemas import (
    ConnectionResponse,
    DriverInfoResponse,
    DriverStatusResponse,
    HealthResponse,
)
from src.client.container import PassengerClient
from src.domain.enums import SessionState

router = APIRouter(tags=["status"])

_background: set[asyncio.Task] = set()


def _connection_view(client: PassengerClient) -> ConnectionResponse:
    transport = client.transport
    return ConnectionResponse(
        state=transport.state.value,
        transport=transport.active_transport.value,
        retry_count=transport.retry_count,
        offline=transport.exhausted,
    )


@router.get("/health", response_model=HealthResponse)
async def health(client: PassengerClient = Depends(get_client)):
    return HealthResponse(connection=client.transport.state.value)


@router.get("/connection", response_model=ConnectionResponse)
async def get_connection(client: PassengerClient = Depends(get_client)):
    return _connection_view(client)


@router.post(
    "/connection/reconnect",
    status_code=202,
    response_model=ConnectionResponse,
    summary="Force a reconnect, starting from the polling transport",
)
@limiter.limit("10/minute")
async def reconnect(
    request: Request,
    client: PassengerClient = Depends(get_client),
):
    task = asyncio.create_task(client.transport.force_reconnect())
    _background.add(task)
    task.add_done_callback(_background.discard)
    return _connection_view(client)


@router.get("/driver", response_model=DriverStatusResponse)
async def get_driver(client: PassengerClient = Depends(get_client)):
    session = client.booking.session
    # A confirmed rider keeps the card captured at acceptance
    if session.state is SessionState.ACCEPTED and session.driver_info is not None:
        info = session.driver_info
    else:
        info = client.tracker.driver_info
    return DriverStatusResponse(
        status=client.tracker.status.value,
        can_request_now=client.booking.can_request_now(),
        driver=DriverInfoResponse.from_domain(info),
    )
