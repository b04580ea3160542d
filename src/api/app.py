"""
FastAPI application factory.

* Registers booking and status routes for the rendering layer.
* Starts / stops the passenger client (connection, tracker, connectivity
  monitor) via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import bookings, status
from src.client.container import PassengerClient

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect on startup; tear everything down on shutdown."""
    await app.state.client.start()
    yield
    await app.state.client.stop()


def create_app(client: Optional[PassengerClient] = None) -> FastAPI:
    app = FastAPI(
        title="EV Taxi Passenger Client",
        description=(
            "Local facade over the passenger booking client: connection "
            "status, driver availability, fare estimates and the booking "
            "session state machine."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.client = client or PassengerClient()

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(status.router, prefix="/api/v1")

    return app
