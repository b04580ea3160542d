"""FastAPI dependency injection helpers."""

from fastapi import Request

from src.client.container import PassengerClient


def get_client(request: Request) -> PassengerClient:
    """Return the process-wide passenger client stored on the app."""
    return request.app.state.client
