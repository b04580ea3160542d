"""
EV Taxi Passenger Client
========================
Entry point. Requires BACKEND_URL. Run with: uvicorn main:app
"""

import uvicorn

from src.api.app import create_app
from src.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port)
