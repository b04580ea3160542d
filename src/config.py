"""Centralised client settings loaded from environment / .env file."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Dispatch backend (no default: the transport manager refuses to start without it)
    backend_url: Optional[str] = None

    # Connection
    connect_timeout_seconds: float = 20.0
    reconnect_base_delay_seconds: float = 1.0
    reconnect_max_delay_seconds: float = 5.0  # backoff ceiling
    reconnect_max_attempts: int = 5
    force_reconnect_delay_seconds: float = 1.0
    request_deadline_ms: int = 30_000

    # Connectivity probe
    connectivity_probe_interval_seconds: float = 5.0
    connectivity_probe_timeout_seconds: float = 3.0

    # Scheduling (service local time)
    service_timezone: str = "America/Chicago"
    schedule_window_start_hour: int = 19  # 7 PM
    schedule_window_end_hour: int = 8  # 8 AM

    # Pricing
    base_fare: float = 3.00  # USD
    rate_per_mile: float = 2.80
    rate_per_minute: float = 0.40
    airport_keyword: str = "dfw airport"

    # Local HTTP facade
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
