"""
Driver availability reducer.

``reduce_status(current, event_name, payload) -> DriverStatus`` is pure:
malformed or unrecognised input keeps ``current``.
"""

from __future__ import annotations

import logging
from typing import Any

from .enums import DriverStatus

logger = logging.getLogger(__name__)

STATUS_EVENT = "driverStatusUpdate"
APP_STATUS_EVENT = "passengerAppStatus"

_LABELS = {
    "offline": DriverStatus.OFFLINE,
    "available": DriverStatus.AVAILABLE,
    "busy": DriverStatus.BUSY,
}


def parse_status_label(label: Any) -> DriverStatus | None:
    if not isinstance(label, str):
        return None
    return _LABELS.get(label.strip().lower())


def reduce_status(
    current: DriverStatus, event_name: str, payload: Any
) -> DriverStatus:
    if not isinstance(payload, dict):
        logger.warning("Ignoring %s with non-object payload %r", event_name, payload)
        return current

    if event_name == APP_STATUS_EVENT:
        is_offline = payload.get("isOffline")
        if not isinstance(is_offline, bool):
            logger.warning("Ignoring %s without boolean isOffline", event_name)
            return current
        return DriverStatus.OFFLINE if is_offline else DriverStatus.AVAILABLE

    # driverStatusUpdate and getDriverStatus acks share the {status} shape
    status = parse_status_label(payload.get("status"))
    if status is None:
        logger.warning(
            "Unrecognised driver status %r in %s; keeping %s",
            payload.get("status"),
            event_name,
            current.value,
        )
        return current
    return status
