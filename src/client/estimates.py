"""Fare quotes from the backend, priced locally by ``FareEstimator``."""

from __future__ import annotations

import logging
from typing import Any, Optional

from src.domain.errors import InvalidEstimateInput, TransportError
from src.domain.pricing import FareBreakdown, FareEstimator
from src.infrastructure.transport import TransportManager

logger = logging.getLogger(__name__)

ESTIMATE_UPDATE_EVENT = "fareEstimateUpdate"


class FareQuoteService:
    """Keeps the latest estimate; any failure suppresses it instead of raising."""

    def __init__(
        self,
        transport: TransportManager,
        estimator: FareEstimator,
        deadline_ms: int = 10_000,
    ):
        self._transport = transport
        self._estimator = estimator
        self._deadline_ms = deadline_ms
        self._destination = ""
        self.latest: Optional[FareBreakdown] = None

    def attach(self) -> None:
        self._transport.on(ESTIMATE_UPDATE_EVENT, self._on_update, owner=self)

    def detach(self) -> None:
        self._transport.off(ESTIMATE_UPDATE_EVENT, owner=self)

    async def request_estimate(
        self, origin: str, destination: str
    ) -> Optional[FareBreakdown]:
        self._destination = destination
        try:
            ack = await self._transport.send(
                "requestFareEstimate",
                {"origin": origin, "destination": destination},
                self._deadline_ms,
            )
        except TransportError as exc:
            logger.warning("Fare estimate unavailable: %s", exc)
            self.latest = None
            return None
        return self._store(ack.get("fareEstimate"))

    def _on_update(self, payload: Any) -> None:
        if isinstance(payload, dict) and "fareEstimate" in payload:
            payload = payload["fareEstimate"]
        self._store(payload)

    def _store(self, details: Any) -> Optional[FareBreakdown]:
        destination = None
        if isinstance(details, dict) and not details.get("destination"):
            destination = self._destination
        try:
            self.latest = self._estimator.estimate_from_details(details, destination)
        except InvalidEstimateInput as exc:
            logger.warning("Suppressing fare estimate: %s", exc)
            self.latest = None
        return self.latest
