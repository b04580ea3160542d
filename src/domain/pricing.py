"""
Fare Estimator
==============

Formula
-------
Total = Base_Fare + Distance x Rate_Per_Mile + Duration x Rate_Per_Minute + Surcharges

* **Surcharges**: ``Airport Exit Fee`` 4.12 and ``Airport Drop-off Fee``
  3.12, applied iff the destination mentions the airport keyword
  (case-insensitive).
* Amounts are summed unrounded; ``lines()`` rounds to cents for display.

Complexity: O(1) per estimate.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Real
from typing import Any, Optional

from .errors import InvalidEstimateInput

logger = logging.getLogger(__name__)

DISCLAIMER = "*Final fare may vary based on actual route and conditions"


def format_money(amount: float) -> str:
    return f"${amount:.2f}"


# ── Surcharge rules ───────────────────────────────────────────────────


class SurchargeRule(ABC):
    @abstractmethod
    def apply(self, destination: str) -> list[tuple[str, float]]: ...


class AirportSurcharge(SurchargeRule):
    FEES = (("Airport Exit Fee", 4.12), ("Airport Drop-off Fee", 3.12))

    def __init__(self, keyword: str = "dfw airport"):
        self.keyword = keyword.lower()

    def apply(self, destination: str) -> list[tuple[str, float]]:
        if self.keyword in (destination or "").lower():
            return list(self.FEES)
        return []


# ── Value object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class FareBreakdown:
    distance_miles: float
    duration_minutes: float
    base_fare: float
    distance_cost: float
    time_cost: float
    surcharges: tuple[tuple[str, float], ...]
    total: float

    @property
    def surcharge_total(self) -> float:
        return sum(amount for _, amount in self.surcharges)

    def lines(self) -> list[tuple[str, str]]:
        """Presentation rows ``(label, amount)``, the only place rounding happens."""
        rows = [
            ("Base Fare", format_money(self.base_fare)),
            (
                f"Distance ({self.distance_miles:g} miles)",
                format_money(self.distance_cost),
            ),
            (
                f"Time ({self.duration_minutes:g} mins)",
                format_money(self.time_cost),
            ),
        ]
        rows.extend((label, format_money(amount)) for label, amount in self.surcharges)
        rows.append(("Total Estimate", format_money(self.total)))
        return rows


# ── Engine facade ─────────────────────────────────────────────────────


def _checked(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidEstimateInput(f"{name} must be a number, got {value!r}")
    try:
        value = float(value)
    except OverflowError:
        raise InvalidEstimateInput(f"{name} is out of range") from None
    if not math.isfinite(value):
        raise InvalidEstimateInput(f"{name} must be finite, got {value!r}")
    if value < 0:
        raise InvalidEstimateInput(f"{name} must be >= 0, got {value!r}")
    return value


class FareEstimator:
    """Deterministic price computation used by the booking flow and the API."""

    def __init__(
        self,
        base_fare: float = 3.00,
        rate_per_mile: float = 2.80,
        rate_per_minute: float = 0.40,
        surcharge_rules: Optional[list[SurchargeRule]] = None,
    ):
        self.base_fare = base_fare
        self.rate_per_mile = rate_per_mile
        self.rate_per_minute = rate_per_minute
        self.surcharge_rules = (
            surcharge_rules if surcharge_rules is not None else [AirportSurcharge()]
        )

    @classmethod
    def from_settings(cls, settings) -> "FareEstimator":
        return cls(
            base_fare=settings.base_fare,
            rate_per_mile=settings.rate_per_mile,
            rate_per_minute=settings.rate_per_minute,
            surcharge_rules=[AirportSurcharge(settings.airport_keyword)],
        )

    def estimate(
        self, distance_miles: float, duration_minutes: float, destination: str = ""
    ) -> FareBreakdown:
        distance = _checked("distance_miles", distance_miles)
        duration = _checked("duration_minutes", duration_minutes)

        distance_cost = distance * self.rate_per_mile
        time_cost = duration * self.rate_per_minute
        surcharges: list[tuple[str, float]] = []
        for rule in self.surcharge_rules:
            surcharges.extend(rule.apply(destination))

        total = (
            self.base_fare
            + distance_cost
            + time_cost
            + sum(amount for _, amount in surcharges)
        )
        return FareBreakdown(
            distance_miles=distance,
            duration_minutes=duration,
            base_fare=self.base_fare,
            distance_cost=distance_cost,
            time_cost=time_cost,
            surcharges=tuple(surcharges),
            total=total,
        )

    def estimate_from_details(
        self, details: Any, destination: Optional[str] = None
    ) -> FareBreakdown:
        """Build a breakdown from a backend ``fareDetails`` / ``fareEstimate`` dict."""
        if not isinstance(details, dict):
            raise InvalidEstimateInput(f"fare details must be an object, got {details!r}")
        breakdown = self.estimate(
            details.get("distance"),
            details.get("duration"),
            destination if destination is not None else str(details.get("destination") or ""),
        )
        quoted = details.get("fare")
        if isinstance(quoted, Real) and not math.isclose(
            float(quoted), breakdown.total, abs_tol=0.005
        ):
            logger.warning(
                "Backend fare %.2f differs from local estimate %.2f",
                quoted,
                breakdown.total,
            )
        return breakdown
