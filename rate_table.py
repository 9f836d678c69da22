from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Optional

from errors import ConfigError
from models import VehicleCategory

DEFAULT_RATES: Dict[VehicleCategory, Decimal] = {
    VehicleCategory.CAR: Decimal("60"),
    VehicleCategory.BIKE: Decimal("30"),
    VehicleCategory.TRUCK: Decimal("100"),
}

DEFAULT_BILLING_INCREMENT_MINUTES = 15


@dataclass(frozen=True)
class RateEntry:
    hourly_rate: Decimal
    billing_increment_minutes: int


class RateTable:
    """区分ごとの時間料金と課金単位（分）"""

    def __init__(
        self,
        rates: Optional[Mapping[VehicleCategory, Decimal]] = None,
        billing_increment_minutes: int = DEFAULT_BILLING_INCREMENT_MINUTES,
        increments: Optional[Mapping[VehicleCategory, int]] = None,
    ) -> None:
        rates = dict(DEFAULT_RATES if rates is None else rates)
        increments = dict(increments or {})

        self._entries: Dict[VehicleCategory, RateEntry] = {}
        for category in VehicleCategory:
            if category not in rates:
                raise ConfigError(f"Missing hourly rate for {category.value}")
            rate = Decimal(str(rates[category]))
            if rate < 0:
                raise ConfigError(f"Hourly rate for {category.value} cannot be negative")
            increment = int(increments.get(category, billing_increment_minutes))
            if increment < 1:
                raise ConfigError("Billing increment must be at least 1 minute")
            self._entries[category] = RateEntry(rate, increment)

    def entry(self, category: VehicleCategory) -> RateEntry:
        return self._entries[category]

    def hourly_rate(self, category: VehicleCategory) -> Decimal:
        return self._entries[category].hourly_rate

    def billing_increment(self, category: VehicleCategory) -> int:
        return self._entries[category].billing_increment_minutes

    def shared_increment(self) -> int:
        # スナップショットの billingIncrementMinutes には CAR の値を代表として書く
        return self._entries[VehicleCategory.CAR].billing_increment_minutes

    def quote_planned(self, category: VehicleCategory, planned_hours: int) -> Decimal:
        return self.hourly_rate(category) * planned_hours
