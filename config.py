"""Configuration for the parking service."""

from __future__ import annotations

import dataclasses
import os
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from errors import ConfigError
from models import VehicleCategory
from plate import DEFAULT_PLATE_PATTERN
from rate_table import DEFAULT_BILLING_INCREMENT_MINUTES, DEFAULT_RATES
from slot_pool import DEFAULT_CAPACITIES


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _env_decimal(name: str, default: Decimal) -> Decimal:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return Decimal(value.strip())
    except InvalidOperation:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


@dataclasses.dataclass(frozen=True)
class ParkingConfig:
    """Parking lot configuration.

    Parameters
    ----------
    capacities : dict
        Slot count per vehicle category.
    rates : dict
        Hourly rate per vehicle category.
    billing_increment_minutes : int
        Minute granularity for time billed after the first hour.
    storage_path : str or None
        JSON file holding the persisted snapshot. ``None`` keeps the
        state in memory only.
    plate_pattern : str
        Regular expression a vehicle number must match at check-in.
    """

    capacities: Dict[VehicleCategory, int] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_CAPACITIES)
    )
    rates: Dict[VehicleCategory, Decimal] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_RATES)
    )
    billing_increment_minutes: int = DEFAULT_BILLING_INCREMENT_MINUTES
    storage_path: Optional[str] = None
    plate_pattern: str = DEFAULT_PLATE_PATTERN

    def __post_init__(self) -> None:
        for category in VehicleCategory:
            if self.capacities.get(category, 0) < 0:
                raise ConfigError(f"Capacity for {category.value} cannot be negative")
            if category not in self.rates:
                raise ConfigError(f"Missing hourly rate for {category.value}")
            if self.rates[category] < 0:
                raise ConfigError(f"Hourly rate for {category.value} cannot be negative")
        if self.billing_increment_minutes < 1:
            raise ConfigError("Billing increment must be at least 1 minute")

    @classmethod
    def from_env(cls, **overrides: Any) -> ParkingConfig:
        """Create configuration from ``PARKING_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        values: Dict[str, Any] = {
            "capacities": {
                c: _env_int(f"PARKING_CAPACITY_{c.name}", DEFAULT_CAPACITIES[c])
                for c in VehicleCategory
            },
            "rates": {
                c: _env_decimal(f"PARKING_RATE_{c.name}", DEFAULT_RATES[c])
                for c in VehicleCategory
            },
            "billing_increment_minutes": _env_int(
                "PARKING_BILLING_INCREMENT", DEFAULT_BILLING_INCREMENT_MINUTES
            ),
            "storage_path": os.environ.get("PARKING_STORAGE_PATH") or None,
            "plate_pattern": os.environ.get("PARKING_PLATE_PATTERN") or DEFAULT_PLATE_PATTERN,
        }
        values.update(overrides)
        return cls(**values)
