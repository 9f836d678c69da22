from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from config import ParkingConfig
from models import VehicleCategory
from parking_system import ParkingService
from storage import MemoryStore


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def small_config() -> ParkingConfig:
    return ParkingConfig(
        capacities={VehicleCategory.CAR: 3, VehicleCategory.BIKE: 2, VehicleCategory.TRUCK: 1},
        rates={
            VehicleCategory.CAR: Decimal("60"),
            VehicleCategory.BIKE: Decimal("30"),
            VehicleCategory.TRUCK: Decimal("100"),
        },
        billing_increment_minutes=15,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def service(small_config: ParkingConfig, store: MemoryStore, clock: FakeClock) -> ParkingService:
    return ParkingService.from_config(small_config, store=store, clock=clock)
