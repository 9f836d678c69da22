from __future__ import annotations

from decimal import Decimal

import pytest

from config import ParkingConfig
from errors import ConfigError
from models import VehicleCategory
from plate import DEFAULT_PLATE_PATTERN


def test_defaults() -> None:
    config = ParkingConfig()

    assert config.capacities == {
        VehicleCategory.CAR: 100,
        VehicleCategory.BIKE: 300,
        VehicleCategory.TRUCK: 50,
    }
    assert config.rates[VehicleCategory.TRUCK] == Decimal("100")
    assert config.billing_increment_minutes == 15
    assert config.storage_path is None
    assert config.plate_pattern == DEFAULT_PLATE_PATTERN


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("PARKING_CAPACITY_CAR", "5")
    monkeypatch.setenv("PARKING_RATE_BIKE", "12.5")
    monkeypatch.setenv("PARKING_BILLING_INCREMENT", "10")
    monkeypatch.setenv("PARKING_STORAGE_PATH", "/tmp/parking.json")

    config = ParkingConfig.from_env(plate_pattern=r"^[A-Z0-9]+$")

    assert config.capacities[VehicleCategory.CAR] == 5
    assert config.capacities[VehicleCategory.TRUCK] == 50
    assert config.rates[VehicleCategory.BIKE] == Decimal("12.5")
    assert config.billing_increment_minutes == 10
    assert config.storage_path == "/tmp/parking.json"
    assert config.plate_pattern == r"^[A-Z0-9]+$"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PARKING_CAPACITY_TRUCK", "many"),
        ("PARKING_RATE_CAR", "sixty"),
        ("PARKING_BILLING_INCREMENT", "0"),
        ("PARKING_CAPACITY_BIKE", "-2"),
    ],
)
def test_from_env_rejects_bad_values(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError):
        ParkingConfig.from_env()
