from __future__ import annotations

import pytest

from errors import StorageError
from models import VehicleCategory
from parking_system import ParkingService
from storage import JsonFileStore, MemoryStore


def test_json_file_store_round_trip(tmp_path) -> None:
    store = JsonFileStore(str(tmp_path / "data" / "parking.json"))

    assert store.load() is None
    store.save({"activeSessions": {}, "history": []})
    assert store.load() == {"activeSessions": {}, "history": []}

    store.clear()
    assert store.load() is None
    store.clear()


def test_json_file_store_reports_corrupt_file(tmp_path) -> None:
    path = tmp_path / "parking.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        JsonFileStore(str(path)).load()


def test_memory_store_returns_copies() -> None:
    store = MemoryStore()
    doc = {"activeSessions": {}}
    store.save(doc)
    doc["activeSessions"]["X"] = 1

    assert store.load() == {"activeSessions": {}}


def test_service_survives_restart_with_file_store(small_config, clock, tmp_path) -> None:
    config = small_config.__class__(
        capacities=small_config.capacities,
        rates=small_config.rates,
        storage_path=str(tmp_path / "parking.json"),
    )
    first = ParkingService.from_config(config, clock=clock)
    first.check_in("MH02FM1234", VehicleCategory.TRUCK, 4)
    first.close()

    second = ParkingService.from_config(config, clock=clock)

    assert second.occupancy("truck").occupied == 1
    assert second.search("MH02FM1234").session.planned_hours == 4


def test_corrupt_file_starts_empty(small_config, clock, tmp_path) -> None:
    path = tmp_path / "parking.json"
    path.write_text("[]", encoding="utf-8")
    config = small_config.__class__(
        capacities=small_config.capacities,
        rates=small_config.rates,
        storage_path=str(path),
    )

    service = ParkingService.from_config(config, clock=clock)

    assert len(service.state.ledger) == 0


def test_failed_save_leaves_no_temp_file(tmp_path, monkeypatch) -> None:
    store = JsonFileStore(str(tmp_path / "parking.json"))

    def fail_replace(src, dst):
        raise OSError("device busy")

    monkeypatch.setattr("storage.os.replace", fail_replace)

    with pytest.raises(StorageError):
        store.save({"activeSessions": {}})
    assert list(tmp_path.iterdir()) == []


def test_unserialisable_document_leaves_no_temp_file(tmp_path) -> None:
    store = JsonFileStore(str(tmp_path / "parking.json"))

    with pytest.raises(StorageError):
        store.save({"activeSessions": object()})
    assert list(tmp_path.iterdir()) == []
