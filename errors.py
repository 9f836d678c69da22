from __future__ import annotations


class ParkingError(Exception):
    """駐車場コアの例外の基底クラス"""

    code = "parking_error"


class ValidationError(ParkingError):
    """入力値（ナンバー・区分・時間）の形式が不正"""

    code = "validation_error"


class DuplicateVehicle(ParkingError):
    code = "duplicate_vehicle"

    def __init__(self, vehicle_id: str) -> None:
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle {vehicle_id} is already parked")


class NoSlotAvailable(ParkingError):
    code = "no_slot_available"

    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"No {category} parking slots available")


class VehicleNotFound(ParkingError):
    code = "vehicle_not_found"

    def __init__(self, vehicle_id: str) -> None:
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle {vehicle_id} not found in parking records")


class InvalidSlot(ParkingError):
    code = "invalid_slot"


class InvalidTimestamp(ParkingError):
    code = "invalid_timestamp"


class InvalidSnapshot(ParkingError):
    code = "invalid_snapshot"


class ConfigError(ParkingError):
    code = "config_error"


class StorageError(ParkingError):
    """永続化ストアの読み書き失敗（呼び出し側では致命的ではない）"""

    code = "storage_error"
