from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from errors import InvalidTimestamp, ValidationError


class VehicleCategory(Enum):
    CAR = "car"
    BIKE = "bike"
    TRUCK = "truck"

    @classmethod
    def parse(cls, value: "VehicleCategory | str") -> "VehicleCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown vehicle category: {value!r}") from None


class SlotStatus(Enum):
    EMPTY = "empty"
    OCCUPIED = "occupied"


@dataclass
class Slot:
    index: int                        # 1始まり、区分内で一意
    status: SlotStatus = SlotStatus.EMPTY
    occupant: Optional[str] = None    # OCCUPIED のときだけ設定される


@dataclass(frozen=True)
class ActiveSession:
    vehicle_id: str
    category: VehicleCategory
    slot_index: int
    check_in_time: str                # ISO-8601（インポートデータは不正な場合あり）
    planned_hours: int
    quoted_cost: Decimal


@dataclass(frozen=True)
class ClosedSession:
    vehicle_id: str
    category: VehicleCategory
    check_in_time: str
    check_out_time: str
    billed_hours: Decimal
    total_cost: Decimal


# -------------------------
# 操作結果
# -------------------------
@dataclass(frozen=True)
class CheckInResult:
    vehicle_id: str
    category: VehicleCategory
    slot_index: int
    check_in_time: str
    quoted_cost: Decimal


@dataclass(frozen=True)
class CheckOutResult:
    vehicle_id: str
    category: VehicleCategory
    slot_index: int
    check_in_time: str
    check_out_time: str
    billed_minutes: int
    billed_hours: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class OccupancyStats:
    category: VehicleCategory
    capacity: int
    occupied: int

    @property
    def available(self) -> int:
        return self.capacity - self.occupied


# -------------------------
# 共通ヘルパー
# -------------------------
def normalize_vehicle_id(vehicle_id: str) -> str:
    if not isinstance(vehicle_id, str):
        raise ValidationError("Vehicle identifier must be a string")
    normalized = vehicle_id.strip().upper()
    if not normalized:
        raise ValidationError("Vehicle identifier cannot be empty")
    return normalized


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_instant(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_instant(value: object) -> datetime:
    """
    ISO-8601 文字列を UTC の datetime に変換する
    タイムゾーン無しの値は UTC とみなす。
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestamp(f"Unparsable timestamp: {value!r}") from None
    else:
        raise InvalidTimestamp(f"Unparsable timestamp: {value!r}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment
