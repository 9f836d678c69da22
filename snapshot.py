"""
スナップショット文書（永続化・エクスポート・インポート共通）の変換

金額は文字列、時刻は ISO-8601 文字列で書き出す。
読み込みは寛容に行い、欠けているセクションは空として扱う。
ただし車両台帳セクションが無い文書は InvalidSnapshot とする。
旧形式（parkedVehicles / slotNumber / carNumber など）のキーも受け付ける。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional

from errors import InvalidSnapshot, InvalidTimestamp, ParkingError
from models import (
    ActiveSession,
    ClosedSession,
    VehicleCategory,
    format_instant,
    normalize_vehicle_id,
    parse_instant,
)
from rate_table import RateTable
from slot_pool import SlotPool

logger = logging.getLogger(__name__)


@dataclass
class DecodedSnapshot:
    sessions: List[ActiveSession] = field(default_factory=list)
    history: List[ClosedSession] = field(default_factory=list)


# -------------------------
# 書き出し
# -------------------------
def encode_session(session: ActiveSession) -> Dict[str, Any]:
    return {
        "vehicleId": session.vehicle_id,
        "category": session.category.value,
        "slotIndex": session.slot_index,
        "checkInTime": session.check_in_time,
        "plannedHours": session.planned_hours,
        "quotedCost": str(session.quoted_cost),
    }


def encode_closed(entry: ClosedSession) -> Dict[str, Any]:
    return {
        "vehicleId": entry.vehicle_id,
        "category": entry.category.value,
        "checkInTime": entry.check_in_time,
        "checkOutTime": entry.check_out_time,
        "billedHours": str(entry.billed_hours),
        "totalCost": str(entry.total_cost),
    }


def encode(
    pool: SlotPool,
    sessions: List[ActiveSession],
    history: List[ClosedSession],
    rates: RateTable,
) -> Dict[str, Any]:
    slots_by_category: Dict[str, Dict[str, Any]] = {}
    for category in VehicleCategory:
        slots_by_category[category.value] = {
            str(s.index): {"status": s.status.value, "occupant": s.occupant}
            for s in pool.slots(category)
        }

    return {
        "slotsByCategory": slots_by_category,
        "activeSessions": {s.vehicle_id: encode_session(s) for s in sessions},
        "history": [encode_closed(h) for h in history],
        "capacities": {c.value: n for c, n in pool.capacities().items()},
        "rates": {c.value: str(rates.hourly_rate(c)) for c in VehicleCategory},
        "billingIncrementMinutes": rates.shared_increment(),
        "billingIncrements": {c.value: rates.billing_increment(c) for c in VehicleCategory},
    }


# -------------------------
# 読み込み
# -------------------------
def decode(doc: Any) -> DecodedSnapshot:
    if not isinstance(doc, Mapping):
        raise InvalidSnapshot("Snapshot document must be a JSON object")

    ledger = doc.get("activeSessions")
    if ledger is None:
        ledger = doc.get("parkedVehicles")
    if not isinstance(ledger, Mapping):
        raise InvalidSnapshot("Snapshot document has no vehicle ledger section")

    decoded = DecodedSnapshot()
    for vehicle_id, raw in ledger.items():
        try:
            decoded.sessions.append(_decode_session(vehicle_id, raw))
        except (ParkingError, TypeError, ValueError, InvalidOperation) as exc:
            logger.warning("Dropping malformed session %r: %s", vehicle_id, exc)

    history = doc.get("history") or []
    if not isinstance(history, list):
        logger.warning("Ignoring history section of type %s", type(history).__name__)
        history = []
    for raw in history:
        try:
            decoded.history.append(_decode_closed(raw))
        except (ParkingError, TypeError, ValueError, InvalidOperation) as exc:
            logger.warning("Dropping malformed history entry: %s", exc)

    return decoded


def _decode_session(vehicle_id: str, raw: Any) -> ActiveSession:
    if not isinstance(raw, Mapping):
        raise TypeError("session entry must be an object")
    return ActiveSession(
        vehicle_id=normalize_vehicle_id(raw.get("vehicleId") or vehicle_id),
        category=VehicleCategory.parse(_first(raw, "category", "type")),
        slot_index=_to_index(_first(raw, "slotIndex", "slotNumber")),
        check_in_time=_normalize_timestamp(raw.get("checkInTime")),
        planned_hours=int(_first(raw, "plannedHours", "expectedDuration") or 0),
        quoted_cost=_to_decimal(_first(raw, "quotedCost", "expectedCost") or 0),
    )


def _decode_closed(raw: Any) -> ClosedSession:
    if not isinstance(raw, Mapping):
        raise TypeError("history entry must be an object")
    return ClosedSession(
        vehicle_id=normalize_vehicle_id(_first(raw, "vehicleId", "carNumber")),
        category=VehicleCategory.parse(_first(raw, "category", "vehicleType")),
        check_in_time=_normalize_timestamp(raw.get("checkInTime")),
        check_out_time=_normalize_timestamp(raw.get("checkOutTime")),
        billed_hours=_to_decimal(raw.get("billedHours") or 0),
        total_cost=_to_decimal(raw.get("totalCost") or 0),
    )


def _first(raw: Mapping, *keys: str) -> Optional[Any]:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _to_index(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid slot index {value!r}")
    return int(value)


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"invalid amount {value!r}")
    return Decimal(str(value))


def _normalize_timestamp(value: Any) -> str:
    # 'T' 区切りでない旧形式は読めれば ISO-8601 に直す。読めない値はそのまま残し、精算時に検出する
    if not isinstance(value, str):
        return "" if value is None else str(value)
    if "T" in value:
        return value
    try:
        return format_instant(parse_instant(value))
    except InvalidTimestamp:
        return value
