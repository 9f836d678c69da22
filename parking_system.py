from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, tzinfo
from functools import wraps
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

import snapshot
from billing import BillingEngine, BillingResult
from config import ParkingConfig
from errors import (
    DuplicateVehicle,
    InvalidSnapshot,
    InvalidTimestamp,
    NoSlotAvailable,
    StorageError,
    ValidationError,
    VehicleNotFound,
)
from history_log import HistoryLog
from models import (
    ActiveSession,
    CheckInResult,
    CheckOutResult,
    ClosedSession,
    OccupancyStats,
    Slot,
    VehicleCategory,
    format_instant,
    normalize_vehicle_id,
    parse_instant,
    utc_now,
)
from plate import PlateValidator, RegexPlateValidator
from rate_table import RateTable
from slot_pool import SlotPool
from storage import JsonFileStore, MemoryStore, SnapshotStore
from vehicle_ledger import VehicleLedger

logger = logging.getLogger(__name__)


@dataclass
class ParkingState:
    """駐車場の状態一式。変更は ParkingService 経由でのみ行う"""

    pool: SlotPool
    ledger: VehicleLedger
    history: HistoryLog
    rates: RateTable

    @classmethod
    def from_config(cls, config: ParkingConfig) -> "ParkingState":
        return cls(
            pool=SlotPool(config.capacities),
            ledger=VehicleLedger(),
            history=HistoryLog(),
            rates=RateTable(config.rates, config.billing_increment_minutes),
        )


@dataclass(frozen=True)
class SearchResult:
    session: ActiveSession
    elapsed_seconds: Optional[int]      # 入庫時刻が読めない場合は None
    quote: Optional[BillingResult]


@dataclass(frozen=True)
class SlotInfo:
    category: VehicleCategory
    slot: Slot
    session: Optional[ActiveSession]
    elapsed_seconds: Optional[int]


@dataclass(frozen=True)
class StatusReport:
    generated_at: str
    entries: List[SearchResult]
    total_current_revenue: Decimal


@dataclass(frozen=True)
class Analytics:
    revenue_by_category: Dict[VehicleCategory, Decimal]
    occupancy_by_hour: List[int]
    peak_hours: List[str]
    total_revenue: Decimal


@dataclass(frozen=True)
class ImportSummary:
    sessions: int
    history: int
    dropped: int


def _synchronized(fn):
    # 公開操作は1つずつ最後まで実行する（複数スレッドから呼ばれても区画と台帳の対応を保つ）
    @wraps(fn)
    def inner(self, *args, **kwargs):
        with self._lock:
            return fn(self, *args, **kwargs)
    return inner


class ParkingService:
    """
    駐車場管理の中枢（入庫・出庫・検索・リセット・インポート/エクスポート）

    - 区画割当: 区分ごとの Min-Heap（最小の空き番号から first-fit）
    - 駐車中台帳: 車両ID → セッション
    - 料金計算: BillingEngine（最初の1時間定額 + 課金単位で切り上げ）
    - 履歴: 追記専用ログ
    変更系の操作のあとは毎回スナップショットを保存する（失敗しても操作は取り消さない）。
    """

    def __init__(
        self,
        state: ParkingState,
        store: Optional[SnapshotStore] = None,
        clock: Callable[[], datetime] = utc_now,
        plate_validator: Optional[PlateValidator] = None,
        billing: Optional[BillingEngine] = None,
    ) -> None:
        self.state = state
        self._lock = threading.RLock()
        self.store = store if store is not None else MemoryStore()
        self._clock = clock
        self._validate_plate = plate_validator or RegexPlateValidator()
        self.billing = billing or BillingEngine()

    @classmethod
    def from_config(
        cls,
        config: ParkingConfig,
        store: Optional[SnapshotStore] = None,
        clock: Callable[[], datetime] = utc_now,
        plate_validator: Optional[PlateValidator] = None,
    ) -> "ParkingService":
        if store is None:
            store = JsonFileStore(config.storage_path) if config.storage_path else MemoryStore()
        service = cls(
            ParkingState.from_config(config),
            store=store,
            clock=clock,
            plate_validator=plate_validator or RegexPlateValidator(config.plate_pattern),
        )
        service.load()
        return service

    # -------------------------
    # 起動・終了
    # -------------------------
    @_synchronized
    def load(self) -> None:
        try:
            doc = self.store.load()
        except StorageError as exc:
            logger.warning("Failed to load parking data, starting empty: %s", exc)
            return
        if doc is None:
            return
        try:
            decoded = snapshot.decode(doc)
        except InvalidSnapshot as exc:
            logger.warning("Ignoring persisted parking data: %s", exc)
            return
        summary = self._restore(decoded)
        logger.info(
            "Loaded %d active sessions and %d history entries", summary.sessions, summary.history
        )

    @_synchronized
    def close(self) -> None:
        self._persist()

    # -------------------------
    # 入庫
    # -------------------------
    @_synchronized
    def check_in(
        self, vehicle_id: str, category: "VehicleCategory | str", planned_hours: int
    ) -> CheckInResult:
        vehicle_id = normalize_vehicle_id(vehicle_id)
        self._validate_plate(vehicle_id)
        category = VehicleCategory.parse(category)
        planned_hours = _planned_hours(planned_hours)

        if vehicle_id in self.state.ledger:
            raise DuplicateVehicle(vehicle_id)

        slot_index = self.state.pool.find_first_available(category)
        if slot_index is None:
            raise NoSlotAvailable(category.value)

        session = ActiveSession(
            vehicle_id=vehicle_id,
            category=category,
            slot_index=slot_index,
            check_in_time=format_instant(self._clock()),
            planned_hours=planned_hours,
            quoted_cost=self.state.rates.quote_planned(category, planned_hours),
        )
        self.state.pool.occupy(category, slot_index, vehicle_id)
        self.state.ledger.register(vehicle_id, session)
        self._persist()

        logger.info("Vehicle %s parked in %s slot %d", vehicle_id, category.value, slot_index)
        return CheckInResult(
            vehicle_id=vehicle_id,
            category=category,
            slot_index=slot_index,
            check_in_time=session.check_in_time,
            quoted_cost=session.quoted_cost,
        )

    # -------------------------
    # 出庫
    # -------------------------
    @_synchronized
    def check_out(self, vehicle_id: str) -> CheckOutResult:
        vehicle_id = normalize_vehicle_id(vehicle_id)
        session = self.state.ledger.lookup(vehicle_id)
        if session is None:
            raise VehicleNotFound(vehicle_id)

        check_in = parse_instant(session.check_in_time)
        now = self._clock()
        check_out_time = format_instant(now)
        bill = self.billing.bill_between(
            check_in, parse_instant(check_out_time), self.state.rates.entry(session.category)
        )

        self.state.pool.release(session.category, session.slot_index)
        self.state.ledger.remove(vehicle_id)
        self.state.history.append(
            ClosedSession(
                vehicle_id=vehicle_id,
                category=session.category,
                check_in_time=session.check_in_time,
                check_out_time=check_out_time,
                billed_hours=bill.billed_hours,
                total_cost=bill.cost,
            )
        )
        self._persist()

        logger.info(
            "Vehicle %s left %s slot %d, billed %s h, total %s",
            vehicle_id, session.category.value, session.slot_index, bill.billed_hours, bill.cost,
        )
        return CheckOutResult(
            vehicle_id=vehicle_id,
            category=session.category,
            slot_index=session.slot_index,
            check_in_time=session.check_in_time,
            check_out_time=check_out_time,
            billed_minutes=bill.billed_minutes,
            billed_hours=bill.billed_hours,
            total_cost=bill.cost,
        )

    # -------------------------
    # 検索・見積もり（状態は変更しない）
    # -------------------------
    @_synchronized
    def search(self, vehicle_id: str, now: Optional[datetime] = None) -> Optional[SearchResult]:
        session = self.state.ledger.lookup(vehicle_id)
        if session is None:
            return None
        return self._live(session, self._now(now))

    @_synchronized
    def current_quote(self, vehicle_id: str, now: Optional[datetime] = None) -> Decimal:
        vehicle_id = normalize_vehicle_id(vehicle_id)
        session = self.state.ledger.lookup(vehicle_id)
        if session is None:
            raise VehicleNotFound(vehicle_id)
        _, quote = self._quote(session, self._now(now))
        return quote.cost

    @_synchronized
    def occupancy(self, category: "VehicleCategory | str") -> OccupancyStats:
        category = VehicleCategory.parse(category)
        return OccupancyStats(
            category=category,
            capacity=self.state.pool.capacity(category),
            occupied=self.state.pool.occupied_count(category),
        )

    @_synchronized
    def slots(self, category: "VehicleCategory | str") -> List[Slot]:
        return self.state.pool.slots(VehicleCategory.parse(category))

    @_synchronized
    def slot_info(
        self, category: "VehicleCategory | str", index: int, now: Optional[datetime] = None
    ) -> SlotInfo:
        category = VehicleCategory.parse(category)
        slot = self.state.pool.slot(category, index)
        session = self.state.ledger.lookup(slot.occupant) if slot.occupant else None
        elapsed = None
        if session is not None:
            elapsed = self._live(session, self._now(now)).elapsed_seconds
        return SlotInfo(category=category, slot=slot, session=session, elapsed_seconds=elapsed)

    @_synchronized
    def status_report(self, now: Optional[datetime] = None) -> StatusReport:
        now = self._now(now)
        sessions = sorted(
            self.state.ledger.sessions(),
            key=lambda s: (list(VehicleCategory).index(s.category), s.slot_index),
        )
        entries = [self._live(s, now) for s in sessions]
        total = sum((e.quote.cost for e in entries if e.quote is not None), Decimal("0"))
        return StatusReport(
            generated_at=format_instant(now), entries=entries, total_current_revenue=total
        )

    @_synchronized
    def history(self) -> Tuple[ClosedSession, ...]:
        return self.state.history.entries()

    @_synchronized
    def analytics(self, tz: Optional[tzinfo] = None) -> Analytics:
        log = self.state.history
        return Analytics(
            revenue_by_category=log.revenue_by_category(),
            occupancy_by_hour=log.occupancy_by_hour(tz),
            peak_hours=log.peak_hours(tz),
            total_revenue=log.total_revenue(),
        )

    # -------------------------
    # 管理操作
    # -------------------------
    @_synchronized
    def reset(self) -> None:
        """全区画・台帳・履歴・保存データを消去する（確認は呼び出し側で行う）"""
        self.state.pool.clear()
        self.state.ledger.clear()
        self.state.history.clear()
        try:
            self.store.clear()
        except StorageError as exc:
            logger.warning("Failed to clear persisted parking data: %s", exc)
        logger.info("Parking system has been reset")

    @_synchronized
    def export_snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        doc = self._document()
        doc["exportedAt"] = format_instant(self._now(now))
        return doc

    @_synchronized
    def import_snapshot(self, doc: Any) -> ImportSummary:
        decoded = snapshot.decode(doc)
        summary = self._restore(decoded)
        self._persist()
        logger.info(
            "Imported %d active sessions and %d history entries (%d dropped)",
            summary.sessions, summary.history, summary.dropped,
        )
        return summary

    # -------------------------
    # 内部
    # -------------------------
    def _restore(self, decoded: snapshot.DecodedSnapshot) -> ImportSummary:
        # 区画の占有状態は文書の slots を信用せず、台帳から作り直す
        pool = self.state.pool
        occupancy: Dict[Tuple[VehicleCategory, int], str] = {}
        kept: Dict[str, ActiveSession] = {}
        for session in decoded.sessions:
            key = (session.category, session.slot_index)
            if not pool.in_range(session.category, session.slot_index):
                logger.warning(
                    "Dropping session %s: %s slot %r is out of range",
                    session.vehicle_id, session.category.value, session.slot_index,
                )
                continue
            if key in occupancy or session.vehicle_id in kept:
                logger.warning(
                    "Dropping session %s: conflicts with an earlier imported session",
                    session.vehicle_id,
                )
                continue
            occupancy[key] = session.vehicle_id
            kept[session.vehicle_id] = session

        pool.rebuild(occupancy)
        self.state.ledger.clear()
        for vehicle_id, session in kept.items():
            self.state.ledger.register(vehicle_id, session)
        self.state.history.clear()
        for entry in decoded.history:
            self.state.history.append(entry)

        return ImportSummary(
            sessions=len(kept),
            history=len(decoded.history),
            dropped=len(decoded.sessions) - len(kept),
        )

    def _document(self) -> Dict[str, Any]:
        return snapshot.encode(
            self.state.pool,
            self.state.ledger.sessions(),
            list(self.state.history.entries()),
            self.state.rates,
        )

    def _persist(self) -> None:
        try:
            self.store.save(self._document())
        except StorageError as exc:
            logger.warning("Failed to save parking data: %s", exc)

    def _now(self, now: Optional[datetime]) -> datetime:
        # 見積もりはリクエスト時点の時刻で計算できるよう now を受け取る
        return parse_instant(now if now is not None else self._clock())

    def _quote(self, session: ActiveSession, now: datetime) -> Tuple[int, BillingResult]:
        check_in = parse_instant(session.check_in_time)
        elapsed = max(0, int((now - check_in).total_seconds()))
        quote = self.billing.quote(check_in, now, self.state.rates.entry(session.category))
        return elapsed, quote

    def _live(self, session: ActiveSession, now: datetime) -> SearchResult:
        try:
            elapsed, quote = self._quote(session, now)
        except InvalidTimestamp:
            logger.warning("Session %s has an unparsable check-in time", session.vehicle_id)
            return SearchResult(session=session, elapsed_seconds=None, quote=None)
        return SearchResult(session=session, elapsed_seconds=elapsed, quote=quote)


def _planned_hours(value: Any) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"Planned duration must be a positive number of hours, got {value!r}")
    return value
