from __future__ import annotations

import logging
from datetime import timezone, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from errors import InvalidTimestamp
from models import ClosedSession, VehicleCategory, parse_instant

logger = logging.getLogger(__name__)


class HistoryLog:
    """
    精算済みセッションの追記専用ログ
    append: O(1)
    削除は reset（clear）のときだけ
    """

    def __init__(self, entries: Iterable[ClosedSession] = ()) -> None:
        self._data: List[ClosedSession] = list(entries)

    def append(self, entry: ClosedSession) -> None:
        self._data.append(entry)

    def entries(self) -> Tuple[ClosedSession, ...]:
        return tuple(self._data)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    # -------------------------
    # 集計
    # -------------------------
    def revenue_by_category(self) -> Dict[VehicleCategory, Decimal]:
        revenue = {category: Decimal("0") for category in VehicleCategory}
        for entry in self._data:
            revenue[entry.category] += entry.total_cost
        return revenue

    def total_revenue(self) -> Decimal:
        return sum(self.revenue_by_category().values(), Decimal("0"))

    def occupancy_by_hour(self, tz: Optional[tzinfo] = None) -> List[int]:
        """
        入庫時刻の時〜出庫時刻の時までを1台ずつ数える（日付をまたぐ場合は24で折り返す）
        時は tz の現地時刻で数える。省略時は UTC。
        """
        tz = tz or timezone.utc
        buckets = [0] * 24
        for entry in self._data:
            try:
                start = parse_instant(entry.check_in_time).astimezone(tz).hour
                end = parse_instant(entry.check_out_time).astimezone(tz).hour
            except InvalidTimestamp:
                logger.warning("Skipping history entry for %s with unparsable times", entry.vehicle_id)
                continue
            if end < start:
                end += 24
            for hour in range(start, end + 1):
                buckets[hour % 24] += 1
        return buckets

    def peak_hours(self, tz: Optional[tzinfo] = None) -> List[str]:
        buckets = self.occupancy_by_hour(tz)
        peak = max(buckets)
        if peak == 0:
            return []
        return [f"{hour}:00-{hour + 1}:00" for hour, count in enumerate(buckets) if count == peak]
