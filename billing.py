from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from rate_table import RateEntry

FIRST_HOUR_MINUTES = 60
_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class BillingResult:
    elapsed_minutes: int
    billed_minutes: int
    cost: Decimal

    @property
    def billed_hours(self) -> Decimal:
        # 表示用（小数2桁）。cost は丸めない
        return (Decimal(self.billed_minutes) / 60).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def elapsed_minutes(elapsed: timedelta) -> int:
    """経過時間をミリ秒単位で見て、分に切り上げる（負の値は 0 に丸める）"""
    millis = max(0, elapsed // timedelta(milliseconds=1))
    return -(-millis // 60000)


class BillingEngine:
    """
    最初の1時間は定額、以降は課金単位（分）に切り上げて按分する

    例: 61分・15分単位 → 60 + 15 = 75分（1.25時間）
    """

    def bill(self, elapsed: timedelta, rate: RateEntry) -> BillingResult:
        minutes = elapsed_minutes(elapsed)
        hourly = rate.hourly_rate

        if minutes <= FIRST_HOUR_MINUTES:
            return BillingResult(minutes, FIRST_HOUR_MINUTES, hourly)

        extra = minutes - FIRST_HOUR_MINUTES
        increment = rate.billing_increment_minutes
        additional = -(-extra // increment) * increment
        cost = hourly + hourly * Decimal(additional) / 60
        return BillingResult(minutes, FIRST_HOUR_MINUTES + additional, cost)

    def bill_between(self, check_in: datetime, check_out: datetime, rate: RateEntry) -> BillingResult:
        return self.bill(check_out - check_in, rate)

    def quote(self, check_in: datetime, now: datetime, rate: RateEntry) -> BillingResult:
        # 駐車中の見積もり。精算と同じ規則で計算する
        return self.bill_between(check_in, now, rate)
