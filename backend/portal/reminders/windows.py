"""Expiry windows and milestone bucketing.

Two horizons are supported:

- short horizon (daily job): every active record expiring between today and
  today + N days. Matching happens in the repository query.
- monthly milestones: a record is bucketed by how far its expiry date sits
  from its report date (3, 2 or 1 calendar months, +/- a tolerance).

Everything here is pure date arithmetic; no I/O and no module state.
"""

import calendar
import enum
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

MILESTONE_MONTHS = (3, 2, 1)


class MilestoneBucket(enum.StrEnum):
    THREE_MONTHS = "three_months"
    TWO_MONTHS = "two_months"
    ONE_MONTH = "one_month"
    OTHER = "other"

    @property
    def months(self) -> int | None:
        return _BUCKET_MONTHS.get(self)


_MONTH_BUCKETS = {
    3: MilestoneBucket.THREE_MONTHS,
    2: MilestoneBucket.TWO_MONTHS,
    1: MilestoneBucket.ONE_MONTH,
}
_BUCKET_MONTHS = {bucket: months for months, bucket in _MONTH_BUCKETS.items()}


@dataclass(frozen=True)
class ExpiryWindow:
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    def as_dict(self) -> dict[str, str]:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}


@dataclass(frozen=True)
class MilestoneWindow:
    months: int
    target: date
    window: ExpiryWindow


@dataclass(frozen=True)
class WindowSet:
    today: date
    outer: ExpiryWindow
    milestones: tuple[MilestoneWindow, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "today": self.today.isoformat(),
            "outer": self.outer.as_dict(),
            "milestones": [
                {"months": m.months, "target": m.target.isoformat(), **m.window.as_dict()}
                for m in self.milestones
            ],
        }


@dataclass
class BucketedRecords:
    three_months: list = field(default_factory=list)
    two_months: list = field(default_factory=list)
    one_month: list = field(default_factory=list)
    other: list = field(default_factory=list)

    def get(self, bucket: MilestoneBucket) -> list:
        return getattr(self, bucket.value)

    @property
    def matched(self) -> list:
        """Records that feed notification, in bucket order (3, 2, 1 months)."""
        return [*self.three_months, *self.two_months, *self.one_month]

    def breakdown(self) -> dict[str, int]:
        return {bucket.value: len(self.get(bucket)) for bucket in MilestoneBucket}


# ── Date helpers ───────────────────────────────────────────────────────


def add_months(value: date, months: int) -> date:
    """Add calendar months by bumping the month field.

    A day that does not exist in the target month spills forward into the
    next one: 2024-01-31 + 1 month is 2024-03-02.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    days_in_month = calendar.monthrange(year, month)[1]
    if value.day <= days_in_month:
        return date(year, month, value.day)
    return date(year, month, days_in_month) + timedelta(days=value.day - days_in_month)


def to_date(value: Any) -> date | None:
    """Coerce a date, datetime or ISO string to a date; None when unusable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def now_in(tz_name: str) -> datetime:
    return datetime.now(ZoneInfo(tz_name))


def today_in(tz_name: str) -> date:
    return now_in(tz_name).date()


def days_until(expire: date, now: datetime) -> int:
    """Whole days until the start of ``expire``, rounded up."""
    tz = now.tzinfo
    expire_start = datetime.combine(expire, time.min, tzinfo=tz)
    delta = (expire_start - now).total_seconds() / 86_400
    return math.ceil(delta)


# ── Windows ────────────────────────────────────────────────────────────


def short_horizon_window(today: date, days: int = 3) -> WindowSet:
    window = ExpiryWindow(today, today + timedelta(days=days))
    return WindowSet(today=today, outer=window)


def monthly_windows(
    today: date,
    months: Sequence[int] = (1, 2, 3),
    tolerance_days: int = 3,
) -> WindowSet:
    tolerance = timedelta(days=tolerance_days)
    milestones = []
    for n in months:
        target = add_months(today, n)
        milestones.append(MilestoneWindow(n, target, ExpiryWindow(target - tolerance, target + tolerance)))
    outer = ExpiryWindow(today, add_months(today, max(months)))
    return WindowSet(today=today, outer=outer, milestones=tuple(milestones))


# ── Classification ─────────────────────────────────────────────────────


def classify_dates(report: Any, expire: Any, tolerance_days: int = 3) -> MilestoneBucket:
    report_date = to_date(report)
    expire_date = to_date(expire)
    if report_date is None or expire_date is None:
        return MilestoneBucket.OTHER

    for n in MILESTONE_MONTHS:
        target = add_months(report_date, n)
        if abs((expire_date - target).days) <= tolerance_days:
            return _MONTH_BUCKETS[n]
    return MilestoneBucket.OTHER


def classify(record, tolerance_days: int = 3) -> MilestoneBucket:
    return classify_dates(
        getattr(record, "tanggal_report", None),
        getattr(record, "tanggal_expire", None),
        tolerance_days,
    )


def bucket_records(records: Iterable, tolerance_days: int = 3) -> BucketedRecords:
    buckets = BucketedRecords()
    for record in records:
        buckets.get(classify(record, tolerance_days)).append(record)
    return buckets
