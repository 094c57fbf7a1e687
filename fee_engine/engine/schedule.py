"""Month buckets from academic-year start up to the previous calendar month."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

ALL_MONTHS: FrozenSet[int] = frozenset(range(1, 13))

# Fixed English abbreviations; strftime("%b") follows the process locale.
_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True, order=True)
class MonthBucket:
    year: int
    month: int

    @property
    def label(self) -> str:
        """Column label, e.g. ``Apr 24``."""
        return f"{_MONTH_ABBR[self.month - 1]} {self.year % 100:02d}"

    def next(self) -> "MonthBucket":
        if self.month == 12:
            return MonthBucket(self.year + 1, 1)
        return MonthBucket(self.year, self.month + 1)


def normalize_applicable_months(months: Optional[Iterable[int]]) -> FrozenSet[int]:
    """Empty or missing month lists mean the fee applies every month."""
    if not months:
        return ALL_MONTHS
    valid = frozenset(m for m in months if 1 <= m <= 12)
    return valid or ALL_MONTHS


def cutoff_month(today: date) -> MonthBucket:
    """The calendar month before ``today``'s month (inclusive end of the schedule)."""
    if today.month == 1:
        return MonthBucket(today.year - 1, 12)
    return MonthBucket(today.year, today.month - 1)


def build_months(academic_year_start: date, today: date) -> List[MonthBucket]:
    """Ordered months from the start month through the cutoff; empty if the year has not started."""
    current = MonthBucket(academic_year_start.year, academic_year_start.month)
    end = cutoff_month(today)
    months: List[MonthBucket] = []
    while current <= end:
        months.append(current)
        current = current.next()
    return months


def build_monthly_amounts(
    months: List[MonthBucket],
    amount: Decimal,
    applicable_months: FrozenSet[int],
) -> Tuple[Dict[str, Decimal], Decimal]:
    """Flat amount per applicable month. Returns (label -> amount, total)."""
    monthly: Dict[str, Decimal] = {}
    total = Decimal("0")
    for bucket in months:
        if bucket.month not in applicable_months:
            continue
        monthly[bucket.label] = amount
        total += amount
    return monthly, total
