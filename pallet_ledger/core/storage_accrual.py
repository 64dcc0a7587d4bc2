"""
Storage cost accrual.

Integrates the equivalent stock of every entry record day by day over each
calendar month, from the month of entry up to the month containing today.

Storage cost formula:
    unit_days = sum of equivalent pallets in stock on each active day
    cost = unit_days * daily storage rate

An exit day is still billed at the pre-exit stock; the exit takes effect
from the following day. The current month is open and only counts days up
to and including today.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .classifier import Geometry
from .depletion import active_exits, remaining_at
from .equivalence import equivalence_delta, equivalent_for
from .issues import LedgerIssue, invalid_entry_date
from .month_key import MonthKey, month_range
from pallet_ledger.config.loader import RateConfig
from pallet_ledger.logging_config import get_logger
from pallet_ledger.storage.models import EntryRecord, InvalidDate

_LOG = get_logger("core.storage_accrual")


@dataclass(frozen=True)
class MonthlyAccrual:
    """Storage accrued by one entry record in one month."""
    month: MonthKey
    start_day: int
    end_day: int
    daily_stock: Tuple[int, ...]  # equivalent stock for start_day..end_day
    unit_days: int
    cost: float
    remaining_after: int  # physical pallets carried into the next month

    @property
    def active_days(self) -> int:
        return self.end_day - self.start_day + 1

    @property
    def average_stock(self) -> float:
        return self.unit_days / self.active_days if self.active_days > 0 else 0.0


@dataclass
class StorageSummary:
    """Storage accrued by all records in one month."""
    month: MonthKey
    unit_days: int = 0
    normal_unit_days: int = 0
    frozen_unit_days: int = 0
    record_days: int = 0
    average_stock: float = 0.0
    normal_cost: float = 0.0
    frozen_cost: float = 0.0
    cost: float = 0.0


@dataclass(frozen=True)
class StorageDetail:
    """Physical and equivalent stock on hand for one month."""
    month: MonthKey
    reference_date: date
    normal_units_by_geometry: Dict[Geometry, int] = field(default_factory=dict)
    equivalent_normal_units: int = 0
    frozen_units_by_geometry: Dict[Geometry, int] = field(default_factory=dict)
    equivalent_frozen_units: int = 0

    @property
    def normal_units(self) -> int:
        return sum(self.normal_units_by_geometry.values())

    @property
    def frozen_units(self) -> int:
        return sum(self.frozen_units_by_geometry.values())


def month_active_days(month: MonthKey, today: date) -> int:
    """Days of ``month`` that can accrue storage as of ``today``."""
    if month == MonthKey.from_date(today):
        return today.day
    return month.days_in_month


def accrue_record(record: EntryRecord, rates: RateConfig, today: date) -> List[MonthlyAccrual]:
    """Walk one record month by month from its entry month to today.

    Remaining physical stock is carried from one month into the next, so
    each exit is applied exactly once.

    Args:
        record: Entry record with a valid entry date
        rates: Rate configuration for this pass
        today: Reference day closing the current month

    Returns:
        One MonthlyAccrual per month, empty if the record enters after today
    """
    if isinstance(record.entry_date, InvalidDate) or record.entry_date > today:
        return []

    entry_date = record.entry_date
    geometry = record.geometry
    rate = rates.storage_rate_for(record.frozen)
    exits = active_exits(record)
    next_exit = 0
    remaining = record.unit_count
    current_month = MonthKey.from_date(today)

    accruals = []
    for month in month_range(MonthKey.from_date(entry_date), current_month):
        # Exits before the month start (including any dated before entry)
        while next_exit < len(exits) and exits[next_exit].exit_date < month.first_day:
            remaining = max(0, remaining - exits[next_exit].unit_count)
            next_exit += 1

        start_day = entry_date.day if month.contains(entry_date) else 1
        end_day = today.day if month == current_month else month.days_in_month
        period_end = date(month.year, month.month, end_day)

        stock = equivalent_for(geometry, remaining)
        daily = [0] * (month.days_in_month + 1)
        for day in range(start_day, end_day + 1):
            daily[day] = stock

        while next_exit < len(exits) and exits[next_exit].exit_date <= period_end:
            exit_ = exits[next_exit]
            before = remaining
            remaining = max(0, remaining - exit_.unit_count)
            stock = max(0, stock - equivalence_delta(geometry, before, remaining))
            for day in range(exit_.exit_date.day + 1, end_day + 1):
                daily[day] = stock
            next_exit += 1

        active = daily[start_day:end_day + 1]
        unit_days = sum(active)
        accruals.append(MonthlyAccrual(
            month=month,
            start_day=start_day,
            end_day=end_day,
            daily_stock=tuple(active),
            unit_days=unit_days,
            cost=unit_days * rate,
            remaining_after=remaining
        ))

    return accruals


def summarize_storage(
    records: Iterable[EntryRecord],
    rates: RateConfig,
    today: date,
    issues: Optional[List[LedgerIssue]] = None,
    logger: Optional[logging.Logger] = None
) -> List[StorageSummary]:
    """Compute per-month storage summaries for all records.

    Args:
        records: Entry records to integrate
        rates: Rate configuration for this pass
        today: Reference day closing the current month
        issues: Optional list collecting records skipped for invalid dates
        logger: Optional logger overriding the module logger

    Returns:
        One StorageSummary per month any record was in stock, sorted by month
    """
    log = logger or _LOG
    by_month: Dict[MonthKey, StorageSummary] = {}
    skipped = 0

    for record in records:
        if isinstance(record.entry_date, InvalidDate):
            skipped += 1
            log.warning("entry_date_invalid", extra={"record_id": record.id, "raw": record.entry_date.raw})
            if issues is not None:
                issues.append(invalid_entry_date(record.id, record.entry_date.raw))
            continue

        exited = sum(e.unit_count for e in active_exits(record))
        if exited > record.unit_count:
            log.debug(
                "record_over_depleted",
                extra={"record_id": record.id, "entered": record.unit_count, "exited": exited},
            )

        for accrual in accrue_record(record, rates, today):
            summary = by_month.get(accrual.month)
            if summary is None:
                summary = by_month[accrual.month] = StorageSummary(month=accrual.month)
            summary.unit_days += accrual.unit_days
            summary.record_days += accrual.active_days
            summary.cost += accrual.cost
            if record.frozen:
                summary.frozen_unit_days += accrual.unit_days
                summary.frozen_cost += accrual.cost
            else:
                summary.normal_unit_days += accrual.unit_days
                summary.normal_cost += accrual.cost

    for month, summary in by_month.items():
        summary.average_stock = summary.unit_days / month_active_days(month, today)

    log.debug("storage_summaries_computed", extra={"months": len(by_month), "skipped_records": skipped})
    return [by_month[month] for month in sorted(by_month)]


def storage_details_for_month(
    records: Iterable[EntryRecord],
    month: MonthKey,
    today: date
) -> StorageDetail:
    """Stock on hand at the reference day of ``month``.

    The reference day is today for the current month and the last day of
    the month otherwise. Each record's remaining pallets are converted to
    equivalent pallets on their own.
    """
    reference = today if month == MonthKey.from_date(today) else month.last_day

    normal_units: Dict[Geometry, int] = defaultdict(int)
    frozen_units: Dict[Geometry, int] = defaultdict(int)
    equivalent_normal = 0
    equivalent_frozen = 0

    for record in records:
        if isinstance(record.entry_date, InvalidDate) or record.entry_date > reference:
            continue
        remaining = remaining_at(record, reference)
        if remaining <= 0:
            continue
        equivalent = equivalent_for(record.geometry, remaining)
        if record.frozen:
            frozen_units[record.geometry] += remaining
            equivalent_frozen += equivalent
        else:
            normal_units[record.geometry] += remaining
            equivalent_normal += equivalent

    return StorageDetail(
        month=month,
        reference_date=reference,
        normal_units_by_geometry=dict(normal_units),
        equivalent_normal_units=equivalent_normal,
        frozen_units_by_geometry=dict(frozen_units),
        equivalent_frozen_units=equivalent_frozen
    )
