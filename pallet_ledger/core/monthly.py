"""
Monthly entry and exit aggregation.

Groups entry records by entry month and exit events by exit month and
prices them with the configured handling rates.

Entry side: pallets are pooled per document and month before the packing
table is applied, because equivalence is sub-additive and per-row
conversion would overstate the cost.

Exit side: every exit is converted on its own, since exits of the same
record in different months must not be pooled.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional, Tuple

from .classifier import BillingBucket, Geometry
from .equivalence import equivalent_for, equivalent_units
from .issues import LedgerIssue, invalid_entry_date, invalid_exit_date
from .month_key import MonthKey
from pallet_ledger.config.loader import RateConfig
from pallet_ledger.logging_config import get_logger
from pallet_ledger.storage.models import Document, EntryRecord, InvalidDate

_LOG = get_logger("core.monthly")


@dataclass
class EntrySummary:
    """Pallets entered in one month and their handling cost."""
    month: MonthKey
    units_a: int = 0
    equivalent_a: int = 0
    units_b: int = 0
    frozen_units_a: int = 0
    frozen_units_b: int = 0
    frozen_equivalent: int = 0
    total_equivalent: int = 0
    normal_cost: float = 0.0
    frozen_cost: float = 0.0
    cost: float = 0.0

    @property
    def frozen_units(self) -> int:
        return self.frozen_units_a + self.frozen_units_b

    @property
    def normal_equivalent(self) -> int:
        return self.equivalent_a + self.units_b


@dataclass
class ExitSummary:
    """Pallets exited in one month and their handling cost."""
    month: MonthKey
    units_a: int = 0
    equivalent_a: int = 0
    units_b: int = 0
    frozen_units: int = 0
    frozen_equivalent: int = 0
    total_units: int = 0
    normal_cost: float = 0.0
    frozen_cost: float = 0.0
    cost: float = 0.0


@dataclass(frozen=True)
class PooledEntry:
    """Physical pallets of one document pooled per billing bucket."""
    units: Dict[BillingBucket, int]

    def equivalent(self, bucket: BillingBucket) -> int:
        count = self.units.get(bucket, 0)
        if bucket in (BillingBucket.NORMAL_A, BillingBucket.FROZEN_A):
            return equivalent_units(count)
        return count

    @property
    def normal_equivalent(self) -> int:
        return self.equivalent(BillingBucket.NORMAL_A) + self.equivalent(BillingBucket.NORMAL_B)

    @property
    def frozen_equivalent(self) -> int:
        return self.equivalent(BillingBucket.FROZEN_A) + self.equivalent(BillingBucket.FROZEN_B)

    def normal_cost(self, rates: RateConfig) -> float:
        return self.normal_equivalent * rates.entry_rate

    def frozen_cost(self, rates: RateConfig) -> float:
        return self.frozen_equivalent * rates.frozen_rate


def pool_entries(records: Iterable[EntryRecord]) -> PooledEntry:
    """Sum the entered pallets of records per exclusive billing bucket."""
    units: Dict[BillingBucket, int] = defaultdict(int)
    for record in records:
        units[record.unit_class.bucket] += record.unit_count
    return PooledEntry(units=dict(units))


def exit_cost(record: EntryRecord, exit_count: int, rates: RateConfig) -> Tuple[int, float]:
    """Equivalent pallets and cost of one exit of ``record``.

    Frozen records exit at the frozen rate, others at the exit rate.
    """
    equivalent = equivalent_for(record.geometry, exit_count)
    rate = rates.frozen_rate if record.frozen else rates.exit_rate
    return equivalent, equivalent * rate


def summarize_entries(
    records: Iterable[EntryRecord],
    rates: RateConfig,
    issues: Optional[List[LedgerIssue]] = None,
    logger: Optional[logging.Logger] = None
) -> List[EntrySummary]:
    """Compute per-month entry summaries.

    Args:
        records: Entry records to aggregate
        rates: Rate configuration for this pass
        issues: Optional list collecting records skipped for invalid dates
        logger: Optional logger overriding the module logger

    Returns:
        One EntrySummary per month with entries, sorted by month
    """
    log = logger or _LOG
    by_month: Dict[MonthKey, Dict[Hashable, List[EntryRecord]]] = defaultdict(lambda: defaultdict(list))
    skipped = 0

    for record in records:
        if isinstance(record.entry_date, InvalidDate):
            skipped += 1
            issue = invalid_entry_date(record.id, record.entry_date.raw)
            log.warning("entry_date_invalid", extra={"record_id": record.id, "raw": record.entry_date.raw})
            if issues is not None:
                issues.append(issue)
            continue
        month = MonthKey.from_date(record.entry_date)
        by_month[month][record.document_id].append(record)

    summaries = []
    for month in sorted(by_month):
        summary = EntrySummary(month=month)
        for document_records in by_month[month].values():
            pooled = pool_entries(document_records)
            normal_cost = pooled.normal_cost(rates)
            frozen_cost = pooled.frozen_cost(rates)

            summary.units_a += pooled.units.get(BillingBucket.NORMAL_A, 0)
            summary.equivalent_a += pooled.equivalent(BillingBucket.NORMAL_A)
            summary.units_b += pooled.units.get(BillingBucket.NORMAL_B, 0)
            summary.frozen_units_a += pooled.units.get(BillingBucket.FROZEN_A, 0)
            summary.frozen_units_b += pooled.units.get(BillingBucket.FROZEN_B, 0)
            summary.frozen_equivalent += pooled.frozen_equivalent
            summary.total_equivalent += pooled.normal_equivalent + pooled.frozen_equivalent
            summary.normal_cost += normal_cost
            summary.frozen_cost += frozen_cost
            summary.cost += normal_cost + frozen_cost
        summaries.append(summary)

    log.debug(
        "entry_summaries_computed",
        extra={"months": len(summaries), "skipped_records": skipped},
    )
    return summaries


def summarize_exits(
    records: Iterable[EntryRecord],
    rates: RateConfig,
    issues: Optional[List[LedgerIssue]] = None,
    logger: Optional[logging.Logger] = None
) -> List[ExitSummary]:
    """Compute per-month exit summaries, grouped by each exit's own date.

    Returns:
        One ExitSummary per month with exits, sorted by month
    """
    log = logger or _LOG
    by_month: Dict[MonthKey, ExitSummary] = {}
    skipped = 0

    for record in records:
        for slot_key, event in record.exit_events():
            if event.is_inert:
                continue
            if isinstance(event.exit_date, InvalidDate):
                skipped += 1
                log.warning(
                    "exit_date_invalid",
                    extra={"record_id": record.id, "slot": slot_key, "raw": event.exit_date.raw},
                )
                if issues is not None:
                    issues.append(invalid_exit_date(record.id, slot_key, event.exit_date.raw))
                continue

            month = MonthKey.from_date(event.exit_date)
            summary = by_month.get(month)
            if summary is None:
                summary = by_month[month] = ExitSummary(month=month)

            equivalent, cost = exit_cost(record, event.unit_count, rates)
            if record.frozen:
                summary.frozen_units += event.unit_count
                summary.frozen_equivalent += equivalent
                summary.frozen_cost += cost
            elif record.geometry is Geometry.A:
                summary.units_a += event.unit_count
                summary.equivalent_a += equivalent
                summary.normal_cost += cost
            else:
                summary.units_b += event.unit_count
                summary.normal_cost += cost
            summary.total_units += event.unit_count
            summary.cost += cost

    log.debug("exit_summaries_computed", extra={"months": len(by_month), "skipped_exits": skipped})
    return [by_month[month] for month in sorted(by_month)]


def records_entered_in(records: Iterable[EntryRecord], month: MonthKey) -> List[EntryRecord]:
    """Records whose entry date falls in ``month``."""
    return [
        record for record in records
        if record.has_valid_entry_date and month.contains(record.entry_date)
    ]


def records_with_exits_in(records: Iterable[EntryRecord], month: MonthKey) -> List[EntryRecord]:
    """Records with at least one dated exit in ``month``."""
    result = []
    for record in records:
        for _, event in record.exit_events():
            if event.has_valid_date and month.contains(event.exit_date):
                result.append(record)
                break
    return result


def documents_entered_in(
    documents: Iterable[Document],
    records: Iterable[EntryRecord],
    month: MonthKey
) -> List[Document]:
    """Documents owning at least one record entered in ``month``."""
    document_ids = {record.document_id for record in records_entered_in(records, month)}
    return [document for document in documents if document.id in document_ids]
