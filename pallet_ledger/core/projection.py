"""
Storage cost projection for the current month.
"""

from datetime import date
from typing import Iterable

from .depletion import remaining_equivalent_at
from .month_key import MonthKey
from pallet_ledger.config.loader import RateConfig
from pallet_ledger.storage.models import EntryRecord, InvalidDate


def current_equivalent_stock(records: Iterable[EntryRecord], today: date) -> int:
    """Equivalent pallets actually in stock today, across all records."""
    return sum(
        remaining_equivalent_at(record, today)
        for record in records
        if not isinstance(record.entry_date, InvalidDate) and record.entry_date <= today
    )


def project_storage_cost(
    records: Iterable[EntryRecord],
    rates: RateConfig,
    month: MonthKey,
    today: date
) -> float:
    """Projected storage cost for the rest of the current month.

    Uses today's stock rather than the month's running average, priced at
    the normal daily storage rate for every remaining day after today.

    Returns:
        0.0 unless ``month`` is the month containing today
    """
    if month != MonthKey.from_date(today):
        return 0.0
    days_remaining = month.days_in_month - today.day
    return current_equivalent_stock(records, today) * rates.storage_rate_per_day * days_remaining
