"""
Entry record depletion.

Applies the dated exits of an entry record to its entered pallets to give
the stock remaining at any day.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Tuple

from .equivalence import equivalent_for
from pallet_ledger.storage.models import EntryRecord


@dataclass(frozen=True)
class DatedExit:
    """A non-inert exit with a resolved date."""
    slot_key: str
    exit_date: date
    unit_count: int


def active_exits(record: EntryRecord) -> List[DatedExit]:
    """Exits that affect stock, ordered by date.

    Inert slots (no date, zero pallets) and exits with unresolvable dates
    are left out. Exits on the same day keep their slot order.
    """
    exits = [
        DatedExit(slot_key=slot_key, exit_date=event.exit_date, unit_count=event.unit_count)
        for slot_key, event in record.exit_events()
        if event.has_valid_date and not event.is_inert
    ]
    # sorted() is stable, so same-day exits stay in slot order
    return sorted(exits, key=lambda e: e.exit_date)


def remaining_at(record: EntryRecord, as_of: date) -> int:
    """Physical pallets remaining after all exits dated on or before ``as_of``.

    Over-depleted records remain at 0 rather than going negative.
    """
    exited = sum(e.unit_count for e in active_exits(record) if e.exit_date <= as_of)
    return max(0, record.unit_count - exited)


def remaining_equivalent_at(record: EntryRecord, as_of: date) -> int:
    """Equivalent pallets remaining at ``as_of``."""
    return equivalent_for(record.geometry, remaining_at(record, as_of))


def remaining_at_sequence_points(record: EntryRecord) -> List[Tuple[date, int]]:
    """Remaining physical stock after each exit, in exit order.

    Reporting helper for inspecting a record's depletion; the storage walk
    and exit costing iterate ``active_exits`` directly.

    Returns:
        List of (exit date, pallets remaining after that exit)
    """
    remaining = record.unit_count
    points = []
    for exit_ in active_exits(record):
        remaining = max(0, remaining - exit_.unit_count)
        points.append((exit_.exit_date, remaining))
    return points
