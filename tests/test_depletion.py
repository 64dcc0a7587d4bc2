"""
Unit tests for entry record depletion.
"""

from datetime import date

from pallet_ledger.core.classifier import Geometry
from pallet_ledger.core.depletion import (
    active_exits,
    remaining_at,
    remaining_at_sequence_points,
    remaining_equivalent_at,
)
from pallet_ledger.storage.models import EmptySlot, EntryRecord, ExitEvent, InvalidDate


def _record(unit_count=30, geometry=Geometry.A, exits=None):
    return EntryRecord(
        id=1,
        document_id=1,
        entry_date=date(2024, 1, 10),
        unit_count=unit_count,
        geometry=geometry,
        exits=exits or {}
    )


class TestActiveExits:
    """Test which exits affect stock."""

    def test_sorted_by_date_dropping_inert_and_invalid(self):
        record = _record(exits={
            "1": ExitEvent(exit_date=date(2024, 1, 25), unit_count=5),
            "2": EmptySlot(),
            "3": ExitEvent(exit_date=date(2024, 1, 15), unit_count=3),
            "4": ExitEvent(exit_date=date(2024, 1, 16), unit_count=0),
            "5": ExitEvent(exit_date=InvalidDate("??"), unit_count=2),
        })
        exits = active_exits(record)
        assert [e.slot_key for e in exits] == ["3", "1"]

    def test_same_day_exits_keep_slot_order(self):
        record = _record(exits={
            "b": ExitEvent(exit_date=date(2024, 1, 15), unit_count=1),
            "a": ExitEvent(exit_date=date(2024, 1, 15), unit_count=2),
        })
        assert [e.slot_key for e in active_exits(record)] == ["b", "a"]


class TestRemainingAt:
    """Test remaining stock at a day."""

    def test_exit_applies_on_its_own_date(self):
        record = _record(exits={"1": ExitEvent(exit_date=date(2024, 1, 20), unit_count=10)})
        assert remaining_at(record, date(2024, 1, 19)) == 30
        assert remaining_at(record, date(2024, 1, 20)) == 20

    def test_over_depletion_clamps_at_zero(self):
        record = _record(unit_count=10, exits={
            "1": ExitEvent(exit_date=date(2024, 1, 12), unit_count=8),
            "2": ExitEvent(exit_date=date(2024, 1, 13), unit_count=8),
        })
        assert remaining_at(record, date(2024, 1, 31)) == 0

    def test_non_increasing_over_time(self):
        record = _record(exits={
            "1": ExitEvent(exit_date=date(2024, 1, 12), unit_count=4),
            "2": ExitEvent(exit_date=date(2024, 1, 18), unit_count=9),
            "3": ExitEvent(exit_date=date(2024, 2, 2), unit_count=30),
        })
        days = [date(2024, 1, d) for d in range(10, 32)] + [date(2024, 2, d) for d in range(1, 10)]
        stock = [remaining_at(record, day) for day in days]
        assert stock == sorted(stock, reverse=True)
        assert stock[0] == 30
        assert stock[-1] == 0

    def test_remaining_equivalent(self):
        record = _record(exits={"1": ExitEvent(exit_date=date(2024, 1, 20), unit_count=10)})
        assert remaining_equivalent_at(record, date(2024, 1, 10)) == 38
        assert remaining_equivalent_at(record, date(2024, 1, 21)) == 25

    def test_sequence_points(self):
        record = _record(unit_count=10, geometry=Geometry.B, exits={
            "1": ExitEvent(exit_date=date(2024, 1, 20), unit_count=4),
            "2": ExitEvent(exit_date=date(2024, 1, 12), unit_count=3),
            "3": ExitEvent(exit_date=date(2024, 1, 25), unit_count=9),
        })
        assert remaining_at_sequence_points(record) == [
            (date(2024, 1, 12), 7),
            (date(2024, 1, 20), 3),
            (date(2024, 1, 25), 0),
        ]
