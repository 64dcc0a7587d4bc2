"""
Unit tests for monthly entry and exit aggregation.

Covers pooling per document, exclusive frozen billing and per-exit costing.
"""

from datetime import date

import pytest

from pallet_ledger.config.loader import RateConfig
from pallet_ledger.core.classifier import BillingBucket, Geometry
from pallet_ledger.core.issues import IssueKind
from pallet_ledger.core.month_key import MonthKey
from pallet_ledger.core.monthly import (
    documents_entered_in,
    exit_cost,
    pool_entries,
    records_entered_in,
    records_with_exits_in,
    summarize_entries,
    summarize_exits,
)
from pallet_ledger.storage.models import Document, EntryRecord, ExitEvent, InvalidDate

RATES = RateConfig(entry_rate=3.5, exit_rate=3.5, storage_rate_per_day=0.233333, frozen_rate=5.0)


def _record(record_id, document_id, entry_date, unit_count, geometry=Geometry.A, frozen=False, exits=None):
    return EntryRecord(
        id=record_id,
        document_id=document_id,
        entry_date=entry_date,
        unit_count=unit_count,
        geometry=geometry,
        frozen=frozen,
        exits=exits or {}
    )


class TestEntryPooling:
    """Test per-document pooling before conversion."""

    def test_same_document_same_month_is_pooled(self):
        """13 + 13 pallets of one document bill as one block of 26."""
        records = [
            _record(1, "D1", date(2024, 1, 10), 13),
            _record(2, "D1", date(2024, 1, 20), 13),
        ]
        [summary] = summarize_entries(records, RATES)
        assert summary.month == MonthKey(2024, 1)
        assert summary.units_a == 26
        assert summary.equivalent_a == 33
        assert summary.cost == pytest.approx(33 * 3.5)

    def test_different_documents_are_not_pooled(self):
        records = [
            _record(1, "D1", date(2024, 1, 10), 13),
            _record(2, "D2", date(2024, 1, 20), 13),
        ]
        [summary] = summarize_entries(records, RATES)
        assert summary.equivalent_a == 17 + 17
        assert summary.cost == pytest.approx(34 * 3.5)

    def test_same_document_different_months_are_not_pooled(self):
        records = [
            _record(1, "D1", date(2024, 1, 10), 13),
            _record(2, "D1", date(2024, 2, 1), 13),
        ]
        summaries = summarize_entries(records, RATES)
        assert [s.month for s in summaries] == [MonthKey(2024, 1), MonthKey(2024, 2)]
        assert [s.equivalent_a for s in summaries] == [17, 17]

    def test_geometry_b_is_one_to_one(self):
        [summary] = summarize_entries([_record(1, "D1", date(2024, 1, 10), 10, Geometry.B)], RATES)
        assert summary.units_b == 10
        assert summary.total_equivalent == 10
        assert summary.cost == pytest.approx(35.0)


class TestFrozenEntries:
    """Test that frozen pallets bill only in the frozen bucket."""

    def test_frozen_is_exclusive(self):
        records = [
            _record(1, "D1", date(2024, 1, 10), 26),
            _record(2, "D1", date(2024, 1, 10), 26, frozen=True),
        ]
        [summary] = summarize_entries(records, RATES)
        assert summary.units_a == 26
        assert summary.equivalent_a == 33
        assert summary.frozen_units_a == 26
        assert summary.frozen_equivalent == 33
        assert summary.total_equivalent == 66
        assert summary.normal_cost == pytest.approx(33 * 3.5)
        assert summary.frozen_cost == pytest.approx(33 * 5.0)
        assert summary.cost == pytest.approx(33 * 3.5 + 33 * 5.0)

    def test_frozen_b_counts_one_to_one(self):
        [summary] = summarize_entries(
            [_record(1, "D1", date(2024, 1, 10), 4, Geometry.B, frozen=True)], RATES
        )
        assert summary.frozen_units_b == 4
        assert summary.frozen_units == 4
        assert summary.normal_equivalent == 0
        assert summary.cost == pytest.approx(20.0)

    def test_pool_entries_buckets(self):
        pooled = pool_entries([
            _record(1, "D1", date(2024, 1, 10), 5, Geometry.A),
            _record(2, "D1", date(2024, 1, 10), 3, Geometry.B, frozen=True),
        ])
        assert pooled.units == {BillingBucket.NORMAL_A: 5, BillingBucket.FROZEN_B: 3}
        assert pooled.normal_equivalent == 7
        assert pooled.frozen_equivalent == 3


class TestInvalidEntryDates:
    """Test records with unparseable entry dates."""

    def test_skipped_and_reported(self):
        records = [
            _record(1, "D1", InvalidDate("32/01/2024"), 10),
            _record(2, "D1", date(2024, 1, 10), 10, Geometry.B),
        ]
        issues = []
        summaries = summarize_entries(records, RATES, issues)
        assert len(summaries) == 1
        assert summaries[0].units_b == 10
        assert len(issues) == 1
        assert issues[0].kind is IssueKind.INVALID_DATE
        assert issues[0].record_id == 1


class TestExitSummaries:
    """Test per-exit conversion and grouping by exit month."""

    def test_grouped_by_exit_month(self):
        record = _record(1, "D1", date(2024, 1, 10), 30, exits={
            "1": ExitEvent(exit_date=date(2024, 1, 20), unit_count=10),
            "2": ExitEvent(exit_date=date(2024, 2, 5), unit_count=10),
        })
        jan, feb = summarize_exits([record], RATES)
        assert jan.month == MonthKey(2024, 1)
        assert feb.month == MonthKey(2024, 2)
        assert jan.units_a == 10
        assert jan.equivalent_a == 13
        assert jan.cost == pytest.approx(13 * 3.5)
        assert feb.cost == pytest.approx(13 * 3.5)

    def test_exits_in_same_month_are_not_pooled(self):
        """Two exits of 13 bill as 17 + 17, not as one block of 26."""
        record = _record(1, "D1", date(2024, 1, 10), 26, exits={
            "1": ExitEvent(exit_date=date(2024, 1, 20), unit_count=13),
            "2": ExitEvent(exit_date=date(2024, 1, 25), unit_count=13),
        })
        [summary] = summarize_exits([record], RATES)
        assert summary.equivalent_a == 34
        assert summary.total_units == 26

    def test_frozen_exit_uses_frozen_rate(self):
        record = _record(1, "D1", date(2024, 1, 10), 8, Geometry.B, frozen=True, exits={
            "1": ExitEvent(exit_date=date(2024, 1, 20), unit_count=4),
        })
        [summary] = summarize_exits([record], RATES)
        assert summary.frozen_units == 4
        assert summary.frozen_cost == pytest.approx(20.0)
        assert summary.normal_cost == 0.0
        assert exit_cost(record, 4, RATES) == (4, pytest.approx(20.0))

    def test_inert_and_invalid_exits(self):
        record = _record(7, "D1", date(2024, 1, 10), 8, Geometry.B, exits={
            "1": ExitEvent(exit_date=date(2024, 1, 20), unit_count=0),
            "2": ExitEvent(exit_date=InvalidDate("soon"), unit_count=2),
        })
        issues = []
        assert summarize_exits([record], RATES, issues) == []
        assert len(issues) == 1
        assert issues[0].slot_key == "2"


class TestMonthDrillDown:
    """Test month filters for documents and records."""

    def setup_method(self):
        self.documents = [Document(id="D1", document_number="DDT 1"), Document(id="D2", document_number="DDT 2")]
        self.records = [
            _record(1, "D1", date(2024, 1, 10), 5, exits={
                "1": ExitEvent(exit_date=date(2024, 2, 3), unit_count=2),
            }),
            _record(2, "D2", date(2024, 2, 10), 5),
            _record(3, "D2", InvalidDate("x"), 5),
        ]

    def test_records_entered_in(self):
        assert [r.id for r in records_entered_in(self.records, MonthKey(2024, 2))] == [2]

    def test_records_with_exits_in(self):
        assert [r.id for r in records_with_exits_in(self.records, MonthKey(2024, 2))] == [1]

    def test_documents_entered_in(self):
        documents = documents_entered_in(self.documents, self.records, MonthKey(2024, 1))
        assert [d.id for d in documents] == ["D1"]
