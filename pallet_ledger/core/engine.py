"""
Ledger engine.

Binds the record source, rate provider and clock and exposes the ledger
computations as re-entrant calls.

Every call:
1. Takes a fresh snapshot from the record source
2. Reads the rates once
3. Reads today once
4. Recomputes its result from scratch (no state kept between calls)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from .clock import Clock, SystemClock
from .issues import LedgerIssue, unique_issues
from .month_key import MonthKey
from .monthly import (
    EntrySummary,
    ExitSummary,
    documents_entered_in,
    records_entered_in,
    records_with_exits_in,
    summarize_entries,
    summarize_exits,
)
from .projection import project_storage_cost
from .report import DocumentReport, build_report
from .storage_accrual import StorageDetail, StorageSummary, storage_details_for_month, summarize_storage
from .yearly import YearlyTotals, yearly_totals
from pallet_ledger.config.loader import RateConfig, RateConfigProvider, StaticRateProvider
from pallet_ledger.logging_config import get_logger
from pallet_ledger.storage.models import Document, EntryRecord
from pallet_ledger.storage.repository import RecordSource


class MovementKind(Enum):
    """Which date a month drill-down filters on."""
    ENTRY = "entry"
    EXIT = "exit"


@dataclass(frozen=True)
class SummaryBundle:
    """Result of a full aggregation pass."""
    entries: Tuple[EntrySummary, ...]
    exits: Tuple[ExitSummary, ...]
    storage: Tuple[StorageSummary, ...]
    issues: Tuple[LedgerIssue, ...]


def _as_month(month: Union[MonthKey, str]) -> MonthKey:
    return month if isinstance(month, MonthKey) else MonthKey.parse(month)


class LedgerEngine:
    """Stateless facade over the ledger computations."""

    def __init__(
        self,
        source: RecordSource,
        rates: Union[RateConfig, RateConfigProvider, None] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            source: Record source supplying documents and entry records
            rates: Rate provider, or a fixed RateConfig (defaults if None)
            clock: Clock supplying today (SystemClock if None)
            logger: Logger passed down to every computation
        """
        if rates is None or isinstance(rates, RateConfig):
            rates = StaticRateProvider(rates)
        self.source = source
        self.rates = rates
        self.clock = clock or SystemClock()
        self.logger = logger or get_logger("core.engine")

    def aggregate_summaries(self) -> SummaryBundle:
        """Recompute entry, exit and storage summaries for all records."""
        snapshot = self.source.snapshot()
        rates = self.rates.current()
        today = self.clock.today()
        issues: List[LedgerIssue] = []

        entries = summarize_entries(snapshot.records, rates, issues, self.logger)
        exits = summarize_exits(snapshot.records, rates, issues, self.logger)
        storage = summarize_storage(snapshot.records, rates, today, issues, self.logger)

        bundle = SummaryBundle(
            entries=tuple(entries),
            exits=tuple(exits),
            storage=tuple(storage),
            issues=tuple(unique_issues(issues))
        )
        self.logger.info(
            "summaries_calculated",
            extra={
                "records": len(snapshot.records),
                "documents": len(snapshot.documents),
                "issues": len(bundle.issues),
                "today": today,
            },
        )
        return bundle

    def build_report(self, document_number: str) -> Optional[DocumentReport]:
        """Cost report of a document number, or None if it matches nothing."""
        snapshot = self.source.snapshot()
        return build_report(
            document_number,
            snapshot.documents,
            snapshot.records,
            self.rates.current(),
            self.clock.today(),
            self.logger
        )

    def storage_details_for_month(self, month: Union[MonthKey, str]) -> StorageDetail:
        """Stock on hand split by geometry and frozen flag for a month."""
        snapshot = self.source.snapshot()
        return storage_details_for_month(snapshot.records, _as_month(month), self.clock.today())

    def project_storage_cost(self, month: Union[MonthKey, str]) -> float:
        """Projected storage cost for the rest of the current month."""
        snapshot = self.source.snapshot()
        return project_storage_cost(
            snapshot.records,
            self.rates.current(),
            _as_month(month),
            self.clock.today()
        )

    def yearly_totals(self, year: int) -> YearlyTotals:
        """Monthly, quarterly and yearly costs of ``year``."""
        bundle = self.aggregate_summaries()
        return yearly_totals(year, bundle.entries, bundle.exits, bundle.storage)

    def documents_by_month(self, month: Union[MonthKey, str]) -> List[Document]:
        """Documents with records entered in the month."""
        snapshot = self.source.snapshot()
        return documents_entered_in(snapshot.documents, snapshot.records, _as_month(month))

    def records_by_month(
        self,
        month: Union[MonthKey, str],
        kind: MovementKind = MovementKind.ENTRY
    ) -> List[EntryRecord]:
        """Records entered in the month, or with exits in it."""
        snapshot = self.source.snapshot()
        if kind is MovementKind.EXIT:
            return records_with_exits_in(snapshot.records, _as_month(month))
        return records_entered_in(snapshot.records, _as_month(month))
