"""
Document reconciliation and cost report.

Builds the cost report of one business document number across every
Document record carrying that number.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Hashable, Iterable, List, Optional, Sequence, Tuple

from .depletion import active_exits
from .equivalence import equivalent_for
from .issues import LedgerIssue, invalid_entry_date, invalid_exit_date
from .monthly import exit_cost, pool_entries
from pallet_ledger.config.loader import RateConfig
from pallet_ledger.logging_config import get_logger
from pallet_ledger.storage.models import Document, EntryRecord, InvalidDate

_LOG = get_logger("core.report")

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ReportExit:
    """One exit listed in a document report."""
    exit_date: date
    unit_count: int
    elapsed_days: Optional[int]
    record_id: Hashable
    slot_key: str


@dataclass(frozen=True)
class DocumentReport:
    """Totals and costs of one document number."""
    query: str
    document: Document
    matched_documents: Tuple[Document, ...]
    used_fallback: bool
    rows: Tuple[EntryRecord, ...] = ()
    total_entered: int = 0
    total_exited: int = 0
    remaining: int = 0
    entry_equivalent_normal: int = 0
    entry_equivalent_frozen: int = 0
    entry_cost_normal: float = 0.0
    entry_cost_frozen: float = 0.0
    exit_cost: float = 0.0
    storage_cost: float = 0.0
    exits: Tuple[ReportExit, ...] = ()
    issues: Tuple[LedgerIssue, ...] = ()

    @property
    def entry_cost(self) -> float:
        return self.entry_cost_normal + self.entry_cost_frozen

    @property
    def total_cost(self) -> float:
        return self.entry_cost + self.exit_cost + self.storage_cost


def normalize_document_number(value: str) -> str:
    """Trim, drop whitespace and upper-case a document number."""
    return _WHITESPACE.sub("", str(value)).upper()


def match_documents(
    document_number: str,
    documents: Iterable[Document],
    logger: Optional[logging.Logger] = None
) -> Tuple[List[Document], bool]:
    """Find the documents carrying ``document_number``.

    Exact matches on the normalised number win. Only when there are none,
    documents whose normalised number contains the query or is contained in
    it are returned, and the fallback is logged.

    Returns:
        (matching documents, whether the substring fallback was used)
    """
    log = logger or _LOG
    query = normalize_document_number(document_number)
    if not query:
        return [], False

    documents = list(documents)
    exact = [d for d in documents if normalize_document_number(d.document_number) == query]
    if exact:
        if len(exact) > 1:
            log.warning(
                "duplicate_document_number",
                extra={"document_number": query, "document_ids": [d.id for d in exact]},
            )
        return exact, False

    partial = []
    for document in documents:
        candidate = normalize_document_number(document.document_number)
        if candidate and (query in candidate or candidate in query):
            partial.append(document)
    if partial:
        log.warning(
            "document_fallback_match",
            extra={
                "document_number": query,
                "matched": [d.document_number for d in partial],
            },
        )
    return partial, bool(partial)


def record_storage_cost(record: EntryRecord, rates: RateConfig, today: date) -> float:
    """Storage cost of one record from its entry date up to today.

    Without exits the record accrues from entry to today counting both
    ends. With exits it accrues over the segments between entry and each
    exit date, then from the last exit to today for whatever is left.
    Exits dated after today are not applied.
    """
    if isinstance(record.entry_date, InvalidDate) or record.entry_date > today:
        return 0.0

    rate = rates.storage_rate_for(record.frozen)
    exits = [e for e in active_exits(record) if e.exit_date <= today]
    if not exits:
        days = (today - record.entry_date).days + 1
        return days * equivalent_for(record.geometry, record.unit_count) * rate

    cost = 0.0
    stock = record.unit_count
    segment_start = record.entry_date
    for exit_ in exits:
        days = (exit_.exit_date - segment_start).days
        if days > 0 and stock > 0:
            cost += days * equivalent_for(record.geometry, stock) * rate
        stock = max(0, stock - exit_.unit_count)
        segment_start = exit_.exit_date

    days = (today - segment_start).days
    if stock > 0 and days > 0:
        cost += days * equivalent_for(record.geometry, stock) * rate
    return cost


def build_report(
    document_number: str,
    documents: Sequence[Document],
    records: Sequence[EntryRecord],
    rates: RateConfig,
    today: date,
    logger: Optional[logging.Logger] = None
) -> Optional[DocumentReport]:
    """Build the cost report of a document number.

    Rows are associated through ``document_id`` to any matched document,
    so a record is never dropped because its own document's number was
    imported differently.

    Args:
        document_number: Business document number to look up
        documents: All known documents
        records: All entry records
        rates: Rate configuration for this report
        today: Reference day for storage accrual
        logger: Optional logger overriding the module logger

    Returns:
        DocumentReport, zero-valued if the matched documents have no rows,
        or None if the number matches no document
    """
    log = logger or _LOG
    matched, used_fallback = match_documents(document_number, documents, log)
    if not matched:
        log.info("document_not_found", extra={"document_number": document_number})
        return None

    document_ids = {d.id for d in matched}
    rows = tuple(r for r in records if r.document_id in document_ids)
    if not rows:
        log.warning(
            "document_without_rows",
            extra={"document_number": document_number, "document_ids": sorted(map(str, document_ids))},
        )
        return DocumentReport(
            query=document_number,
            document=matched[0],
            matched_documents=tuple(matched),
            used_fallback=used_fallback,
        )

    issues: List[LedgerIssue] = []
    pooled = pool_entries(rows)
    total_exited = 0
    remaining = 0
    exit_total = 0.0
    storage_total = 0.0
    listed_exits = []

    for record in rows:
        exited = 0
        for slot_key, event in record.exit_events():
            if event.is_inert:
                continue
            if isinstance(event.exit_date, InvalidDate):
                issues.append(invalid_exit_date(record.id, slot_key, event.exit_date.raw))
                continue
            exited += event.unit_count
            exit_total += exit_cost(record, event.unit_count, rates)[1]
            listed_exits.append(ReportExit(
                exit_date=event.exit_date,
                unit_count=event.unit_count,
                elapsed_days=event.elapsed_days,
                record_id=record.id,
                slot_key=slot_key
            ))
        total_exited += exited
        remaining += max(0, record.unit_count - exited)

        if isinstance(record.entry_date, InvalidDate):
            issues.append(invalid_entry_date(record.id, record.entry_date.raw))
            continue
        storage_total += record_storage_cost(record, rates, today)

    listed_exits.sort(key=lambda e: e.exit_date)

    report = DocumentReport(
        query=document_number,
        document=matched[0],
        matched_documents=tuple(matched),
        used_fallback=used_fallback,
        rows=rows,
        total_entered=sum(r.unit_count for r in rows),
        total_exited=total_exited,
        remaining=remaining,
        entry_equivalent_normal=pooled.normal_equivalent,
        entry_equivalent_frozen=pooled.frozen_equivalent,
        entry_cost_normal=pooled.normal_cost(rates),
        entry_cost_frozen=pooled.frozen_cost(rates),
        exit_cost=exit_total,
        storage_cost=storage_total,
        exits=tuple(listed_exits),
        issues=tuple(issues)
    )
    log.info(
        "document_report_built",
        extra={
            "document_number": report.document.document_number,
            "rows": len(rows),
            "documents": len(matched),
            "fallback": used_fallback,
        },
    )
    return report
