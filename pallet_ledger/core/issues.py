"""
Non-fatal ledger issues.

Problems found in individual records never abort a computation: the record
or exit is skipped and an issue is collected for the caller to surface.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Iterable, List, Optional


class IssueKind(Enum):
    """Kinds of non-fatal issues."""
    INVALID_DATE = "invalid_date"


@dataclass(frozen=True)
class LedgerIssue:
    """A record-level problem that caused data to be skipped."""
    kind: IssueKind
    record_id: Hashable
    message: str
    slot_key: Optional[str] = None


def invalid_entry_date(record_id: Hashable, raw: str) -> LedgerIssue:
    return LedgerIssue(
        kind=IssueKind.INVALID_DATE,
        record_id=record_id,
        message=f"Invalid entry date {raw!r} for record {record_id}",
    )


def invalid_exit_date(record_id: Hashable, slot_key: str, raw: str) -> LedgerIssue:
    return LedgerIssue(
        kind=IssueKind.INVALID_DATE,
        record_id=record_id,
        slot_key=slot_key,
        message=f"Invalid exit date {raw!r} in slot {slot_key!r} of record {record_id}",
    )


def unique_issues(issues: Iterable[LedgerIssue]) -> List[LedgerIssue]:
    """Drop repeated issues, keeping first-seen order."""
    return list(dict.fromkeys(issues))
