"""
Data models for the ledger.

Defines documents, entry records and their exit slots.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Hashable, Iterator, Mapping, Optional, Tuple, Union

from pallet_ledger.core.classifier import Geometry, UnitClass


@dataclass(frozen=True)
class InvalidDate:
    """A date value that could not be resolved to a calendar day."""
    raw: str


LedgerDate = Union[date, InvalidDate]

_DAY_FIRST_PATTERN = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{4})$")


def parse_ledger_date(value: Any) -> Optional[LedgerDate]:
    """Resolve a stored date value to a calendar day.

    Accepts ``date``/``datetime`` objects, ISO dates ("2024-01-10"), ISO
    timestamps ("2024-01-10T00:00:00.000Z", taken as a UTC day) and
    day-first dates ("10/01/2024").

    Returns:
        None for an empty value, the parsed date, or InvalidDate carrying
        the raw value when it cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, InvalidDate):
        return value
    if isinstance(value, datetime):
        return _utc_day(value)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return InvalidDate(raw=repr(value))

    text = value.strip()
    if not text:
        return None

    match = _DAY_FIRST_PATTERN.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return InvalidDate(raw=value)

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        if len(iso_text) == 10:
            return date.fromisoformat(iso_text)
        return _utc_day(datetime.fromisoformat(iso_text))
    except ValueError:
        return InvalidDate(raw=value)


def _utc_day(moment: datetime) -> date:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def _coerce_ledger_date(value: Any, name: str) -> LedgerDate:
    """Reduce a datetime to its UTC day; reject anything but a date or InvalidDate."""
    if isinstance(value, datetime):
        return _utc_day(value)
    if not isinstance(value, (date, InvalidDate)):
        raise ValueError(f"{name} must be a date or InvalidDate, got {value!r}")
    return value


@dataclass(frozen=True)
class Document:
    """A business document (delivery note) pallets entered under.

    The document number is the business key but is not guaranteed unique:
    the same number may appear on several Document records.
    """
    id: Hashable
    document_number: str

    def __post_init__(self):
        """Validate the document number is a string."""
        if not isinstance(self.document_number, str):
            raise ValueError("document_number must be a string")


@dataclass(frozen=True)
class EmptySlot:
    """An exit column with no exit recorded in it."""


@dataclass(frozen=True)
class ExitEvent:
    """Pallets leaving the warehouse against one entry record."""
    exit_date: LedgerDate
    unit_count: int
    elapsed_days: Optional[int] = None  # informational, exit_date - entry_date

    def __post_init__(self):
        """Validate the exit count and date."""
        if isinstance(self.unit_count, bool) or not isinstance(self.unit_count, int):
            raise ValueError("exit unit_count must be an integer")
        if self.unit_count < 0:
            raise ValueError("exit unit_count cannot be negative")
        object.__setattr__(self, "exit_date", _coerce_ledger_date(self.exit_date, "exit_date"))

    @property
    def is_inert(self) -> bool:
        """Zero-pallet exits are ignored by all calculations."""
        return self.unit_count == 0

    @property
    def has_valid_date(self) -> bool:
        return not isinstance(self.exit_date, InvalidDate)


ExitSlot = Union[ExitEvent, EmptySlot]


@dataclass(frozen=True)
class EntryRecord:
    """Immutable ledger line: pallets entered under a document, plus exits.

    Exit slots keep their insertion order; entry fields never change after
    import.
    """
    id: Hashable
    document_id: Hashable
    entry_date: LedgerDate
    unit_count: int
    geometry: Geometry = Geometry.B
    frozen: bool = False
    exits: Tuple[Tuple[str, ExitSlot], ...] = field(default_factory=tuple)
    note: str = ""

    def __post_init__(self):
        """Validate counts and normalise the exit slots to an ordered tuple."""
        if isinstance(self.unit_count, bool) or not isinstance(self.unit_count, int):
            raise ValueError("unit_count must be an integer")
        if self.unit_count < 0:
            raise ValueError("unit_count cannot be negative")
        if not isinstance(self.geometry, Geometry):
            raise ValueError(f"geometry must be a Geometry, got {self.geometry!r}")
        object.__setattr__(self, "entry_date", _coerce_ledger_date(self.entry_date, "entry_date"))

        exits = self.exits
        if isinstance(exits, Mapping):
            exits = tuple(exits.items())
        else:
            exits = tuple(exits)

        seen = set()
        for slot_key, slot in exits:
            if slot_key in seen:
                raise ValueError(f"Duplicate exit slot {slot_key!r} in record {self.id}")
            if not isinstance(slot, (ExitEvent, EmptySlot)):
                raise ValueError(f"Exit slot {slot_key!r} must be an ExitEvent or EmptySlot")
            seen.add(slot_key)
        object.__setattr__(self, "exits", exits)

    @property
    def unit_class(self) -> UnitClass:
        return UnitClass(geometry=self.geometry, frozen=self.frozen)

    @property
    def has_valid_entry_date(self) -> bool:
        return not isinstance(self.entry_date, InvalidDate)

    def exit_events(self) -> Iterator[Tuple[str, ExitEvent]]:
        """Yield (slot_key, event) for every filled slot, in slot order."""
        for slot_key, slot in self.exits:
            if isinstance(slot, ExitEvent):
                yield slot_key, slot


@dataclass(frozen=True)
class LedgerSnapshot:
    """A consistent pair of documents and entry records."""
    documents: Tuple[Document, ...] = ()
    records: Tuple[EntryRecord, ...] = ()
