"""
Record sources for the ledger.

Supplies documents and entry records to the engine, either from memory or
from the SQLite record store.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from .db import DEFAULT_DB_PATH, get_connection
from .models import (
    Document,
    EmptySlot,
    EntryRecord,
    ExitEvent,
    InvalidDate,
    LedgerSnapshot,
    parse_ledger_date,
)
from pallet_ledger.core.classifier import DEFAULT_RULES, ClassificationRules, classify


class RecordSource(Protocol):
    """Anything that can hand the engine a consistent snapshot."""

    def snapshot(self) -> LedgerSnapshot:
        ...


class InMemoryRecordSource:
    """Record source over already-built documents and records."""

    def __init__(
        self,
        documents: Iterable[Document] = (),
        records: Iterable[EntryRecord] = ()
    ):
        self._snapshot = LedgerSnapshot(documents=tuple(documents), records=tuple(records))

    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot


def document_from_dict(raw: Mapping[str, Any]) -> Document:
    """Build a Document from its normalised dict form."""
    return Document(id=raw["id"], document_number=str(raw["document_number"]))


def record_from_dict(
    raw: Mapping[str, Any],
    rules: ClassificationRules = DEFAULT_RULES
) -> EntryRecord:
    """Build an EntryRecord from its normalised dict form.

    Expected keys: id, document_id, entry_date, unit_count, pallet_type,
    note and exits (slot key -> {date, unit_count, elapsed_days} or None).
    Dates that cannot be parsed are kept as InvalidDate; a missing entry
    date is invalid as well.

    Raises:
        KeyError: If a required key is missing
        ValueError: If a count is negative or not a number
    """
    entry_date = parse_ledger_date(raw.get("entry_date"))
    if entry_date is None:
        entry_date = InvalidDate(raw="")

    exits = []
    for slot_key, slot in (raw.get("exits") or {}).items():
        exits.append((str(slot_key), _slot_from_dict(slot)))

    unit_class = classify(raw.get("pallet_type"), raw.get("note"), rules)
    return EntryRecord(
        id=raw["id"],
        document_id=raw["document_id"],
        entry_date=entry_date,
        unit_count=_whole_count(raw["unit_count"], "unit_count"),
        geometry=unit_class.geometry,
        frozen=unit_class.frozen,
        exits=tuple(exits),
        note=raw.get("note") or ""
    )


def _slot_from_dict(slot: Optional[Mapping[str, Any]]):
    if not slot:
        return EmptySlot()
    exit_date = parse_ledger_date(slot.get("date"))
    if exit_date is None:
        return EmptySlot()
    elapsed = slot.get("elapsed_days")
    return ExitEvent(
        exit_date=exit_date,
        unit_count=_whole_count(slot.get("unit_count") or 0, "exit unit_count"),
        elapsed_days=int(elapsed) if elapsed is not None else None
    )


def _whole_count(value: Any, name: str) -> int:
    """Round a pallet count down to a whole number."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number")
    try:
        count = int(float(value))
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if count < 0:
        raise ValueError(f"{name} cannot be negative")
    return count


def _date_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class SqliteRecordSource:
    """Record source reading the SQLite record store.

    Classification is applied once per record while the snapshot is built.
    """

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        rules: ClassificationRules = DEFAULT_RULES
    ):
        """
        Args:
            db_path: Path to SQLite database file
            rules: Classification rules applied when loading records
        """
        self.db_path = db_path
        self.rules = rules

    def snapshot(self) -> LedgerSnapshot:
        """Read all documents and records in one transaction."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN")
            documents = tuple(
                Document(id=row[0], document_number=row[1])
                for row in conn.execute("SELECT id, document_number FROM document ORDER BY id")
            )

            slots: Dict[int, Dict[str, Any]] = {}
            cursor = conn.execute("""
                SELECT record_id, slot_key, exit_date, unit_count, elapsed_days
                FROM exit_slot
                ORDER BY record_id, position
            """)
            for record_id, slot_key, exit_date, unit_count, elapsed_days in cursor:
                slots.setdefault(record_id, {})[slot_key] = (
                    None if exit_date is None
                    else {"date": exit_date, "unit_count": unit_count, "elapsed_days": elapsed_days}
                )

            records = []
            cursor = conn.execute("""
                SELECT id, document_id, entry_date, unit_count, pallet_type, note
                FROM entry_record
                ORDER BY id
            """)
            for row in cursor:
                records.append(record_from_dict({
                    "id": row[0],
                    "document_id": row[1],
                    "entry_date": row[2],
                    "unit_count": row[3],
                    "pallet_type": row[4],
                    "note": row[5],
                    "exits": slots.get(row[0], {}),
                }, self.rules))
            conn.commit()
            return LedgerSnapshot(documents=documents, records=tuple(records))
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the record store tables if they don't exist.

    Entry records are append-only: exits may be added but entry columns
    are never updated.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS document (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                document_number TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS entry_record (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                document_id INTEGER NOT NULL REFERENCES document(id),
                entry_date TEXT,
                unit_count INTEGER NOT NULL CHECK (unit_count >= 0),
                pallet_type TEXT NOT NULL DEFAULT '',
                note TEXT NOT NULL DEFAULT ''
            );
            CREATE TABLE IF NOT EXISTS exit_slot (
                record_id INTEGER NOT NULL REFERENCES entry_record(id),
                slot_key TEXT NOT NULL,
                position INTEGER NOT NULL,
                exit_date TEXT,
                unit_count INTEGER NOT NULL DEFAULT 0 CHECK (unit_count >= 0),
                elapsed_days INTEGER,
                PRIMARY KEY (record_id, slot_key)
            );
        """)
        conn.commit()
    finally:
        conn.close()


def register_document(document_number: str, db_path: str = DEFAULT_DB_PATH) -> int:
    """Return the id of a document number, creating it on first sighting.

    Args:
        document_number: Business document number
        db_path: Path to SQLite database file

    Returns:
        Id of the existing or newly created document
    """
    conn = get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT id FROM document WHERE document_number = ? ORDER BY id LIMIT 1",
            (document_number,)
        ).fetchone()
        if row:
            return row[0]
        cursor = conn.execute(
            "INSERT INTO document (document_number) VALUES (?)", (document_number,)
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def insert_documents(documents: Sequence[Document], db_path: str = DEFAULT_DB_PATH) -> None:
    """Insert documents with their ids atomically.

    Duplicate document numbers are stored as given.
    """
    if not documents:
        return

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        for document in documents:
            conn.execute(
                "INSERT INTO document (id, document_number) VALUES (?, ?)",
                (document.id, document.document_number)
            )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def insert_entry_records(rows: Sequence[Mapping[str, Any]], db_path: str = DEFAULT_DB_PATH) -> List[int]:
    """Insert entry records in their normalised dict form atomically.

    Rows without an "id" get one assigned by the database. Raw date values
    are stored as given so the engine can report unparseable ones.

    Args:
        rows: Normalised record dicts (see record_from_dict)
        db_path: Path to SQLite database file

    Returns:
        Ids of the inserted records, in input order
    """
    if not rows:
        return []

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        ids = []
        for row in rows:
            cursor = conn.execute("""
                INSERT INTO entry_record
                (id, document_id, entry_date, unit_count, pallet_type, note)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                row.get("id"),
                row["document_id"],
                _date_text(row.get("entry_date")),
                _whole_count(row["unit_count"], "unit_count"),
                row.get("pallet_type") or "",
                row.get("note") or ""
            ))
            record_id = cursor.lastrowid
            ids.append(record_id)

            for position, (slot_key, slot) in enumerate((row.get("exits") or {}).items()):
                slot = slot or {}
                conn.execute("""
                    INSERT INTO exit_slot
                    (record_id, slot_key, position, exit_date, unit_count, elapsed_days)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    record_id,
                    str(slot_key),
                    position,
                    _date_text(slot.get("date")),
                    _whole_count(slot.get("unit_count") or 0, "exit unit_count"),
                    slot.get("elapsed_days")
                ))
        conn.commit()
        return ids
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
