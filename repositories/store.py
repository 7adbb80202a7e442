"""
In-memory backing store with all-or-nothing transactions.

Tables hold plain dict rows keyed by ``id``. Rows are never mutated in place:
writes replace the whole row. Writers are serialised through a single asyncio
lock; a transaction works against the live tables and snapshots each table
the first time it writes to it. Any exception restores those snapshots, so a
multi-row write either lands completely or not at all.
"""

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class StoreError(Exception):
    pass


class DuplicateKeyError(StoreError):
    def __init__(self, table: str, field: str, value: Any):
        super().__init__(f"Duplicate value for {table}.{field}: {value!r}")
        self.table = table
        self.field = field
        self.value = value


class RecordNotFoundError(StoreError):
    def __init__(self, table: str, record_id: str):
        super().__init__(f"No record {record_id!r} in {table}")
        self.table = table
        self.record_id = record_id


class ConcurrentModificationError(StoreError):
    def __init__(self, table: str, record_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Record {record_id!r} in {table} is at version {actual_version}, expected {expected_version}"
        )
        self.table = table
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class Transaction:
    """Write handle handed out by ``InMemoryStore.transaction()``."""

    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._snapshots: Dict[str, Dict[str, Row]] = {}

    def _writable(self, table: str) -> Dict[str, Row]:
        rows = self._store._table(table)
        if table not in self._snapshots:
            # Shallow copy is enough: rows are replaced, never edited
            self._snapshots[table] = dict(rows)
        return rows

    def rollback(self) -> None:
        for table, rows in self._snapshots.items():
            self._store._tables[table] = rows
        self._snapshots = {}

    def get(self, table: str, record_id: str) -> Optional[Row]:
        return self._store.get(table, record_id)

    def select(self, table: str, predicate: Optional[Callable[[Row], bool]] = None) -> List[Row]:
        return self._store.select(table, predicate)

    def insert(self, table: str, row: Row) -> Row:
        rows = self._writable(table)
        record_id = row["id"]
        if record_id in rows:
            raise DuplicateKeyError(table, "id", record_id)
        for field in self._store._unique_fields.get(table, ()):
            value = row.get(field)
            if value is not None and any(r.get(field) == value for r in rows.values()):
                raise DuplicateKeyError(table, field, value)
        rows[record_id] = copy.deepcopy(row)
        return copy.deepcopy(row)

    def update(
        self,
        table: str,
        record_id: str,
        changes: Row,
        expected_version: Optional[int] = None,
    ) -> Row:
        rows = self._writable(table)
        current = rows.get(record_id)
        if current is None:
            raise RecordNotFoundError(table, record_id)
        if expected_version is not None and current.get("version") != expected_version:
            raise ConcurrentModificationError(table, record_id, expected_version, current.get("version"))
        for field in self._store._unique_fields.get(table, ()):
            if field in changes and changes[field] is not None:
                if any(r.get(field) == changes[field] for rid, r in rows.items() if rid != record_id):
                    raise DuplicateKeyError(table, field, changes[field])

        updated = {**current, **copy.deepcopy(changes)}
        if "version" in current:
            updated["version"] = current["version"] + 1
        rows[record_id] = updated
        return copy.deepcopy(updated)

    def delete(self, table: str, record_id: str) -> None:
        rows = self._writable(table)
        if record_id not in rows:
            raise RecordNotFoundError(table, record_id)
        del rows[record_id]


class InMemoryStore:
    def __init__(self):
        self._tables: Dict[str, Dict[str, Row]] = {}
        self._unique_fields: Dict[str, Tuple[str, ...]] = {}
        self._lock = asyncio.Lock()

    def register_table(self, table: str, unique_fields: Iterable[str] = ()) -> None:
        self._tables.setdefault(table, {})
        self._unique_fields[table] = tuple(unique_fields)

    def _table(self, table: str) -> Dict[str, Row]:
        if table not in self._tables:
            self.register_table(table)
        return self._tables[table]

    def get(self, table: str, record_id: str) -> Optional[Row]:
        row = self._table(table).get(record_id)
        return copy.deepcopy(row) if row is not None else None

    def select(self, table: str, predicate: Optional[Callable[[Row], bool]] = None) -> List[Row]:
        return [
            copy.deepcopy(row)
            for row in self._table(table).values()
            if predicate is None or predicate(row)
        ]

    def count(self, table: str, predicate: Optional[Callable[[Row], bool]] = None) -> int:
        return sum(1 for row in self._table(table).values() if predicate is None or predicate(row))

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            tx = Transaction(self)
            try:
                yield tx
            except BaseException:
                tx.rollback()
                logger.warning("Transaction rolled back")
                raise
