"""
Generic repository over the backing store.

Provides CRUD, filtering, cursor pagination and an optional read-through
cache. Concrete repositories set ``name``, ``table`` and ``model``.
"""

import logging
from typing import Any, ClassVar, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel

from repositories.store import InMemoryStore, Row
from utils.cache import Cache
from utils.pagination import CursorPage, calculate_cursor_pagination

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

Filter = Dict[str, Any]
OrderBy = Dict[str, str]  # field -> "asc" | "desc"


def _matches(row: Row, filter: Optional[Filter]) -> bool:
    if not filter:
        return True
    return all(row.get(field) == value for field, value in filter.items())


def _sort_rows(rows: List[Row], order_by: Optional[OrderBy]) -> List[Row]:
    # id is the final tie-breaker so cursors stay stable
    rows = sorted(rows, key=lambda r: r["id"])
    for field, direction in reversed(list((order_by or {}).items())):
        rows = sorted(rows, key=lambda r: r.get(field), reverse=direction.lower() == "desc")
    return rows


class BaseRepository(Generic[ModelT]):
    name: ClassVar[str] = "BaseRepository"
    table: ClassVar[str]
    model: ClassVar[Type[BaseModel]]
    unique_fields: ClassVar[tuple] = ()

    # seconds
    cache_ttl: int = 300

    def __init__(self, store: InMemoryStore, cache: Optional[Cache] = None):
        self.store = store
        self.cache = cache
        self.store.register_table(self.table, self.unique_fields)

    # --- row <-> model ---

    def to_row(self, entity: ModelT) -> Row:
        return entity.model_dump()

    def from_row(self, row: Row) -> ModelT:
        return self.model.model_validate(row)

    def get_cache_key(self, record_id: str) -> str:
        return f"{self.name}:{record_id}"

    # --- reads ---

    async def find_by_id(self, record_id: str) -> Optional[ModelT]:
        if self.cache is not None:
            cache_key = self.get_cache_key(record_id)
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"[{self.name}] Cache hit for {cache_key}")
                return self.from_row(cached)

        row = self.store.get(self.table, record_id)
        if row is None:
            return None

        if self.cache is not None:
            await self.cache.set(self.get_cache_key(record_id), row, self.cache_ttl)
            logger.debug(f"[{self.name}] Cached {self.get_cache_key(record_id)}")
        return self.from_row(row)

    async def find_many(
        self,
        filter: Optional[Filter] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: Optional[OrderBy] = None,
    ) -> List[ModelT]:
        rows = self.store.select(self.table, lambda r: _matches(r, filter))
        rows = _sort_rows(rows, order_by)[offset:]
        if limit is not None:
            rows = rows[:limit]
        return [self.from_row(row) for row in rows]

    async def find_one(self, filter: Filter) -> Optional[ModelT]:
        results = await self.find_many(filter, limit=1)
        return results[0] if results else None

    async def count(self, filter: Optional[Filter] = None) -> int:
        return self.store.count(self.table, lambda r: _matches(r, filter))

    async def exists(self, record_id: str) -> bool:
        if self.cache is not None and await self.cache.has(self.get_cache_key(record_id)):
            return True
        return self.store.get(self.table, record_id) is not None

    async def find_many_paginated(
        self,
        cursor: Optional[str],
        limit: int,
        filter: Optional[Filter] = None,
        order_by: Optional[OrderBy] = None,
    ) -> CursorPage:
        """Return one page after ``cursor`` (an item id), fetching ``limit + 1`` rows.

        An unknown cursor yields an empty page.
        """
        rows = _sort_rows(self.store.select(self.table, lambda r: _matches(r, filter)), order_by)
        if cursor:
            ids = [r["id"] for r in rows]
            if cursor not in ids:
                return CursorPage(items=[], has_more=False)
            rows = rows[ids.index(cursor) + 1:]
        items = [self.from_row(row) for row in rows[: limit + 1]]
        return calculate_cursor_pagination(items, limit)

    # --- writes ---

    async def create(self, entity: ModelT) -> ModelT:
        async with self.store.transaction() as tx:
            row = tx.insert(self.table, self.to_row(entity))
        logger.info(f"[{self.name}] Created entity with id: {row['id']}")
        return self.from_row(row)

    async def update(
        self,
        record_id: str,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> ModelT:
        async with self.store.transaction() as tx:
            row = tx.update(self.table, record_id, changes, expected_version=expected_version)
        await self._invalidate(record_id)
        logger.info(f"[{self.name}] Updated entity with id: {record_id}")
        return self.from_row(row)

    async def delete(self, record_id: str) -> None:
        async with self.store.transaction() as tx:
            tx.delete(self.table, record_id)
        await self._invalidate(record_id)
        logger.info(f"[{self.name}] Deleted entity with id: {record_id}")

    async def _invalidate(self, record_id: str) -> None:
        if self.cache is not None:
            await self.cache.delete(self.get_cache_key(record_id))
            logger.debug(f"[{self.name}] Invalidated cache for {self.get_cache_key(record_id)}")

    async def invalidate_cache(self) -> None:
        if self.cache is not None:
            await self.cache.delete_pattern(f"{self.name}:*")
            logger.debug(f"[{self.name}] Invalidated all cache entries")
