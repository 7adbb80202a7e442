"""
Order persistence.

Orders and their line items live in separate tables; an order is always
written together with its items in one transaction.
"""

import logging
from typing import Any, Dict, List, Optional

from models.order import Order, OrderItem, OrderStatus
from models.payment import PaymentStatus
from repositories.base import BaseRepository, Filter, OrderBy
from repositories.store import Row
from utils.pagination import CursorPage

logger = logging.getLogger(__name__)

ITEMS_TABLE = "order_items"


class OrderRepository(BaseRepository[Order]):
    name = "OrderRepository"
    table = "orders"
    model = Order
    # A payment reference can settle at most one order
    unique_fields = ("order_number", "payment_reference")

    # Orders change often while they are being processed
    cache_ttl = 120

    def to_row(self, entity: Order) -> Row:
        return entity.model_dump(exclude={"items"})

    def _items_for(self, order_id: str) -> List[OrderItem]:
        rows = self.store.select(ITEMS_TABLE, lambda r: r["order_id"] == order_id)
        rows.sort(key=lambda r: r["position"])
        return [OrderItem.model_validate(row) for row in rows]

    def _with_items(self, order: Optional[Order]) -> Optional[Order]:
        if order is None:
            return None
        order.items = self._items_for(order.id)
        return order

    async def create_with_items(self, order: Order, items: List[OrderItem]) -> Order:
        """Persist an order and all of its items, or nothing at all."""
        async with self.store.transaction() as tx:
            tx.insert(self.table, self.to_row(order))
            for item in items:
                if item.order_id != order.id:
                    raise ValueError(f"Item {item.id} belongs to order {item.order_id}, not {order.id}")
                tx.insert(ITEMS_TABLE, item.model_dump())
        logger.info(f"[{self.name}] Created order {order.order_number} with {len(items)} item(s)")
        return await self.find_by_id_with_items(order.id)

    async def find_by_id_with_items(self, order_id: str) -> Optional[Order]:
        return self._with_items(await self.find_by_id(order_id))

    async def find_by_order_number(self, order_number: str) -> Optional[Order]:
        return self._with_items(await self.find_one({"order_number": order_number}))

    async def find_by_payment_reference(self, payment_reference: str) -> Optional[Order]:
        return await self.find_one({"payment_reference": payment_reference})

    async def find_by_user_id(self, user_id: str, limit: int = 50) -> List[Order]:
        logger.debug(f"[{self.name}] Finding orders for user: {user_id}")
        orders = await self.find_many({"user_id": user_id}, limit=limit, order_by={"created_at": "desc"})
        return [self._with_items(o) for o in orders]

    async def find_by_status(self, status: OrderStatus, limit: int = 100) -> List[Order]:
        logger.debug(f"[{self.name}] Finding orders with status: {status.value}")
        return await self.find_many({"order_status": status}, limit=limit, order_by={"created_at": "asc"})

    async def find_by_payment_status(self, payment_status: PaymentStatus, limit: int = 100) -> List[Order]:
        logger.debug(f"[{self.name}] Finding orders with payment status: {payment_status.value}")
        return await self.find_many(
            {"payment_status": payment_status}, limit=limit, order_by={"created_at": "asc"}
        )

    async def find_requiring_review(self, limit: int = 50) -> List[Order]:
        orders = await self.find_many({"requires_review": True}, order_by={"created_at": "asc"})
        # Cancelled and completed orders no longer need a reviewer
        open_orders = [
            o for o in orders
            if o.order_status not in (OrderStatus.CANCELLED, OrderStatus.COMPLETED)
        ]
        return open_orders[:limit]

    async def count_by_user_id(self, user_id: str) -> int:
        return await self.count({"user_id": user_id})

    async def find_page(
        self,
        cursor: Optional[str],
        limit: int,
        filter: Optional[Filter] = None,
        order_by: Optional[OrderBy] = None,
    ) -> CursorPage:
        page = await self.find_many_paginated(cursor, limit, filter, order_by or {"created_at": "desc"})
        page.items = [self._with_items(o) for o in page.items]
        return page

    async def update_order(
        self,
        order_id: str,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Order:
        """Apply ``changes`` if the stored version still equals ``expected_version``."""
        order = await self.update(order_id, changes, expected_version=expected_version)
        return self._with_items(order)
