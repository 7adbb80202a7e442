from typing import Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class CursorPage(BaseModel, Generic[T]):
    items: List[T]
    next_cursor: Optional[str] = None
    has_more: bool = False
    total_count: Optional[int] = None


def calculate_cursor_pagination(
    items: Sequence[T],
    limit: int,
    total_count: Optional[int] = None,
) -> CursorPage[T]:
    """Build a page from up to ``limit + 1`` fetched items.

    The extra item only signals that another page exists; it is not returned.
    The next cursor is the id of the last item on this page.
    """
    has_more = len(items) > limit
    page_items = list(items[:limit]) if has_more else list(items)
    next_cursor = page_items[-1].id if has_more and page_items else None
    return CursorPage(
        items=page_items,
        next_cursor=next_cursor,
        has_more=has_more,
        total_count=total_count,
    )
