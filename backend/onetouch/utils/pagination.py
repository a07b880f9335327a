"""Limit/offset pagination shared by list endpoints."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.config import settings


def clamp_limit(limit: int | None) -> int:
    if not limit:
        return settings.default_page_size
    return max(1, min(limit, settings.max_page_size))


async def paginate(db: AsyncSession, stmt, *, limit: int | None, offset: int, order_by=()):
    """Run `stmt` with a COUNT over the same filters.

    Returns (rows, total, limit). Rows are ORM objects when `stmt` selects a
    single entity, otherwise `(entity, column, ...)` result rows.
    """
    limit = clamp_limit(limit)
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    page_stmt = stmt.order_by(*order_by).limit(limit).offset(offset)
    result = await db.execute(page_stmt)
    if len(stmt.column_descriptions) == 1:
        rows = list(result.scalars().all())
    else:
        rows = list(result.all())
    return rows, total, limit
