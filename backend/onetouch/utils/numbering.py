"""Identifier generation.

Formats:
  report:    RPT-{date}-{rand:8}
  item:      ITEM-{date}-{rand:8}
  contract:  CNT-{date}-{rand:8}
  partner:   PN{seq:3}    (sequential, counted from existing partner codes)

{date} is the UTC date as YYYYMMDD. {rand:N} is N upper-case hex digits,
so ids generated in the same request (bulk import) never collide on a
counter the session has not flushed yet.
"""

import secrets

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.utils.clock import utcnow

PREFIXES = {
    "report": "RPT",
    "item": "ITEM",
    "contract": "CNT",
}

PARTNER_PREFIX = "PN"
PARTNER_SEQ_WIDTH = 3


def generate_id(entity: str) -> str:
    """Return a new id such as "RPT-20260219-3F9A0C1B"."""
    prefix = PREFIXES[entity]
    today_str = utcnow().strftime("%Y%m%d")
    return f"{prefix}-{today_str}-{secrets.token_hex(4).upper()}"


async def generate_partner_code(db: AsyncSession) -> str:
    """Next sequential partner code, e.g. "PN004"."""
    from onetouch.models.partner import Partner

    result = await db.execute(
        select(func.count()).select_from(Partner).where(
            Partner.partner_code.like(f"{PARTNER_PREFIX}%")
        )
    )
    seq_num = (result.scalar() or 0) + 1
    return f"{PARTNER_PREFIX}{seq_num:0{PARTNER_SEQ_WIDTH}d}"
