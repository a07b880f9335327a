"""Lightweight helper for persisting audit events.

Usage:
    event = audit_event(principal, "item_update", "item", item.item_id,
                        office_code=item.office_code, details={"changes": changed})
    await record_audit(db, event, actor_name=principal.name)

The row is added to the current session and committed with the
enclosing transaction. No extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.models.audit_log import AuditLog
from onetouch.services.audit import AuditEvent


async def record_audit(
    db: AsyncSession,
    event: AuditEvent,
    *,
    actor_name: str = "",
) -> AuditLog:
    """Append an audit log entry to the current DB session."""
    entry = AuditLog(
        company_code=event.company_code,
        office_code=event.office_code,
        actor_id=event.actor_id,
        actor_name=actor_name,
        action=event.action,
        target_type=event.target_type,
        target_id=event.target_id,
        details=event.details or None,
        created_at=event.timestamp,
    )
    db.add(entry)
    return entry
