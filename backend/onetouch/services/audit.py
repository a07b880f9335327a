"""Audit events emitted by the engine for every approved mutation.

The engine only builds `AuditEvent` values; persisting them is the job of
`onetouch.utils.audit_log.record_audit`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from onetouch.auth.principal import Principal
from onetouch.utils.clock import utcnow


@dataclass(frozen=True)
class AuditEvent:
    actor_id: str | None
    company_code: str | None
    action: str
    target_type: str
    target_id: str | None
    office_code: str | None = None
    details: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


def audit_event(
    actor: Principal,
    action: str,
    target_type: str,
    target_id: str | None,
    *,
    company_code: str | None = None,
    office_code: str | None = None,
    details: dict | None = None,
) -> AuditEvent:
    """Build an event; company/office default to the actor's own."""
    return AuditEvent(
        actor_id=actor.id,
        company_code=company_code if company_code is not None else actor.company_code,
        office_code=office_code if office_code is not None else actor.office_code,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details or {},
    )
