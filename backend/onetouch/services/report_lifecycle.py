"""Report lifecycle state machine.

States:
    pending ──► in_progress ──► completed
       │             │
       └─────────────┴────────► cancelled

`completed` and `cancelled` are terminal: no transition (including a
re-open) is allowed out of them. Any non-terminal report may be moved to
any of the four statuses by an actor inside its boundary.

Checks in `can_transition`, in order:
  1. the requested status is one of the four values  → InvalidStatusValue
  2. the report is not terminal                      → IllegalTransition
  3. the actor is inside the report's boundary:
       contractor → report.assigned_partner_id == actor.partner_id
       others     → report within the actor's office-level scope

The caller must evaluate `can_transition` against the freshest persisted
state, inside the same transaction that writes the result.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime

from onetouch.auth.decisions import Decision, Denied, DenialReason
from onetouch.auth.guard import authorize
from onetouch.auth.principal import Principal
from onetouch.auth.roles import ALL_ROLES
from onetouch.auth.scope import Action, Resource, ResourceType
from onetouch.services.audit import AuditEvent
from onetouch.utils.clock import utcnow

ACTION_STATUS_UPDATE = "report_status_update"


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ReportStatus.COMPLETED, ReportStatus.CANCELLED})


@dataclass(frozen=True)
class ReportState:
    id: str
    company_code: str
    office_code: str
    status: ReportStatus
    category: str | None = None
    item_id: str | None = None
    assigned_partner_id: str | None = None
    assigned_partner_name: str = ""
    reporter_id: str | None = None
    contractor_memo: str | None = None
    completed_at: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "status", ReportStatus(self.status))

    def as_resource(self) -> Resource:
        return Resource(
            type=ResourceType.REPORT,
            id=self.id,
            company_code=self.company_code,
            office_code=self.office_code,
            assigned_partner_id=self.assigned_partner_id,
        )


@dataclass(frozen=True)
class TransitionResult:
    report: ReportState
    event: AuditEvent


def parse_status(value) -> ReportStatus | None:
    try:
        return ReportStatus(value)
    except ValueError:
        return None


def can_transition(actor: Principal, report: ReportState, new_status) -> Decision:
    target = parse_status(new_status)
    if target is None:
        return Denied(
            DenialReason.INVALID_STATUS_VALUE,
            details={
                "status": str(new_status),
                "allowed": [s.value for s in ReportStatus],
            },
        )

    if report.status.is_terminal:
        return Denied(
            DenialReason.ILLEGAL_TRANSITION,
            message=f"Report is already {report.status.value} and cannot change status",
            details={"from": report.status.value, "to": target.value},
        )

    return authorize(actor, ALL_ROLES, report.as_resource(), action=Action.UPDATE)


def apply_transition(
    report: ReportState,
    new_status: ReportStatus | str,
    memo: str | None = None,
    *,
    actor: Principal | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    """Produce the next report state and its audit event.

    Call only after `can_transition` allowed the change.
    """
    target = ReportStatus(new_status)
    stamp = now or utcnow()

    changes: dict = {
        "status": target,
        "completed_at": stamp if target is ReportStatus.COMPLETED else None,
    }
    if memo is not None:
        changes["contractor_memo"] = memo

    updated = replace(report, **changes)
    event = AuditEvent(
        actor_id=actor.id if actor else None,
        company_code=report.company_code,
        office_code=report.office_code,
        action=ACTION_STATUS_UPDATE,
        target_type=ResourceType.REPORT.value,
        target_id=report.id,
        details={"oldStatus": report.status.value, "newStatus": target.value},
        timestamp=stamp,
    )
    return TransitionResult(report=updated, event=event)
