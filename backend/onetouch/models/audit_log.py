"""AuditLog: immutable audit trail for every approved mutation.

Records who did what, when, and to which entity, within which
company/office. Persisted form of `onetouch.services.audit.AuditEvent`.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from onetouch.database import Base
from onetouch.utils.clock import utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Where ──────────────────────────────────────────────────
    company_code: Mapped[str | None] = mapped_column(String(20), index=True)
    office_code: Mapped[str | None] = mapped_column(String(20))

    # ── Who ────────────────────────────────────────────────────
    actor_id: Mapped[str | None] = mapped_column(String(64), index=True)
    actor_name: Mapped[str] = mapped_column(String(255), default="")

    # ── What ───────────────────────────────────────────────────
    # account_create | item_update | report_status_update | ...
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # ── Target ─────────────────────────────────────────────────
    # account | item | report | contract | partner | company | office
    target_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_id: Mapped[str | None] = mapped_column(String(64))

    # ── Context ────────────────────────────────────────────────
    details: Mapped[dict | None] = mapped_column(JSON)

    # ── Timestamp ──────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False, index=True
    )
