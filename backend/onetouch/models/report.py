from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onetouch.database import Base
from onetouch.services.report_lifecycle import ReportState, ReportStatus
from onetouch.utils.clock import utcnow


class Report(Base):
    """Incident report / work order filed by office staff."""

    __tablename__ = "reports"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    company_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("companies.code"), nullable=False, index=True
    )
    office_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("offices.code"), nullable=False, index=True
    )
    item_id: Mapped[str | None] = mapped_column(String(40), ForeignKey("items.item_id"))

    # report | request
    type: Mapped[str] = mapped_column(String(20), default="report")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    location: Mapped[str] = mapped_column(String(255), default="")

    # pending | in_progress | completed | cancelled
    status: Mapped[str] = mapped_column(
        String(20), default=ReportStatus.PENDING.value, index=True
    )
    assigned_partner_id: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("partners.id"), index=True
    )
    assigned_partner_name: Mapped[str] = mapped_column(String(255), default="")

    reporter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reporter_name: Mapped[str] = mapped_column(String(255), default="")
    contractor_memo: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    def state(self) -> ReportState:
        return ReportState(
            id=self.id,
            company_code=self.company_code,
            office_code=self.office_code,
            status=ReportStatus(self.status),
            category=self.category,
            item_id=self.item_id,
            assigned_partner_id=self.assigned_partner_id,
            assigned_partner_name=self.assigned_partner_name or "",
            reporter_id=self.reporter_id,
            contractor_memo=self.contractor_memo,
            completed_at=self.completed_at,
        )

    def apply_state(self, state: ReportState) -> None:
        """Copy lifecycle-owned fields back from an engine state."""
        self.status = state.status.value
        self.completed_at = state.completed_at
        self.contractor_memo = state.contractor_memo
        self.assigned_partner_id = state.assigned_partner_id
        self.assigned_partner_name = state.assigned_partner_name
