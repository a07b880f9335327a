from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onetouch.auth.scope import Resource, ResourceType
from onetouch.database import Base
from onetouch.services.partner_resolution import ContractRecord
from onetouch.utils.clock import utcnow


class Contract(Base):
    """Binds a partner to a set of categories for a company.

    office_code = None means the contract covers every office of the
    company; an office-specific contract wins over a company-wide one.
    """

    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    partner_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("partners.id"), nullable=False, index=True
    )
    company_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("companies.code"), nullable=False, index=True
    )
    office_code: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("offices.code"), index=True
    )
    categories: Mapped[list] = mapped_column(JSON, default=list)
    # active | inactive (logical delete)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    notes: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    def as_resource(self) -> Resource:
        return Resource(
            type=ResourceType.CONTRACT,
            id=self.id,
            company_code=self.company_code,
            office_code=self.office_code,
            assigned_partner_id=self.partner_id,
        )

    def as_record(self, partner_name: str = "") -> ContractRecord:
        return ContractRecord(
            id=self.id,
            partner_id=self.partner_id,
            company_code=self.company_code,
            office_code=self.office_code,
            categories=frozenset(self.categories or []),
            status=self.status,
            created_at=self.created_at,
            partner_name=partner_name,
        )
