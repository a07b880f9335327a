from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from onetouch.auth.principal import Principal
from onetouch.auth.roles import Role
from onetouch.auth.scope import Resource, ResourceType
from onetouch.database import Base
from onetouch.utils.clock import utcnow


class Account(Base):
    """A login identity. Its boundary columns become the request Principal."""

    __tablename__ = "accounts"

    # Login id, chosen by the creating admin
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(SAEnum(Role), default=Role.STAFF, index=True)

    # Null for system_admin and contractor accounts
    company_code: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("companies.code"), index=True
    )
    # Null for company_admin (all offices), system_admin and contractors
    office_code: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("offices.code"), index=True
    )
    # Contractor accounts only
    partner_id: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("partners.id"), index=True
    )

    # active | inactive (logical delete)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    created_by: Mapped[str | None] = mapped_column(String(64))
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def as_resource(self) -> Resource:
        return Resource(
            type=ResourceType.ACCOUNT,
            id=self.id,
            company_code=self.company_code,
            office_code=self.office_code,
            assigned_partner_id=self.partner_id,
        )

    def to_principal(self) -> Principal:
        return Principal(
            id=self.id,
            role=self.role,
            company_code=self.company_code,
            office_code=self.office_code,
            partner_id=self.partner_id,
            name=self.name,
        )
