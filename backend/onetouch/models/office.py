from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from onetouch.auth.scope import Resource, ResourceType
from onetouch.database import Base
from onetouch.utils.clock import utcnow


class Office(Base):
    __tablename__ = "offices"

    code: Mapped[str] = mapped_column(String(20), primary_key=True)
    company_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("companies.code"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(500), default="")
    phone: Mapped[str] = mapped_column(String(20), default="")
    # active | inactive
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    company = relationship("Company", back_populates="offices")

    def as_resource(self) -> Resource:
        return Resource(
            type=ResourceType.OFFICE,
            id=self.code,
            company_code=self.company_code,
            office_code=self.code,
        )
