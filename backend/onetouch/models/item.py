from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onetouch.auth.scope import Resource, ResourceType
from onetouch.database import Base
from onetouch.utils.clock import utcnow


class Item(Base):
    """Inventory item of an office. Never physically deleted."""

    __tablename__ = "items"

    item_id: Mapped[str] = mapped_column(String(40), primary_key=True)
    company_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("companies.code"), nullable=False, index=True
    )
    office_code: Mapped[str] = mapped_column(
        String(20), ForeignKey("offices.code"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), index=True)
    maker: Mapped[str] = mapped_column(String(255), default="")
    model: Mapped[str] = mapped_column(String(255), default="")
    floor: Mapped[str] = mapped_column(String(50), default="")
    location: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str] = mapped_column(Text, default="")

    # Manual partner pin; overrides contract routing for reports on this item
    assigned_partner_id: Mapped[str | None] = mapped_column(
        String(20), ForeignKey("partners.id"), index=True
    )
    assigned_partner_name: Mapped[str] = mapped_column(String(255), default="")

    # active | deleted
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    def as_resource(self) -> Resource:
        return Resource(
            type=ResourceType.ITEM,
            id=self.item_id,
            company_code=self.company_code,
            office_code=self.office_code,
            assigned_partner_id=self.assigned_partner_id,
        )
