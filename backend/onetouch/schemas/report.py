"""Pydantic schemas for incident reports."""

from datetime import datetime

from pydantic import BaseModel, Field

from onetouch.categories import Category


class ReportCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    # report | request
    type: str = Field("report", pattern="^(report|request)$")
    item_id: str | None = None
    # Taken from the item when omitted
    category: Category | None = None
    description: str = ""
    location: str = ""
    # Required for company_admin / system_admin without an item
    office_code: str | None = None


class ReportStatusUpdate(BaseModel):
    # Validated by the lifecycle engine so a bad value yields InvalidStatusValue
    status: str
    contractor_memo: str | None = None


class ReportOut(BaseModel):
    id: str
    company_code: str
    office_code: str
    item_id: str | None
    type: str
    title: str
    category: str | None
    description: str
    location: str
    status: str
    assigned_partner_id: str | None
    assigned_partner_name: str
    reporter_id: str
    reporter_name: str
    contractor_memo: str | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BackfillResult(BaseModel):
    scanned: int
    assigned: int
    ids: list[str]
