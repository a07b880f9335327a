"""Pydantic schemas for inventory items."""

from datetime import datetime

from pydantic import BaseModel, Field

from onetouch.categories import Category


class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: Category | None = None
    # Required for company_admin / system_admin; staff-level roles use their own office
    office_code: str | None = None
    company_code: str | None = None
    maker: str = ""
    model: str = ""
    floor: str = ""
    location: str = ""
    description: str = ""
    assigned_partner_id: str | None = None


class ItemUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    category: Category | None = None
    maker: str | None = None
    model: str | None = None
    floor: str | None = None
    location: str | None = None
    description: str | None = None
    assigned_partner_id: str | None = None


class ItemOut(BaseModel):
    item_id: str
    company_code: str
    office_code: str
    name: str
    category: str | None
    maker: str
    model: str
    floor: str
    location: str
    description: str
    assigned_partner_id: str | None
    assigned_partner_name: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ItemImportRequest(BaseModel):
    items: list[ItemCreate] = Field(..., min_length=1)


class ImportResult(BaseModel):
    imported: int
    ids: list[str]


class ItemStats(BaseModel):
    total: int
    by_category: dict[str, int]
    by_office: dict[str, int]
    with_partner: int
    without_partner: int
