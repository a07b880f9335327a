"""Pydantic schemas for partners and contracts."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from onetouch.categories import Category


class PartnerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    # Generated (PN001, PN002, ...) when omitted
    partner_code: str | None = Field(None, max_length=20)
    phone: str = ""
    email: str = ""
    address: str = ""
    contact_name: str = ""
    categories: list[Category] = []


class PartnerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    contact_name: str | None = None
    categories: list[Category] | None = None
    status: str | None = Field(None, pattern="^(active|inactive)$")


class PartnerOut(BaseModel):
    id: str
    partner_code: str
    name: str
    phone: str
    email: str
    address: str
    contact_name: str
    categories: list[str]
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ContractCreate(BaseModel):
    partner_id: str
    categories: list[Category] = Field(..., min_length=1)
    # Ignored for company_admin (always their own company)
    company_code: str | None = None
    # None → company-wide contract
    office_code: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    notes: str = ""


class ContractUpdate(BaseModel):
    categories: list[Category] | None = Field(None, min_length=1)
    office_code: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None
    status: str | None = Field(None, pattern="^(active|inactive)$")


class ContractOut(BaseModel):
    id: str
    partner_id: str
    partner_name: str = ""
    company_code: str
    office_code: str | None
    categories: list[str]
    status: str
    start_date: date | None
    end_date: date | None
    notes: str
    created_at: datetime

    model_config = {"from_attributes": True}


class PartnerAssignmentOut(BaseModel):
    partner_id: str | None
    partner_name: str
    source: str
    contract_id: str | None = None
