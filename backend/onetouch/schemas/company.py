"""Pydantic schemas for Company and Office CRUD operations."""

from datetime import datetime

from pydantic import BaseModel, Field


class CompanyCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    postal_code: str = ""
    prefecture: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""


class CompanyUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    postal_code: str | None = None
    prefecture: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    status: str | None = Field(None, pattern="^(active|inactive)$")


class CompanyOut(BaseModel):
    code: str
    name: str
    postal_code: str
    prefecture: str
    address: str
    phone: str
    email: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OfficeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    # Ignored for company_admin (always their own company)
    company_code: str | None = None
    address: str = ""
    phone: str = ""


class OfficeUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = None
    phone: str | None = None
    status: str | None = Field(None, pattern="^(active|inactive)$")


class OfficeOut(BaseModel):
    code: str
    company_code: str
    name: str
    address: str
    phone: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
