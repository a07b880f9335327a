"""Pydantic schemas for account management and audit logs."""

from datetime import datetime

from pydantic import BaseModel, Field

from onetouch.auth.roles import Role


class AccountCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    role: Role
    company_code: str | None = None
    office_code: str | None = None
    partner_id: str | None = None


class AccountUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    role: Role | None = None
    office_code: str | None = None
    status: str | None = Field(None, pattern="^(active|inactive)$")


class AccountOut(BaseModel):
    id: str
    name: str
    role: Role
    company_code: str | None
    office_code: str | None
    partner_id: str | None
    status: str
    created_by: str | None
    last_login_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogOut(BaseModel):
    id: str
    company_code: str | None
    office_code: str | None
    actor_id: str | None
    actor_name: str
    action: str
    target_type: str
    target_id: str | None
    details: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}
