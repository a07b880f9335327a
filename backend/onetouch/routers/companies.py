"""Company management router.

Endpoints:
    GET  /api/companies            List companies (own company unless system_admin)
    GET  /api/companies/{code}     Company detail
    POST /api/companies            Create company (system_admin)
    PUT  /api/companies/{code}     Update company (company_admin+, own company)
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.guard import authorize, ensure_allowed
from onetouch.auth.principal import Principal
from onetouch.auth.roles import COMPANY_ADMIN_AND_ABOVE, STAFF_AND_ABOVE, Role
from onetouch.auth.scope import Action, ScopeLevel
from onetouch.database import get_db
from onetouch.middleware.exceptions import BusinessLogicError, ResourceNotFoundError
from onetouch.models.company import Company
from onetouch.schemas.company import CompanyCreate, CompanyOut, CompanyUpdate
from onetouch.services.audit import audit_event
from onetouch.utils.audit_log import record_audit

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_company(db: AsyncSession, code: str) -> Company:
    company = await db.get(Company, code)
    if company is None:
        raise ResourceNotFoundError("Company", code)
    return company


@router.get("", response_model=list[CompanyOut])
async def list_companies(
    include_inactive: bool = False,
    search: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(STAFF_AND_ABOVE)),
):
    scope = ensure_allowed(authorize(principal, STAFF_AND_ABOVE, level=ScopeLevel.COMPANY))

    stmt = select(Company)
    if scope.company_code is not None:
        stmt = stmt.where(Company.code == scope.company_code)
    if not include_inactive:
        stmt = stmt.where(Company.status == "active")
    if search:
        stmt = stmt.where(Company.name.ilike(f"%{search}%"))

    result = await db.execute(stmt.order_by(Company.code))
    return [CompanyOut.model_validate(c) for c in result.scalars().all()]


@router.get("/{code}", response_model=CompanyOut)
async def get_company(
    code: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(STAFF_AND_ABOVE)),
):
    company = await _get_company(db, code)
    ensure_allowed(authorize(
        principal, STAFF_AND_ABOVE, company.as_resource(),
        action=Action.READ, level=ScopeLevel.COMPANY,
    ))
    return CompanyOut.model_validate(company)


@router.post("", response_model=CompanyOut, status_code=201)
async def create_company(
    body: CompanyCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles({Role.SYSTEM_ADMIN})),
):
    if await db.get(Company, body.code) is not None:
        raise BusinessLogicError(
            f"Company '{body.code}' already exists", error_code="DUPLICATE_RECORD",
        )

    company = Company(**body.model_dump())
    db.add(company)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "company_create", "company", company.code,
            company_code=company.code, details={"name": company.name},
        ),
        actor_name=principal.name,
    )
    logger.info(f"Company {company.code} created by {principal.id}")
    return CompanyOut.model_validate(company)


@router.put("/{code}", response_model=CompanyOut)
async def update_company(
    code: str,
    body: CompanyUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    company = await _get_company(db, code)
    ensure_allowed(authorize(
        principal, COMPANY_ADMIN_AND_ABOVE, company.as_resource(),
        action=Action.UPDATE, level=ScopeLevel.COMPANY,
    ))

    updates = body.model_dump(exclude_unset=True)
    for key, value in updates.items():
        setattr(company, key, value)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "company_update", "company", company.code,
            company_code=company.code, details={"changes": sorted(updates)},
        ),
        actor_name=principal.name,
    )
    return CompanyOut.model_validate(company)
