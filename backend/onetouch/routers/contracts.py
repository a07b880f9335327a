"""Contract router and the read-only partner resolution endpoint.

Endpoints:
    GET    /api/contracts             List contracts of the caller's company
    GET    /api/contracts/resolve     Which partner would a new report go to?
    GET    /api/contracts/{id}        Contract detail
    POST   /api/contracts             Create contract (company_admin+)
    PUT    /api/contracts/{id}        Update contract (company_admin+)
    DELETE /api/contracts/{id}        Deactivate contract (company_admin+)

Contract-tier resolutions are cached per (company, office, category) and
invalidated on every contract or partner change for that company.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.guard import authorize, ensure_allowed
from onetouch.auth.principal import Principal
from onetouch.auth.roles import ALL_ROLES, COMPANY_ADMIN_AND_ABOVE, STAFF_AND_ABOVE
from onetouch.auth.scope import Action, Resource, ResourceType, ScopeLevel
from onetouch.categories import Category
from onetouch.database import get_db
from onetouch.middleware.exceptions import (
    BadRequestError,
    BusinessLogicError,
    ResourceNotFoundError,
)
from onetouch.models.contract import Contract
from onetouch.models.item import Item
from onetouch.models.office import Office
from onetouch.models.partner import Partner
from onetouch.schemas.common import PaginatedResponse
from onetouch.schemas.partner import (
    ContractCreate,
    ContractOut,
    ContractUpdate,
    PartnerAssignmentOut,
)
from onetouch.services.audit import audit_event
from onetouch.services.partner_resolution import ResolutionQuery, resolve_partner_for
from onetouch.utils.audit_log import record_audit
from onetouch.utils.cache import cached, commit_and_invalidate
from onetouch.utils.numbering import generate_id
from onetouch.utils.pagination import paginate
from onetouch.utils.scoped_queries import apply_scope

logger = logging.getLogger(__name__)

router = APIRouter()


def _contract_out(contract: Contract, partner_name: str = "") -> ContractOut:
    out = ContractOut.model_validate(contract)
    out.partner_name = partner_name
    return out


async def _get_contract(db: AsyncSession, contract_id: str) -> tuple[Contract, str]:
    result = await db.execute(
        select(Contract, Partner.name)
        .join(Partner, Partner.id == Contract.partner_id)
        .where(Contract.id == contract_id)
    )
    row = result.first()
    if row is None:
        raise ResourceNotFoundError("Contract", contract_id)
    return row[0], row[1]


async def _check_office(db: AsyncSession, company_code: str, office_code: str | None) -> None:
    if office_code is None:
        return
    office = await db.get(Office, office_code)
    if office is None or office.company_code != company_code:
        raise ResourceNotFoundError("Office", office_code)


def _resolution_key(db, company_code, office_code, category):
    return f"contracts:{company_code}:{office_code or '-'}:{category}"


@cached(_resolution_key, ttl=300)
async def _resolve_by_contract(db, company_code, office_code, category) -> dict:
    assignment = await resolve_partner_for(
        db, ResolutionQuery(category=category, company_code=company_code, office_code=office_code),
    )
    return assignment.as_dict()


# ── Read ────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[ContractOut])
async def list_contracts(
    partner_id: str | None = Query(None),
    office_code: str | None = Query(None),
    include_inactive: bool = False,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(STAFF_AND_ABOVE)),
):
    scope = ensure_allowed(authorize(principal, STAFF_AND_ABOVE, level=ScopeLevel.COMPANY))

    stmt = select(Contract, Partner.name).join(Partner, Partner.id == Contract.partner_id)
    stmt = apply_scope(stmt, Contract, scope)
    if not include_inactive:
        stmt = stmt.where(Contract.status == "active")
    if partner_id:
        stmt = stmt.where(Contract.partner_id == partner_id)
    if office_code:
        stmt = stmt.where(Contract.office_code == office_code)

    rows, total, limit = await paginate(
        db, stmt, limit=limit, offset=offset,
        order_by=(Contract.created_at, Contract.id),
    )
    return PaginatedResponse[ContractOut](
        items=[_contract_out(contract, name) for contract, name in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/resolve", response_model=PartnerAssignmentOut)
async def resolve_contract_partner(
    category: Category | None = Query(None),
    office_code: str | None = Query(None),
    company_code: str | None = Query(None),
    item_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(ALL_ROLES)),
):
    """Preview partner routing without creating a report.

    With `item_id` the item's boundary, pin and category are used, so a
    contractor may query items assigned to its partner.
    """
    if item_id:
        item = await db.get(Item, item_id)
        if item is None or item.status == "deleted":
            raise ResourceNotFoundError("Item", item_id)
        ensure_allowed(authorize(principal, ALL_ROLES, item.as_resource(), action=Action.READ))
        query = ResolutionQuery(
            category=category or item.category,
            company_code=item.company_code,
            office_code=item.office_code,
            assigned_partner_id=item.assigned_partner_id,
            assigned_partner_name=item.assigned_partner_name,
        )
        if query.assigned_partner_id:
            assignment = await resolve_partner_for(db, query)
            return PartnerAssignmentOut(**assignment.as_dict())
    else:
        target_company = principal.company_code or company_code
        target_office = principal.office_code or office_code
        if not target_company:
            raise BadRequestError("company_code is required", error_code="COMPANY_REQUIRED")
        ensure_allowed(authorize(
            principal, ALL_ROLES,
            Resource(ResourceType.CONTRACT, company_code=target_company, office_code=target_office),
            action=Action.READ,
        ))
        query = ResolutionQuery(
            category=category, company_code=target_company, office_code=target_office,
        )

    if query.category is None:
        raise BadRequestError("category is required", error_code="CATEGORY_REQUIRED")

    result = await _resolve_by_contract(
        db, query.company_code, query.office_code, Category(query.category).value,
    )
    return PartnerAssignmentOut(**result)


@router.get("/{contract_id}", response_model=ContractOut)
async def get_contract(
    contract_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(STAFF_AND_ABOVE)),
):
    contract, partner_name = await _get_contract(db, contract_id)
    ensure_allowed(authorize(
        principal, STAFF_AND_ABOVE, contract.as_resource(),
        action=Action.READ, level=ScopeLevel.COMPANY,
    ))
    return _contract_out(contract, partner_name)


# ── Write ───────────────────────────────────────────────────

@router.post("", response_model=ContractOut, status_code=201)
async def create_contract(
    body: ContractCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    company_code = principal.company_code or body.company_code
    if not company_code:
        raise BadRequestError("company_code is required", error_code="COMPANY_REQUIRED")

    contract_id = generate_id("contract")
    ensure_allowed(authorize(
        principal, COMPANY_ADMIN_AND_ABOVE,
        Resource(
            ResourceType.CONTRACT, contract_id,
            company_code=company_code, office_code=body.office_code,
        ),
        action=Action.CREATE, level=ScopeLevel.COMPANY,
    ))

    partner = await db.get(Partner, body.partner_id)
    if partner is None:
        raise ResourceNotFoundError("Partner", body.partner_id)
    if partner.status != "active":
        raise BusinessLogicError(
            f"Partner '{partner.id}' is inactive", error_code="PARTNER_INACTIVE",
        )
    await _check_office(db, company_code, body.office_code)

    contract = Contract(
        id=contract_id,
        partner_id=partner.id,
        company_code=company_code,
        office_code=body.office_code,
        categories=[c.value for c in body.categories],
        start_date=body.start_date,
        end_date=body.end_date,
        notes=body.notes,
    )
    db.add(contract)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "contract_create", "contract", contract.id,
            company_code=company_code, office_code=body.office_code,
            details={"partnerId": partner.id, "categories": contract.categories},
        ),
        actor_name=principal.name,
    )
    await commit_and_invalidate(db, f"contracts:{company_code}:*")
    logger.info(f"Contract {contract.id} ({partner.id}) created for {company_code}")
    return _contract_out(contract, partner.name)


@router.put("/{contract_id}", response_model=ContractOut)
async def update_contract(
    contract_id: str,
    body: ContractUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    contract, partner_name = await _get_contract(db, contract_id)
    ensure_allowed(authorize(
        principal, COMPANY_ADMIN_AND_ABOVE, contract.as_resource(),
        action=Action.UPDATE, level=ScopeLevel.COMPANY,
    ))

    updates = body.model_dump(exclude_unset=True)
    if "office_code" in updates:
        await _check_office(db, contract.company_code, updates["office_code"])
    if updates.get("categories") is not None:
        updates["categories"] = [c.value for c in body.categories]
    for key, value in updates.items():
        setattr(contract, key, value)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "contract_update", "contract", contract.id,
            company_code=contract.company_code, office_code=contract.office_code,
            details={"changes": sorted(updates)},
        ),
        actor_name=principal.name,
    )
    await commit_and_invalidate(db, f"contracts:{contract.company_code}:*")
    return _contract_out(contract, partner_name)


@router.delete("/{contract_id}", response_model=ContractOut)
async def deactivate_contract(
    contract_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    contract, partner_name = await _get_contract(db, contract_id)
    ensure_allowed(authorize(
        principal, COMPANY_ADMIN_AND_ABOVE, contract.as_resource(),
        action=Action.DELETE, level=ScopeLevel.COMPANY,
    ))

    contract.status = "inactive"
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "contract_delete", "contract", contract.id,
            company_code=contract.company_code, office_code=contract.office_code,
            details={"partnerId": contract.partner_id},
        ),
        actor_name=principal.name,
    )
    await commit_and_invalidate(db, f"contracts:{contract.company_code}:*")
    return _contract_out(contract, partner_name)
