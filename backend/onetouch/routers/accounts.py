"""Account management router.

Endpoints:
    GET    /api/accounts             List accounts visible to the caller
    GET    /api/accounts/{id}        Account detail
    POST   /api/accounts             Create account (strictly below own level)
    PUT    /api/accounts/{id}        Update account
    DELETE /api/accounts/{id}        Deactivate account (never one's own)

Credentials are provisioned by the external credential service; accounts
created here have no password material.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.guard import authorize, authorize_account_role, ensure_allowed
from onetouch.auth.principal import InvalidPrincipal, Principal
from onetouch.auth.roles import OFFICE_ADMIN_AND_ABOVE, Role, roles_manageable_by
from onetouch.auth.scope import Action, Resource, ResourceType
from onetouch.database import get_db
from onetouch.middleware.exceptions import (
    BadRequestError,
    BusinessLogicError,
    ResourceNotFoundError,
)
from onetouch.models.account import Account
from onetouch.models.office import Office
from onetouch.models.partner import Partner
from onetouch.schemas.account import AccountCreate, AccountOut, AccountUpdate
from onetouch.schemas.common import PaginatedResponse
from onetouch.services.audit import audit_event
from onetouch.utils.audit_log import record_audit
from onetouch.utils.pagination import paginate
from onetouch.utils.scoped_queries import apply_scope

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_account(db: AsyncSession, account_id: str) -> Account:
    account = await db.get(Account, account_id)
    if account is None:
        raise ResourceNotFoundError("Account", account_id)
    return account


def _check_shape(account_id: str, role: Role, company_code, office_code, partner_id) -> None:
    """Reject boundary combinations that could never become a valid Principal."""
    try:
        Principal(
            id=account_id,
            role=role,
            company_code=company_code,
            office_code=office_code,
            partner_id=partner_id,
        )
    except InvalidPrincipal as e:
        raise BadRequestError(str(e), error_code="INVALID_ACCOUNT_BOUNDARY") from e


# ── List / detail ───────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[AccountOut])
async def list_accounts(
    role: Role | None = Query(None),
    account_status: str | None = Query(None, alias="status"),
    office_code: str | None = Query(None),
    search: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    """List accounts inside the caller's scope at or below the caller's level."""
    scope = ensure_allowed(authorize(principal, OFFICE_ADMIN_AND_ABOVE))

    stmt = apply_scope(select(Account), Account, scope)
    stmt = stmt.where(Account.role.in_(list(roles_manageable_by(principal.role))))
    stmt = stmt.where(Account.status == (account_status or "active"))
    if role is not None:
        stmt = stmt.where(Account.role == role)
    if office_code:
        stmt = stmt.where(Account.office_code == office_code)
    if search:
        stmt = stmt.where(or_(Account.name.ilike(f"%{search}%"), Account.id.ilike(f"%{search}%")))

    rows, total, limit = await paginate(
        db, stmt, limit=limit, offset=offset,
        order_by=(Account.created_at.desc(), Account.id),
    )
    return PaginatedResponse[AccountOut](
        items=[AccountOut.model_validate(a) for a in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{account_id}", response_model=AccountOut)
async def get_account(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    account = await _get_account(db, account_id)
    ensure_allowed(authorize(
        principal, OFFICE_ADMIN_AND_ABOVE, account.as_resource(), action=Action.READ,
    ))
    return AccountOut.model_validate(account)


# ── Create ──────────────────────────────────────────────────

@router.post("", response_model=AccountOut, status_code=201)
async def create_account(
    body: AccountCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    ensure_allowed(authorize_account_role(principal, body.role))

    if body.role in (Role.CONTRACTOR, Role.SYSTEM_ADMIN):
        company_code = office_code = None
    else:
        company_code = principal.company_code or body.company_code
        office_code = None if body.role is Role.COMPANY_ADMIN else (
            body.office_code or principal.office_code
        )
    partner_id = body.partner_id if body.role is Role.CONTRACTOR else None

    _check_shape(body.id, body.role, company_code, office_code, partner_id)

    ensure_allowed(authorize(
        principal, OFFICE_ADMIN_AND_ABOVE,
        Resource(
            ResourceType.ACCOUNT, body.id,
            company_code=company_code, office_code=office_code,
        ),
        action=Action.CREATE,
    ))

    if office_code is not None:
        office = await db.get(Office, office_code)
        if office is None or office.company_code != company_code:
            raise ResourceNotFoundError("Office", office_code)
    if partner_id is not None and await db.get(Partner, partner_id) is None:
        raise ResourceNotFoundError("Partner", partner_id)
    if await db.get(Account, body.id) is not None:
        raise BusinessLogicError(
            f"Account '{body.id}' already exists", error_code="DUPLICATE_RECORD",
        )

    account = Account(
        id=body.id,
        name=body.name,
        role=body.role,
        company_code=company_code,
        office_code=office_code,
        partner_id=partner_id,
        created_by=principal.id,
    )
    db.add(account)
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "account_create", "account", account.id,
            company_code=company_code, office_code=office_code,
            details={"name": account.name, "role": account.role.value},
        ),
        actor_name=principal.name,
    )
    logger.info(f"Account {account.id} ({account.role.value}) created by {principal.id}")
    return AccountOut.model_validate(account)


# ── Update ──────────────────────────────────────────────────

@router.put("/{account_id}", response_model=AccountOut)
async def update_account(
    account_id: str,
    body: AccountUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    account = await _get_account(db, account_id)
    updates = body.model_dump(exclude_unset=True)
    # Deactivating through PUT is still a delete
    action = Action.DELETE if updates.get("status") == "inactive" else Action.UPDATE
    ensure_allowed(authorize(
        principal, OFFICE_ADMIN_AND_ABOVE, account.as_resource(), action=action,
    ))
    # Both the current and the requested role must be below the caller
    ensure_allowed(authorize_account_role(principal, account.role))

    if not updates:
        raise BadRequestError("No changes given", error_code="EMPTY_UPDATE")

    new_role = updates.get("role") or account.role
    if new_role is not account.role:
        ensure_allowed(authorize_account_role(principal, new_role))

    new_office = updates.get("office_code", account.office_code)
    if new_role is Role.COMPANY_ADMIN:
        new_office = None
    if new_office != account.office_code:
        ensure_allowed(authorize(
            principal, OFFICE_ADMIN_AND_ABOVE,
            Resource(
                ResourceType.ACCOUNT, account.id,
                company_code=account.company_code, office_code=new_office,
            ),
            action=Action.UPDATE,
        ))
        if new_office is not None:
            office = await db.get(Office, new_office)
            if office is None or office.company_code != account.company_code:
                raise ResourceNotFoundError("Office", new_office)

    _check_shape(account.id, new_role, account.company_code, new_office, account.partner_id)

    account.role = new_role
    account.office_code = new_office
    for key in ("name", "status"):
        if key in updates:
            setattr(account, key, updates[key])
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "account_update", "account", account.id,
            company_code=account.company_code, office_code=account.office_code,
            details={"changes": sorted(updates)},
        ),
        actor_name=principal.name,
    )
    return AccountOut.model_validate(account)


# ── Delete (logical) ────────────────────────────────────────

@router.delete("/{account_id}", response_model=AccountOut)
async def deactivate_account(
    account_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
):
    account = await _get_account(db, account_id)
    ensure_allowed(authorize(
        principal, OFFICE_ADMIN_AND_ABOVE, account.as_resource(), action=Action.DELETE,
    ))
    ensure_allowed(authorize_account_role(principal, account.role))

    account.status = "inactive"
    await db.flush()

    await record_audit(
        db,
        audit_event(
            principal, "account_delete", "account", account.id,
            company_code=account.company_code, office_code=account.office_code,
            details={"name": account.name, "role": account.role.value},
        ),
        actor_name=principal.name,
    )
    logger.info(f"Account {account.id} deactivated by {principal.id}")
    return AccountOut.model_validate(account)
