"""Audit log listing.

Endpoints:
    GET /api/audit-logs    Company-wide audit trail (company_admin+)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.deps import require_roles
from onetouch.auth.guard import authorize, ensure_allowed
from onetouch.auth.principal import Principal
from onetouch.auth.roles import COMPANY_ADMIN_AND_ABOVE
from onetouch.auth.scope import ScopeLevel
from onetouch.database import get_db
from onetouch.models.audit_log import AuditLog
from onetouch.schemas.account import AuditLogOut
from onetouch.schemas.common import PaginatedResponse
from onetouch.utils.pagination import paginate
from onetouch.utils.scoped_queries import apply_scope

router = APIRouter()


@router.get("", response_model=PaginatedResponse[AuditLogOut])
async def list_audit_logs(
    action: str | None = Query(None),
    target_type: str | None = Query(None),
    actor_id: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(COMPANY_ADMIN_AND_ABOVE)),
):
    scope = ensure_allowed(
        authorize(principal, COMPANY_ADMIN_AND_ABOVE, level=ScopeLevel.COMPANY)
    )

    stmt = apply_scope(select(AuditLog), AuditLog, scope)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if target_type:
        stmt = stmt.where(AuditLog.target_type == target_type)
    if actor_id:
        stmt = stmt.where(AuditLog.actor_id == actor_id)

    rows, total, limit = await paginate(
        db, stmt, limit=limit, offset=offset,
        order_by=(AuditLog.created_at.desc(), AuditLog.id),
    )
    return PaginatedResponse[AuditLogOut](
        items=[AuditLogOut.model_validate(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
    )
