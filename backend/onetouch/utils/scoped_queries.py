"""Turn a resolved `Scope` into SQLAlchemy WHERE clauses.

Works for any model exposing the boundary columns it is asked to filter
on. Partner-scoped queries filter only on `partner_column` (default
`assigned_partner_id`); company/office filters are ignored for them.
"""

from sqlalchemy import false
from sqlalchemy.ext.asyncio import AsyncSession

from onetouch.auth.principal import Principal
from onetouch.auth.scope import Scope
from onetouch.middleware.exceptions import BadRequestError, ResourceNotFoundError
from onetouch.models.office import Office


def apply_scope(stmt, model, scope: Scope, *, partner_column: str = "assigned_partner_id"):
    if scope.is_partner_scoped:
        column = getattr(model, partner_column, None)
        if column is None:
            # Model has no partner link, so nothing is visible to a contractor
            return stmt.where(false())
        return stmt.where(column == scope.partner_id)

    if scope.company_code is not None:
        stmt = stmt.where(model.company_code == scope.company_code)
    if scope.office_code is not None and hasattr(model, "office_code"):
        stmt = stmt.where(model.office_code == scope.office_code)
    return stmt


async def load_target_office(
    db: AsyncSession,
    principal: Principal,
    office_code: str | None,
) -> Office:
    """Office a new row will belong to.

    Staff and office admins always use their own office; wider roles must
    name one. Boundary checks on the returned office are left to the guard.
    """
    code = principal.office_code or office_code
    if not code:
        raise BadRequestError("office_code is required", error_code="OFFICE_REQUIRED")

    office = await db.get(Office, code)
    if office is None:
        raise ResourceNotFoundError("Office", code)
    return office
