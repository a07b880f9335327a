"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_principal  → decode JWT, return an immutable Principal
  require_roles(...)     → AccessGuard role step for a route
"""

import logging
from collections.abc import Iterable

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from onetouch.auth.guard import authorize, ensure_allowed
from onetouch.auth.jwt import decode_token, principal_from_claims
from onetouch.auth.principal import Principal
from onetouch.auth.roles import Role
from onetouch.middleware.exceptions import InvalidCredentialsError

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ── Core principal dependency ───────────────────────────────

async def get_current_principal(
    token: str | None = Depends(oauth2_scheme),
) -> Principal:
    """Decode the bearer token into the request Principal.

    The principal is built from claims alone; boundary identifiers are
    never re-read from ambient state for the rest of the request.
    """
    if not token:
        raise InvalidCredentialsError("Not authenticated")

    payload = decode_token(token)
    if not payload.get("sub") or not payload.get("role") or payload.get("type") != "access":
        raise InvalidCredentialsError()

    try:
        return principal_from_claims(payload)
    except ValueError as e:
        # InvalidPrincipal is a ValueError, as is an unknown role string
        logger.warning(f"Rejected token for {payload.get('sub')}: {e}")
        raise InvalidCredentialsError("Token claims are inconsistent") from e


# ── Role-based access control ───────────────────────────────

def require_roles(roles: Iterable[Role]):
    """Dependency factory: restrict a route to a set of roles.

    Usage:
        @router.post("/items")
        async def create_item(
            principal: Principal = Depends(require_roles(OFFICE_ADMIN_AND_ABOVE)),
        ):
            ...
    """
    allowed = frozenset(roles)

    async def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        ensure_allowed(authorize(principal, allowed))
        return principal

    return _check
