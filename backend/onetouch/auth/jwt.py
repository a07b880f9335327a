"""JWT token creation and decoding.

Token claims:
  - sub:           account ID
  - name:          display name
  - role:          role string
  - company_code:  company boundary (absent for system_admin / contractor)
  - office_code:   office boundary (staff / office_admin only)
  - partner_id:    partner boundary (contractor only)
  - type:          "access"
  - exp:           expiry timestamp

Issuing tokens at login belongs to the external credential service;
`create_access_token` exists for that service, the CLI and tests.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from onetouch.auth.principal import Principal
from onetouch.config import settings

ALGORITHM = settings.jwt_algorithm

_BOUNDARY_CLAIMS = ("company_code", "office_code", "partner_id")


def create_access_token(
    principal: Principal,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": principal.id,
        "name": principal.name,
        "role": principal.role.value,
        "type": "access",
        "exp": expire,
    }
    for claim in _BOUNDARY_CLAIMS:
        value = getattr(principal, claim)
        if value:
            payload[claim] = value
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}


def principal_from_claims(payload: dict) -> Principal:
    """Build a Principal from decoded claims.

    Raises InvalidPrincipal (or ValueError for an unknown role) when the
    claims do not describe a coherent actor.
    """
    return Principal(
        id=payload["sub"],
        role=payload["role"],
        company_code=payload.get("company_code"),
        office_code=payload.get("office_code"),
        partner_id=payload.get("partner_id"),
        name=payload.get("name", ""),
    )
