"""The authenticated actor of a single request.

A Principal is built once from a verified credential (see
`onetouch.auth.deps.get_current_principal`) and passed explicitly to every
engine call. It is never mutated and never read from ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass

from onetouch.auth.roles import Role


class InvalidPrincipal(ValueError):
    """Credential claims do not describe a coherent principal."""


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role
    company_code: str | None = None
    office_code: str | None = None
    partner_id: str | None = None
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "role", Role(self.role))

        if self.role is Role.CONTRACTOR:
            if not self.partner_id:
                raise InvalidPrincipal("contractor principal requires partner_id")
            return

        if self.partner_id:
            raise InvalidPrincipal("partner_id is only valid for contractor principals")
        if self.role is Role.SYSTEM_ADMIN:
            return
        if not self.company_code:
            raise InvalidPrincipal(f"{self.role.value} principal requires company_code")
        if self.role in (Role.STAFF, Role.OFFICE_ADMIN) and not self.office_code:
            raise InvalidPrincipal(f"{self.role.value} principal requires office_code")

    @property
    def is_contractor(self) -> bool:
        return self.role is Role.CONTRACTOR

    @property
    def is_system_admin(self) -> bool:
        return self.role is Role.SYSTEM_ADMIN
