"""Aggregate model imports so `Base.metadata` sees every table."""

from onetouch.models.company import Company  # noqa: F401
from onetouch.models.office import Office  # noqa: F401
from onetouch.models.partner import Partner  # noqa: F401
from onetouch.models.account import Account  # noqa: F401
from onetouch.models.contract import Contract  # noqa: F401
from onetouch.models.item import Item  # noqa: F401
from onetouch.models.report import Report  # noqa: F401
from onetouch.models.audit_log import AuditLog  # noqa: F401

__all__ = [
    "Company", "Office", "Partner", "Account",
    "Contract", "Item", "Report", "AuditLog",
]
