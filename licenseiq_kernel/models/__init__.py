"""Kernel ORM models: org hierarchy, users, contracts."""

from licenseiq_kernel.models.contract import Contract, ContractStatus
from licenseiq_kernel.models.org import (
    BusinessUnit,
    Company,
    Location,
    OrgStatus,
    User,
    UserActiveContext,
    UserOrganizationRole,
)

__all__ = [
    "BusinessUnit",
    "Company",
    "Contract",
    "ContractStatus",
    "Location",
    "OrgStatus",
    "User",
    "UserActiveContext",
    "UserOrganizationRole",
]
