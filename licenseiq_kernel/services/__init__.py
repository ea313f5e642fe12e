"""Kernel services: org role assignments, active context, access validation."""

from licenseiq_kernel.services.access_validator import (
    AccessDecision,
    AccessMode,
    ResourceAccessValidator,
    has_edit_authority,
)
from licenseiq_kernel.services.context_resolver import ActiveContextResolver
from licenseiq_kernel.services.org_hierarchy import OrgHierarchyService

__all__ = [
    "AccessDecision",
    "AccessMode",
    "ActiveContextResolver",
    "OrgHierarchyService",
    "ResourceAccessValidator",
    "has_edit_authority",
]
