"""Pure domain types: clock, org context, visibility decision."""

from licenseiq_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from licenseiq_kernel.domain.dtos import ValidationError
from licenseiq_kernel.domain.org_context import (
    GlobalRole,
    HierarchyLevel,
    OrgAccessContext,
    OrgAssignment,
    OrgRole,
    OrgScope,
    system_admin_context,
)
from licenseiq_kernel.domain.visibility import (
    DEFAULT_ACCESS_POLICY,
    AccessPolicy,
    ScopeLevel,
    UnscopedAssignmentPolicy,
    VisibilityReason,
    VisibilityScope,
    resolve_visibility,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ValidationError",
    "GlobalRole",
    "HierarchyLevel",
    "OrgAccessContext",
    "OrgAssignment",
    "OrgRole",
    "OrgScope",
    "system_admin_context",
    "DEFAULT_ACCESS_POLICY",
    "AccessPolicy",
    "ScopeLevel",
    "UnscopedAssignmentPolicy",
    "VisibilityReason",
    "VisibilityScope",
    "resolve_visibility",
]
