"""
Visibility -- pure decision of which rows an OrgAccessContext may see.

Responsibility:
    Turns an OrgAccessContext into a VisibilityScope: unrestricted, one
    location, one business unit, one company (with or without legacy rows),
    or nothing.  selectors.org_filter renders the scope as a SQL predicate;
    ``VisibilityScope.admits`` evaluates it in memory.  Both share this one
    decision so they cannot drift.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  AccessPolicy is built from settings
    by licenseiq_config.bridges; the kernel never reads configuration.

Invariants enforced:
    Checks run in a fixed order, first match wins, scope level before role:
      1. system admin or bypass global role      -> unrestricted
      2. no active assignment                    -> unrestricted (owner fallback)
      3. location set                            -> that location only
      4. business unit set                       -> that BU only, no legacy rows
      5. company set                             -> that company; legacy rows
                                                    only for legacy-visible roles
      6. assignment without any id               -> policy: deny (default) or allow
    A location-level admin still sees only that location.
"""

from dataclasses import dataclass, field
from enum import Enum, unique
from uuid import UUID

from licenseiq_kernel.domain.org_context import OrgAccessContext


@unique
class UnscopedAssignmentPolicy(str, Enum):
    """What step 6 returns for an assignment that names no org unit."""

    DENY = "deny"
    ALLOW = "allow"


@dataclass(frozen=True)
class AccessPolicy:
    """Role sets and fallbacks driving visibility and edit authority."""

    bypass_global_roles: frozenset[str] = field(
        default_factory=lambda: frozenset({"admin", "owner"})
    )
    legacy_visible_roles: frozenset[str] = field(
        default_factory=lambda: frozenset({"admin", "owner"})
    )
    edit_roles: frozenset[str] = field(
        default_factory=lambda: frozenset({"admin", "owner", "company_admin"})
    )
    unscoped_assignment: UnscopedAssignmentPolicy = UnscopedAssignmentPolicy.DENY


DEFAULT_ACCESS_POLICY = AccessPolicy()


@unique
class ScopeLevel(str, Enum):
    UNRESTRICTED = "unrestricted"
    LOCATION = "location"
    BUSINESS_UNIT = "business_unit"
    COMPANY = "company"
    NOTHING = "nothing"


@unique
class VisibilityReason(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    GLOBAL_ROLE = "global_role"
    NO_ACTIVE_CONTEXT = "no_active_context"
    LOCATION = "location"
    BUSINESS_UNIT = "business_unit"
    COMPANY = "company"
    UNSCOPED_ASSIGNMENT = "unscoped_assignment"


@dataclass(frozen=True)
class VisibilityScope:
    """Outcome of resolve_visibility."""

    level: ScopeLevel
    reason: VisibilityReason
    scope_id: UUID | None = None
    include_legacy: bool = False

    @property
    def needs_owner_fallback(self) -> bool:
        """True when the caller should narrow to rows the user created."""
        return self.reason == VisibilityReason.NO_ACTIVE_CONTEXT

    def admits(
        self,
        company_id: UUID | None,
        business_unit_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> bool:
        """In-memory twin of the SQL predicate built by org_filter."""
        if self.level == ScopeLevel.UNRESTRICTED:
            return True
        if self.level == ScopeLevel.NOTHING:
            return False
        if self.level == ScopeLevel.LOCATION:
            return location_id == self.scope_id
        if self.level == ScopeLevel.BUSINESS_UNIT:
            return business_unit_id == self.scope_id
        if company_id is None:
            return self.include_legacy
        return company_id == self.scope_id


def resolve_visibility(
    context: OrgAccessContext,
    policy: AccessPolicy = DEFAULT_ACCESS_POLICY,
) -> VisibilityScope:
    """Decide which rows ``context`` may see."""
    if context.is_system_admin:
        return VisibilityScope(ScopeLevel.UNRESTRICTED, VisibilityReason.SYSTEM_ADMIN)
    if context.global_role in policy.bypass_global_roles:
        return VisibilityScope(ScopeLevel.UNRESTRICTED, VisibilityReason.GLOBAL_ROLE)

    assignment = context.assignment
    if assignment is None:
        return VisibilityScope(
            ScopeLevel.UNRESTRICTED, VisibilityReason.NO_ACTIVE_CONTEXT
        )

    if assignment.location_id is not None:
        return VisibilityScope(
            ScopeLevel.LOCATION, VisibilityReason.LOCATION, assignment.location_id
        )
    if assignment.business_unit_id is not None:
        return VisibilityScope(
            ScopeLevel.BUSINESS_UNIT,
            VisibilityReason.BUSINESS_UNIT,
            assignment.business_unit_id,
        )
    if assignment.company_id is not None:
        return VisibilityScope(
            ScopeLevel.COMPANY,
            VisibilityReason.COMPANY,
            assignment.company_id,
            include_legacy=assignment.role in policy.legacy_visible_roles,
        )

    if policy.unscoped_assignment == UnscopedAssignmentPolicy.ALLOW:
        return VisibilityScope(
            ScopeLevel.UNRESTRICTED, VisibilityReason.UNSCOPED_ASSIGNMENT
        )
    return VisibilityScope(ScopeLevel.NOTHING, VisibilityReason.UNSCOPED_ASSIGNMENT)
