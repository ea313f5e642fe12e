"""
Org access context -- who is asking, and from where in the hierarchy.

Responsibility:
    Immutable value objects describing a request's organizational position:
    the user's global role, the system-admin flag, and the currently active
    role assignment (company / business unit / location + context role).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Produced by
    services.context_resolver.ActiveContextResolver, consumed by
    domain.visibility and services.access_validator.

Invariants enforced:
    - An OrgAssignment with a location or business unit always has a company.
    - ``assignment is None`` means "no active context at all"; an assignment
      whose ids are all None is a distinct, malformed-but-possible state.
    - OrgAccessContext is request-scoped and never persisted.
"""

from dataclasses import dataclass, replace
from enum import Enum, unique
from uuid import UUID


@unique
class OrgRole(str, Enum):
    """Role held within one org assignment (context role)."""

    USER = "user"
    ADMIN = "admin"
    OWNER = "owner"
    COMPANY_ADMIN = "company_admin"


@unique
class GlobalRole(str, Enum):
    """Account-wide role, independent of any assignment."""

    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"
    USER = "user"


@unique
class HierarchyLevel(str, Enum):
    """Narrowest non-null scope field of an assignment."""

    LOCATION = "location"
    BUSINESS_UNIT = "business_unit"
    COMPANY = "company"
    NONE = "none"


def _role_value(role: "str | Enum") -> str:
    # Enum members hash by name, so role sets must hold plain values.
    return role.value if isinstance(role, Enum) else role


@dataclass(frozen=True)
class OrgScope:
    """
    Where a scoped resource lives.  All None = legacy / unscoped.

    Used as the write scope for new mappings, import jobs, import sources
    and canonical records.
    """

    company_id: UUID | None = None
    business_unit_id: UUID | None = None
    location_id: UUID | None = None


@dataclass(frozen=True)
class OrgAssignment:
    """The active role assignment of a user."""

    company_id: UUID | None
    role: str = OrgRole.USER.value
    business_unit_id: UUID | None = None
    location_id: UUID | None = None
    org_role_id: UUID | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", _role_value(self.role))

    @property
    def level(self) -> HierarchyLevel:
        if self.location_id is not None:
            return HierarchyLevel.LOCATION
        if self.business_unit_id is not None:
            return HierarchyLevel.BUSINESS_UNIT
        if self.company_id is not None:
            return HierarchyLevel.COMPANY
        return HierarchyLevel.NONE


@dataclass(frozen=True)
class OrgAccessContext:
    """
    Request-scoped access context.

    Contract:
        Built once per request from the user's active assignment.  Visibility
        is computed from the assignment level (domain.visibility); edit
        authority from the context role and ownership
        (services.access_validator).  The two are never derived from each
        other.
    """

    user_id: UUID | None
    global_role: str = GlobalRole.USER.value
    is_system_admin: bool = False
    assignment: OrgAssignment | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "global_role", _role_value(self.global_role))

    @property
    def company_id(self) -> UUID | None:
        return self.assignment.company_id if self.assignment else None

    @property
    def business_unit_id(self) -> UUID | None:
        return self.assignment.business_unit_id if self.assignment else None

    @property
    def location_id(self) -> UUID | None:
        return self.assignment.location_id if self.assignment else None

    @property
    def context_role(self) -> str | None:
        return self.assignment.role if self.assignment else None

    def for_visibility(self) -> "OrgAccessContext":
        """
        Copy with every elevated role stripped.

        The assignment keeps its ids (so the hierarchy level is unchanged)
        but its role becomes ``user``; global role becomes ``viewer`` and the
        system-admin flag is cleared.  Used where visibility must depend on
        hierarchy level alone.
        """
        assignment = (
            replace(self.assignment, role=OrgRole.USER.value)
            if self.assignment is not None
            else None
        )
        return replace(
            self,
            global_role=GlobalRole.VIEWER.value,
            is_system_admin=False,
            assignment=assignment,
        )


def system_admin_context(user_id: UUID | None = None) -> OrgAccessContext:
    """Context for internal jobs and platform operators."""
    return OrgAccessContext(
        user_id=user_id,
        global_role=GlobalRole.ADMIN.value,
        is_system_admin=True,
    )
