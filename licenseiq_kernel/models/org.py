"""
Module: licenseiq_kernel.models.org
Responsibility: ORM persistence for the org hierarchy (Company -> BusinessUnit
    -> Location), users, user role assignments, and the per-user active
    context pointer.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ enums only.

Invariants enforced:
    - One assignment per (user, company, business unit, location)
      (uq_user_org_role_scope).
    - One active-context pointer per user (uq_user_active_context_user).
    - Hierarchy consistency (BU and location belong to the company) is
      checked by services.org_hierarchy before insert; the ORM only holds
      the foreign keys.

Failure modes:
    - IntegrityError on duplicate assignment or duplicate pointer.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from licenseiq_kernel.db.base import TrackedBase, UUIDString
from licenseiq_kernel.domain.org_context import GlobalRole, OrgAssignment, OrgRole


class OrgStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Company(TrackedBase):
    """Top of the tenancy hierarchy."""

    __tablename__ = "companies"

    __table_args__ = (
        UniqueConstraint("company_name", name="uq_company_name"),
    )

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrgStatus.ACTIVE.value
    )


class BusinessUnit(TrackedBase):
    """Division of one company."""

    __tablename__ = "business_units"

    __table_args__ = (
        UniqueConstraint("company_id", "unit_name", name="uq_business_unit_name"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=False, index=True
    )
    unit_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrgStatus.ACTIVE.value
    )


class Location(TrackedBase):
    """Site of a company, optionally inside a business unit."""

    __tablename__ = "locations"

    __table_args__ = (
        Index("idx_location_company", "company_id"),
        Index("idx_location_business_unit", "business_unit_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=False
    )
    business_unit_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("business_units.id"), nullable=True
    )
    location_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrgStatus.ACTIVE.value
    )


class User(TrackedBase):
    """Authenticated principal.  Authentication itself lives elsewhere."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("username", name="uq_user_username"),
    )

    username: Mapped[str] = mapped_column(String(100), nullable=False)
    global_role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GlobalRole.USER.value
    )
    is_system_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )


class UserOrganizationRole(TrackedBase):
    """
    A user's role at one point of the hierarchy.

    Scope level and role are orthogonal: a location-level admin administers
    that location only.
    """

    __tablename__ = "user_organization_roles"

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "company_id",
            "business_unit_id",
            "location_id",
            name="uq_user_org_role_scope",
        ),
        Index("idx_user_org_role_user", "user_id"),
        Index("idx_user_org_role_company", "company_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False
    )
    company_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("companies.id"), nullable=False
    )
    business_unit_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("business_units.id"), nullable=True
    )
    location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=True
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrgRole.USER.value
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrgStatus.ACTIVE.value
    )

    @property
    def is_active(self) -> bool:
        return self.status == OrgStatus.ACTIVE.value

    def to_assignment(self) -> OrgAssignment:
        return OrgAssignment(
            company_id=self.company_id,
            business_unit_id=self.business_unit_id,
            location_id=self.location_id,
            role=self.role,
            org_role_id=self.id,
        )


class UserActiveContext(TrackedBase):
    """Pointer to the assignment a user is currently acting under."""

    __tablename__ = "user_active_contexts"

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_user_active_context_user"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False
    )
    active_org_role_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("user_organization_roles.id"), nullable=False
    )
    last_switched_at: Mapped[datetime | None] = mapped_column(nullable=True)
