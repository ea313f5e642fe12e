"""
OrgHierarchyService -- role assignments within the company / BU / location tree.

Company, business unit and location rows are plain master data; this service
only guards the one write with tenancy consequences: granting a user a role
at a point of the hierarchy.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from licenseiq_kernel.domain.org_context import OrgRole
from licenseiq_kernel.exceptions import (
    DuplicateAssignmentError,
    InputValidationError,
    OrgEntityNotFoundError,
    OrgHierarchyMismatchError,
    UserNotFoundError,
)
from licenseiq_kernel.logging_config import get_logger
from licenseiq_kernel.models.org import (
    BusinessUnit,
    Company,
    Location,
    OrgStatus,
    User,
    UserOrganizationRole,
)
from licenseiq_kernel.services.base import BaseService

logger = get_logger("services.org_hierarchy")

_VALID_ROLES = frozenset(r.value for r in OrgRole)


class OrgHierarchyService(BaseService[UserOrganizationRole]):
    """Grants and revokes org role assignments."""

    def __init__(self, session: Session):
        super().__init__(session)

    def validate_path(
        self,
        company_id: UUID,
        business_unit_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> None:
        """Raise unless BU and location sit under ``company_id`` (and the BU)."""
        if self.session.get(Company, company_id) is None:
            raise OrgEntityNotFoundError("Company", company_id)

        if business_unit_id is not None:
            unit = self.session.get(BusinessUnit, business_unit_id)
            if unit is None:
                raise OrgEntityNotFoundError("BusinessUnit", business_unit_id)
            if unit.company_id != company_id:
                raise OrgHierarchyMismatchError(
                    "BusinessUnit", business_unit_id, "Company", company_id
                )

        if location_id is not None:
            location = self.session.get(Location, location_id)
            if location is None:
                raise OrgEntityNotFoundError("Location", location_id)
            if location.company_id != company_id:
                raise OrgHierarchyMismatchError(
                    "Location", location_id, "Company", company_id
                )
            if (
                business_unit_id is not None
                and location.business_unit_id != business_unit_id
            ):
                raise OrgHierarchyMismatchError(
                    "Location", location_id, "BusinessUnit", business_unit_id
                )

    def assign_role(
        self,
        user_id: UUID,
        company_id: UUID,
        role: str,
        actor_id: UUID,
        business_unit_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> UserOrganizationRole:
        """Create an active assignment after checking hierarchy consistency."""
        role_value = role.value if isinstance(role, OrgRole) else role
        if role_value not in _VALID_ROLES:
            raise InputValidationError(
                f"Unknown org role: {role_value}",
                [f"role must be one of {sorted(_VALID_ROLES)}"],
            )
        if self.session.get(User, user_id) is None:
            raise UserNotFoundError(user_id)

        self.validate_path(company_id, business_unit_id, location_id)

        existing = self.session.scalars(
            select(UserOrganizationRole).where(
                UserOrganizationRole.user_id == user_id,
                UserOrganizationRole.company_id == company_id,
                UserOrganizationRole.business_unit_id.is_(None)
                if business_unit_id is None
                else UserOrganizationRole.business_unit_id == business_unit_id,
                UserOrganizationRole.location_id.is_(None)
                if location_id is None
                else UserOrganizationRole.location_id == location_id,
            )
        ).first()
        if existing is not None:
            raise DuplicateAssignmentError(user_id)

        assignment = UserOrganizationRole(
            user_id=user_id,
            company_id=company_id,
            business_unit_id=business_unit_id,
            location_id=location_id,
            role=role_value,
            status=OrgStatus.ACTIVE.value,
            created_by_id=actor_id,
        )
        self.session.add(assignment)
        self.session.flush()

        logger.info(
            "org_role_assigned",
            extra={
                "user_id": str(user_id),
                "org_role_id": str(assignment.id),
                "company_id": str(company_id),
                "business_unit_id": str(business_unit_id) if business_unit_id else None,
                "location_id": str(location_id) if location_id else None,
                "role": role_value,
            },
        )
        return assignment

    def deactivate_role(self, org_role_id: UUID, actor_id: UUID) -> UserOrganizationRole:
        """Mark an assignment inactive.  Pointers to it stop resolving."""
        assignment = self.session.get(UserOrganizationRole, org_role_id)
        if assignment is None:
            raise OrgEntityNotFoundError("UserOrganizationRole", org_role_id)
        assignment.status = OrgStatus.INACTIVE.value
        assignment.updated_by_id = actor_id
        self.session.flush()
        logger.info("org_role_deactivated", extra={"org_role_id": str(org_role_id)})
        return assignment
