"""
ActiveContextResolver -- user id -> OrgAccessContext.

Responsibility:
    Reads the user's global role, system-admin flag, and the active-context
    pointer, and produces the request-scoped OrgAccessContext.  Also moves
    the pointer when a user switches between their assignments.

Architecture position:
    Kernel > Services.  Called once per request by the handler layer before
    any scoped query runs.

Invariants enforced:
    - A pointer only resolves to an assignment that exists, is active, and
      belongs to the same user.  Anything else resolves to "no active
      context" and is logged; it never grants a foreign scope.
    - switch_context only accepts the caller's own active assignments.

Failure modes:
    - UserNotFoundError for an unknown user id.
    - OrgEntityNotFoundError when switching to an unknown assignment.
    - AccessDeniedError when switching to another user's or an inactive
      assignment.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from licenseiq_kernel.domain.clock import Clock, SystemClock
from licenseiq_kernel.domain.org_context import OrgAccessContext, OrgAssignment
from licenseiq_kernel.exceptions import (
    AccessDeniedError,
    OrgEntityNotFoundError,
    UserNotFoundError,
)
from licenseiq_kernel.logging_config import LogContext, get_logger
from licenseiq_kernel.models.org import (
    OrgStatus,
    User,
    UserActiveContext,
    UserOrganizationRole,
)
from licenseiq_kernel.services.base import BaseService

logger = get_logger("services.context_resolver")


class ActiveContextResolver(BaseService[UserActiveContext]):
    """Resolves and switches a user's active org context."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def resolve(self, user_id: UUID) -> OrgAccessContext:
        user = self._load_user(user_id)
        assignment = self._active_assignment(user_id)
        context = OrgAccessContext(
            user_id=user.id,
            global_role=user.global_role,
            is_system_admin=user.is_system_admin,
            assignment=assignment,
        )
        logger.debug(
            "context_resolved",
            extra={
                "user_id": str(user_id),
                "level": assignment.level.value if assignment else None,
                "is_system_admin": user.is_system_admin,
            },
        )
        return context

    def list_assignments(self, user_id: UUID) -> list[OrgAssignment]:
        """Active assignments a user may switch to."""
        self._load_user(user_id)
        rows = self.session.scalars(
            select(UserOrganizationRole)
            .where(
                UserOrganizationRole.user_id == user_id,
                UserOrganizationRole.status == OrgStatus.ACTIVE.value,
            )
            .order_by(UserOrganizationRole.created_at, UserOrganizationRole.id)
        ).all()
        return [row.to_assignment() for row in rows]

    def switch_context(self, user_id: UUID, org_role_id: UUID) -> OrgAccessContext:
        """Point the user's active context at one of their own assignments."""
        with LogContext.bind(actor_id=user_id, producer="context_resolver"):
            self._load_user(user_id)
            role = self.session.get(UserOrganizationRole, org_role_id)
            if role is None:
                raise OrgEntityNotFoundError("UserOrganizationRole", org_role_id)
            if role.user_id != user_id or not role.is_active:
                logger.warning(
                    "context_switch_rejected",
                    extra={
                        "org_role_id": str(org_role_id),
                        "owned": role.user_id == user_id,
                        "status": role.status,
                    },
                )
                raise AccessDeniedError("assignment_not_available", org_role_id)

            pointer = self._pointer(user_id)
            now = self._clock.now()
            if pointer is None:
                pointer = UserActiveContext(
                    user_id=user_id,
                    active_org_role_id=org_role_id,
                    last_switched_at=now,
                    created_by_id=user_id,
                )
                self.session.add(pointer)
            else:
                pointer.active_org_role_id = org_role_id
                pointer.last_switched_at = now
                pointer.updated_by_id = user_id
            self.session.flush()

            logger.info(
                "context_switched",
                extra={
                    "org_role_id": str(org_role_id),
                    "company_id": str(role.company_id),
                    "role": role.role,
                },
            )
            return self.resolve(user_id)

    def clear_context(self, user_id: UUID) -> bool:
        """Drop the pointer.  Returns False when there was none."""
        pointer = self._pointer(user_id)
        if pointer is None:
            return False
        self.session.delete(pointer)
        self.session.flush()
        logger.info("context_cleared", extra={"user_id": str(user_id)})
        return True

    # ------------------------------------------------------------------

    def _load_user(self, user_id: UUID) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _pointer(self, user_id: UUID) -> UserActiveContext | None:
        return self.session.scalars(
            select(UserActiveContext).where(UserActiveContext.user_id == user_id)
        ).one_or_none()

    def _active_assignment(self, user_id: UUID) -> OrgAssignment | None:
        pointer = self._pointer(user_id)
        if pointer is None:
            return None
        role = self.session.get(UserOrganizationRole, pointer.active_org_role_id)
        if role is None or role.user_id != user_id or not role.is_active:
            logger.warning(
                "stale_active_context",
                extra={
                    "user_id": str(user_id),
                    "org_role_id": str(pointer.active_org_role_id),
                },
            )
            return None
        return role.to_assignment()
