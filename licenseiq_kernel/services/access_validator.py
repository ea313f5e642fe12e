"""
ResourceAccessValidator -- visibility plus edit authority for one scoped resource.

Responsibility:
    Decide whether a context may read, or read and change, one row of a
    scoped model (contracts by default).  Visibility and edit authority are
    two independent checks:

      visibility      hierarchy level only, evaluated on a context whose roles
                      are stripped (OrgAccessContext.for_visibility)
      edit authority  original context role in AccessPolicy.edit_roles, or the
                      requester created the resource

Architecture position:
    Kernel > Services.  Read-only; builds on selectors.org_filter.

Invariants enforced:
    - Every denial carries the same reason string ("Access denied"), whether
      the row is missing, out of scope, or not editable.  The internal cause
      is logged, never returned.
    - Non-admin callers need a company in their active context.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from licenseiq_kernel.domain.org_context import OrgAccessContext
from licenseiq_kernel.domain.visibility import DEFAULT_ACCESS_POLICY, AccessPolicy
from licenseiq_kernel.exceptions import ACCESS_DENIED_MESSAGE, AccessDeniedError
from licenseiq_kernel.logging_config import get_logger
from licenseiq_kernel.models.contract import Contract
from licenseiq_kernel.selectors.base import ModelType
from licenseiq_kernel.selectors.org_filter import ScopeColumns, build_org_filter

logger = get_logger("services.access_validator")


class AccessMode(str, Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class AccessDecision(Generic[ModelType]):
    """
    Outcome of validate_access.

    ``resource`` is set whenever the row is visible, even if the caller may
    not edit it.  ``reason`` is None when authorized.
    """

    resource: ModelType | None
    authorized: bool
    reason: str | None = None


def has_edit_authority(
    context: OrgAccessContext,
    resource: Any,
    policy: AccessPolicy = DEFAULT_ACCESS_POLICY,
) -> bool:
    """Edit check on the original (non-downgraded) context."""
    if context.is_system_admin:
        return True
    if context.context_role is not None and context.context_role in policy.edit_roles:
        return True
    owner_attr = getattr(type(resource), "__owner_attr__", None)
    if owner_attr is None or context.user_id is None:
        return False
    return getattr(resource, owner_attr) == context.user_id


class ResourceAccessValidator(Generic[ModelType]):
    """Validates access to single rows of ``model``."""

    def __init__(
        self,
        session: Session,
        model: type[ModelType] = Contract,
        policy: AccessPolicy = DEFAULT_ACCESS_POLICY,
    ):
        self.session = session
        self.model = model
        self.policy = policy

    def validate_access(
        self,
        resource_id: UUID,
        context: OrgAccessContext,
        mode: AccessMode = AccessMode.WRITE,
    ) -> AccessDecision[ModelType]:
        if context.is_system_admin:
            resource = self.session.get(self.model, resource_id)
            if resource is None:
                return self._deny(resource_id, context, "not_found")
            return AccessDecision(resource=resource, authorized=True)

        if context.company_id is None:
            return self._deny(resource_id, context, "no_company_context")

        visibility_context = context.for_visibility()
        stmt = select(self.model).where(self.model.id == resource_id)
        predicate = build_org_filter(
            ScopeColumns.of(self.model), visibility_context, self.policy
        )
        if predicate is not None:
            stmt = stmt.where(predicate)
        resource = self.session.scalars(stmt).one_or_none()

        if resource is None:
            cause = (
                "not_found"
                if self.session.get(self.model, resource_id) is None
                else "out_of_scope"
            )
            return self._deny(resource_id, context, cause)

        if mode == AccessMode.READ:
            return AccessDecision(resource=resource, authorized=True)

        if has_edit_authority(context, resource, self.policy):
            return AccessDecision(resource=resource, authorized=True)

        self._log_denial(resource_id, context, "not_editor")
        return AccessDecision(
            resource=resource, authorized=False, reason=ACCESS_DENIED_MESSAGE
        )

    def require_access(
        self,
        resource_id: UUID,
        context: OrgAccessContext,
        mode: AccessMode = AccessMode.WRITE,
    ) -> ModelType:
        """Return the resource or raise AccessDeniedError."""
        decision = self.validate_access(resource_id, context, mode)
        if not decision.authorized:
            raise AccessDeniedError("denied", resource_id)
        return decision.resource

    # ------------------------------------------------------------------

    def _deny(
        self, resource_id: UUID, context: OrgAccessContext, cause: str
    ) -> AccessDecision[ModelType]:
        self._log_denial(resource_id, context, cause)
        return AccessDecision(resource=None, authorized=False, reason=ACCESS_DENIED_MESSAGE)

    def _log_denial(
        self, resource_id: UUID, context: OrgAccessContext, cause: str
    ) -> None:
        logger.info(
            "access_denied",
            extra={
                "resource_type": self.model.__name__,
                "resource_id": str(resource_id),
                "user_id": str(context.user_id) if context.user_id else None,
                "cause": cause,
            },
        )
