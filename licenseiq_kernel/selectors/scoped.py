"""
Module: licenseiq_kernel.selectors.scoped
Responsibility: Generic read path for any OrgScopedMixin model.  Every list,
    get and count goes through the org access filter, plus the ownership
    fallback when the caller has no active context.
Architecture position: Kernel > Selectors.  Used by the mapping, ingestion
    and contract read paths.

Invariants enforced:
    - Extra criteria are ANDed with the org predicate, never ORed.
    - A caller with no active context sees only rows it created (when the
      model has an owner column); an anonymous caller in that state sees
      nothing.
"""

from typing import Any, Callable
from uuid import UUID

from sqlalchemy import Select, false, func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from licenseiq_kernel.domain.org_context import OrgAccessContext
from licenseiq_kernel.domain.visibility import (
    DEFAULT_ACCESS_POLICY,
    AccessPolicy,
    resolve_visibility,
)
from licenseiq_kernel.exceptions import AccessDeniedError
from licenseiq_kernel.selectors.base import BaseSelector, ModelType
from licenseiq_kernel.selectors.org_filter import (
    ScopeColumns,
    combine_filters,
    predicate_for_scope,
)


class ScopedSelector(BaseSelector[ModelType]):
    """Org-filtered queries over one scoped model."""

    def __init__(
        self,
        session: Session,
        model: type[ModelType],
        policy: AccessPolicy = DEFAULT_ACCESS_POLICY,
    ):
        super().__init__(session)
        self.model = model
        self.policy = policy

    def visibility_filter(self, context: OrgAccessContext) -> ColumnElement[bool] | None:
        """Org predicate for ``context`` including the ownership fallback."""
        scope = resolve_visibility(context, self.policy)
        criteria = predicate_for_scope(ScopeColumns.of(self.model), scope)
        if scope.needs_owner_fallback:
            owner_attr = getattr(self.model, "__owner_attr__", None)
            if owner_attr is not None:
                if context.user_id is None:
                    return false()
                criteria = combine_filters(
                    criteria, getattr(self.model, owner_attr) == context.user_id
                )
        return criteria

    def select(self, context: OrgAccessContext, *criteria: Any) -> Select:
        stmt = select(self.model)
        where = combine_filters(self.visibility_filter(context), *criteria)
        if where is not None:
            stmt = stmt.where(where)
        return stmt

    def list(
        self,
        context: OrgAccessContext,
        *criteria: Any,
        order_by: Any = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ModelType]:
        stmt = self.select(context, *criteria)
        if order_by is not None:
            if not isinstance(order_by, (list, tuple)):
                order_by = (order_by,)
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())

    def get(self, context: OrgAccessContext, entity_id: UUID) -> ModelType | None:
        """Row with ``entity_id`` if it exists and is visible, else None."""
        stmt = self.select(context, self.model.id == entity_id)
        return self.session.scalars(stmt).one_or_none()

    def count(self, context: OrgAccessContext, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self.model)
        where = combine_filters(self.visibility_filter(context), *criteria)
        if where is not None:
            stmt = stmt.where(where)
        return self.session.scalar(stmt) or 0

    def require(
        self,
        context: OrgAccessContext,
        entity_id: UUID,
        not_found: Callable[[UUID], Exception],
    ) -> ModelType:
        """
        Visible row or raise.

        A missing row raises ``not_found(entity_id)``; an existing row outside
        the caller's scope raises AccessDeniedError.  Both fold into the same
        403 at the HTTP boundary.
        """
        row = self.get(context, entity_id)
        if row is not None:
            return row
        if self.session.get(self.model, entity_id) is None:
            raise not_found(entity_id)
        raise AccessDeniedError("out_of_scope", entity_id)
