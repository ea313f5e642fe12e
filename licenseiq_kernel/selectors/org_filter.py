"""
Module: licenseiq_kernel.selectors.org_filter
Responsibility: Render a VisibilityScope as a SQLAlchemy predicate over a
    scoped model's company_id / business_unit_id / location_id columns.
Architecture position: Kernel > Selectors.  Pure with respect to I/O: builds
    expressions, never executes them.

Invariants enforced:
    - ``None`` is returned only for an unrestricted scope.
    - The predicate is always ANDed with other criteria (combine_filters), so
      org scoping can only narrow a query.
"""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, false, or_
from sqlalchemy.sql.elements import ColumnElement

from licenseiq_kernel.domain.org_context import OrgAccessContext
from licenseiq_kernel.domain.visibility import (
    DEFAULT_ACCESS_POLICY,
    AccessPolicy,
    ScopeLevel,
    VisibilityScope,
    resolve_visibility,
)


@dataclass(frozen=True)
class ScopeColumns:
    """The three scope columns of one queryable entity."""

    company_id: Any
    business_unit_id: Any
    location_id: Any

    @classmethod
    def of(cls, model: Any) -> "ScopeColumns":
        """Columns of a model (or aliased model) mixing in OrgScopedMixin."""
        return cls(
            company_id=model.company_id,
            business_unit_id=model.business_unit_id,
            location_id=model.location_id,
        )


def predicate_for_scope(
    columns: ScopeColumns, scope: VisibilityScope
) -> ColumnElement[bool] | None:
    """SQL form of ``scope``; mirrors VisibilityScope.admits."""
    if scope.level == ScopeLevel.UNRESTRICTED:
        return None
    if scope.level == ScopeLevel.NOTHING:
        return false()
    if scope.level == ScopeLevel.LOCATION:
        return columns.location_id == scope.scope_id
    if scope.level == ScopeLevel.BUSINESS_UNIT:
        return columns.business_unit_id == scope.scope_id
    if scope.include_legacy:
        return or_(
            columns.company_id == scope.scope_id,
            columns.company_id.is_(None),
        )
    return columns.company_id == scope.scope_id


def build_org_filter(
    columns: ScopeColumns,
    context: OrgAccessContext,
    policy: AccessPolicy = DEFAULT_ACCESS_POLICY,
) -> ColumnElement[bool] | None:
    """Visibility predicate for ``context``, or None when unrestricted."""
    return predicate_for_scope(columns, resolve_visibility(context, policy))


def combine_filters(*criteria: ColumnElement[bool] | None) -> ColumnElement[bool] | None:
    """AND together every non-None criterion."""
    present = [c for c in criteria if c is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return and_(*present)
