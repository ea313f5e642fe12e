"""Read-only selectors and the org access filter."""

from licenseiq_kernel.selectors.base import BaseSelector
from licenseiq_kernel.selectors.org_filter import (
    ScopeColumns,
    build_org_filter,
    combine_filters,
    predicate_for_scope,
)
from licenseiq_kernel.selectors.scoped import ScopedSelector

__all__ = [
    "BaseSelector",
    "ScopeColumns",
    "ScopedSelector",
    "build_org_filter",
    "combine_filters",
    "predicate_for_scope",
]
