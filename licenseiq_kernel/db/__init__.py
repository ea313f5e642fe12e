"""Database layer - engine, declarative bases, scoped mixin."""

from licenseiq_kernel.db.base import UUID, Base, OrgScopedMixin, TrackedBase, UUIDString
from licenseiq_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "OrgScopedMixin",
    "UUIDString",
    "UUID",
]
