"""
Module: licenseiq_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map, the TrackedBase
    audit columns, and the OrgScopedMixin that turns a model into a scoped
    resource.
Architecture position: Kernel > DB.  Lowest-level import target; every model
    file imports from here.  MUST NOT import from models/, services/,
    selectors/, domain/, or outer packages.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Timestamps are timezone-aware (DateTime(timezone=True)).
    - Scoped resources carry nullable company_id / business_unit_id /
      location_id columns.  company_id IS NULL marks a legacy record.

Failure modes:
    - IntegrityError on duplicate UUID (protected by PK constraint).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required; every row has a creator.  For scoped
          resources this is also the owner used by edit-authority checks.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


class OrgScopedMixin:
    """
    Scope columns shared by every tenancy-scoped resource.

    Contract:
        A model mixing this in can be filtered by the org access filter
        (selectors.org_filter.ScopeColumns.of(model)).  ``__owner_attr__``
        names the column holding the creating user; it drives both the
        no-active-context ownership fallback and creator edit authority.
    """

    __owner_attr__: ClassVar[str | None] = "created_by_id"

    company_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
        index=True,
    )

    business_unit_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
        index=True,
    )

    location_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
        index=True,
    )


# Re-export UUID for convenience
UUID = PyUUID
