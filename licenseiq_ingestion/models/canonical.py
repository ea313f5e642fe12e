"""
Canonical record ORM model.

Contract:
    The authoritative tenancy-scoped row produced by a successful commit.
    company_id is NOT NULL here: imports never create legacy rows.
    source_record_id links back to the ImportedRecord it came from.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from licenseiq_kernel.db.base import OrgScopedMixin, TrackedBase, UUIDString
from licenseiq_kernel.domain.org_context import OrgScope
from licenseiq_ingestion.domain.types import CanonicalRecord


class CanonicalRecordModel(OrgScopedMixin, TrackedBase):
    """Materialized import row."""

    __tablename__ = "canonical_records"

    __table_args__ = (
        Index("idx_canonical_record_entity", "entity_type"),
        Index("idx_canonical_record_job", "job_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)

    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    record_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    source_record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    job_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("import_jobs.id"), nullable=True
    )

    def to_dto(self) -> CanonicalRecord:
        return CanonicalRecord(
            id=self.id,
            entity_type=self.entity_type,
            record_data=self.record_data,
            source_record_id=self.source_record_id,
            job_id=self.job_id,
            scope=OrgScope(
                company_id=self.company_id,
                business_unit_id=self.business_unit_id,
                location_id=self.location_id,
            ),
            created_by_id=self.created_by_id,
        )
