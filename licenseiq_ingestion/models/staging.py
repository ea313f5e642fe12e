"""
Staging ORM models for the import pipeline.

Contract:
    ImportJobModel and ImportedRecordModel persist jobs and per-row records
    with source_record, target_record, validation_errors (transform time)
    and commit_error (materialization time).  A job's mapping_id and
    mapping_version are frozen at creation.

Architecture: licenseiq_ingestion/models. Imports from licenseiq_kernel.db.base
and the ingestion domain only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from licenseiq_kernel.db.base import OrgScopedMixin, TrackedBase, UUIDString
from licenseiq_kernel.domain.dtos import ValidationError
from licenseiq_kernel.domain.org_context import OrgScope
from licenseiq_kernel.exceptions import InvalidJobTransitionError
from licenseiq_ingestion.domain.types import (
    ImportedRecord,
    ImportJob,
    ImportJobStatus,
    ImportJobType,
    ImportRecordStatus,
    can_transition_job,
)


def _validation_errors_to_json(errors: tuple[ValidationError, ...]) -> list[dict] | None:
    """Serialize ValidationError tuple to JSON-serializable list."""
    if not errors:
        return None
    return [e.to_dict() for e in errors]


def _json_to_validation_errors(data: list | None) -> tuple[ValidationError, ...]:
    if not data:
        return ()
    return tuple(ValidationError.from_dict(item) for item in data)


class ImportJobModel(OrgScopedMixin, TrackedBase):
    """One upload or pull attempt through one mapping version."""

    __tablename__ = "import_jobs"

    __table_args__ = (
        Index("idx_import_job_status", "status"),
        Index("idx_import_job_mapping", "mapping_id"),
    )

    job_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mapping_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("mapping_versions.id"), nullable=False
    )
    mapping_version: Mapped[int] = mapped_column(nullable=False)
    source_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("import_sources.id"), nullable=True
    )
    job_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ImportJobStatus.PENDING.value
    )
    records_total: Mapped[int] = mapped_column(default=0, nullable=False)
    records_processed: Mapped[int] = mapped_column(default=0, nullable=False)
    records_failed: Mapped[int] = mapped_column(default=0, nullable=False)
    records_skipped: Mapped[int] = mapped_column(default=0, nullable=False)
    filter_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error_log: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    records: Mapped[list["ImportedRecordModel"]] = relationship(
        "ImportedRecordModel",
        back_populates="job",
        foreign_keys="ImportedRecordModel.job_id",
        order_by="ImportedRecordModel.row_index",
        passive_deletes=True,
    )

    def transition_to(self, target: ImportJobStatus, action: str | None = None) -> None:
        """Move to ``target`` or raise InvalidJobTransitionError."""
        if not can_transition_job(self.status, target):
            raise InvalidJobTransitionError(self.id, self.status, action or target.value)
        self.status = target.value

    @property
    def scope(self) -> OrgScope:
        return OrgScope(
            company_id=self.company_id,
            business_unit_id=self.business_unit_id,
            location_id=self.location_id,
        )

    def to_dto(self) -> ImportJob:
        return ImportJob(
            id=self.id,
            job_name=self.job_name,
            mapping_id=self.mapping_id,
            mapping_version=self.mapping_version,
            job_type=ImportJobType(self.job_type),
            status=ImportJobStatus(self.status),
            scope=self.scope,
            created_by_id=self.created_by_id,
            source_id=self.source_id,
            records_total=self.records_total,
            records_processed=self.records_processed,
            records_failed=self.records_failed,
            records_skipped=self.records_skipped,
            filter_config=self.filter_config,
            error_log=self.error_log,
            started_at=self.started_at,
            completed_at=self.completed_at,
        )


class ImportedRecordModel(TrackedBase):
    """Single staged row within a job."""

    __tablename__ = "imported_records"

    __table_args__ = (
        UniqueConstraint("job_id", "row_index", name="uq_imported_record_row"),
        Index("ix_imported_records_job_status", "job_id", "status"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("import_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    row_index: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    source_record: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    target_record: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    validation_errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    commit_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    canonical_record_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("canonical_records.id"), nullable=True
    )
    committed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    job: Mapped["ImportJobModel"] = relationship(
        "ImportJobModel",
        back_populates="records",
        foreign_keys=[job_id],
    )

    def set_validation_errors(self, errors: tuple[ValidationError, ...]) -> None:
        self.validation_errors = _validation_errors_to_json(errors)

    def parsed_validation_errors(self) -> tuple[ValidationError, ...]:
        return _json_to_validation_errors(self.validation_errors)

    def to_dto(self) -> ImportedRecord:
        return ImportedRecord(
            id=self.id,
            job_id=self.job_id,
            row_index=self.row_index,
            status=ImportRecordStatus(self.status),
            source_record=self.source_record,
            target_record=self.target_record,
            validation_errors=self.parsed_validation_errors(),
            commit_error=self.commit_error,
            canonical_record_id=self.canonical_record_id,
            committed_at=self.committed_at,
        )
