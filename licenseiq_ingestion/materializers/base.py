"""
RecordMaterializer protocol and the default canonical materializer.

Materializers turn one staged record into one canonical row.  Each call runs
inside a SAVEPOINT managed by CommitService; raising aborts only that row.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from licenseiq_kernel.domain.clock import Clock
from licenseiq_kernel.exceptions import RecordMaterializationError
from licenseiq_ingestion.models.canonical import CanonicalRecordModel
from licenseiq_ingestion.models.staging import ImportedRecordModel, ImportJobModel


class RecordMaterializer(Protocol):
    """Protocol for writing staged target records to canonical storage."""

    def materialize(
        self,
        record: ImportedRecordModel,
        job: ImportJobModel,
        target_entity: str,
        session: Session,
        actor_id: UUID,
        clock: Clock,
    ) -> UUID:
        """Create the canonical row and return its id. Raise to fail the row."""
        ...


class CanonicalRecordMaterializer:
    """
    Default materializer: one CanonicalRecordModel per staged record.

    The canonical row inherits the job's scope.  Records that carry
    validation errors, have no target data, or belong to a job without a
    company are refused.
    """

    def materialize(
        self,
        record: ImportedRecordModel,
        job: ImportJobModel,
        target_entity: str,
        session: Session,
        actor_id: UUID,
        clock: Clock,
    ) -> UUID:
        if record.validation_errors:
            raise RecordMaterializationError(
                f"Row {record.row_index} has {len(record.validation_errors)} validation error(s)"
            )
        if not record.target_record:
            raise RecordMaterializationError(f"Row {record.row_index} has no target data")
        if job.company_id is None:
            raise RecordMaterializationError("Job has no company scope", field="company_id")

        canonical = CanonicalRecordModel(
            entity_type=target_entity,
            record_data=dict(record.target_record),
            source_record_id=record.id,
            job_id=job.id,
            company_id=job.company_id,
            business_unit_id=job.business_unit_id,
            location_id=job.location_id,
            created_by_id=actor_id,
        )
        session.add(canonical)
        session.flush()
        return canonical.id
