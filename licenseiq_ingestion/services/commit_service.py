"""
CommitService -- staged records -> canonical records.

Responsibility:
    commit / discard / retry_failed on one import job.  Commit maps every
    staged record to RowCommitted | RowFailure inside its own SAVEPOINT and
    reduces the outcomes into a CommitResult.

Invariants enforced:
    - The job row is locked (SELECT ... FOR UPDATE) and its status re-checked
      before any record is read, so two commits on one job serialize.
    - Only records still ``staged`` are candidates; repeated commits never
      touch committed, failed or discarded rows.
    - One failing row never aborts the batch: its SAVEPOINT is rolled back,
      the record is marked failed with commit_error, and the loop continues.
    - Records are processed in row_index order.
    - Job counters are recomputed from record statuses after every write.

Failure modes:
    - ImportJobNotFoundError / AccessDeniedError: job not visible.
    - InvalidJobTransitionError: job status does not allow the action.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from licenseiq_config import get_active_settings
from licenseiq_config.bridges import build_access_policy
from licenseiq_config.schema import LicenseIQSettings
from licenseiq_kernel.domain.clock import Clock, SystemClock
from licenseiq_kernel.domain.org_context import OrgAccessContext
from licenseiq_kernel.exceptions import (
    ImportJobNotFoundError,
    InvalidJobTransitionError,
    MappingVersionNotFoundError,
)
from licenseiq_kernel.logging_config import LogContext, get_logger
from licenseiq_kernel.selectors.scoped import ScopedSelector
from licenseiq_kernel.services.base import BaseService
from licenseiq_ingestion.domain.types import (
    COMMITTABLE_JOB_STATUSES,
    CommitResult,
    ImportJobStatus,
    ImportRecordStatus,
    RowCommitted,
    RowFailure,
    RowOutcome,
)
from licenseiq_ingestion.materializers import MaterializerRegistry, RecordMaterializer
from licenseiq_ingestion.models.staging import ImportedRecordModel, ImportJobModel
from licenseiq_mapping.models.mapping import MappingVersionModel

logger = get_logger("ingestion.commit_service")


class CommitService(BaseService[ImportJobModel]):
    """Commits, discards and retries the staged records of an import job."""

    def __init__(
        self,
        session: Session,
        materializers: MaterializerRegistry | None = None,
        clock: Clock | None = None,
        settings: LicenseIQSettings | None = None,
    ):
        super().__init__(session)
        self._materializers = materializers or MaterializerRegistry()
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_settings()
        self._policy = build_access_policy(self._settings)

    def commit(
        self,
        job_id: UUID,
        context: OrgAccessContext,
        actor_id: UUID,
    ) -> CommitResult:
        with LogContext.bind(actor_id=actor_id, producer="import_commit", job_id=job_id):
            job = self._lock_job(job_id, context)
            if ImportJobStatus(job.status) not in COMMITTABLE_JOB_STATUSES:
                raise InvalidJobTransitionError(job_id, job.status, "commit")

            target_entity = self._target_entity(job)
            materializer = self._materializers.get(target_entity)
            records = self._records(job.id, ImportRecordStatus.STAGED)
            logger.info(
                "import_commit_started",
                extra={"candidates": len(records), "target_entity": target_entity},
            )

            outcomes = [
                self._commit_row(record, job, target_entity, materializer, actor_id)
                for record in records
            ]

            self._recount(job)
            target = (
                ImportJobStatus.COMPLETED
                if job.records_failed == 0
                else ImportJobStatus.COMPLETED_WITH_ERRORS
            )
            job.transition_to(target, "commit")
            job.completed_at = self._clock.now()
            job.updated_by_id = actor_id
            self.session.flush()

            result = CommitResult.reduce(job.id, outcomes, target)
            logger.info(
                "import_commit_completed",
                extra={
                    "committed": result.committed,
                    "failed": result.failed,
                    "status": target.value,
                },
            )
            return result

    def discard(
        self,
        job_id: UUID,
        context: OrgAccessContext,
        actor_id: UUID,
    ) -> int:
        """Discard the rows still staged and cancel the job. Returns rows discarded."""
        with LogContext.bind(actor_id=actor_id, producer="import_commit", job_id=job_id):
            job = self._lock_job(job_id, context)
            if job.status == ImportJobStatus.CANCELLED.value:
                logger.info("import_discard_repeated")
                return 0
            if ImportJobStatus(job.status) not in COMMITTABLE_JOB_STATUSES:
                raise InvalidJobTransitionError(job_id, job.status, "discard")

            records = self._records(job.id, ImportRecordStatus.STAGED)
            for record in records:
                record.status = ImportRecordStatus.DISCARDED.value
                record.updated_by_id = actor_id
            job.transition_to(ImportJobStatus.CANCELLED, "discard")
            job.completed_at = self._clock.now()
            job.updated_by_id = actor_id
            self._recount(job)
            self.session.flush()

            logger.info("import_job_discarded", extra={"discarded": len(records)})
            return len(records)

    def retry_failed(
        self,
        job_id: UUID,
        context: OrgAccessContext,
        actor_id: UUID,
    ) -> int:
        """
        Reset failed rows to staged for another commit. Returns rows reset.

        The transform is not re-run: validation_errors stay on the record,
        only commit_error is cleared.
        """
        with LogContext.bind(actor_id=actor_id, producer="import_commit", job_id=job_id):
            job = self._lock_job(job_id, context)
            if ImportJobStatus(job.status) not in COMMITTABLE_JOB_STATUSES:
                raise InvalidJobTransitionError(job_id, job.status, "retry")

            records = self._records(job.id, ImportRecordStatus.FAILED)
            for record in records:
                record.status = ImportRecordStatus.STAGED.value
                record.commit_error = None
                record.updated_by_id = actor_id

            if records and job.status != ImportJobStatus.PENDING_COMMIT.value:
                job.transition_to(ImportJobStatus.PENDING_COMMIT, "retry")
                job.completed_at = None
            job.updated_by_id = actor_id
            self._recount(job)
            self.session.flush()

            logger.info(
                "import_failed_rows_reset",
                extra={"reset": len(records), "row_indexes": [r.row_index for r in records]},
            )
            return len(records)

    # ------------------------------------------------------------------
    # Map step
    # ------------------------------------------------------------------

    def _commit_row(
        self,
        record: ImportedRecordModel,
        job: ImportJobModel,
        target_entity: str,
        materializer: RecordMaterializer,
        actor_id: UUID,
    ) -> RowOutcome:
        savepoint = self.session.begin_nested()
        try:
            canonical_id = materializer.materialize(
                record, job, target_entity, self.session, actor_id, self._clock
            )
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            record.status = ImportRecordStatus.FAILED.value
            record.commit_error = str(exc) or type(exc).__name__
            record.updated_by_id = actor_id
            error_code = getattr(exc, "code", type(exc).__name__)
            logger.warning(
                "record_commit_failed",
                extra={
                    "record_id": str(record.id),
                    "row_index": record.row_index,
                    "error_code": error_code,
                    "error_msg": record.commit_error,
                },
            )
            return RowFailure(
                record_id=record.id,
                row_index=record.row_index,
                error_code=error_code,
                message=record.commit_error,
            )

        record.status = ImportRecordStatus.COMMITTED.value
        record.canonical_record_id = canonical_id
        record.committed_at = self._clock.now()
        record.commit_error = None
        record.updated_by_id = actor_id
        logger.debug(
            "record_committed",
            extra={
                "record_id": str(record.id),
                "row_index": record.row_index,
                "canonical_record_id": str(canonical_id),
            },
        )
        return RowCommitted(
            record_id=record.id,
            row_index=record.row_index,
            canonical_record_id=canonical_id,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_job(self, job_id: UUID, context: OrgAccessContext) -> ImportJobModel:
        ScopedSelector(self.session, ImportJobModel, self._policy).require(
            context, job_id, ImportJobNotFoundError
        )
        # Re-read under the lock; another writer may have moved the status.
        return self.session.scalars(
            select(ImportJobModel)
            .where(ImportJobModel.id == job_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one()

    def _records(
        self, job_id: UUID, status: ImportRecordStatus
    ) -> list[ImportedRecordModel]:
        return list(
            self.session.scalars(
                select(ImportedRecordModel)
                .where(
                    ImportedRecordModel.job_id == job_id,
                    ImportedRecordModel.status == status.value,
                )
                .order_by(ImportedRecordModel.row_index)
            )
        )

    def _target_entity(self, job: ImportJobModel) -> str:
        mapping = self.session.get(MappingVersionModel, job.mapping_id)
        if mapping is None:
            raise MappingVersionNotFoundError(job.mapping_id)
        return mapping.target_entity

    def _recount(self, job: ImportJobModel) -> None:
        self.session.flush()
        counts = dict(
            self.session.execute(
                select(ImportedRecordModel.status, func.count())
                .where(ImportedRecordModel.job_id == job.id)
                .group_by(ImportedRecordModel.status)
            ).all()
        )
        job.records_total = sum(counts.values())
        job.records_processed = counts.get(ImportRecordStatus.COMMITTED.value, 0)
        job.records_failed = counts.get(ImportRecordStatus.FAILED.value, 0)
