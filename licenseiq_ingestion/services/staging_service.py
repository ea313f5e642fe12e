"""
StagingService -- source rows -> ImportJob + ImportedRecords.

Responsibility:
    Checks the mapping and target scope, runs the pre-import filter, applies
    the mapping rules to each remaining row and persists the results as
    staged records awaiting commit.  Rows the mapping could not transform
    are staged too, carrying their validation_errors; commit refuses them.

Invariants enforced:
    - A job is all-or-nothing at staging time: every row is written inside
      one SAVEPOINT.  A structural failure rolls the SAVEPOINT back, marks
      the job failed with error_log set, and leaves no records behind.
    - Import jobs need an approved mapping; dry runs also accept drafts
      (unless disabled in settings); deprecated mappings drive nothing.
    - The target scope has a company and is visible to the caller.
    - row_index is the 0-based position among rows that passed the filter.

Failure modes:
    - MappingVersionNotFoundError / AccessDeniedError: mapping not visible.
    - MappingNotUsableError: mapping status does not fit the job type.
    - InvalidScopeError: target scope has no company.
    - ImportTooLargeError: more rows than imports.max_rows_per_job.
    - FilterConfigError: malformed filter config.
"""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from licenseiq_config import get_active_settings
from licenseiq_config.bridges import build_access_policy
from licenseiq_config.schema import LicenseIQSettings
from licenseiq_kernel.domain.clock import Clock, SystemClock
from licenseiq_kernel.domain.org_context import OrgAccessContext, OrgScope
from licenseiq_kernel.domain.visibility import resolve_visibility
from licenseiq_kernel.exceptions import (
    AccessDeniedError,
    ImportJobNotFoundError,
    ImportSourceNotFoundError,
    ImportTooLargeError,
    InputValidationError,
    InvalidScopeError,
    MappingNotUsableError,
)
from licenseiq_kernel.logging_config import LogContext, get_logger
from licenseiq_kernel.selectors.scoped import ScopedSelector
from licenseiq_kernel.services.base import BaseService
from licenseiq_kernel.services.org_hierarchy import OrgHierarchyService
from licenseiq_ingestion.domain.filters import (
    FilterConfig,
    filter_config_to_dict,
    filter_rows,
    parse_filter_config,
)
from licenseiq_ingestion.domain.types import (
    ImportedRecord,
    ImportJob,
    ImportJobStatus,
    ImportJobType,
    ImportRecordStatus,
    StageResult,
)
from licenseiq_ingestion.mapping.engine import apply_mapping, to_json_safe
from licenseiq_ingestion.models.source import ImportSourceModel
from licenseiq_ingestion.models.staging import ImportedRecordModel, ImportJobModel
from licenseiq_mapping.lifecycle import MappingStatus
from licenseiq_mapping.models.mapping import MappingVersionModel
from licenseiq_mapping.services.lineage_service import MappingLineageService

logger = get_logger("ingestion.staging_service")


class StagingService(BaseService[ImportJobModel]):
    """Creates import jobs and stages their rows."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LicenseIQSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_settings()
        self._policy = build_access_policy(self._settings)
        self._mappings = MappingLineageService(session, self._clock, self._settings)

    def stage(
        self,
        mapping_id: UUID,
        source_rows: Iterable[dict[str, Any]],
        scope: OrgScope,
        job_type: ImportJobType | str,
        context: OrgAccessContext,
        actor_id: UUID,
        filter_config: FilterConfig | dict[str, Any] | None = None,
        job_name: str | None = None,
        source_id: UUID | None = None,
    ) -> StageResult:
        job_type = ImportJobType(job_type)
        rows = list(source_rows)

        with LogContext.bind(actor_id=actor_id, producer="import_staging"):
            mapping = self._usable_mapping(mapping_id, job_type, context)
            self._check_scope(scope, context)

            max_rows = self._settings.imports.max_rows_per_job
            if len(rows) > max_rows:
                raise ImportTooLargeError(len(rows), max_rows)

            if source_id is not None:
                source = ScopedSelector(
                    self.session, ImportSourceModel, self._policy
                ).require(context, source_id, ImportSourceNotFoundError)
                if filter_config is None:
                    filter_config = source.filter_config

            config = (
                filter_config
                if isinstance(filter_config, FilterConfig) or filter_config is None
                else parse_filter_config(filter_config)
            )
            content = mapping.parsed_content()

            job = ImportJobModel(
                job_name=job_name or f"{mapping.mapping_name} v{mapping.version}",
                mapping_id=mapping.id,
                mapping_version=mapping.version,
                source_id=source_id,
                job_type=job_type.value,
                status=ImportJobStatus.PENDING.value,
                company_id=scope.company_id,
                business_unit_id=scope.business_unit_id,
                location_id=scope.location_id,
                filter_config=filter_config_to_dict(config),
                created_by_id=actor_id,
            )
            self.session.add(job)
            self.session.flush()

            with LogContext.bind(job_id=job.id):
                job.transition_to(ImportJobStatus.PROCESSING)
                job.started_at = self._clock.now()
                self.session.flush()
                logger.info(
                    "import_job_started",
                    extra={
                        "mapping_id": str(mapping.id),
                        "mapping_version": mapping.version,
                        "job_type": job_type.value,
                        "row_count": len(rows),
                    },
                )

                savepoint = self.session.begin_nested()
                try:
                    for i, row in enumerate(rows):
                        if not isinstance(row, dict):
                            raise InputValidationError(f"Source row {i} is not an object")
                    outcome = filter_rows(rows, config)

                    staged = invalid = 0
                    for row_index, row in enumerate(outcome.matched):
                        result = apply_mapping(content, row)
                        record = ImportedRecordModel(
                            job_id=job.id,
                            row_index=row_index,
                            status=ImportRecordStatus.STAGED.value,
                            source_record=to_json_safe(row),
                            target_record=result.target,
                            created_by_id=actor_id,
                        )
                        record.set_validation_errors(result.errors)
                        self.session.add(record)
                        staged += 1
                        if not result.success:
                            invalid += 1
                    self.session.flush()
                    savepoint.commit()
                except Exception as exc:
                    savepoint.rollback()
                    job.transition_to(ImportJobStatus.FAILED)
                    job.error_log = f"{type(exc).__name__}: {exc}"
                    job.completed_at = self._clock.now()
                    self.session.flush()
                    logger.error(
                        "import_job_staging_failed",
                        extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                    )
                    raise

                job.records_total = staged
                job.records_processed = 0
                job.records_failed = 0
                job.records_skipped = outcome.stats.filtered_out_records
                job.transition_to(ImportJobStatus.PENDING_COMMIT)
                self.session.flush()

                logger.info(
                    "import_job_staged",
                    extra={
                        "staged": staged,
                        "invalid": invalid,
                        "skipped": job.records_skipped,
                        "conditions_applied": outcome.stats.conditions_applied,
                    },
                )
                return StageResult(
                    job=job.to_dto(),
                    staged=staged,
                    invalid=invalid,
                    skipped=job.records_skipped,
                )

    def get_job(self, job_id: UUID, context: OrgAccessContext) -> ImportJob:
        return self.get_job_model(job_id, context).to_dto()

    def get_job_model(self, job_id: UUID, context: OrgAccessContext) -> ImportJobModel:
        selector = ScopedSelector(self.session, ImportJobModel, self._policy)
        return selector.require(context, job_id, ImportJobNotFoundError)

    def list_records(
        self,
        job_id: UUID,
        context: OrgAccessContext,
        status: ImportRecordStatus | str | None = None,
    ) -> list[ImportedRecord]:
        """Records of a visible job in row order."""
        job = self.get_job_model(job_id, context)
        stmt = select(ImportedRecordModel).where(ImportedRecordModel.job_id == job.id)
        if status is not None:
            stmt = stmt.where(ImportedRecordModel.status == ImportRecordStatus(status).value)
        stmt = stmt.order_by(ImportedRecordModel.row_index)
        return [rec.to_dto() for rec in self.session.scalars(stmt)]

    # ------------------------------------------------------------------

    def _usable_mapping(
        self,
        mapping_id: UUID,
        job_type: ImportJobType,
        context: OrgAccessContext,
    ) -> MappingVersionModel:
        mapping = self._mappings.get_model(mapping_id, context)
        status = MappingStatus(mapping.status)
        usable = {MappingStatus.APPROVED}
        if job_type == ImportJobType.DRY_RUN and self._settings.imports.allow_draft_dry_run:
            usable.add(MappingStatus.DRAFT)
        if status not in usable:
            raise MappingNotUsableError(mapping_id, status.value, job_type.value)
        return mapping

    def _check_scope(self, scope: OrgScope, context: OrgAccessContext) -> None:
        if scope.company_id is None:
            raise InvalidScopeError("Import scope requires a company")
        OrgHierarchyService(self.session).validate_path(
            scope.company_id, scope.business_unit_id, scope.location_id
        )
        visibility = resolve_visibility(context, self._policy)
        if not visibility.admits(scope.company_id, scope.business_unit_id, scope.location_id):
            logger.info(
                "import_scope_denied",
                extra={"company_id": str(scope.company_id), "level": visibility.level.value},
            )
            raise AccessDeniedError("scope_not_visible")

