"""
ImportPipeline -- stage, then commit for import jobs.

Dry runs stop after staging and wait for an explicit commit or discard.
Import jobs are committed in the same call.  Runs fed from a saved source
stamp the source's last run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from licenseiq_config import get_active_settings
from licenseiq_config.schema import LicenseIQSettings
from licenseiq_kernel.domain.clock import Clock, SystemClock
from licenseiq_kernel.domain.org_context import OrgAccessContext, OrgScope
from licenseiq_kernel.logging_config import get_logger
from licenseiq_ingestion.domain.filters import FilterConfig
from licenseiq_ingestion.domain.types import (
    CommitResult,
    ImportJob,
    ImportJobType,
    StageResult,
)
from licenseiq_ingestion.materializers import MaterializerRegistry
from licenseiq_ingestion.services.commit_service import CommitService
from licenseiq_ingestion.services.source_service import ImportSourceService
from licenseiq_ingestion.services.staging_service import StagingService

logger = get_logger("ingestion.pipeline")


@dataclass(frozen=True)
class PipelineResult:
    job: ImportJob
    stage: StageResult
    commit: CommitResult | None = None


class ImportPipeline:
    """Wires staging, commit and source bookkeeping for one run."""

    def __init__(
        self,
        session: Session,
        materializers: MaterializerRegistry | None = None,
        clock: Clock | None = None,
        settings: LicenseIQSettings | None = None,
    ):
        self._session = session
        clock = clock or SystemClock()
        settings = settings or get_active_settings()
        self.staging = StagingService(session, clock, settings)
        self.commits = CommitService(session, materializers, clock, settings)
        self.sources = ImportSourceService(session, clock, settings)

    def run(
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
    ) -> PipelineResult:
        job_type = ImportJobType(job_type)
        staged = self.staging.stage(
            mapping_id,
            source_rows,
            scope,
            job_type,
            context,
            actor_id,
            filter_config=filter_config,
            job_name=job_name,
            source_id=source_id,
        )
        if source_id is not None:
            self.sources.record_run(source_id, staged.job)

        if job_type == ImportJobType.DRY_RUN:
            return PipelineResult(job=staged.job, stage=staged)

        committed = self.commits.commit(staged.job.id, context, actor_id)
        job = self.staging.get_job(staged.job.id, context)
        logger.info(
            "import_pipeline_completed",
            extra={
                "job_id": str(job.id),
                "status": job.status.value,
                "committed": committed.committed,
                "failed": committed.failed,
            },
        )
        return PipelineResult(job=job, stage=staged, commit=committed)
