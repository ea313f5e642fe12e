"""
Read-side selectors for import jobs and canonical records.

Every query goes through ScopedSelector, so results are org-filtered with
the ownership fallback for callers without an active context.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from licenseiq_kernel.domain.org_context import OrgAccessContext
from licenseiq_kernel.domain.visibility import DEFAULT_ACCESS_POLICY, AccessPolicy
from licenseiq_kernel.exceptions import ImportJobNotFoundError
from licenseiq_kernel.selectors.scoped import ScopedSelector
from licenseiq_ingestion.domain.types import (
    CanonicalRecord,
    ImportJob,
    ImportJobStatus,
    ImportJobType,
)
from licenseiq_ingestion.models.canonical import CanonicalRecordModel
from licenseiq_ingestion.models.staging import ImportJobModel


class ImportJobSelector(ScopedSelector[ImportJobModel]):
    def __init__(self, session: Session, policy: AccessPolicy = DEFAULT_ACCESS_POLICY):
        super().__init__(session, ImportJobModel, policy)

    def list_jobs(
        self,
        context: OrgAccessContext,
        status: ImportJobStatus | str | None = None,
        job_type: ImportJobType | str | None = None,
        mapping_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[ImportJob]:
        criteria = []
        if status is not None:
            criteria.append(ImportJobModel.status == ImportJobStatus(status).value)
        if job_type is not None:
            criteria.append(ImportJobModel.job_type == ImportJobType(job_type).value)
        if mapping_id is not None:
            criteria.append(ImportJobModel.mapping_id == mapping_id)
        rows = self.list(
            context,
            *criteria,
            order_by=(ImportJobModel.created_at.desc(), ImportJobModel.id),
            limit=limit,
        )
        return [row.to_dto() for row in rows]

    def get_job(self, context: OrgAccessContext, job_id: UUID) -> ImportJob:
        return self.require(context, job_id, ImportJobNotFoundError).to_dto()


class CanonicalRecordSelector(ScopedSelector[CanonicalRecordModel]):
    def __init__(self, session: Session, policy: AccessPolicy = DEFAULT_ACCESS_POLICY):
        super().__init__(session, CanonicalRecordModel, policy)

    def list_records(
        self,
        context: OrgAccessContext,
        entity_type: str | None = None,
        job_id: UUID | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[CanonicalRecord]:
        criteria = []
        if entity_type is not None:
            criteria.append(CanonicalRecordModel.entity_type == entity_type)
        if job_id is not None:
            criteria.append(CanonicalRecordModel.job_id == job_id)
        rows = self.list(
            context,
            *criteria,
            order_by=(CanonicalRecordModel.created_at, CanonicalRecordModel.id),
            limit=limit,
            offset=offset,
        )
        return [row.to_dto() for row in rows]
