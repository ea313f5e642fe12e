"""
licenseiq_ingestion.domain.types -- Pure frozen dataclasses for the import pipeline.

ZERO I/O. Imports only from licenseiq_kernel/domain/ and the mapping domain.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Union
from uuid import UUID

from licenseiq_kernel.domain.dtos import ValidationError
from licenseiq_kernel.domain.org_context import OrgScope


# =============================================================================
# Status enums
# =============================================================================


class ImportJobType(str, Enum):
    DRY_RUN = "dry_run"  # Stage for review, commit later
    IMPORT = "import"  # Stage and commit in one call


class ImportJobStatus(str, Enum):
    """Job-level lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"  # Rows being transformed and staged
    PENDING_COMMIT = "pending_commit"  # Staged, awaiting commit or discard
    COMPLETED = "completed"  # No failed records
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"  # Staging aborted; no records kept
    CANCELLED = "cancelled"  # Discarded


class ImportRecordStatus(str, Enum):
    """Per-record lifecycle status."""

    STAGED = "staged"
    COMMITTED = "committed"
    FAILED = "failed"
    DISCARDED = "discarded"


ALLOWED_JOB_TRANSITIONS: dict[ImportJobStatus, frozenset[ImportJobStatus]] = {
    ImportJobStatus.PENDING: frozenset({ImportJobStatus.PROCESSING, ImportJobStatus.FAILED}),
    ImportJobStatus.PROCESSING: frozenset({
        ImportJobStatus.PENDING_COMMIT,
        ImportJobStatus.FAILED,
    }),
    ImportJobStatus.PENDING_COMMIT: frozenset({
        ImportJobStatus.COMPLETED,
        ImportJobStatus.COMPLETED_WITH_ERRORS,
        ImportJobStatus.CANCELLED,
    }),
    # Retrying failed rows reopens the job for another commit.
    ImportJobStatus.COMPLETED_WITH_ERRORS: frozenset({
        ImportJobStatus.PENDING_COMMIT,
        ImportJobStatus.COMPLETED,
        ImportJobStatus.COMPLETED_WITH_ERRORS,
        ImportJobStatus.CANCELLED,
    }),
    ImportJobStatus.COMPLETED: frozenset({
        ImportJobStatus.PENDING_COMMIT,
        ImportJobStatus.COMPLETED,
        ImportJobStatus.COMPLETED_WITH_ERRORS,
        ImportJobStatus.CANCELLED,
    }),
    ImportJobStatus.FAILED: frozenset(),
    ImportJobStatus.CANCELLED: frozenset(),
}

COMMITTABLE_JOB_STATUSES = frozenset({
    ImportJobStatus.PENDING_COMMIT,
    ImportJobStatus.COMPLETED_WITH_ERRORS,
    ImportJobStatus.COMPLETED,
})


def can_transition_job(current: ImportJobStatus | str, target: ImportJobStatus | str) -> bool:
    return ImportJobStatus(target) in ALLOWED_JOB_TRANSITIONS[ImportJobStatus(current)]


# =============================================================================
# Job and record DTOs
# =============================================================================


@dataclass(frozen=True)
class ImportJob:
    """Immutable snapshot of an import job."""

    id: UUID
    job_name: str
    mapping_id: UUID
    mapping_version: int
    job_type: ImportJobType
    status: ImportJobStatus
    scope: OrgScope
    created_by_id: UUID
    source_id: UUID | None = None
    records_total: int = 0
    records_processed: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    filter_config: dict[str, Any] | None = None
    error_log: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def records_staged(self) -> int:
        return self.records_total - self.records_processed - self.records_failed


@dataclass(frozen=True)
class ImportedRecord:
    """Immutable snapshot of one staged row."""

    id: UUID
    job_id: UUID
    row_index: int  # 0-based position among the rows that passed the filter
    status: ImportRecordStatus
    source_record: dict[str, Any]
    target_record: dict[str, Any] | None = None
    validation_errors: tuple[ValidationError, ...] = ()
    commit_error: str | None = None
    canonical_record_id: UUID | None = None
    committed_at: datetime | None = None


# =============================================================================
# Commit outcome (map step yields one per row; reduce builds CommitResult)
# =============================================================================


@dataclass(frozen=True)
class RowCommitted:
    record_id: UUID
    row_index: int
    canonical_record_id: UUID


@dataclass(frozen=True)
class RowFailure:
    record_id: UUID
    row_index: int
    error_code: str
    message: str


RowOutcome = Union[RowCommitted, RowFailure]


@dataclass(frozen=True)
class CommitResult:
    """Aggregate of one commit call."""

    job_id: UUID
    committed: int
    failed: int
    failures: tuple[RowFailure, ...] = ()
    status: ImportJobStatus | None = None

    @classmethod
    def reduce(
        cls,
        job_id: UUID,
        outcomes: list[RowOutcome],
        status: ImportJobStatus | None = None,
    ) -> CommitResult:
        failures = tuple(o for o in outcomes if isinstance(o, RowFailure))
        return cls(
            job_id=job_id,
            committed=len(outcomes) - len(failures),
            failed=len(failures),
            failures=failures,
            status=status,
        )


@dataclass(frozen=True)
class StageResult:
    """Outcome of StagingService.stage."""

    job: ImportJob
    staged: int
    invalid: int
    skipped: int


@dataclass(frozen=True)
class ImportSource:
    """Immutable snapshot of a saved import source."""

    id: UUID
    name: str
    source_type: str
    scope: OrgScope
    created_by_id: UUID
    mapping_id: UUID | None = None
    description: str | None = None
    filter_config: dict[str, Any] | None = None
    schedule_enabled: bool = False
    schedule_type: str = "manual"
    schedule_cron: str | None = None
    dry_run_first: bool = True
    status: str = "active"
    last_run_at: datetime | None = None
    last_job_id: UUID | None = None
    next_run_at: datetime | None = None


@dataclass(frozen=True)
class CanonicalRecord:
    id: UUID
    entity_type: str
    record_data: dict[str, Any]
    source_record_id: UUID
    scope: OrgScope
    created_by_id: UUID
    job_id: UUID | None = None
