"""Pure import domain: status machines, DTOs, pre-import filters."""

from licenseiq_ingestion.domain.filters import (
    FilterCondition,
    FilterConfig,
    FilterOutcome,
    filter_rows,
    parse_filter_config,
    validate_filter_config,
)
from licenseiq_ingestion.domain.types import (
    CommitResult,
    ImportedRecord,
    ImportJob,
    ImportJobStatus,
    ImportJobType,
    ImportRecordStatus,
    RowCommitted,
    RowFailure,
)

__all__ = [
    "CommitResult",
    "FilterCondition",
    "FilterConfig",
    "FilterOutcome",
    "ImportJob",
    "ImportJobStatus",
    "ImportJobType",
    "ImportRecordStatus",
    "ImportedRecord",
    "RowCommitted",
    "RowFailure",
    "filter_rows",
    "parse_filter_config",
    "validate_filter_config",
]
