from licenseiq_ingestion.models.canonical import CanonicalRecordModel
from licenseiq_ingestion.models.source import (
    ImportSourceModel,
    ImportSourceStatus,
    ScheduleType,
)
from licenseiq_ingestion.models.staging import ImportedRecordModel, ImportJobModel

__all__ = [
    "CanonicalRecordModel",
    "ImportJobModel",
    "ImportSourceModel",
    "ImportSourceStatus",
    "ImportedRecordModel",
    "ScheduleType",
]
