"""Import pipeline services."""

from licenseiq_ingestion.services.commit_service import CommitService
from licenseiq_ingestion.services.pipeline import ImportPipeline, PipelineResult
from licenseiq_ingestion.services.source_service import ImportSourceService
from licenseiq_ingestion.services.staging_service import StagingService

__all__ = [
    "CommitService",
    "ImportPipeline",
    "ImportSourceService",
    "PipelineResult",
    "StagingService",
]
