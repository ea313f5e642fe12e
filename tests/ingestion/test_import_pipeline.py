"""End-to-end tests for ImportPipeline.run."""

import pytest

from licenseiq_kernel.exceptions import MappingNotUsableError
from licenseiq_ingestion.domain.types import ImportJobStatus, ImportJobType
from licenseiq_ingestion.selectors.jobs import CanonicalRecordSelector
from licenseiq_ingestion.services.pipeline import ImportPipeline


@pytest.fixture
def pipeline(session, deterministic_clock, settings):
    return ImportPipeline(session, clock=deterministic_clock, settings=settings)


class TestImportPipeline:
    def test_dry_run_stops_after_staging(
        self, session, pipeline, approved_mapping, org, acme_admin, make_rows, test_actor_id
    ):
        result = pipeline.run(
            approved_mapping.id, make_rows(3), org.scope(org.acme), ImportJobType.DRY_RUN,
            acme_admin, test_actor_id,
        )
        assert result.commit is None
        assert result.job.status == ImportJobStatus.PENDING_COMMIT
        assert result.stage.staged == 3
        assert CanonicalRecordSelector(session).list_records(acme_admin, job_id=result.job.id) == []

        committed = pipeline.commits.commit(result.job.id, acme_admin, test_actor_id)
        assert committed.committed == 3

    def test_import_commits_in_one_call(
        self, session, pipeline, approved_mapping, org, acme_admin, make_rows, test_actor_id,
        captured_logs,
    ):
        result = pipeline.run(
            approved_mapping.id, make_rows(4), org.scope(org.acme), "import",
            acme_admin, test_actor_id,
        )
        assert result.commit.committed == 4
        assert result.job.status == ImportJobStatus.COMPLETED
        assert result.job.records_processed == 4
        records = CanonicalRecordSelector(session).list_records(acme_admin, job_id=result.job.id)
        assert sorted(r.record_data["order_number"] for r in records) == [
            "SO-0", "SO-1", "SO-2", "SO-3"
        ]
        assert any(r["message"] == "import_pipeline_completed" for r in captured_logs())

    def test_import_needs_approved_mapping(
        self, pipeline, draft_mapping, org, acme_admin, make_rows, test_actor_id
    ):
        with pytest.raises(MappingNotUsableError):
            pipeline.run(
                draft_mapping.id, make_rows(1), org.scope(org.acme), ImportJobType.IMPORT,
                acme_admin, test_actor_id,
            )

    def test_source_filter_and_run_recorded(
        self, pipeline, approved_mapping, org, acme_admin, make_rows, test_actor_id
    ):
        source = pipeline.sources.create_source(
            "EU feed", "api", org.scope(org.acme), acme_admin, test_actor_id,
            mapping_id=approved_mapping.id,
            filter_config={"conditions": [{"field": "REGION", "operator": "equals", "value": "EU"}]},
        )
        rows = make_rows(3)
        rows[1]["REGION"] = "EU"
        result = pipeline.run(
            approved_mapping.id, rows, org.scope(org.acme), ImportJobType.DRY_RUN,
            acme_admin, test_actor_id, source_id=source.id,
        )
        assert result.job.source_id == source.id
        assert (result.stage.staged, result.stage.skipped) == (1, 2)

        refreshed = pipeline.sources.get_source(source.id, acme_admin)
        assert refreshed.last_job_id == result.job.id
        assert refreshed.last_run_at is not None

    def test_explicit_filter_overrides_source_filter(
        self, pipeline, approved_mapping, org, acme_admin, make_rows, test_actor_id
    ):
        source = pipeline.sources.create_source(
            "EU feed", "api", org.scope(org.acme), acme_admin, test_actor_id,
            filter_config={"conditions": [{"field": "REGION", "operator": "equals", "value": "EU"}]},
        )
        result = pipeline.run(
            approved_mapping.id, make_rows(2), org.scope(org.acme), ImportJobType.DRY_RUN,
            acme_admin, test_actor_id,
            filter_config={"conditions": [{"field": "REGION", "operator": "equals", "value": "NA"}]},
            source_id=source.id,
        )
        assert result.stage.staged == 2
