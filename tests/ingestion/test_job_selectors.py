"""Tests for scoped job and canonical-record listing."""

import pytest

from licenseiq_kernel.exceptions import AccessDeniedError
from licenseiq_ingestion.domain.types import ImportJobStatus, ImportJobType
from licenseiq_ingestion.selectors.jobs import CanonicalRecordSelector, ImportJobSelector


@pytest.fixture
def jobs(session):
    return ImportJobSelector(session)


@pytest.fixture
def run(staging, commits, approved_mapping, acme_admin, make_rows, test_actor_id):
    def _run(scope, count=2, commit=False):
        job = staging.stage(
            approved_mapping.id, make_rows(count), scope, ImportJobType.DRY_RUN,
            acme_admin, test_actor_id,
        ).job
        if commit:
            commits.commit(job.id, acme_admin, test_actor_id)
        return job

    return _run


class TestImportJobSelector:
    def test_list_is_scoped(self, jobs, run, org, acme_admin, make_context):
        company_job = run(org.scope(org.acme))
        north_job = run(org.scope(org.acme, org.north))
        plant_job = run(org.scope(org.acme, org.north, org.plant_1))

        assert {j.id for j in jobs.list_jobs(acme_admin)} == {
            company_job.id, north_job.id, plant_job.id
        }
        north = make_context(company_id=org.acme, business_unit_id=org.north)
        assert {j.id for j in jobs.list_jobs(north)} == {north_job.id, plant_job.id}
        plant = make_context(company_id=org.acme, business_unit_id=org.north, location_id=org.plant_1)
        assert [j.id for j in jobs.list_jobs(plant)] == [plant_job.id]
        globex = make_context(company_id=org.globex)
        assert jobs.list_jobs(globex) == []

    def test_filters(self, jobs, run, org, acme_admin, approved_mapping):
        pending = run(org.scope(org.acme))
        done = run(org.scope(org.acme), commit=True)

        assert [j.id for j in jobs.list_jobs(acme_admin, status="pending_commit")] == [pending.id]
        assert [j.id for j in jobs.list_jobs(acme_admin, status=ImportJobStatus.COMPLETED)] == [done.id]
        assert jobs.list_jobs(acme_admin, job_type=ImportJobType.IMPORT) == []
        assert len(jobs.list_jobs(acme_admin, mapping_id=approved_mapping.id)) == 2
        assert len(jobs.list_jobs(acme_admin, limit=1)) == 1

    def test_get_job_denies_foreign_context(self, jobs, run, org, acme_admin, make_context):
        job = run(org.scope(org.acme))
        assert jobs.get_job(acme_admin, job.id).id == job.id
        with pytest.raises(AccessDeniedError):
            jobs.get_job(make_context(company_id=org.globex), job.id)


class TestCanonicalRecordSelector:
    def test_list_is_scoped_and_filtered(self, session, run, org, acme_admin, make_context):
        north_job = run(org.scope(org.acme, org.north), count=2, commit=True)
        south_job = run(org.scope(org.acme, org.south), count=3, commit=True)
        selector = CanonicalRecordSelector(session)

        assert len(selector.list_records(acme_admin)) == 5
        assert len(selector.list_records(acme_admin, entity_type="sales_record")) == 5
        assert selector.list_records(acme_admin, entity_type="invoice") == []
        assert {r.job_id for r in selector.list_records(acme_admin, job_id=south_job.id)} == {
            south_job.id
        }

        north = make_context(company_id=org.acme, business_unit_id=org.north)
        assert {r.job_id for r in selector.list_records(north)} == {north_job.id}
        assert len(selector.list_records(acme_admin, limit=2, offset=4)) == 1
