"""Fixtures shared by the import pipeline tests."""

import pytest

from licenseiq_ingestion.services.commit_service import CommitService
from licenseiq_ingestion.services.staging_service import StagingService
from licenseiq_mapping.services.lineage_service import MappingLineageService


@pytest.fixture
def make_rows():
    """Build SAP sales rows SO-0, SO-1, ... with quantities 1, 2, ..."""

    def _make(count: int, region: str = "NA") -> list[dict]:
        return [
            {"VBELN": f"SO-{i}", "MENGE": str(i + 1), "NETWR": "100.00", "REGION": region}
            for i in range(count)
        ]

    return _make


@pytest.fixture
def lineage(session, deterministic_clock, settings):
    return MappingLineageService(session, deterministic_clock, settings)


@pytest.fixture
def draft_mapping(lineage, mapping_content, org, test_actor_id):
    return lineage.create_mapping("SAP sales", mapping_content, org.scope(org.acme), test_actor_id)


@pytest.fixture
def approved_mapping(lineage, draft_mapping, test_actor_id):
    return lineage.approve(draft_mapping.id, test_actor_id)


@pytest.fixture
def staging(session, deterministic_clock, settings):
    return StagingService(session, deterministic_clock, settings)


@pytest.fixture
def commits(session, deterministic_clock, settings):
    return CommitService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def acme_admin(org, make_context):
    return make_context(company_id=org.acme, role="admin")


@pytest.fixture
def globex_admin(org, make_context):
    return make_context(company_id=org.globex, role="admin")
