"""
Pytest fixtures for the LicenseIQ test suite.

Provides:
- A session-scoped engine and schema, with per-test rollback isolation
- Structured-log capture
- A small org hierarchy (two companies, business units, locations, users)
- Access-context and mapping-content builders

Environment Variables:
- LICENSEIQ_TEST_DATABASE_URL: database URL for the suite.  Defaults to an
  in-memory SQLite database; point it at PostgreSQL to exercise real row
  locks.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from licenseiq_config import reset_active_settings
from licenseiq_config.schema import LicenseIQSettings
from licenseiq_ingestion._orm_registry import create_all_tables
from licenseiq_kernel.db.engine import drop_tables, init_engine_from_url, reset_engine
from licenseiq_kernel.domain.clock import DeterministicClock
from licenseiq_kernel.domain.org_context import (
    GlobalRole,
    OrgAccessContext,
    OrgAssignment,
    OrgRole,
    OrgScope,
)
from licenseiq_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from licenseiq_kernel.models.org import BusinessUnit, Company, Location, User


# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


def get_database_url() -> str:
    return os.environ.get("LICENSEIQ_TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture(autouse=True)
def _reset_settings():
    """Drop cached settings so environment changes in one test do not leak."""
    reset_active_settings()
    yield
    reset_active_settings()


@pytest.fixture
def captured_logs():
    """
    Capture licenseiq logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, lineage):
            lineage.approve(...)
            logs = captured_logs()
            assert any(r["message"] == "mapping_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("licenseiq")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    create_all_tables()
    yield
    drop_tables()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection; service
    SAVEPOINTs nest inside it and the outer transaction is rolled back at
    teardown, undoing every change made by the test.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Time and settings
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> LicenseIQSettings:
    return LicenseIQSettings()


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Org hierarchy
# =============================================================================


@dataclass(frozen=True)
class OrgTree:
    """Ids of the standard test hierarchy.

    acme (C1)
      north (BU)
        plant_1 (location)
      south (BU)
        plant_2 (location)
      hq (location, no BU)
    globex (C2)
      west (BU)
        depot (location)
    """

    acme: UUID
    north: UUID
    south: UUID
    plant_1: UUID
    plant_2: UUID
    hq: UUID
    globex: UUID
    west: UUID
    depot: UUID
    alice: UUID
    bob: UUID
    admin: UUID

    def scope(
        self,
        company_id: UUID | None = None,
        business_unit_id: UUID | None = None,
        location_id: UUID | None = None,
    ) -> OrgScope:
        return OrgScope(company_id, business_unit_id, location_id)


@pytest.fixture
def org(session) -> OrgTree:
    def add(obj):
        session.add(obj)
        session.flush()
        return obj.id

    acme = add(Company(company_name="Acme Licensing", created_by_id=TEST_ACTOR_ID))
    globex = add(Company(company_name="Globex Media", created_by_id=TEST_ACTOR_ID))
    north = add(BusinessUnit(company_id=acme, unit_name="North", created_by_id=TEST_ACTOR_ID))
    south = add(BusinessUnit(company_id=acme, unit_name="South", created_by_id=TEST_ACTOR_ID))
    west = add(BusinessUnit(company_id=globex, unit_name="West", created_by_id=TEST_ACTOR_ID))
    plant_1 = add(Location(
        company_id=acme, business_unit_id=north, location_name="Plant 1",
        created_by_id=TEST_ACTOR_ID,
    ))
    plant_2 = add(Location(
        company_id=acme, business_unit_id=south, location_name="Plant 2",
        created_by_id=TEST_ACTOR_ID,
    ))
    hq = add(Location(company_id=acme, location_name="HQ", created_by_id=TEST_ACTOR_ID))
    depot = add(Location(
        company_id=globex, business_unit_id=west, location_name="Depot",
        created_by_id=TEST_ACTOR_ID,
    ))
    alice = add(User(username="alice", created_by_id=TEST_ACTOR_ID))
    bob = add(User(username="bob", created_by_id=TEST_ACTOR_ID))
    admin = add(User(
        username="root", global_role=GlobalRole.ADMIN.value, is_system_admin=True,
        created_by_id=TEST_ACTOR_ID,
    ))
    return OrgTree(
        acme=acme, north=north, south=south, plant_1=plant_1, plant_2=plant_2,
        hq=hq, globex=globex, west=west, depot=depot,
        alice=alice, bob=bob, admin=admin,
    )


@pytest.fixture
def make_context():
    """
    Build an OrgAccessContext without touching the database.

    ``make_context(company_id=..., role="admin")`` gives a company-level
    context; pass nothing for a user with no active context.
    """

    def _make(
        company_id: UUID | None = None,
        business_unit_id: UUID | None = None,
        location_id: UUID | None = None,
        role: str = OrgRole.USER.value,
        user_id: UUID | None = None,
        global_role: str = GlobalRole.USER.value,
        is_system_admin: bool = False,
        active: bool | None = None,
    ) -> OrgAccessContext:
        has_ids = any(x is not None for x in (company_id, business_unit_id, location_id))
        assignment = None
        if active or (active is None and has_ids):
            assignment = OrgAssignment(
                company_id=company_id,
                business_unit_id=business_unit_id,
                location_id=location_id,
                role=role,
            )
        return OrgAccessContext(
            user_id=user_id or TEST_ACTOR_ID,
            global_role=global_role,
            is_system_admin=is_system_admin,
            assignment=assignment,
        )

    return _make


# =============================================================================
# Mapping content
# =============================================================================


def sales_mapping_content(target_entity: str = "sales_record") -> dict:
    """Mapping content used across mapping and ingestion tests."""
    return {
        "erp_system": "sap",
        "entity_type": "sales_order",
        "target_entity": target_entity,
        "rules": [
            {"kind": "direct", "source": "VBELN", "target": "order_number", "required": True},
            {"kind": "direct", "source": "MENGE", "target": "quantity", "field_type": "integer"},
            {
                "kind": "transform", "source": "NETWR", "target": "net_amount",
                "transform": "to_decimal", "field_type": "decimal",
            },
            {"kind": "constant", "target": "currency", "value": "USD"},
            {
                "kind": "lookup", "source": "REGION", "target": "territory",
                "table": {"NA": "North America", "EU": "Europe"}, "default": "Other",
            },
        ],
    }


@pytest.fixture
def mapping_content() -> dict:
    return sales_mapping_content()
