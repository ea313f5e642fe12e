"""Tests for import sources: schedule validation, scoped CRUD and run bookkeeping."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from licenseiq_kernel.exceptions import (
    AccessDeniedError,
    FilterConfigError,
    ImportSourceNotFoundError,
    InvalidScopeError,
    ScheduleConfigError,
)
from licenseiq_ingestion.domain.types import ImportJobType
from licenseiq_ingestion.services.source_service import (
    ImportSourceService,
    next_run_after,
    validate_schedule,
)

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sources(session, deterministic_clock, settings):
    return ImportSourceService(session, deterministic_clock, settings)


class TestValidateSchedule:
    @pytest.mark.parametrize(
        "schedule_type,cron,enabled",
        [
            ("manual", None, False),
            ("daily", None, True),
            ("monthly", None, False),
            ("cron", "0 6 * * 1-5", True),
            ("cron", "*/15 0,12 1 * *", True),
        ],
    )
    def test_valid(self, schedule_type, cron, enabled):
        assert validate_schedule(schedule_type, cron, enabled) == []

    @pytest.mark.parametrize(
        "schedule_type,cron,enabled,message",
        [
            ("cron", None, True, "schedule_cron is required for cron schedules"),
            ("cron", "  ", True, "schedule_cron is required for cron schedules"),
            ("cron", "0 6 * *", True, "schedule_cron must have 5 fields"),
            ("cron", "0 6 * * MON", True, "schedule_cron fields may only contain digits and * / , -"),
            ("cron", "60 6 * * *", True, "schedule_cron minute: value 60 outside range [0, 59]"),
            ("cron", "0 6 0 * *", True, "schedule_cron day_of_month: value 0 outside range [1, 31]"),
            ("cron", "0 18-6 * * *", True, "schedule_cron hour: range start > end: 18-6"),
            ("cron", "*/0 6 * * *", True, "schedule_cron minute: step must be positive: 0"),
            ("cron", "0 6 * 1- *", True, "schedule_cron month: '' is not a number"),
            ("daily", "0 6 * * *", True, "schedule_cron is only allowed for cron schedules"),
            ("manual", None, True, "manual schedules cannot be enabled"),
        ],
    )
    def test_invalid(self, schedule_type, cron, enabled, message):
        assert validate_schedule(schedule_type, cron, enabled) == [message]

    def test_every_out_of_range_field_reported(self):
        errors = validate_schedule("cron", "99 99 99 99 99", True)
        assert [e.split(":")[0] for e in errors] == [
            "schedule_cron minute",
            "schedule_cron hour",
            "schedule_cron day_of_month",
            "schedule_cron month",
            "schedule_cron day_of_week",
        ]

    def test_unknown_type(self):
        errors = validate_schedule("yearly", None, False)
        assert errors == ["schedule_type must be one of: manual, hourly, daily, weekly, monthly, cron"]


class TestNextRunAfter:
    def test_disabled_has_no_next_run(self):
        assert next_run_after("daily", False, NOW) is None

    @pytest.mark.parametrize(
        "schedule_type,delta",
        [("hourly", timedelta(hours=1)), ("daily", timedelta(days=1)), ("weekly", timedelta(weeks=1))],
    )
    def test_fixed_intervals(self, schedule_type, delta):
        assert next_run_after(schedule_type, True, NOW) == NOW + delta

    def test_monthly_clamps_day(self):
        assert next_run_after("monthly", True, datetime(2026, 1, 31, 8)) == datetime(2026, 2, 28, 8)
        assert next_run_after("monthly", True, datetime(2026, 12, 15)) == datetime(2027, 1, 15)

    def test_cron_and_manual_are_left_to_the_scheduler(self):
        assert next_run_after("cron", True, NOW) is None
        assert next_run_after("manual", True, NOW) is None


class TestCreateSource:
    def test_create_with_schedule_and_filter(
        self, sources, approved_mapping, org, acme_admin, test_actor_id
    ):
        source = sources.create_source(
            "SAP nightly", "erp", org.scope(org.acme, org.north), acme_admin, test_actor_id,
            mapping_id=approved_mapping.id,
            filter_config={"conditions": [{"field": "REGION", "operator": "equals", "value": "NA"}]},
            schedule_type="daily",
            schedule_enabled=True,
            description="Nightly SAP extract",
        )
        assert source.name == "SAP nightly"
        assert source.mapping_id == approved_mapping.id
        assert source.scope == org.scope(org.acme, org.north)
        assert source.status == "active"
        assert source.dry_run_first is True
        assert source.filter_config["logic"] == "AND"
        assert source.next_run_at == NOW + timedelta(days=1)
        assert source.last_run_at is None

    def test_manual_source_has_no_next_run(self, sources, org, acme_admin, test_actor_id):
        source = sources.create_source("Upload", "file", org.scope(org.acme), acme_admin, test_actor_id)
        assert source.schedule_type == "manual"
        assert source.next_run_at is None
        assert source.filter_config is None

    def test_invalid_schedule_rejected(self, sources, org, acme_admin, test_actor_id):
        with pytest.raises(ScheduleConfigError) as exc_info:
            sources.create_source(
                "Bad", "erp", org.scope(org.acme), acme_admin, test_actor_id,
                schedule_type="cron", schedule_cron="every day",
            )
        assert exc_info.value.errors == ["schedule_cron must have 5 fields"]

    def test_invalid_filter_rejected(self, sources, org, acme_admin, test_actor_id):
        with pytest.raises(FilterConfigError):
            sources.create_source(
                "Bad", "erp", org.scope(org.acme), acme_admin, test_actor_id,
                filter_config={"logic": "XOR"},
            )

    def test_mapping_must_be_visible(
        self, sources, approved_mapping, org, globex_admin, test_actor_id
    ):
        with pytest.raises(AccessDeniedError):
            sources.create_source(
                "Globex feed", "api", org.scope(org.globex), globex_admin, test_actor_id,
                mapping_id=approved_mapping.id,
            )

    def test_scope_requires_company(self, sources, org, acme_admin, test_actor_id):
        with pytest.raises(InvalidScopeError):
            sources.create_source("Nowhere", "file", org.scope(), acme_admin, test_actor_id)

    def test_scope_outside_context_denied(self, sources, org, acme_admin, test_actor_id):
        with pytest.raises(AccessDeniedError):
            sources.create_source("Globex feed", "api", org.scope(org.globex), acme_admin, test_actor_id)


class TestUpdateAndRead:
    def test_update_schedule(self, sources, org, acme_admin, test_actor_id):
        source = sources.create_source("Feed", "api", org.scope(org.acme), acme_admin, test_actor_id)
        updated = sources.update_schedule(
            source.id, acme_admin, test_actor_id, "cron", schedule_cron="0 6 * * *",
            schedule_enabled=True,
        )
        assert updated.schedule_type == "cron"
        assert updated.schedule_cron == "0 6 * * *"
        assert updated.schedule_enabled is True
        assert updated.next_run_at is None

        weekly = sources.update_schedule(
            source.id, acme_admin, test_actor_id, "weekly", schedule_enabled=True
        )
        assert weekly.schedule_cron is None
        assert weekly.next_run_at == NOW + timedelta(weeks=1)

    def test_update_rejects_invalid_schedule(self, sources, org, acme_admin, test_actor_id):
        source = sources.create_source("Feed", "api", org.scope(org.acme), acme_admin, test_actor_id)
        with pytest.raises(ScheduleConfigError):
            sources.update_schedule(source.id, acme_admin, test_actor_id, "manual", schedule_enabled=True)

    def test_update_outside_context_denied(
        self, sources, org, acme_admin, globex_admin, test_actor_id
    ):
        source = sources.create_source("Feed", "api", org.scope(org.acme), acme_admin, test_actor_id)
        with pytest.raises(AccessDeniedError):
            sources.update_schedule(source.id, globex_admin, test_actor_id, "daily")

    def test_list_is_scoped_and_ordered(
        self, sources, org, acme_admin, globex_admin, make_context, test_actor_id
    ):
        sources.create_source("Zeta", "api", org.scope(org.acme), acme_admin, test_actor_id)
        sources.create_source("Alpha", "file", org.scope(org.acme, org.south), acme_admin, test_actor_id)
        sources.create_source("Globex", "api", org.scope(org.globex), globex_admin, test_actor_id)

        assert [s.name for s in sources.list_sources(acme_admin)] == ["Alpha", "Zeta"]
        assert [s.name for s in sources.list_sources(globex_admin)] == ["Globex"]
        south = make_context(company_id=org.acme, business_unit_id=org.south)
        assert [s.name for s in sources.list_sources(south)] == ["Alpha"]
        assert sources.list_sources(acme_admin, status="paused") == []

    def test_get_source(self, sources, org, acme_admin, globex_admin, test_actor_id):
        source = sources.create_source("Feed", "api", org.scope(org.acme), acme_admin, test_actor_id)
        assert sources.get_source(source.id, acme_admin) == source
        with pytest.raises(AccessDeniedError):
            sources.get_source(source.id, globex_admin)
        with pytest.raises(ImportSourceNotFoundError):
            sources.get_source(uuid4(), acme_admin)


class TestRecordRun:
    def test_stamps_last_run(
        self, sources, staging, approved_mapping, org, acme_admin, make_rows,
        deterministic_clock, test_actor_id,
    ):
        source = sources.create_source(
            "Feed", "api", org.scope(org.acme), acme_admin, test_actor_id,
            mapping_id=approved_mapping.id, schedule_type="hourly", schedule_enabled=True,
        )
        staged = staging.stage(
            approved_mapping.id, make_rows(1), org.scope(org.acme), ImportJobType.DRY_RUN,
            acme_admin, test_actor_id, source_id=source.id,
        )
        deterministic_clock.advance(600)

        updated = sources.record_run(source.id, staged.job)
        run_at = NOW + timedelta(seconds=600)
        assert updated.last_run_at == run_at
        assert updated.last_job_id == staged.job.id
        assert updated.next_run_at == run_at + timedelta(hours=1)

    def test_unknown_source(self, sources, staging, approved_mapping, org, acme_admin,
                            make_rows, test_actor_id):
        staged = staging.stage(
            approved_mapping.id, make_rows(1), org.scope(org.acme), ImportJobType.DRY_RUN,
            acme_admin, test_actor_id,
        )
        with pytest.raises(ImportSourceNotFoundError):
            sources.record_run(uuid4(), staged.job)
