"""
ImportSourceService -- saved import origins and their schedule metadata.

Schedules are stored for an external scheduler; next_run_at is advisory and
only computed for the fixed-interval schedule types.  Cron schedules keep
next_run_at empty.
"""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from licenseiq_config import get_active_settings
from licenseiq_config.bridges import build_access_policy
from licenseiq_config.schema import LicenseIQSettings
from licenseiq_kernel.domain.clock import Clock, SystemClock
from licenseiq_kernel.domain.org_context import OrgAccessContext, OrgScope
from licenseiq_kernel.domain.visibility import resolve_visibility
from licenseiq_kernel.exceptions import (
    AccessDeniedError,
    ImportSourceNotFoundError,
    InvalidScopeError,
    ScheduleConfigError,
)
from licenseiq_kernel.logging_config import LogContext, get_logger
from licenseiq_kernel.selectors.scoped import ScopedSelector
from licenseiq_kernel.services.base import BaseService
from licenseiq_ingestion.domain.filters import filter_config_to_dict, parse_filter_config
from licenseiq_ingestion.domain.types import ImportJob, ImportSource
from licenseiq_ingestion.models.source import (
    ImportSourceModel,
    ImportSourceStatus,
    ScheduleType,
)
from licenseiq_mapping.services.lineage_service import MappingLineageService

logger = get_logger("ingestion.source_service")

_CRON_FIELD = re.compile(r"^[\d*/,\-]+$")

# (name, min, max) for minute hour day_of_month month day_of_week
_CRON_RANGES = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day_of_month", 1, 31),
    ("month", 1, 12),
    ("day_of_week", 0, 6),
)

_FIXED_INTERVALS = {
    ScheduleType.HOURLY: timedelta(hours=1),
    ScheduleType.DAILY: timedelta(days=1),
    ScheduleType.WEEKLY: timedelta(weeks=1),
}


def _cron_int(text: str) -> int:
    if not text.isdigit():
        raise ValueError(f"'{text}' is not a number")
    return int(text)


def _check_cron_field(field_str: str, min_val: int, max_val: int) -> None:
    """
    Raise ValueError unless every part of one cron field is in range.

    Parts are ``*``, ``N``, ``N-M``, ``*/S``, ``N/S`` or ``N-M/S``.
    """
    for part in field_str.split(","):
        base, _, step = part.partition("/")
        if step and _cron_int(step) <= 0:
            raise ValueError(f"step must be positive: {step}")
        if base == "*":
            continue
        start_str, dash, end_str = base.partition("-")
        start = _cron_int(start_str)
        end = _cron_int(end_str) if dash else start
        for v in (start, end):
            if not min_val <= v <= max_val:
                raise ValueError(f"value {v} outside range [{min_val}, {max_val}]")
        if start > end:
            raise ValueError(f"range start > end: {base}")


def validate_schedule(
    schedule_type: str,
    schedule_cron: str | None,
    schedule_enabled: bool,
) -> list[str]:
    """Every problem with a schedule definition; empty when valid."""
    errors: list[str] = []
    try:
        kind = ScheduleType(schedule_type)
    except ValueError:
        choices = ", ".join(t.value for t in ScheduleType)
        return [f"schedule_type must be one of: {choices}"]

    if kind == ScheduleType.CRON:
        if not schedule_cron or not schedule_cron.strip():
            errors.append("schedule_cron is required for cron schedules")
        else:
            fields = schedule_cron.split()
            if len(fields) != 5:
                errors.append("schedule_cron must have 5 fields")
            elif not all(_CRON_FIELD.match(f) for f in fields):
                errors.append("schedule_cron fields may only contain digits and * / , -")
            else:
                for value, (name, low, high) in zip(fields, _CRON_RANGES):
                    try:
                        _check_cron_field(value, low, high)
                    except ValueError as exc:
                        errors.append(f"schedule_cron {name}: {exc}")
    elif schedule_cron:
        errors.append("schedule_cron is only allowed for cron schedules")

    if kind == ScheduleType.MANUAL and schedule_enabled:
        errors.append("manual schedules cannot be enabled")
    return errors


def _add_month(moment: datetime) -> datetime:
    year = moment.year + moment.month // 12
    month = moment.month % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_run_after(schedule_type: str, enabled: bool, moment: datetime) -> datetime | None:
    if not enabled:
        return None
    kind = ScheduleType(schedule_type)
    if kind in _FIXED_INTERVALS:
        return moment + _FIXED_INTERVALS[kind]
    if kind == ScheduleType.MONTHLY:
        return _add_month(moment)
    return None


class ImportSourceService(BaseService[ImportSourceModel]):
    """Creates and maintains import sources."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LicenseIQSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_settings()
        self._policy = build_access_policy(self._settings)
        self._selector = ScopedSelector(session, ImportSourceModel, self._policy)

    def create_source(
        self,
        name: str,
        source_type: str,
        scope: OrgScope,
        context: OrgAccessContext,
        actor_id: UUID,
        mapping_id: UUID | None = None,
        filter_config: dict[str, Any] | None = None,
        schedule_type: str = ScheduleType.MANUAL.value,
        schedule_cron: str | None = None,
        schedule_enabled: bool = False,
        dry_run_first: bool = True,
        description: str | None = None,
    ) -> ImportSource:
        with LogContext.bind(actor_id=actor_id, producer="import_sources"):
            config = parse_filter_config(filter_config)
            errors = validate_schedule(schedule_type, schedule_cron, schedule_enabled)
            if errors:
                raise ScheduleConfigError(errors)
            if mapping_id is not None:
                MappingLineageService(self.session, self._clock, self._settings).get_model(
                    mapping_id, context
                )
            self._check_scope(scope, context)

            source = ImportSourceModel(
                name=name,
                description=description,
                source_type=source_type,
                mapping_id=mapping_id,
                filter_config=filter_config_to_dict(config),
                schedule_enabled=schedule_enabled,
                schedule_type=schedule_type,
                schedule_cron=schedule_cron,
                dry_run_first=dry_run_first,
                status=ImportSourceStatus.ACTIVE.value,
                next_run_at=next_run_after(schedule_type, schedule_enabled, self._clock.now()),
                company_id=scope.company_id,
                business_unit_id=scope.business_unit_id,
                location_id=scope.location_id,
                created_by_id=actor_id,
            )
            self.session.add(source)
            self.session.flush()

            logger.info(
                "import_source_created",
                extra={
                    "source_id": str(source.id),
                    "source_type": source_type,
                    "schedule_type": schedule_type,
                },
            )
            return source.to_dto()

    def update_schedule(
        self,
        source_id: UUID,
        context: OrgAccessContext,
        actor_id: UUID,
        schedule_type: str,
        schedule_cron: str | None = None,
        schedule_enabled: bool = False,
    ) -> ImportSource:
        source = self._selector.require(context, source_id, ImportSourceNotFoundError)
        errors = validate_schedule(schedule_type, schedule_cron, schedule_enabled)
        if errors:
            raise ScheduleConfigError(errors)

        source.schedule_type = schedule_type
        source.schedule_cron = schedule_cron
        source.schedule_enabled = schedule_enabled
        source.next_run_at = next_run_after(
            schedule_type, schedule_enabled, source.last_run_at or self._clock.now()
        )
        source.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "import_source_schedule_updated",
            extra={
                "source_id": str(source_id),
                "schedule_type": schedule_type,
                "schedule_enabled": schedule_enabled,
            },
        )
        return source.to_dto()

    def get_source(self, source_id: UUID, context: OrgAccessContext) -> ImportSource:
        return self._selector.require(context, source_id, ImportSourceNotFoundError).to_dto()

    def list_sources(
        self,
        context: OrgAccessContext,
        status: ImportSourceStatus | str | None = None,
    ) -> list[ImportSource]:
        criteria = []
        if status is not None:
            criteria.append(ImportSourceModel.status == ImportSourceStatus(status).value)
        rows = self._selector.list(
            context, *criteria, order_by=(ImportSourceModel.name, ImportSourceModel.id)
        )
        return [row.to_dto() for row in rows]

    def record_run(self, source_id: UUID, job: ImportJob) -> ImportSource:
        """Stamp the run; called by the pipeline after a job was staged."""
        source = self.session.get(ImportSourceModel, source_id)
        if source is None:
            raise ImportSourceNotFoundError(source_id)
        now = self._clock.now()
        source.last_run_at = now
        source.last_job_id = job.id
        source.next_run_at = next_run_after(source.schedule_type, source.schedule_enabled, now)
        self.session.flush()
        logger.info(
            "import_source_run_recorded",
            extra={"source_id": str(source_id), "last_job_id": str(job.id)},
        )
        return source.to_dto()

    def _check_scope(self, scope: OrgScope, context: OrgAccessContext) -> None:
        if scope.company_id is None:
            raise InvalidScopeError("Import source scope requires a company")
        visibility = resolve_visibility(context, self._policy)
        if not visibility.admits(scope.company_id, scope.business_unit_id, scope.location_id):
            raise AccessDeniedError("scope_not_visible")
