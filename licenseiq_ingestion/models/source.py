"""
Import source ORM model.

Contract:
    A named, reusable origin of rows (ERP extract, API pull) bound to one
    mapping lineage member and one org scope.  Schedule columns are metadata
    for an external scheduler; nothing in this package runs them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from licenseiq_kernel.db.base import OrgScopedMixin, TrackedBase, UUIDString
from licenseiq_kernel.domain.org_context import OrgScope
from licenseiq_ingestion.domain.types import ImportSource


class ImportSourceStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class ScheduleType(str, Enum):
    MANUAL = "manual"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CRON = "cron"


class ImportSourceModel(OrgScopedMixin, TrackedBase):
    """Saved import origin with filter and schedule metadata."""

    __tablename__ = "import_sources"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)
    mapping_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("mapping_versions.id"), nullable=True
    )
    filter_config: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    schedule_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    schedule_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ScheduleType.MANUAL.value
    )
    schedule_cron: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dry_run_first: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ImportSourceStatus.ACTIVE.value
    )
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_job_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def scope(self) -> OrgScope:
        return OrgScope(
            company_id=self.company_id,
            business_unit_id=self.business_unit_id,
            location_id=self.location_id,
        )

    def to_dto(self) -> ImportSource:
        return ImportSource(
            id=self.id,
            name=self.name,
            source_type=self.source_type,
            scope=self.scope,
            created_by_id=self.created_by_id,
            mapping_id=self.mapping_id,
            description=self.description,
            filter_config=self.filter_config,
            schedule_enabled=self.schedule_enabled,
            schedule_type=self.schedule_type,
            schedule_cron=self.schedule_cron,
            dry_run_first=self.dry_run_first,
            status=self.status,
            last_run_at=self.last_run_at,
            last_job_id=self.last_job_id,
            next_run_at=self.next_run_at,
        )
