"""
Mapping version ORM model.

Contract:
    One row per mapping version.  Versions link to their parent through
    parent_mapping_id; a lineage is a root plus all its descendants.
    ``content`` always holds the validated stored form produced by
    licenseiq_mapping.domain.content.content_to_dict.

Architecture: licenseiq_mapping/models. Imports from licenseiq_kernel.db.base
and the mapping domain only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from licenseiq_kernel.db.base import OrgScopedMixin, TrackedBase, UUIDString
from licenseiq_kernel.domain.org_context import OrgScope
from licenseiq_mapping.domain.content import content_to_dict, parse_mapping_content
from licenseiq_mapping.domain.types import MappingContent, MappingVersion
from licenseiq_mapping.lifecycle import MappingStatus


class MappingVersionModel(OrgScopedMixin, TrackedBase):
    """Versioned ERP -> LicenseIQ field mapping."""

    __tablename__ = "mapping_versions"

    __table_args__ = (
        Index("idx_mapping_version_parent", "parent_mapping_id"),
        Index("idx_mapping_version_status", "status"),
        Index("idx_mapping_version_entity", "erp_system", "entity_type"),
    )

    mapping_name: Mapped[str] = mapped_column(String(255), nullable=False)
    erp_system: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    target_entity: Mapped[str] = mapped_column(String(100), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    parent_mapping_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("mapping_versions.id"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MappingStatus.DRAFT.value
    )
    content: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def set_content(self, content: MappingContent) -> None:
        """Store content and keep the denormalized lookup columns in step."""
        self.content = content_to_dict(content)
        self.erp_system = content.erp_system
        self.entity_type = content.entity_type
        self.target_entity = content.target_entity

    def parsed_content(self) -> MappingContent:
        return parse_mapping_content(self.content)

    @property
    def scope(self) -> OrgScope:
        return OrgScope(
            company_id=self.company_id,
            business_unit_id=self.business_unit_id,
            location_id=self.location_id,
        )

    def to_dto(self) -> MappingVersion:
        return MappingVersion(
            id=self.id,
            mapping_name=self.mapping_name,
            version=self.version,
            status=MappingStatus(self.status),
            content=self.parsed_content(),
            scope=self.scope,
            created_by_id=self.created_by_id,
            parent_mapping_id=self.parent_mapping_id,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            notes=self.notes,
            created_at=self.created_at,
        )
