"""
MappingLineageService -- versioned mapping configurations.

Responsibility:
    Creates, forks, approves, reverts, deprecates and lists mapping
    versions.  A lineage is the root version plus every descendant reachable
    through parent_mapping_id.

Invariants enforced:
    - At most one APPROVED version per lineage.  approve() deprecates every
      other approved member while holding the lineage lock.
    - Lineage walks keep a visited set and stop at the configured node cap.
      A revisited id is a LineageCycleError (system error), never a hang.
    - Lineage writes (fork, approve, revert) lock the lineage root row
      (SELECT ... FOR UPDATE) before reading sibling state.
    - Only drafts are deleted, and only when nothing forks from them.

Failure modes:
    - MappingVersionNotFoundError: unknown version id or parent.
    - MappingTargetVersionNotFoundError: revert target not in the lineage.
    - InvalidMappingTransitionError: lifecycle forbids the move.
    - MappingHasDescendantsError: deleting a draft with children.
    - AccessDeniedError: version outside the caller's visibility.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from licenseiq_config import get_active_settings
from licenseiq_config.bridges import build_access_policy
from licenseiq_config.schema import LicenseIQSettings
from licenseiq_kernel.domain.clock import Clock, SystemClock
from licenseiq_kernel.domain.org_context import OrgAccessContext, OrgScope
from licenseiq_kernel.domain.visibility import resolve_visibility
from licenseiq_kernel.exceptions import (
    AccessDeniedError,
    InvalidMappingTransitionError,
    LineageCycleError,
    LineageLimitExceededError,
    MappingHasDescendantsError,
    MappingTargetVersionNotFoundError,
    MappingVersionNotFoundError,
)
from licenseiq_kernel.logging_config import LogContext, get_logger
from licenseiq_kernel.selectors.scoped import ScopedSelector
from licenseiq_kernel.services.base import BaseService
from licenseiq_mapping.domain.content import coerce_content
from licenseiq_mapping.domain.types import MappingContent, MappingPatch, MappingVersion
from licenseiq_mapping.lifecycle import MappingStatus, validate_transition
from licenseiq_mapping.models.mapping import MappingVersionModel

logger = get_logger("mapping.lineage")


class MappingLineageService(BaseService[MappingVersionModel]):
    """Lifecycle and lineage operations on mapping versions."""

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
        self._max_nodes = self._settings.lineage.max_lineage_nodes

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_mapping(
        self,
        mapping_name: str,
        content: MappingContent | dict[str, Any],
        scope: OrgScope,
        created_by: UUID,
        notes: str | None = None,
        context: OrgAccessContext | None = None,
    ) -> MappingVersion:
        """New lineage root: version 1, draft."""
        parsed = coerce_content(content)
        if context is not None:
            self._require_scope_visible(context, scope)

        with LogContext.bind(actor_id=created_by, producer="mapping_lineage"):
            model = MappingVersionModel(
                mapping_name=mapping_name,
                version=1,
                parent_mapping_id=None,
                status=MappingStatus.DRAFT.value,
                company_id=scope.company_id,
                business_unit_id=scope.business_unit_id,
                location_id=scope.location_id,
                notes=notes,
                created_by_id=created_by,
            )
            model.set_content(parsed)
            self.session.add(model)
            self.session.flush()

            logger.info(
                "mapping_created",
                extra={
                    "mapping_id": str(model.id),
                    "mapping_name": mapping_name,
                    "erp_system": parsed.erp_system,
                    "entity_type": parsed.entity_type,
                    "rule_count": len(parsed.rules),
                },
            )
            return model.to_dto()

    def create_version(
        self,
        parent_id: UUID,
        patch: MappingPatch | None,
        created_by: UUID,
        context: OrgAccessContext | None = None,
    ) -> MappingVersion:
        """Fork a draft from ``parent_id`` with ``version = parent.version + 1``."""
        patch = patch or MappingPatch()
        with LogContext.bind(actor_id=created_by, producer="mapping_lineage"):
            parent = self._load(parent_id, context)
            self._lock_lineage(parent)

            content = (
                coerce_content(patch.content)
                if patch.content is not None
                else parent.parsed_content()
            )
            child = MappingVersionModel(
                mapping_name=patch.mapping_name or parent.mapping_name,
                version=parent.version + 1,
                parent_mapping_id=parent.id,
                status=MappingStatus.DRAFT.value,
                company_id=parent.company_id,
                business_unit_id=parent.business_unit_id,
                location_id=parent.location_id,
                notes=patch.notes if patch.notes is not None else parent.notes,
                approved_by_id=None,
                approved_at=None,
                created_by_id=created_by,
            )
            child.set_content(content)
            self.session.add(child)
            self.session.flush()

            logger.info(
                "mapping_version_created",
                extra={
                    "mapping_id": str(child.id),
                    "parent_mapping_id": str(parent.id),
                    "version": child.version,
                },
            )
            return child.to_dto()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def approve(
        self,
        version_id: UUID,
        approved_by: UUID,
        context: OrgAccessContext | None = None,
    ) -> MappingVersion:
        """Approve a draft and deprecate every other approved lineage member."""
        with LogContext.bind(actor_id=approved_by, producer="mapping_lineage"):
            node = self._load(version_id, context)
            root = self._lock_lineage(node)
            # Status may have moved while waiting for the lock.
            self.session.refresh(node)
            self._check_transition(node, MappingStatus.APPROVED)

            now = self._clock.now()
            node.status = MappingStatus.APPROVED.value
            node.approved_by_id = approved_by
            node.approved_at = now
            node.updated_by_id = approved_by

            deprecated: list[str] = []
            for member in self._collect_lineage(root):
                if member.id != node.id and member.status == MappingStatus.APPROVED.value:
                    member.status = MappingStatus.DEPRECATED.value
                    member.updated_by_id = approved_by
                    deprecated.append(str(member.id))
            self.session.flush()

            logger.info(
                "mapping_approved",
                extra={
                    "mapping_id": str(node.id),
                    "version": node.version,
                    "lineage_root_id": str(root.id),
                    "deprecated_ids": deprecated,
                },
            )
            return node.to_dto()

    def deprecate(
        self,
        version_id: UUID,
        actor_id: UUID | None = None,
        context: OrgAccessContext | None = None,
    ) -> MappingVersion:
        """Terminal transition; siblings are untouched."""
        node = self._load(version_id, context)
        self._check_transition(node, MappingStatus.DEPRECATED)
        previous = node.status
        node.status = MappingStatus.DEPRECATED.value
        if actor_id is not None:
            node.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "mapping_deprecated",
            extra={"mapping_id": str(node.id), "previous_status": previous},
        )
        return node.to_dto()

    def revert(
        self,
        version_id: UUID,
        target_version: int,
        created_by: UUID,
        context: OrgAccessContext | None = None,
    ) -> MappingVersion:
        """
        Fork a new draft carrying the content of ``target_version``.

        The new row hangs off ``version_id`` and gets the next version number
        of the whole lineage.  Neither the source nor the target changes.
        """
        with LogContext.bind(actor_id=created_by, producer="mapping_lineage"):
            head = self._load(version_id, context)
            root = self._lock_lineage(head)
            members = self._collect_lineage(root)

            candidates = [m for m in members if m.version == target_version]
            if not candidates:
                raise MappingTargetVersionNotFoundError(version_id, target_version)
            ancestors = self._ancestor_ids(head)
            # Forks can repeat a version number; prefer the one on head's own path.
            target = max(
                candidates,
                key=lambda m: (m.id in ancestors, m.created_at, str(m.id)),
            )

            next_version = max(m.version for m in members) + 1
            reverted = MappingVersionModel(
                mapping_name=head.mapping_name,
                version=next_version,
                parent_mapping_id=head.id,
                status=MappingStatus.DRAFT.value,
                company_id=head.company_id,
                business_unit_id=head.business_unit_id,
                location_id=head.location_id,
                notes=f"Reverted from version {target_version}",
                created_by_id=created_by,
            )
            reverted.set_content(target.parsed_content())
            self.session.add(reverted)
            self.session.flush()

            logger.info(
                "mapping_reverted",
                extra={
                    "mapping_id": str(reverted.id),
                    "head_id": str(head.id),
                    "source_version_id": str(target.id),
                    "target_version": target_version,
                    "version": next_version,
                },
            )
            return reverted.to_dto()

    def delete_draft(
        self,
        version_id: UUID,
        actor_id: UUID | None = None,
        context: OrgAccessContext | None = None,
    ) -> None:
        node = self._load(version_id, context)
        if node.status != MappingStatus.DRAFT.value:
            raise InvalidMappingTransitionError(version_id, node.status, "deleted")

        child_count = self.session.scalar(
            select(func.count())
            .select_from(MappingVersionModel)
            .where(MappingVersionModel.parent_mapping_id == node.id)
        )
        if child_count:
            raise MappingHasDescendantsError(version_id, child_count)

        self.session.delete(node)
        self.session.flush()
        logger.info(
            "mapping_draft_deleted",
            extra={
                "mapping_id": str(version_id),
                "actor_id": str(actor_id) if actor_id else None,
            },
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def history(self, version_id: UUID) -> list[MappingVersion]:
        """Whole lineage of ``version_id``, newest version first."""
        node = self._load(version_id)
        members = self._collect_lineage(self._find_root(node))
        members.sort(key=lambda m: (m.version, m.created_at, str(m.id)), reverse=True)
        return [m.to_dto() for m in members]

    def get_approved(self, version_id: UUID) -> MappingVersion | None:
        """The approved member of ``version_id``'s lineage, if any."""
        node = self._load(version_id)
        for member in self._collect_lineage(self._find_root(node)):
            if member.status == MappingStatus.APPROVED.value:
                return member.to_dto()
        return None

    def get(self, version_id: UUID, context: OrgAccessContext) -> MappingVersion:
        """One version, if ``context`` may see it."""
        return self.get_model(version_id, context).to_dto()

    def get_model(self, version_id: UUID, context: OrgAccessContext) -> MappingVersionModel:
        selector = ScopedSelector(self.session, MappingVersionModel, self._policy)
        return selector.require(context, version_id, MappingVersionNotFoundError)

    def list_mappings(
        self,
        context: OrgAccessContext,
        status: MappingStatus | None = None,
        entity_type: str | None = None,
        erp_system: str | None = None,
    ) -> list[MappingVersion]:
        criteria = []
        if status is not None:
            criteria.append(MappingVersionModel.status == MappingStatus(status).value)
        if entity_type is not None:
            criteria.append(MappingVersionModel.entity_type == entity_type)
        if erp_system is not None:
            criteria.append(MappingVersionModel.erp_system == erp_system)

        selector = ScopedSelector(self.session, MappingVersionModel, self._policy)
        rows = selector.list(
            context,
            *criteria,
            order_by=(MappingVersionModel.mapping_name, MappingVersionModel.version.desc()),
        )
        return [row.to_dto() for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(
        self, version_id: UUID, context: OrgAccessContext | None = None
    ) -> MappingVersionModel:
        if context is not None:
            return self.get_model(version_id, context)
        model = self.session.get(MappingVersionModel, version_id)
        if model is None:
            raise MappingVersionNotFoundError(version_id)
        return model

    def _check_transition(self, node: MappingVersionModel, target: MappingStatus) -> None:
        if not validate_transition(MappingStatus(node.status), target):
            raise InvalidMappingTransitionError(node.id, node.status, target.value)

    def _require_scope_visible(self, context: OrgAccessContext, scope: OrgScope) -> None:
        visibility = resolve_visibility(context, self._policy)
        if not visibility.admits(scope.company_id, scope.business_unit_id, scope.location_id):
            raise AccessDeniedError("scope_not_visible")

    def _find_root(self, node: MappingVersionModel) -> MappingVersionModel:
        visited = {node.id}
        current = node
        while current.parent_mapping_id is not None:
            parent_id = current.parent_mapping_id
            if parent_id in visited:
                logger.error(
                    "lineage_cycle_detected",
                    extra={"mapping_id": str(node.id), "repeated_id": str(parent_id)},
                )
                raise LineageCycleError(node.id, parent_id)
            if len(visited) >= self._max_nodes:
                raise LineageLimitExceededError(node.id, self._max_nodes)
            parent = self.session.get(MappingVersionModel, parent_id)
            if parent is None:
                logger.warning(
                    "lineage_parent_missing",
                    extra={"mapping_id": str(current.id), "parent_mapping_id": str(parent_id)},
                )
                break
            visited.add(parent_id)
            current = parent
        return current

    def _ancestor_ids(self, node: MappingVersionModel) -> set[UUID]:
        ids = {node.id}
        current = node
        while current.parent_mapping_id is not None and current.parent_mapping_id not in ids:
            parent = self.session.get(MappingVersionModel, current.parent_mapping_id)
            if parent is None:
                break
            ids.add(parent.id)
            current = parent
        return ids

    def _collect_lineage(self, root: MappingVersionModel) -> list[MappingVersionModel]:
        """Root plus all descendants, breadth-first, one query per level."""
        members: dict[UUID, MappingVersionModel] = {root.id: root}
        frontier = [root.id]
        while frontier:
            children = self.session.scalars(
                select(MappingVersionModel).where(
                    MappingVersionModel.parent_mapping_id.in_(frontier)
                )
            ).all()
            frontier = []
            for child in children:
                if child.id in members:
                    logger.error(
                        "lineage_cycle_detected",
                        extra={"mapping_id": str(root.id), "repeated_id": str(child.id)},
                    )
                    raise LineageCycleError(root.id, child.id)
                members[child.id] = child
                frontier.append(child.id)
                if len(members) > self._max_nodes:
                    raise LineageLimitExceededError(root.id, self._max_nodes)
        return list(members.values())

    def _lock_lineage(self, node: MappingVersionModel) -> MappingVersionModel:
        """Row-lock the lineage root; serializes writers on one lineage."""
        root = self._find_root(node)
        locked = self.session.scalars(
            select(MappingVersionModel)
            .where(MappingVersionModel.id == root.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one()
        return locked
