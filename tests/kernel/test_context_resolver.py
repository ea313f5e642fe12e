"""Tests for ActiveContextResolver and OrgHierarchyService."""

from uuid import uuid4

import pytest

from licenseiq_kernel.domain.org_context import HierarchyLevel, OrgRole
from licenseiq_kernel.exceptions import (
    AccessDeniedError,
    DuplicateAssignmentError,
    InputValidationError,
    OrgEntityNotFoundError,
    OrgHierarchyMismatchError,
    UserNotFoundError,
)
from licenseiq_kernel.services.context_resolver import ActiveContextResolver
from licenseiq_kernel.services.org_hierarchy import OrgHierarchyService


@pytest.fixture
def hierarchy(session):
    return OrgHierarchyService(session)


@pytest.fixture
def resolver(session, deterministic_clock):
    return ActiveContextResolver(session, deterministic_clock)


class TestAssignRole:
    def test_assigns_location_role(self, hierarchy, org, test_actor_id):
        role = hierarchy.assign_role(
            org.alice, org.acme, OrgRole.ADMIN, test_actor_id,
            business_unit_id=org.north, location_id=org.plant_1,
        )
        assert role.role == "admin"
        assert role.to_assignment().level == HierarchyLevel.LOCATION

    def test_location_without_business_unit(self, hierarchy, org, test_actor_id):
        role = hierarchy.assign_role(org.alice, org.acme, "user", test_actor_id, location_id=org.hq)
        assert role.location_id == org.hq

    def test_rejects_business_unit_of_other_company(self, hierarchy, org, test_actor_id):
        with pytest.raises(OrgHierarchyMismatchError):
            hierarchy.assign_role(
                org.alice, org.acme, "user", test_actor_id, business_unit_id=org.west
            )

    def test_rejects_location_outside_business_unit(self, hierarchy, org, test_actor_id):
        with pytest.raises(OrgHierarchyMismatchError):
            hierarchy.assign_role(
                org.alice, org.acme, "user", test_actor_id,
                business_unit_id=org.north, location_id=org.plant_2,
            )

    def test_rejects_unknown_company(self, hierarchy, org, test_actor_id):
        with pytest.raises(OrgEntityNotFoundError):
            hierarchy.assign_role(org.alice, uuid4(), "user", test_actor_id)

    def test_rejects_unknown_role(self, hierarchy, org, test_actor_id):
        with pytest.raises(InputValidationError):
            hierarchy.assign_role(org.alice, org.acme, "superuser", test_actor_id)

    def test_rejects_unknown_user(self, hierarchy, org, test_actor_id):
        with pytest.raises(UserNotFoundError):
            hierarchy.assign_role(uuid4(), org.acme, "user", test_actor_id)

    def test_rejects_duplicate(self, hierarchy, org, test_actor_id):
        hierarchy.assign_role(org.alice, org.acme, "user", test_actor_id)
        with pytest.raises(DuplicateAssignmentError):
            hierarchy.assign_role(org.alice, org.acme, "admin", test_actor_id)


class TestResolve:
    def test_no_pointer_means_no_active_context(self, resolver, org):
        ctx = resolver.resolve(org.alice)
        assert ctx.assignment is None
        assert ctx.user_id == org.alice

    def test_system_admin_flag_carried(self, resolver, org):
        ctx = resolver.resolve(org.admin)
        assert ctx.is_system_admin
        assert ctx.global_role == "admin"

    def test_unknown_user(self, resolver):
        with pytest.raises(UserNotFoundError):
            resolver.resolve(uuid4())

    def test_switch_then_resolve(self, resolver, hierarchy, org, test_actor_id):
        role = hierarchy.assign_role(
            org.alice, org.acme, "admin", test_actor_id, business_unit_id=org.north
        )
        ctx = resolver.switch_context(org.alice, role.id)
        assert ctx.company_id == org.acme
        assert ctx.business_unit_id == org.north
        assert ctx.context_role == "admin"
        assert resolver.resolve(org.alice) == ctx

    def test_switch_moves_existing_pointer(self, resolver, hierarchy, org, test_actor_id):
        first = hierarchy.assign_role(org.alice, org.acme, "user", test_actor_id)
        second = hierarchy.assign_role(org.alice, org.globex, "user", test_actor_id)
        resolver.switch_context(org.alice, first.id)
        ctx = resolver.switch_context(org.alice, second.id)
        assert ctx.company_id == org.globex

    def test_cannot_switch_to_someone_elses_assignment(
        self, resolver, hierarchy, org, test_actor_id
    ):
        bobs = hierarchy.assign_role(org.bob, org.globex, "admin", test_actor_id)
        with pytest.raises(AccessDeniedError):
            resolver.switch_context(org.alice, bobs.id)

    def test_deactivated_assignment_stops_resolving(
        self, resolver, hierarchy, org, test_actor_id, captured_logs
    ):
        role = hierarchy.assign_role(org.alice, org.acme, "user", test_actor_id)
        resolver.switch_context(org.alice, role.id)
        hierarchy.deactivate_role(role.id, test_actor_id)

        assert resolver.resolve(org.alice).assignment is None
        assert any(r["message"] == "stale_active_context" for r in captured_logs())

        with pytest.raises(AccessDeniedError):
            resolver.switch_context(org.alice, role.id)

    def test_list_assignments_skips_inactive(self, resolver, hierarchy, org, test_actor_id):
        keep = hierarchy.assign_role(org.alice, org.acme, "user", test_actor_id)
        drop = hierarchy.assign_role(org.alice, org.globex, "user", test_actor_id)
        hierarchy.deactivate_role(drop.id, test_actor_id)
        assert [a.org_role_id for a in resolver.list_assignments(org.alice)] == [keep.id]

    def test_clear_context(self, resolver, hierarchy, org, test_actor_id):
        role = hierarchy.assign_role(org.alice, org.acme, "user", test_actor_id)
        resolver.switch_context(org.alice, role.id)
        assert resolver.clear_context(org.alice)
        assert not resolver.clear_context(org.alice)
        assert resolver.resolve(org.alice).assignment is None
