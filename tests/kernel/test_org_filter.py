"""Org-scoped queries: SQL predicate, ownership fallback, and the in-memory twin."""

from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import select

from licenseiq_kernel.domain.org_context import OrgAccessContext
from licenseiq_kernel.domain.visibility import (
    AccessPolicy,
    UnscopedAssignmentPolicy,
    resolve_visibility,
)
from licenseiq_kernel.exceptions import AccessDeniedError, ResourceNotFoundError
from licenseiq_kernel.models.contract import Contract
from licenseiq_kernel.selectors.org_filter import (
    ScopeColumns,
    build_org_filter,
    combine_filters,
)
from licenseiq_kernel.selectors.scoped import ScopedSelector


def _contract(session, company_id=None, bu_id=None, loc_id=None, created_by=None, name=None):
    row = Contract(
        contract_number=f"LIC-{uuid4().hex[:12]}",
        display_name=name or "Distribution agreement",
        company_id=company_id,
        business_unit_id=bu_id,
        location_id=loc_id,
        created_by_id=created_by or uuid4(),
    )
    session.add(row)
    session.flush()
    return row


def _contract_not_found(contract_id):
    return ResourceNotFoundError("Contract", contract_id)


@pytest.fixture
def three_contracts(session, org):
    return {
        "c1": _contract(session, org.acme),
        "c2": _contract(session, org.globex),
        "legacy": _contract(session, None),
    }


class TestCompanyScenarios:
    def test_company_user_sees_only_own_company(self, session, three_contracts, org, make_context):
        ctx = make_context(company_id=org.acme, role="user")
        ids = {c.id for c in ScopedSelector(session, Contract).list(ctx)}
        assert ids == {three_contracts["c1"].id}

    def test_company_admin_also_sees_legacy(self, session, three_contracts, org, make_context):
        ctx = make_context(company_id=org.acme, role="admin")
        ids = {c.id for c in ScopedSelector(session, Contract).list(ctx)}
        assert ids == {three_contracts["c1"].id, three_contracts["legacy"].id}

    def test_system_admin_sees_everything(self, session, three_contracts, make_context):
        ctx = make_context(is_system_admin=True)
        ids = {c.id for c in ScopedSelector(session, Contract).list(ctx)}
        assert {c.id for c in three_contracts.values()} <= ids


class TestNarrowScopes:
    def test_business_unit_scope(self, session, org, make_context):
        inside = _contract(session, org.acme, org.north, org.plant_1)
        bu_only = _contract(session, org.acme, org.north)
        sibling = _contract(session, org.acme, org.south)
        company_only = _contract(session, org.acme)

        ctx = make_context(company_id=org.acme, business_unit_id=org.north, role="admin")
        ids = {c.id for c in ScopedSelector(session, Contract).list(ctx)}
        assert ids == {inside.id, bu_only.id}
        assert sibling.id not in ids and company_only.id not in ids

    def test_location_scope(self, session, org, make_context):
        here = _contract(session, org.acme, org.north, org.plant_1)
        _contract(session, org.acme, org.north, None)
        _contract(session, org.acme, org.south, org.plant_2)

        ctx = make_context(
            company_id=org.acme, business_unit_id=org.north, location_id=org.plant_1
        )
        rows = ScopedSelector(session, Contract).list(ctx)
        assert [r.id for r in rows] == [here.id]

    def test_extra_criteria_narrow_never_widen(self, session, org, make_context):
        mine = _contract(session, org.acme, name="Music catalogue")
        _contract(session, org.globex, name="Music catalogue")

        ctx = make_context(company_id=org.acme)
        rows = ScopedSelector(session, Contract).list(
            ctx, Contract.display_name == "Music catalogue"
        )
        assert [r.id for r in rows] == [mine.id]


class TestOwnershipFallback:
    def test_no_active_context_sees_own_rows_only(self, session, org, make_context):
        user = uuid4()
        own_legacy = _contract(session, None, created_by=user)
        own_scoped = _contract(session, org.globex, created_by=user)
        _contract(session, org.acme)

        ctx = make_context(user_id=user)
        ids = {c.id for c in ScopedSelector(session, Contract).list(ctx)}
        assert ids == {own_legacy.id, own_scoped.id}

    def test_anonymous_without_context_sees_nothing(self, session, org):
        _contract(session, None)
        ctx = OrgAccessContext(user_id=None)
        assert ScopedSelector(session, Contract).count(ctx) == 0


class TestUnscopedAssignment:
    def test_denied_by_default(self, session, org, make_context):
        _contract(session, org.acme)
        _contract(session, None)
        ctx = make_context(active=True)
        assert ScopedSelector(session, Contract).list(ctx) == []

    def test_allowed_by_policy(self, session, org, make_context):
        row = _contract(session, org.acme)
        policy = AccessPolicy(unscoped_assignment=UnscopedAssignmentPolicy.ALLOW)
        ctx = make_context(active=True)
        ids = {c.id for c in ScopedSelector(session, Contract, policy).list(ctx)}
        assert row.id in ids


class TestRequire:
    def test_visible_row_returned(self, session, org, make_context):
        row = _contract(session, org.acme)
        ctx = make_context(company_id=org.acme)
        assert ScopedSelector(session, Contract).require(ctx, row.id, _contract_not_found) is row

    def test_out_of_scope_row_is_access_denied(self, session, org, make_context):
        row = _contract(session, org.globex)
        ctx = make_context(company_id=org.acme)
        with pytest.raises(AccessDeniedError):
            ScopedSelector(session, Contract).require(ctx, row.id, _contract_not_found)

    def test_missing_row_uses_not_found_factory(self, session, org, make_context):
        ctx = make_context(company_id=org.acme)
        with pytest.raises(ResourceNotFoundError):
            ScopedSelector(session, Contract).require(ctx, uuid4(), _contract_not_found)


class TestCombineFilters:
    def test_all_none_is_none(self):
        assert combine_filters(None, None) is None

    def test_unrestricted_context_has_no_predicate(self, make_context):
        ctx = make_context(is_system_admin=True)
        assert build_org_filter(ScopeColumns.of(Contract), ctx) is None


# -----------------------------------------------------------------------------
# SQL predicate agrees with VisibilityScope.admits
# -----------------------------------------------------------------------------


class TestPredicateMatchesAdmits:
    @settings(
        max_examples=30,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(
        ctx_pick=st.sampled_from(
            ["acme_user", "acme_admin", "north", "plant_1", "globex_user", "unscoped"]
        ),
        row_picks=st.lists(
            st.sampled_from(["acme", "north", "plant_1", "south", "globex", "legacy"]),
            min_size=1,
            max_size=6,
        ),
    )
    def test_sql_and_memory_agree(self, session, org, make_context, ctx_pick, row_picks):
        contexts = {
            "acme_user": make_context(company_id=org.acme),
            "acme_admin": make_context(company_id=org.acme, role="admin"),
            "north": make_context(company_id=org.acme, business_unit_id=org.north),
            "plant_1": make_context(
                company_id=org.acme, business_unit_id=org.north, location_id=org.plant_1
            ),
            "globex_user": make_context(company_id=org.globex),
            "unscoped": make_context(active=True),
        }
        placements = {
            "acme": (org.acme, None, None),
            "north": (org.acme, org.north, None),
            "plant_1": (org.acme, org.north, org.plant_1),
            "south": (org.acme, org.south, None),
            "globex": (org.globex, None, None),
            "legacy": (None, None, None),
        }
        ctx = contexts[ctx_pick]
        rows = [_contract(session, *placements[p]) for p in row_picks]
        batch = [r.id for r in rows]

        predicate = build_org_filter(ScopeColumns.of(Contract), ctx)
        stmt = select(Contract.id).where(Contract.id.in_(batch))
        if predicate is not None:
            stmt = stmt.where(predicate)
        via_sql = set(session.scalars(stmt))

        scope = resolve_visibility(ctx)
        in_memory = {
            r.id for r in rows if scope.admits(r.company_id, r.business_unit_id, r.location_id)
        }
        assert via_sql == in_memory
