"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Operator role limited to viewing and recording consumption (403 elsewhere)
- Manager role can run the monthly billing but not manage users
- Admin role can perform privileged operations
"""

import pytest

from backoffice.permissions import ROLE_PERMISSIONS, get_all_permission_codes, has_permission
from backoffice.services.session_service import create_session, revoke_session


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/companies"),
            ("POST", "/api/companies"),
            ("GET", "/api/consumption"),
            ("POST", "/api/consumption"),
            ("GET", "/api/closures"),
            ("POST", "/api/closures/generate"),
            ("POST", "/api/closures/1/send-report"),
            ("GET", "/api/sends"),
            ("POST", "/api/sends/1/resend"),
            ("GET", "/api/settings/prices"),
            ("PUT", "/api/settings/prices"),
            ("GET", "/api/reports/monthly"),
            ("GET", "/api/reports/dashboard"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/companies", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_revoked_token(self, client, users):
        _, token = create_session(users["admin"].id)
        revoke_session(token)
        resp = client.get("/api/companies", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        assert client.get("/health").status_code == 200


# =============================================================================
# OPERATOR DENIED BILLING OPERATIONS (403)
# =============================================================================


class TestOperatorDenied:
    """Operator role can record consumption but not run billing."""

    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("POST", "/api/companies", {"name": "Evil Co", "contact_name": "X"}),
            ("POST", "/api/companies/1/toggle", None),
            ("DELETE", "/api/consumption/1", None),
            ("GET", "/api/closures", None),
            ("POST", "/api/closures/generate", {"month": 3, "year": 2025}),
            ("PATCH", "/api/closures/1", {"total_value_cents": 1}),
            ("POST", "/api/closures/1/confirm-payment", {}),
            ("DELETE", "/api/closures/1", None),
            ("GET", "/api/sends", None),
            ("POST", "/api/sends/1/mark-sent", None),
            ("GET", "/api/settings/prices", None),
            ("PUT", "/api/settings/prices", {"P": 1}),
            ("PUT", "/api/settings/business", {"profile": {"name": "Evil"}}),
        ],
    )
    def test_forbidden(self, client, operator_headers, method, path, body):
        resp = getattr(client, method.lower())(path, json=body, headers=operator_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["error"] == "Permission denied"

    def test_forbidden_body_names_permission(self, client, operator_headers):
        resp = client.post("/api/closures/generate", json={}, headers=operator_headers)
        assert resp.get_json()["required_permission"] == "GENERATE_CLOSURES"

    def test_can_view_companies_and_record(self, client, operator_headers, make_company):
        company = make_company()
        assert client.get("/api/companies", headers=operator_headers).status_code == 200
        resp = client.post(
            "/api/consumption",
            json={"company_id": company.id, "size": "P", "quantity": 1, "consumed_on": "2025-03-10"},
            headers=operator_headers,
        )
        assert resp.status_code == 201

    def test_can_view_reports(self, client, operator_headers):
        assert client.get("/api/reports/dashboard", headers=operator_headers).status_code == 200


# =============================================================================
# MANAGER AND ADMIN ACCESS (200)
# =============================================================================


class TestPrivilegedAccess:

    def test_manager_runs_billing(self, client, manager_headers, make_company, make_record):
        make_record(make_company())
        resp = client.post("/api/closures/generate", json={"month": 3, "year": 2025}, headers=manager_headers)
        assert resp.status_code == 200
        assert client.get("/api/sends?month=3&year=2025", headers=manager_headers).status_code == 200
        assert client.put("/api/settings/prices", json={"P": 1600}, headers=manager_headers).status_code == 200

    def test_admin_can_do_everything(self, client, admin_headers):
        assert client.get("/api/closures", headers=admin_headers).status_code == 200
        assert client.get("/api/settings/business", headers=admin_headers).status_code == 200


class TestRolePermissionMap:

    def test_admin_has_all(self):
        assert ROLE_PERMISSIONS["admin"] == set(get_all_permission_codes())

    def test_only_admin_manages_users(self):
        assert has_permission("admin", "MANAGE_USERS")
        assert not has_permission("manager", "MANAGE_USERS")
        assert not has_permission("operator", "MANAGE_USERS")

    def test_operator_is_subset_of_manager(self):
        assert ROLE_PERMISSIONS["operator"] < ROLE_PERMISSIONS["manager"]

    def test_unknown_role_has_nothing(self):
        assert not has_permission("intern", "VIEW_COMPANIES")
