"""
HTTP API tests.

End-to-end flows through the routes: login, company management, order entry,
the month-end closure run and document sends.
"""

PASSWORD = "Password123!"


def _login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


# =============================================================================
# AUTH
# =============================================================================


class TestAuthRoutes:

    def test_login_me_logout(self, client, users):
        resp = _login(client, "Admin@Marmitas.test")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["email"] == "admin@marmitas.test"
        assert "MANAGE_USERS" in body["permissions"]
        headers = {"Authorization": f"Bearer {body['token']}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["role"] == "admin"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_wrong_password(self, client, users):
        assert _login(client, "admin@marmitas.test", "Wrong123!").status_code == 401

    def test_missing_fields(self, client, db_session):
        assert client.post("/api/auth/login", json={"email": "a@b.c"}).status_code == 400

    def test_inactive_user_cannot_login(self, client, users, db_session):
        users["operator"].is_active = False
        db_session.commit()
        assert _login(client, "operator@marmitas.test").status_code == 401


# =============================================================================
# COMPANIES
# =============================================================================


class TestCompanyRoutes:

    def test_create_with_percent_discount(self, client, manager_headers):
        resp = client.post(
            "/api/companies",
            json={"name": "Padaria Central", "contact_name": "João", "discount_percent": 12.5},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["discount_bps"] == 1250
        assert body["discount_percent"] == 12.5
        assert body["is_active"] is True

    def test_missing_required_fields(self, client, manager_headers):
        resp = client.post("/api/companies", json={"name": "Sem Contato"}, headers=manager_headers)
        assert resp.status_code == 400
        assert "contact_name" in resp.get_json()["error"]

    def test_both_discount_forms_rejected(self, client, manager_headers):
        resp = client.post(
            "/api/companies",
            json={"name": "X", "contact_name": "Y", "discount_percent": 5, "discount_bps": 500},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_duplicate_name_is_conflict(self, client, manager_headers, make_company):
        make_company("Alpha SA")
        resp = client.post(
            "/api/companies", json={"name": "Alpha SA", "contact_name": "Y"}, headers=manager_headers
        )
        assert resp.status_code == 409

    def test_update_toggle_and_list(self, client, manager_headers, make_company):
        company = make_company()
        resp = client.patch(
            f"/api/companies/{company.id}", json={"phone": "38 3676-0000"}, headers=manager_headers
        )
        assert resp.status_code == 200
        assert resp.get_json()["phone"] == "38 3676-0000"

        client.post(f"/api/companies/{company.id}/toggle", headers=manager_headers)
        inactive = client.get("/api/companies?status=inactive", headers=manager_headers).get_json()
        assert inactive["count"] == 1

        assert client.get("/api/companies?status=bogus", headers=manager_headers).status_code == 400

    def test_delete_outcomes(self, client, manager_headers, make_company, make_record):
        fresh = make_company("Alpha SA")
        used = make_company("Beta SA")
        make_record(used)

        resp = client.delete(f"/api/companies/{fresh.id}", headers=manager_headers)
        assert resp.get_json()["outcome"] == "deleted"
        resp = client.delete(f"/api/companies/{used.id}", headers=manager_headers)
        assert resp.get_json()["outcome"] == "deactivated"

    def test_unknown_company(self, client, manager_headers):
        assert client.get("/api/companies/999", headers=manager_headers).status_code == 404


# =============================================================================
# CONSUMPTION
# =============================================================================


class TestConsumptionRoutes:

    def test_preview_matches_created_record(self, client, operator_headers, make_company):
        company = make_company(discount_bps=1000)
        order = {
            "company_id": company.id,
            "size": "M",
            "quantity": 3,
            "extra_items": [{"name": "Refrigerante", "unit_price_cents": 500, "quantity": 1}],
        }

        preview = client.post("/api/consumption/preview", json=order, headers=operator_headers)
        assert preview.status_code == 200
        assert preview.get_json()["grand_total_cents"] == 5310

        created = client.post(
            "/api/consumption", json={**order, "consumed_on": "2025-03-10"}, headers=operator_headers
        )
        assert created.status_code == 201
        assert created.get_json()["total_price_cents"] == 5310

        listed = client.get("/api/consumption?date=2025-03-10", headers=operator_headers).get_json()
        assert listed["count"] == 1

        stats = client.get("/api/consumption/stats?date=2025-03-10", headers=operator_headers).get_json()
        assert stats["total_quantity"] == 3

    def test_invalid_order(self, client, operator_headers, make_company):
        company = make_company()
        resp = client.post(
            "/api/consumption",
            json={"company_id": company.id, "size": "XL", "quantity": 1},
            headers=operator_headers,
        )
        assert resp.status_code == 400

    def test_bad_date_query(self, client, operator_headers):
        assert client.get("/api/consumption?date=10/03/2025", headers=operator_headers).status_code == 400

    def test_manager_deletes_record(self, client, manager_headers, make_company, make_record):
        record = make_record(make_company())
        assert client.delete(f"/api/consumption/{record.id}", headers=manager_headers).status_code == 200
        assert client.delete(f"/api/consumption/{record.id}", headers=manager_headers).status_code == 404


# =============================================================================
# CLOSURES AND SENDS
# =============================================================================


class TestMonthEndFlow:

    def _generate(self, client, headers):
        resp = client.post("/api/closures/generate", json={"month": 3, "year": 2025}, headers=headers)
        assert resp.status_code == 200
        return resp.get_json()

    def test_generate_override_and_advance(self, client, manager_headers, make_company, make_record, dispatcher):
        make_record(make_company(), size="P", quantity=2)
        generated = self._generate(client, manager_headers)
        assert generated["count"] == 1
        closure = generated["items"][0]
        assert closure["stage"] == 1
        assert closure["allowed_actions"] == ["send_report"]

        resp = client.patch(
            f"/api/closures/{closure['id']}",
            json={"total_value_cents": 2800, "reason": "Desconto de fidelidade"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["total_value_cents"] == 2800

        adjustments = client.get(f"/api/closures/{closure['id']}/adjustments", headers=manager_headers).get_json()
        assert adjustments["count"] == 1
        assert adjustments["items"][0]["reason"] == "Desconto de fidelidade"

        skipped = client.post(f"/api/closures/{closure['id']}/send-invoice", headers=manager_headers)
        assert skipped.status_code == 409

        dispatcher.fail_next("SMTP down")
        failed = client.post(f"/api/closures/{closure['id']}/send-report", headers=manager_headers)
        assert failed.status_code == 200
        assert failed.get_json()["status"] == "error_report"
        assert failed.get_json()["last_error"] == "SMTP down"

        for action in ("send-report", "send-invoice", "confirm-payment"):
            resp = client.post(f"/api/closures/{closure['id']}/{action}", json={}, headers=manager_headers)
            assert resp.status_code == 200
        final = client.get(f"/api/closures/{closure['id']}", headers=manager_headers).get_json()
        assert final["status"] == "completed"
        assert final["progress"] == 1.0

        listing = client.get("/api/closures?month=3&year=2025", headers=manager_headers).get_json()
        assert listing["stats"]["completed"] == 1

    def test_override_rejects_status(self, client, manager_headers, make_company, make_record):
        make_record(make_company())
        closure = self._generate(client, manager_headers)["items"][0]
        resp = client.patch(
            f"/api/closures/{closure['id']}", json={"status": "completed"}, headers=manager_headers
        )
        assert resp.status_code == 400

    def test_bad_status_filter(self, client, manager_headers):
        assert client.get("/api/closures?status=archived", headers=manager_headers).status_code == 400

    def test_invalid_month(self, client, manager_headers):
        resp = client.post("/api/closures/generate", json={"month": 13, "year": 2025}, headers=manager_headers)
        assert resp.status_code == 400

    def test_year_past_calendar_end(self, client, manager_headers):
        resp = client.post("/api/closures/generate", json={"month": 12, "year": 9999}, headers=manager_headers)
        assert resp.status_code == 400
        assert "year" in resp.get_json()["error"]

    def test_sends(self, client, manager_headers, make_company, make_record, dispatcher):
        make_record(make_company())
        self._generate(client, manager_headers)

        groups = client.get("/api/sends?month=3&year=2025", headers=manager_headers).get_json()
        assert groups["stats"]["total"] == 1
        group = groups["items"][0]
        assert group["overall_status"] == "partial"

        dispatcher.fail_next("Caixa cheia")
        resend = client.post(f"/api/sends/{group['report']['id']}/resend", headers=manager_headers)
        assert resend.status_code == 200
        assert resend.get_json()["status"] == "error"
        assert resend.get_json()["retries"] == 1

        client.post(f"/api/sends/{group['report']['id']}/mark-sent", headers=manager_headers)
        client.post(f"/api/sends/{group['billing_notice']['id']}/mark-sent", headers=manager_headers)
        client.post(f"/api/sends/{group['tax_invoice']['id']}/resend", headers=manager_headers)
        notes = client.put(
            f"/api/sends/{group['tax_invoice']['id']}/notes",
            json={"notes": "Enviada em mãos"},
            headers=manager_headers,
        )
        assert notes.get_json()["notes"] == "Enviada em mãos"

        after = client.get("/api/sends?month=3&year=2025", headers=manager_headers).get_json()
        assert after["items"][0]["overall_status"] == "complete"
        assert after["stats"]["complete"] == 1

        assert client.post("/api/sends/999/resend", headers=manager_headers).status_code == 404


# =============================================================================
# SETTINGS, REPORTS, SYSTEM
# =============================================================================


class TestSettingsAndReports:

    def test_prices_roundtrip(self, client, admin_headers):
        assert client.put("/api/settings/prices", json={"G": 2400}, headers=admin_headers).get_json()["G"] == 2400
        assert client.get("/api/settings/prices", headers=admin_headers).get_json()["G"] == 2400
        assert client.delete("/api/settings/prices", headers=admin_headers).get_json()["G"] == 2200
        assert client.put("/api/settings/prices", json={"XL": 1}, headers=admin_headers).status_code == 400

    def test_business_settings(self, client, admin_headers):
        resp = client.put(
            "/api/settings/business",
            json={"profile": {"pix_key": "chave@pix"}, "templates": {"report": "Oi {contact_name}"}},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["profile"]["pix_key"] == "chave@pix"
        assert body["templates"]["report"] == "Oi {contact_name}"

    def test_reports(self, client, operator_headers, make_company, make_record):
        make_record(make_company(), quantity=2)
        monthly = client.get("/api/reports/monthly?month=3&year=2025&months_back=2", headers=operator_headers)
        assert monthly.status_code == 200
        assert monthly.get_json()["general"]["total_meals"] == 2

        dashboard = client.get("/api/reports/dashboard?date=2025-03-10", headers=operator_headers)
        assert dashboard.get_json()["meals_today"] == 2

        assert client.get("/api/reports/monthly?months_back=99", headers=operator_headers).status_code == 400
        year_zero = client.get("/api/reports/monthly?month=3&year=0", headers=operator_headers)
        assert year_zero.status_code == 400
        assert "year" in year_zero.get_json()["error"]

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["delivery_backend"] == "fake"
        assert body["checks"]["database"]["status"] == "healthy"


# =============================================================================
# CLI
# =============================================================================


class TestCli:

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        first = runner.invoke(args=["system", "init"])
        assert "PASS Created user: admin@marmitas.local" in first.output
        second = runner.invoke(args=["system", "init"])
        assert "already exists" in second.output

        listed = runner.invoke(args=["users", "list"])
        assert "operator@marmitas.local" in listed.output

    def test_deactivate_and_activate_user(self, app, client, users):
        resp = _login(client, "operator@marmitas.test")
        headers = {"Authorization": f"Bearer {resp.get_json()['token']}"}
        runner = app.test_cli_runner()

        result = runner.invoke(args=["users", "deactivate", "--email", "Operator@marmitas.test"])
        assert result.exit_code == 0
        assert "revoked 1 session(s)" in result.output
        assert client.get("/api/auth/me", headers=headers).status_code == 401
        assert _login(client, "operator@marmitas.test").status_code == 401

        again = runner.invoke(args=["users", "deactivate", "--email", "operator@marmitas.test"])
        assert again.exit_code == 1
        missing = runner.invoke(args=["users", "deactivate", "--email", "nobody@marmitas.test"])
        assert missing.exit_code == 1

        assert runner.invoke(args=["users", "activate", "--email", "operator@marmitas.test"]).exit_code == 0
        assert _login(client, "operator@marmitas.test").status_code == 200

    def test_generate_and_prices(self, app, make_company, make_record):
        make_record(make_company(), size="G", quantity=1)
        runner = app.test_cli_runner()

        result = runner.invoke(args=["closures", "generate", "--month", "3", "--year", "2025"])
        assert result.exit_code == 0
        assert "Generated 1 closure(s) for 03/2025" in result.output

        bad = runner.invoke(args=["closures", "generate", "--month", "13", "--year", "2025"])
        assert bad.exit_code == 1

        runner.invoke(args=["prices", "set", "--size", "M", "--price", "1950"])
        shown = runner.invoke(args=["prices", "show"])
        assert "M  R$ 19,50" in shown.output
