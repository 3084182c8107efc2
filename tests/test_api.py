from decimal import Decimal


def _initialize(client, headers, period_key="2025-01"):
    response = client.post("/api/months", json={"period_key": period_key}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def _member_record(client, headers, member, period_key="2025-01"):
    response = client.get(f"/api/months/{period_key}/records", params={"member_id": str(member.id)}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()[0]


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["services"]["api"] == "ok"


def test_login_and_me(client, member):
    response = client.post("/api/auth/login", json={"email": "asha@circle.org", "password": "member-pass"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["member_code"] == "V-001"
    assert me.json()["role"] == "member"


def test_bad_login(client, member):
    response = client.post("/api/auth/login", json={"email": "asha@circle.org", "password": "wrong"})
    assert response.status_code == 401


def test_requests_need_a_token(client):
    assert client.get("/api/months").status_code == 401


def test_members_cannot_use_admin_endpoints(client, member_headers):
    response = client.post("/api/months", json={"period_key": "2025-01"}, headers=member_headers)
    assert response.status_code == 403


def test_initialize_month_by_year_and_month(client, admin_headers, member, second_member):
    result = _initialize(client, admin_headers)
    assert result == {"success": True, "period_key": "2025-01", "records_created": 2, "error": None}

    again = client.post("/api/months", json={"period_year": 2025, "period_month": 1}, headers=admin_headers)
    assert again.json()["records_created"] == 0


def test_invalid_period_key(client, admin_headers):
    response = client.post("/api/months", json={"period_key": "2025-13"}, headers=admin_headers)
    assert response.status_code == 400


def test_edit_and_finalize_record(client, admin_headers, member):
    _initialize(client, admin_headers)
    record = _member_record(client, admin_headers, member)
    assert record["member_name"] == "Asha Patel"

    response = client.patch(
        f"/api/records/{record['id']}",
        json={"new_loan_taken": "10000", "principal_paid": "2000", "expected_version": 1},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert Decimal(body["closing_outstanding"]) == Decimal("8000")
    assert Decimal(body["available_loan_amount"]) == Decimal("392000")
    assert body["version"] == 2

    stale = client.patch(
        f"/api/records/{record['id']}",
        json={"penalty": "50", "expected_version": 1},
        headers=admin_headers,
    )
    assert stale.status_code == 409

    finalized = client.post(f"/api/records/{record['id']}/finalize", headers=admin_headers)
    assert finalized.status_code == 200
    assert finalized.json()["status"] == "finalized"

    locked = client.patch(f"/api/records/{record['id']}", json={"penalty": "50"}, headers=admin_headers)
    assert locked.status_code == 409


def test_negative_amount_is_bad_request(client, admin_headers, member):
    _initialize(client, admin_headers)
    record = _member_record(client, admin_headers, member)

    response = client.patch(f"/api/records/{record['id']}", json={"principal_paid": "-10"}, headers=admin_headers)

    assert response.status_code == 400


def test_unknown_record_is_not_found(client, admin_headers):
    response = client.get("/api/records/00000000-0000-0000-0000-000000000000", headers=admin_headers)
    assert response.status_code == 404
    assert client.get("/api/records/not-a-uuid", headers=admin_headers).status_code == 400


def test_payment_once_per_month(client, admin_headers, member):
    _initialize(client, admin_headers)
    loan = client.post(
        "/api/admin/loans",
        json={"member_id": str(member.id), "amount": "10000", "disbursed_on": "2025-01-05"},
        headers=admin_headers,
    )
    assert loan.status_code == 200, loan.text
    assert loan.json()["warning"] is None
    loan_id = loan.json()["id"]

    payment = {
        "loan_id": loan_id,
        "payment_date": "2025-01-20",
        "amount": "2150",
        "principal_component": "2000",
        "interest_component": "150",
    }
    first = client.post("/api/payments", json=payment, headers=admin_headers)
    assert first.status_code == 200, first.text
    assert first.json()["warning"] is None
    assert Decimal(first.json()["loan"]["principal_remaining"]) == Decimal("8000")

    second = client.post("/api/payments", json=payment, headers=admin_headers)
    assert second.status_code == 409
    assert "once per month" in second.json()["detail"]

    record = _member_record(client, admin_headers, member)
    assert Decimal(record["closing_outstanding"]) == Decimal("8000")


def test_member_loan_request_flow(client, admin_headers, member_headers, member):
    created = client.post(
        "/api/member/loan-requests",
        json={"amount": "30000", "duration_months": 6, "purpose": "Shop stock"},
        headers=member_headers,
    )
    assert created.status_code == 200, created.text
    request_id = created.json()["id"]

    pending = client.get("/api/admin/loan-requests", params={"status": "pending"}, headers=admin_headers)
    assert [r["id"] for r in pending.json()] == [request_id]

    approved = client.post(
        f"/api/admin/loan-requests/{request_id}/approve",
        json={"approved_amount": "25000", "remark": "Reduced"},
        headers=admin_headers,
    )
    assert approved.status_code == 200, approved.text
    assert Decimal(approved.json()["amount"]) == Decimal("25000")
    assert "no monthly record" in approved.json()["warning"]

    again = client.post(f"/api/admin/loan-requests/{request_id}/reject", json={}, headers=admin_headers)
    assert again.status_code == 400

    my_loans = client.get("/api/member/loans", headers=member_headers)
    assert len(my_loans.json()) == 1


def test_member_dashboard(client, admin_headers, member_headers, member):
    _initialize(client, admin_headers)

    response = client.get("/api/member/dashboard", headers=member_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["period_key"] == "2025-01"
    assert Decimal(body["available_credit"]) == Decimal("400000")
    assert len(body["recent_records"]) == 1


def test_members_only_see_their_own_records(client, admin_headers, member_headers, member, second_member):
    _initialize(client, admin_headers)

    response = client.get(
        "/api/months/2025-01/records",
        params={"member_id": str(second_member.id)},
        headers=member_headers,
    )

    assert [r["member_id"] for r in response.json()] == [str(member.id)]


def test_bulk_update_and_report(client, admin_headers, member, second_member):
    _initialize(client, admin_headers)

    response = client.post(
        "/api/admin/bulk-update-settings",
        json={"monthly_subscription": "2500", "period_key": "2025-01"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["updated_count"] == 2

    report = client.get("/api/months/2025-01/report", headers=admin_headers)
    assert Decimal(report.json()["total_subscription"]) == Decimal("5000")

    refused = client.post(
        "/api/admin/bulk-update-settings",
        json={"monthly_subscription": "2500", "status": "finalized"},
        headers=admin_headers,
    )
    assert refused.status_code == 409


def test_delete_month(client, admin_headers, member):
    _initialize(client, admin_headers)
    record = _member_record(client, admin_headers, member)
    client.post(f"/api/records/{record['id']}/finalize", headers=admin_headers)

    assert client.delete("/api/months/2025-01", headers=admin_headers).status_code == 409
    assert client.get("/api/months", headers=admin_headers).json()[0]["status"] == "finalized"


def test_cash_bill_download(client, admin_headers, member):
    _initialize(client, admin_headers)

    response = client.post("/api/admin/cash-bill-excel", json={"period_key": "2025-01"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/vnd.openxmlformats")
    assert 'filename="cash-bill-all-members-' in response.headers["content-disposition"]

    missing = client.post("/api/admin/cash-bill-excel", json={"period_key": "2030-01"}, headers=admin_headers)
    assert missing.status_code == 404


def test_settings_endpoints(client, admin_headers):
    response = client.put(
        "/api/admin/settings",
        json={"settings": {"default_monthly_subscription": "2300"}},
        headers=admin_headers,
    )
    assert response.status_code == 200

    values = client.get("/api/admin/settings", headers=admin_headers).json()["settings"]
    assert values["default_monthly_subscription"] == "2300"

    bad = client.put("/api/admin/settings", json={"settings": {"loan_issue_day": "0"}}, headers=admin_headers)
    assert bad.status_code == 400


def test_notices_and_calculator(client, admin_headers, member_headers):
    created = client.post(
        "/api/admin/notices",
        json={"title": "AGM", "content": "Annual meeting on the 11th", "priority": "high"},
        headers=admin_headers,
    )
    assert created.status_code == 200

    notices = client.get("/api/notices", headers=member_headers).json()
    assert notices[0]["title"] == "AGM"

    schedule = client.post(
        "/api/loans/calculate",
        json={"amount": "12000", "duration_months": 12},
        headers=member_headers,
    )
    assert schedule.status_code == 200
    assert Decimal(schedule.json()["monthly_payment"]) == Decimal("1180.00")


def test_admin_member_management(client, admin_headers, admin):
    created = client.post(
        "/api/admin/members",
        json={"email": "new@circle.org", "password": "new-pass", "full_name": "New Member"},
        headers=admin_headers,
    )
    assert created.status_code == 200, created.text
    member_id = created.json()["id"]

    promoted = client.post(f"/api/admin/members/{member_id}/role", json={"role": "admin"}, headers=admin_headers)
    assert promoted.json()["role"] == "admin"

    own = client.delete(f"/api/admin/members/{admin.id}", headers=admin_headers)
    assert own.status_code == 400

    deleted = client.delete(f"/api/admin/members/{member_id}", headers=admin_headers)
    assert deleted.status_code == 200
