"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def account(client: TestClient):
    response = client.post(
        "/v1/customers",
        json={"customer_id": "cust_api", "name": "Acme", "credit_limit_cents": 100_000, "payment_terms_days": 30},
    )
    assert response.status_code == 201
    return response.json()


def sale(client: TestClient, amount: int, ref: str, booked_by: str = "clerk"):
    return client.post(
        "/v1/credit-sales",
        json={"customer_id": "cust_api", "amount_cents": amount, "origin_ref": ref, "booked_by": booked_by},
    )


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "credit_sale_total" in response.text


def test_request_id_is_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_open_account_twice_conflicts(client: TestClient, account):
    assert account["available_credit_cents"] == 100_000

    response = client.post("/v1/customers", json={"customer_id": "cust_api"})
    assert response.status_code == 409


def test_credit_sale_needs_approval_by_default(client: TestClient, account):
    response = sale(client, 25_000, "SO-100")

    assert response.status_code == 200
    data = response.json()
    assert data["outcome"] == "approval_required"
    assert data["transaction"]["status"] == "provisional"
    assert data["approval"]["required_role"] == "Manager"

    summary = client.get("/v1/customers/cust_api/credit").json()
    assert summary["outstanding_balance_cents"] == 0
    assert summary["pending_approval_cents"] == 25_000


def test_approve_sale_then_pay(client: TestClient, account, sink):
    client.put("/v1/actors/boss/role", json={"role": "Manager"})
    approval = sale(client, 25_000, "SO-100").json()["approval"]

    decided = client.post(
        f"/v1/approvals/{approval['id']}/decision",
        json={"decided_by": "boss", "outcome": "approve"},
    )
    assert decided.status_code == 200
    assert decided.json()["status"] == "approved"
    assert client.get("/v1/customers/cust_api/credit").json()["outstanding_balance_cents"] == 25_000

    payment = client.post("/v1/payments", json={"customer_id": "cust_api", "amount_cents": 10_000})
    assert payment.status_code == 200
    body = payment.json()
    assert body["outstanding_balance_cents"] == 15_000
    assert body["allocations"][0]["status_after"] == "partial"
    assert body["score"]["customer_id"] == "cust_api"

    assert client.get("/v1/customers/cust_api/reconciliation").json()["balanced"] is True
    assert "payment.recorded" in sink.types()


def test_self_approval_is_forbidden(client: TestClient, account):
    client.put("/v1/actors/boss/role", json={"role": "Manager"})
    approval = sale(client, 25_000, "SO-100", booked_by="boss").json()["approval"]

    response = client.post(
        f"/v1/approvals/{approval['id']}/decision",
        json={"decided_by": "boss", "outcome": "approve"},
    )

    assert response.status_code == 403
    assert response.json()["error"] == "SelfApprovalForbiddenError"


def test_credit_limit_exceeded_is_unprocessable(client: TestClient, account):
    client.put("/v1/settings/approvals", json={"sales_order_require_approval": False})

    assert sale(client, 90_000, "SO-1").json()["outcome"] == "committed"
    response = sale(client, 20_000, "SO-2")

    assert response.status_code == 422
    assert response.json()["error"] == "CreditLimitExceededError"


def test_overpayment_is_refused(client: TestClient, account):
    client.put("/v1/settings/approvals", json={"sales_order_require_approval": False})
    sale(client, 5_000, "SO-1")

    response = client.post("/v1/payments", json={"customer_id": "cust_api", "amount_cents": 6_000})

    assert response.status_code == 422
    assert client.get("/v1/customers/cust_api/credit").json()["outstanding_balance_cents"] == 5_000


def test_duplicate_origin_reference_conflicts(client: TestClient, account):
    first = sale(client, 25_000, "SO-100").json()
    assert first["approval"]["credit_transaction_id"] == first["transaction"]["id"]

    response = sale(client, 1_000, "SO-100")

    assert response.status_code == 409
    assert response.json()["error"] == "DuplicateOriginReferenceError"


def test_payment_requires_exactly_one_target(client: TestClient, account):
    response = client.post("/v1/payments", json={"amount_cents": 100})
    assert response.status_code == 422


def test_unknown_customer_is_not_found(client: TestClient):
    response = client.get("/v1/customers/nobody/credit")
    assert response.status_code == 404


def test_block_and_facility_updates(client: TestClient, account):
    blocked = client.put("/v1/customers/cust_api/credit-block", json={"blocked": True, "reason": "audit"})
    assert blocked.json()["credit_blocked"] is True
    assert sale(client, 1_000, "SO-1").status_code == 422

    facility = client.put("/v1/customers/cust_api/credit-facility", json={"credit_limit_cents": 150_000})
    assert facility.status_code == 200
    assert facility.json()["credit_limit_cents"] == 150_000

    alerts = client.get("/v1/credit/alerts").json()
    assert alerts == [
        {"customer_id": "cust_api", "alert_type": "blocked", "utilization_pct": 0.0, "available_credit_cents": 150_000}
    ]


def test_credit_score_endpoints(client: TestClient, account):
    assert client.get("/v1/customers/cust_api/credit-score").status_code == 404

    refreshed = client.post("/v1/customers/cust_api/credit-score")
    assert refreshed.status_code == 200
    assert 0 <= refreshed.json()["score"] <= 1000

    assert client.get("/v1/customers/cust_api/credit-score").json()["score"] == refreshed.json()["score"]


def test_expense_submission_and_listing(client: TestClient):
    response = client.post(
        "/v1/approvals",
        json={"module": "expense", "subject_id": "EXP-1", "amount_cents": 6_000_000, "submitted_by": "clerk"},
    )
    assert response.json()["approval_required"] is True
    assert response.json()["approval"]["required_role"] == "Finance"

    pending = client.get("/v1/approvals", params={"module": "expense"}).json()
    assert [r["subject_id"] for r in pending] == ["EXP-1"]


def test_po_receipt_by_orderer_is_forbidden(client: TestClient):
    client.post(
        "/v1/approvals",
        json={"module": "purchase_order", "subject_id": "PO-1", "amount_cents": 1_000, "submitted_by": "buyer"},
    )

    assert client.post("/v1/purchase-orders/PO-1/receipt", json={"received_by": "buyer"}).status_code == 403
    assert client.post("/v1/purchase-orders/PO-1/receipt", json={"received_by": "stores"}).status_code == 204


def test_sweeps(client: TestClient):
    assert client.post("/v1/approvals/escalations").json() == {"escalated": []}
    assert client.post("/v1/credit/overdue-sweep").json() == {"marked_overdue": 0, "blocked_customer_ids": []}
    assert client.get("/v1/credit/overdue").json()["transactions"] == []


def test_settings_roundtrip(client: TestClient):
    response = client.put("/v1/settings/credit", json={"credit_alert_threshold": 90})
    assert response.status_code == 200
    assert response.json()["values"]["credit_alert_threshold"] == 90

    assert client.get("/v1/settings/credit").json()["values"]["credit_alert_threshold"] == 90


def test_settings_reject_gapped_bands(client: TestClient):
    bands = {"sales_order": [{"min": 0, "max": 100, "role": "Manager"}, {"min": 200, "max": None, "role": "Admin"}]}

    response = client.put("/v1/settings/approvals", json={"workflow": bands})

    assert response.status_code == 422
    assert client.get("/v1/settings/approvals").json()["values"]["workflow"]["sales_order"][0]["max"] == 10_000_000


def test_settings_reject_unknown_keys_and_groups(client: TestClient):
    assert client.put("/v1/settings/credit", json={"no_such_key": 1}).status_code == 422
    assert client.get("/v1/settings/nope").status_code == 404
