"""Integration tests for API endpoints"""

import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration

CART = {
    "currency": "USD",
    "total": "19.99",
    "items": [
        {"sku": "SKU-TSHIRT", "quantity": 1, "unit_price": "14.99"},
        {"sku": "SKU-SOCKS", "quantity": 2, "unit_price": "2.50"},
    ],
}


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "authorizer_attempts_total" in response.text


def test_conditions_available(client: TestClient, upstream, purchase_payload):
    """Test POST /v1/installment-conditions with a healthy authorizer"""
    upstream.payload = purchase_payload

    response = client.post("/v1/installment-conditions", json=CART, headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-42"
    data = response.json()
    assert data["status"] == "available"
    assert data["currency"] == "USD"
    assert [o["count"] for o in data["options"]] == [1, 3, 6]

    three = data["options"][1]
    assert three["installment_amount"] == "6.66"
    assert three["total_amount"] == "19.99"
    assert three["schedule"] == ["6.66", "6.66", "6.67"]
    assert three["interest_free"] is True

    assert upstream.requests[0].headers["X-Correlation-ID"] == "req-42"


def test_conditions_served_from_cache(client: TestClient, upstream, purchase_payload):
    upstream.payload = purchase_payload
    reordered = dict(CART, items=list(reversed(CART["items"])))

    client.post("/v1/installment-conditions", json=CART)
    response = client.post("/v1/installment-conditions", json=reordered)

    assert response.json()["cached"] is True
    assert len(upstream.requests) == 1


def test_conditions_fail_open_on_outage(client: TestClient, upstream):
    """Test an authorizer outage still returns 200 with status unavailable"""
    upstream.status = 503

    response = client.post("/v1/installment-conditions", json=CART)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "unavailable"
    assert data["reason"] == "upstream_unavailable"
    assert data["options"] == []


def test_conditions_fail_open_when_circuit_opens(client: TestClient, upstream):
    upstream.status = 500

    client.post("/v1/installment-conditions", json=CART)
    client.post("/v1/installment-conditions", json=CART)
    attempts_before = len(upstream.requests)
    response = client.post("/v1/installment-conditions", json=CART)

    assert response.json()["reason"] == "circuit_open"
    assert len(upstream.requests) == attempts_before


def test_conditions_rejects_sub_cent_amounts(client: TestClient, upstream):
    """Test precision errors are structured 422 failures"""
    response = client.post("/v1/installment-conditions", json=dict(CART, total="19.999"))

    assert response.status_code == 422
    assert response.json()["error"] == "precision_error"
    assert response.json()["source"] == "request"
    assert upstream.requests == []


def test_conditions_sub_cent_upstream_schedule_is_bad_gateway(client: TestClient, upstream):
    """Test money errors in the authorizer payload are reported as its fault, not the caller's"""
    upstream.payload = {"purchase_installments": [{"count": 3, "amount": "6.663"}]}

    response = client.post("/v1/installment-conditions", json=CART)

    assert response.status_code == 502
    assert response.json()["error"] == "precision_error"
    assert response.json()["source"] == "upstream"


def test_conditions_rejects_unknown_currency(client: TestClient):
    response = client.post("/v1/installment-conditions", json=dict(CART, currency="ZZZ"))

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_conditions_request_validation(client: TestClient):
    response = client.post("/v1/installment-conditions", json={"currency": "USD", "total": "-1"})
    assert response.status_code == 422


def test_transaction_created_with_idempotency_key(client: TestClient, upstream):
    response = client.post("/v1/transactions", json=dict(CART, installments=3))

    assert response.status_code == 200
    data = response.json()
    assert data["transaction_id"] == "txn_1"
    assert upstream.requests[0].headers["Idempotency-Key"] == data["idempotency_key"]


def test_transaction_resubmission_after_outage(client: TestClient, upstream):
    """Test the key returned with a 503 lets the caller retry the same transaction"""
    upstream.status = 503
    failed = client.post("/v1/transactions", json=dict(CART, installments=3))
    assert failed.status_code == 503
    key = failed.json()["idempotency_key"]

    upstream.status = 200
    first = client.post("/v1/transactions", json=dict(CART, installments=3, idempotency_key=key))
    second = client.post("/v1/transactions", json=dict(CART, installments=3, idempotency_key=key))

    assert first.json()["idempotency_key"] == key
    assert first.json()["transaction_id"] == second.json()["transaction_id"]
    assert len(upstream.transactions) == 1
