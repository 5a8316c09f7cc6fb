"""Unit tests for the resilient authorizer call pipeline"""

import asyncio
import functools
import json
import uuid

import httpx
import pytest

from conditions_gateway.domain.exceptions import (
    CircuitOpenError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from conditions_gateway.infrastructure.clients.resilient import UpstreamRequest
from conditions_gateway.infrastructure.resilience.circuit_breaker import CircuitState

CONDITIONS = "POST /v1/installments/simulations"


def reply(status: int, **kwargs):
    """Deferred response; a fresh httpx.Response is built for every request"""
    return functools.partial(httpx.Response, status, **kwargs)


class Recorder:
    """MockTransport handler replaying scripted replies (last one repeats) and keeping every request"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        scripted = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(scripted, Exception):
            raise scripted
        return scripted()


async def test_success_returns_payload_with_tracing_headers(build_authorizer, cart, breaker):
    handler = Recorder(reply(200, json={"purchase_installments": []}))
    authorizer = build_authorizer(handler)

    payload = await authorizer.fetch_installment_conditions(cart, correlation_id="req-123")

    assert payload == {"purchase_installments": []}
    sent = handler.requests[0]
    assert sent.headers["X-Correlation-ID"] == "req-123"
    assert sent.headers["Content-Type"] == "application/json"
    assert "Idempotency-Key" not in sent.headers
    assert breaker.state(CONDITIONS) is CircuitState.CLOSED


async def test_request_body_uses_decimal_strings(build_authorizer, cart):
    handler = Recorder(reply(200, json={}))
    authorizer = build_authorizer(handler)

    await authorizer.fetch_installment_conditions(cart)

    body = json.loads(handler.requests[0].content)
    assert body["amount"] == "19.99"
    assert body["currency"] == "USD"
    assert {"sku": "SKU-SOCKS", "quantity": 2, "unit_price": "2.50"} in body["items"]


async def test_429_three_times_exhausts_retries(build_authorizer, cart, breaker, sleep):
    """Test 3 attempts at 0ms/200ms/500ms, then one breaker failure"""
    handler = Recorder(reply(429))
    authorizer = build_authorizer(handler)

    with pytest.raises(UpstreamUnavailableError) as exc_info:
        await authorizer.fetch_installment_conditions(cart)

    assert len(handler.requests) == 3
    assert sleep.delays == [0.2, 0.5]
    assert exc_info.value.attempts == 3
    assert breaker.snapshot(CONDITIONS).failure_count == 1


async def test_timeouts_then_success_clears_breaker(build_authorizer, cart, breaker, sleep):
    """Test two timed-out attempts followed by a success inside the retry budget"""
    calls = 0

    async def slow_then_fast(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls <= 2:
            await asyncio.sleep(1)
        return httpx.Response(200, json={"purchase_installments": [{"count": 1, "total": "19.99"}]})

    breaker.record_failure(CONDITIONS)
    authorizer = build_authorizer(slow_then_fast, timeout=0.05)

    payload = await authorizer.fetch_installment_conditions(cart)

    assert payload["purchase_installments"][0]["count"] == 1
    assert calls == 3
    assert sleep.delays == [0.2, 0.5]
    assert breaker.snapshot(CONDITIONS).failure_count == 0


async def test_network_errors_are_retried(build_authorizer, cart):
    handler = Recorder(
        httpx.ConnectError("connection refused"),
        reply(503),
        reply(200, json={"ok": True}),
    )
    authorizer = build_authorizer(handler)

    assert await authorizer.fetch_installment_conditions(cart) == {"ok": True}
    assert len(handler.requests) == 3


async def test_client_error_is_not_retried(build_authorizer, cart, breaker, sleep):
    handler = Recorder(reply(400, json={"error": "bad amount"}))
    authorizer = build_authorizer(handler)

    with pytest.raises(UpstreamRejectedError) as exc_info:
        await authorizer.fetch_installment_conditions(cart)

    assert exc_info.value.status_code == 400
    assert len(handler.requests) == 1
    assert sleep.delays == []
    assert breaker.snapshot(CONDITIONS).failure_count == 0


async def test_non_json_body_is_rejected(build_authorizer, cart):
    handler = Recorder(reply(200, text="<html>maintenance</html>"))
    authorizer = build_authorizer(handler)

    with pytest.raises(UpstreamRejectedError):
        await authorizer.fetch_installment_conditions(cart)
    assert len(handler.requests) == 1


async def test_open_circuit_fails_fast_without_io(build_authorizer, cart, breaker):
    handler = Recorder(reply(200, json={}))
    authorizer = build_authorizer(handler)
    for _ in range(breaker.failure_threshold):
        breaker.record_failure(CONDITIONS)

    with pytest.raises(CircuitOpenError) as exc_info:
        await authorizer.fetch_installment_conditions(cart)

    assert handler.requests == []
    assert exc_info.value.retry_after == 30.0


async def test_exhausted_calls_open_circuit_once_per_logical_call(build_authorizer, cart, breaker):
    """Test breaker counts logical calls: threshold 3 → opens on the third failed call, after 9 attempts"""
    handler = Recorder(reply(500))
    authorizer = build_authorizer(handler)

    for _ in range(3):
        with pytest.raises(UpstreamUnavailableError):
            await authorizer.fetch_installment_conditions(cart)

    assert len(handler.requests) == 9
    assert breaker.state(CONDITIONS) is CircuitState.OPEN

    with pytest.raises(CircuitOpenError):
        await authorizer.fetch_installment_conditions(cart)
    assert len(handler.requests) == 9


async def test_mutating_retries_reuse_idempotency_key(build_authorizer, cart):
    handler = Recorder(reply(503), reply(201, json={"id": "txn_1", "status": "authorized"}))
    authorizer = build_authorizer(handler)
    key = str(uuid.uuid4())

    await authorizer.create_transaction(cart, 3, key)

    assert [r.headers["Idempotency-Key"] for r in handler.requests] == [key, key]
    assert uuid.UUID(handler.requests[0].headers["Idempotency-Key"]).version == 4


async def test_mutating_request_requires_key(build_authorizer):
    authorizer = build_authorizer(Recorder(reply(200, json={})))
    request = UpstreamRequest(method="POST", path="/v1/transactions", json={}, mutating=True)

    with pytest.raises(ValueError):
        await authorizer.resilient_client.call(request)
