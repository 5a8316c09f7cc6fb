"""Pytest fixtures for testing"""

import pytest
from typing import Callable, List

import httpx
from fastapi.testclient import TestClient

from conditions_gateway.api.dependencies import build_services
from conditions_gateway.api.main import create_app
from conditions_gateway.config import Settings
from conditions_gateway.domain.models import CartLine, CartSnapshot
from conditions_gateway.domain.money import Money
from conditions_gateway.infrastructure.cache.conditions_cache import ConditionsCache, InMemoryExpiringStore
from conditions_gateway.infrastructure.clients.authorizer import AuthorizerClient
from conditions_gateway.infrastructure.clients.resilient import ResilientClient
from conditions_gateway.infrastructure.resilience.circuit_breaker import CircuitBreaker
from conditions_gateway.infrastructure.resilience.retry import RetryPolicy

AUTHORIZER_URL = "http://authorizer.test"


class FakeClock:
    """Monotonic clock advanced by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep; records requested backoff delays"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def breaker(clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker(failure_threshold=3, cooldown=30.0, max_cooldown=120.0, clock=clock)


@pytest.fixture
def cache(clock: FakeClock) -> ConditionsCache:
    return ConditionsCache(InMemoryExpiringStore(clock=clock), default_ttl=60.0)


@pytest.fixture
def cart() -> CartSnapshot:
    """$19.99 cart with two lines"""
    return CartSnapshot(
        lines=(
            CartLine(sku="SKU-TSHIRT", quantity=1, unit_price=Money(1499, "USD")),
            CartLine(sku="SKU-SOCKS", quantity=2, unit_price=Money(250, "USD")),
        ),
        total=Money(1999, "USD"),
    )


@pytest.fixture
def build_authorizer(breaker: CircuitBreaker, sleep: RecordingSleep) -> Callable[..., AuthorizerClient]:
    """
    Factory wiring an AuthorizerClient to an httpx.MockTransport handler.

    The handler may be sync or async; async handlers can sleep to simulate
    slow upstream responses.
    """

    def _build(handler, timeout: float = 0.05) -> AuthorizerClient:
        http_client = httpx.AsyncClient(base_url=AUTHORIZER_URL, transport=httpx.MockTransport(handler))
        resilient = ResilientClient(
            http_client,
            breaker,
            RetryPolicy(delays_ms=(0, 200, 500), max_attempts=3),
            timeout=timeout,
            sleep=sleep,
        )
        return AuthorizerClient(
            resilient,
            conditions_path="/v1/installments/simulations",
            transactions_path="/v1/transactions",
        )

    return _build


@pytest.fixture
def purchase_payload() -> dict:
    """Authorizer answer carrying only the purchase view"""
    return {
        "currency": "USD",
        "purchase_installments": [
            {"count": 1, "amount": "19.99", "total": "19.99", "interest_free": True},
            {"count": 3, "total": "19.99"},
            {"count": 6, "amount": "3.68", "total": "22.08", "interest_free": False},
        ],
    }


class ScriptedUpstream:
    """Authorizer double for the HTTP layer: fixed status/payload per test, honours Idempotency-Key"""

    def __init__(self):
        self.status = 200
        self.payload: dict = {}
        self.requests: List[httpx.Request] = []
        self.transactions: dict = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = request.headers.get("Idempotency-Key")
        if key is not None and self.status < 300:
            transaction = self.transactions.setdefault(
                key, {"id": f"txn_{len(self.transactions) + 1}", "status": "authorized"}
            )
            return httpx.Response(201, json=transaction)
        return httpx.Response(self.status, json=self.payload)


@pytest.fixture
def upstream() -> ScriptedUpstream:
    return ScriptedUpstream()


@pytest.fixture
def client(upstream: ScriptedUpstream) -> TestClient:
    """Create FastAPI test client wired to the scripted authorizer"""
    test_settings = Settings(
        authorizer_base_url=AUTHORIZER_URL,
        retry_delays_ms=[0, 0, 0],
        upstream_timeout_seconds=1.0,
        circuit_failure_threshold=2,
    )
    http_client = httpx.AsyncClient(base_url=AUTHORIZER_URL, transport=httpx.MockTransport(upstream))
    app = create_app(test_settings, build_services(test_settings, http_client=http_client))
    return TestClient(app)
