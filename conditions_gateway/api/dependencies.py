"""Process-wide service construction and dependency injection for FastAPI endpoints"""

from dataclasses import dataclass

import httpx
from fastapi import Request

from conditions_gateway.config import Settings
from conditions_gateway.infrastructure.cache.conditions_cache import ConditionsCache, InMemoryExpiringStore
from conditions_gateway.infrastructure.clients.authorizer import AuthorizerClient, build_http_client
from conditions_gateway.infrastructure.clients.resilient import ResilientClient
from conditions_gateway.infrastructure.resilience.circuit_breaker import CircuitBreaker
from conditions_gateway.infrastructure.resilience.idempotency import IdempotencyKeyIssuer
from conditions_gateway.infrastructure.resilience.retry import RetryPolicy
from conditions_gateway.services.payment_conditions import PaymentConditionsService
from conditions_gateway.services.transactions import TransactionService


@dataclass
class Services:
    """Components that live for the whole process; built once at start-up"""

    http_client: httpx.AsyncClient
    breaker: CircuitBreaker
    cache: ConditionsCache
    conditions: PaymentConditionsService
    transactions: TransactionService


def build_services(app_settings: Settings, http_client: httpx.AsyncClient | None = None) -> Services:
    """Wire the resilience pipeline, cache and services from settings"""
    http_client = http_client or build_http_client(app_settings.authorizer_base_url)
    breaker = CircuitBreaker(
        failure_threshold=app_settings.circuit_failure_threshold,
        cooldown=app_settings.circuit_cooldown_seconds,
        max_cooldown=app_settings.circuit_max_cooldown_seconds,
    )
    resilient_client = ResilientClient(
        http_client,
        breaker,
        RetryPolicy(delays_ms=app_settings.retry_delays_ms, max_attempts=app_settings.retry_max_attempts),
        timeout=app_settings.upstream_timeout_seconds,
    )
    authorizer = AuthorizerClient(
        resilient_client,
        conditions_path=app_settings.conditions_path,
        transactions_path=app_settings.transactions_path,
    )
    store = InMemoryExpiringStore(sweep_interval=app_settings.conditions_cache_sweep_seconds)
    cache = ConditionsCache(store, default_ttl=app_settings.conditions_cache_ttl_seconds)

    return Services(
        http_client=http_client,
        breaker=breaker,
        cache=cache,
        conditions=PaymentConditionsService(authorizer, cache),
        transactions=TransactionService(authorizer, IdempotencyKeyIssuer()),
    )


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_conditions_service(request: Request) -> PaymentConditionsService:
    """Provide the process-wide conditions service"""
    return request.app.state.services.conditions


def get_transaction_service(request: Request) -> TransactionService:
    """Provide the process-wide transaction service"""
    return request.app.state.services.transactions
