"""HTTP client wrapper with timeout, retry, circuit breaking and idempotency headers"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from conditions_gateway.domain.exceptions import (
    CircuitOpenError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from conditions_gateway.infrastructure.observability.logging import log_retries_exhausted
from conditions_gateway.infrastructure.observability.metrics import (
    circuit_rejection_counter,
    retries_exhausted_counter,
    upstream_attempt_counter,
    upstream_latency_histogram,
)
from conditions_gateway.infrastructure.resilience.circuit_breaker import CircuitBreaker
from conditions_gateway.infrastructure.resilience.idempotency import IDEMPOTENCY_HEADER
from conditions_gateway.infrastructure.resilience.retry import AttemptOutcome, RetryPolicy, RetryVerdict

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


@dataclass(frozen=True)
class UpstreamRequest:
    """One logical call to the authorizer; retries re-send it unchanged"""

    method: str
    path: str
    json: Optional[Dict[str, Any]] = None
    correlation_id: Optional[str] = None
    mutating: bool = False
    idempotency_key: Optional[str] = None

    @property
    def endpoint(self) -> str:
        return f"{self.method.upper()} {self.path}"


class ResilientClient:
    """
    Run a single upstream call through the resilience pipeline.

    Flow:
    1. Circuit breaker gate (fail fast, no I/O, when open)
    2. Attempts bounded by a hard wall-clock timeout each
    3. Backoff between retryable failures as dictated by RetryPolicy
    4. Breaker informed once per logical call, never per attempt
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        breaker: CircuitBreaker,
        retry_policy: RetryPolicy,
        timeout: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.http_client = http_client
        self.breaker = breaker
        self.retry_policy = retry_policy
        self.timeout = timeout
        self._sleep = sleep

    async def call(self, request: UpstreamRequest) -> Dict[str, Any]:
        """
        Execute the request and return its JSON object body.

        Raises:
            CircuitOpenError: Circuit open for this endpoint; nothing was sent
            UpstreamUnavailableError: Timeouts, network errors, 429 or 5xx on every attempt
            UpstreamRejectedError: Non-retryable status, undecodable body, or a body that
                is not a JSON object
        """
        if request.mutating and not request.idempotency_key:
            raise ValueError(f"Mutating request to {request.endpoint} needs an idempotency key")

        endpoint = request.endpoint
        if not self.breaker.allow(endpoint):
            circuit_rejection_counter.labels(endpoint=endpoint).inc()
            raise CircuitOpenError(endpoint, self.breaker.retry_after(endpoint))

        headers = self._headers(request)
        state = self.retry_policy.start()
        response: Optional[httpx.Response] = None
        last_error = ""

        while not state.done:
            if state.next_delay > 0:
                await self._sleep(state.next_delay)

            response = None
            started = time.perf_counter()
            try:
                response = await asyncio.wait_for(
                    self.http_client.request(request.method, request.path, json=request.json, headers=headers),
                    timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                # wait_for cancelled the attempt; a late response is never seen
                outcome = AttemptOutcome.RETRYABLE
                last_error = f"timeout after {self.timeout}s"
            except httpx.DecodingError as e:
                # Body arrived but cannot be decoded; resending will not fix it
                outcome = AttemptOutcome.NON_RETRYABLE
                last_error = f"undecodable response body: {e}"
            except httpx.RequestError as e:
                outcome = AttemptOutcome.RETRYABLE
                last_error = f"{type(e).__name__}: {e}"
            else:
                outcome = self.retry_policy.classify_status(response.status_code)
                last_error = f"HTTP {response.status_code}"
            finally:
                upstream_latency_histogram.labels(endpoint=endpoint).observe(time.perf_counter() - started)

            upstream_attempt_counter.labels(endpoint=endpoint, outcome=outcome.value).inc()
            state = self.retry_policy.advance(state, outcome)
            if not state.done:
                logger.info(
                    "Retrying authorizer call",
                    extra={
                        "endpoint": endpoint,
                        "attempt": state.attempt,
                        "delay_seconds": state.next_delay,
                        "reason": last_error,
                        "correlation_id": request.correlation_id,
                    },
                )

        if state.verdict is RetryVerdict.EXHAUSTED:
            self.breaker.record_failure(endpoint)
            retries_exhausted_counter.labels(endpoint=endpoint).inc()
            log_retries_exhausted(endpoint, state.attempts_made, last_error, request.correlation_id)
            raise UpstreamUnavailableError(endpoint, state.attempts_made, last_error)

        # The authorizer answered, so it is reachable even when it refused the request
        self.breaker.record_success(endpoint)

        if state.verdict is RetryVerdict.REJECTED:
            status_code = response.status_code if response is not None else None
            raise UpstreamRejectedError(endpoint, last_error, status_code)
        return self._parse(endpoint, response)

    @staticmethod
    def _headers(request: UpstreamRequest) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if request.correlation_id:
            headers[CORRELATION_HEADER] = request.correlation_id
        if request.mutating:
            headers[IDEMPOTENCY_HEADER] = request.idempotency_key
        return headers

    @staticmethod
    def _parse(endpoint: str, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamRejectedError(endpoint, "response body is not JSON", response.status_code) from e
        if not isinstance(data, dict):
            raise UpstreamRejectedError(endpoint, "response body is not a JSON object", response.status_code)
        return data
