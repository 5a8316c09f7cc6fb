"""Per-endpoint circuit breaker for authorizer calls"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional

from conditions_gateway.infrastructure.observability.logging import log_circuit_opened
from conditions_gateway.infrastructure.observability.metrics import circuit_open_counter

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states"""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Cooldown elapsed, trial calls allowed


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time view of one endpoint's circuit"""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_at: Optional[float] = None
    opened_until: Optional[float] = None
    consecutive_opens: int = 0


class CircuitBreaker:
    """
    Track consecutive failures per upstream endpoint and gate calls.

    Lifecycle per endpoint:
    - CLOSED → OPEN after `failure_threshold` consecutive failures
    - OPEN → HALF_OPEN once the cooldown has elapsed (on the next allow())
    - HALF_OPEN → CLOSED on success, → OPEN on failure with a longer cooldown

    Cooldown doubles with every consecutive open, capped at `max_cooldown`.
    Every transition runs under one lock so concurrent callers cannot
    under-count failures or open the circuit twice.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown: float = 30.0,
        max_cooldown: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold <= 0:
            raise ValueError("failure_threshold must be positive")
        self.failure_threshold = failure_threshold
        self.cooldown = cooldown
        self.max_cooldown = max(max_cooldown, cooldown)
        self._clock = clock
        self._lock = threading.Lock()
        self._circuits: Dict[str, CircuitSnapshot] = {}

    def allow(self, endpoint: str) -> bool:
        """False only while OPEN and the cooldown has not elapsed"""
        with self._lock:
            circuit = self._circuits.get(endpoint, CircuitSnapshot())
            if circuit.state is not CircuitState.OPEN:
                return True
            if self._clock() < circuit.opened_until:
                return False
            self._circuits[endpoint] = replace(circuit, state=CircuitState.HALF_OPEN)
            logger.info("Circuit half-open", extra={"endpoint": endpoint})
            return True

    def record_success(self, endpoint: str) -> None:
        with self._lock:
            previous = self._circuits.pop(endpoint, None)
        if previous is not None and previous.state is not CircuitState.CLOSED:
            logger.info("Circuit closed", extra={"endpoint": endpoint})

    def record_failure(self, endpoint: str) -> None:
        with self._lock:
            now = self._clock()
            circuit = self._circuits.get(endpoint, CircuitSnapshot())
            circuit = replace(circuit, failure_count=circuit.failure_count + 1, last_failure_at=now)

            should_open = circuit.state is CircuitState.HALF_OPEN or (
                circuit.state is CircuitState.CLOSED
                and circuit.failure_count >= self.failure_threshold
            )
            if should_open:
                opens = circuit.consecutive_opens + 1
                cooldown = self._cooldown_for(opens)
                circuit = replace(
                    circuit,
                    state=CircuitState.OPEN,
                    opened_until=now + cooldown,
                    consecutive_opens=opens,
                )
            self._circuits[endpoint] = circuit

        if should_open:
            circuit_open_counter.labels(endpoint=endpoint).inc()
            log_circuit_opened(endpoint, circuit.failure_count, cooldown)

    def state(self, endpoint: str) -> CircuitState:
        return self.snapshot(endpoint).state

    def snapshot(self, endpoint: str) -> CircuitSnapshot:
        with self._lock:
            return self._circuits.get(endpoint, CircuitSnapshot())

    def retry_after(self, endpoint: str) -> float:
        """Seconds until an OPEN circuit admits a trial call (0 otherwise)"""
        with self._lock:
            circuit = self._circuits.get(endpoint)
            if circuit is None or circuit.state is not CircuitState.OPEN:
                return 0.0
            return max(circuit.opened_until - self._clock(), 0.0)

    def reset(self) -> None:
        with self._lock:
            self._circuits.clear()

    def _cooldown_for(self, consecutive_opens: int) -> float:
        # Exponential: base, 2x base, 4x base, ... capped
        return min(self.cooldown * (2 ** (consecutive_opens - 1)), self.max_cooldown)
