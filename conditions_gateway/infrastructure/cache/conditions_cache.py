"""Expiring cache of normalized installment plans keyed by cart fingerprint"""

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from conditions_gateway.domain.models import CartSnapshot, InstallmentPlan
from conditions_gateway.infrastructure.observability.metrics import cache_lookup_counter


class ExpiringStore(Protocol):
    """Storage capability the cache needs from its backend"""

    def get(self, key: str) -> Optional[Any]:
        ...

    def put(self, key: str, value: Any, ttl: float) -> None:
        ...


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float


class InMemoryExpiringStore:
    """
    Process-local store; every read-modify-write holds the lock.

    Expired entries are dropped when read, and a write sweeps the whole
    store at most once per `sweep_interval` seconds, so keys that are never
    read again do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self.sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def put(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + self.sweep_interval
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=now + ttl)

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed"""
        with self._lock:
            return self._drop_expired(self._clock())

    def _drop_expired(self, now: float) -> int:
        # Caller holds the lock
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def fingerprint(cart: CartSnapshot) -> str:
    """
    Order-independent key for (cart contents, total, currency).

    Lines with the same sku and unit price are merged, so a cart listed in a
    different order or with split lines hashes identically.
    """
    quantities: Dict[tuple, int] = {}
    for line in cart.lines:
        key = (line.sku, line.unit_price.amount)
        quantities[key] = quantities.get(key, 0) + line.quantity

    canonical = {
        "currency": cart.currency,
        "total": cart.total.amount,
        "lines": [[sku, price, qty] for (sku, price), qty in sorted(quantities.items())],
    }
    encoded = json.dumps(canonical, separators=(",", ":"), sort_keys=True)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class ConditionsCache:
    """Memoize InstallmentPlans per cart fingerprint for a bounded time window"""

    def __init__(self, store: ExpiringStore, default_ttl: float = 300.0):
        self.store = store
        self.default_ttl = default_ttl

    def get(self, key: str) -> Optional[InstallmentPlan]:
        plan = self.store.get(key)
        cache_lookup_counter.labels(result="hit" if plan is not None else "miss").inc()
        return plan

    def put(self, key: str, plan: InstallmentPlan, ttl: Optional[float] = None) -> None:
        """Last write wins"""
        self.store.put(key, plan, self.default_ttl if ttl is None else ttl)
