"""Configuration management using Pydantic Settings"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # External Services
    authorizer_base_url: str = "http://localhost:8001"
    conditions_path: str = "/v1/installments/simulations"
    transactions_path: str = "/v1/transactions"

    # Service
    service_name: str = "conditions-gateway"
    log_level: str = "INFO"

    # HTTP Client (conditions lookup sits on the checkout critical path)
    upstream_timeout_seconds: float = 2.0
    retry_max_attempts: int = 3
    retry_delays_ms: List[int] = [0, 200, 500]

    # Circuit breaker
    circuit_failure_threshold: int = 5
    circuit_cooldown_seconds: float = 30.0
    circuit_max_cooldown_seconds: float = 300.0

    # Conditions cache
    conditions_cache_ttl_seconds: float = 300.0
    conditions_cache_sweep_seconds: float = 60.0


settings = Settings()
