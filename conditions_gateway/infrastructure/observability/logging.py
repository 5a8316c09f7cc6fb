"""Structured JSON logging with PII masking"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from pythonjsonlogger import jsonlogger

SERVICE_NAME = "conditions-gateway"

SENSITIVE_FIELDS = frozenset(
    {
        "card_number",
        "cvv",
        "document",
        "tax_id",
        "email",
        "phone",
        "authorization",
        "token",
        "customer_name",
    }
)

MASK = "***"


class SensitiveDataFilter(logging.Filter):
    """Mask PII carried in `extra` fields before any handler formats the record"""

    def __init__(self, fields: Iterable[str] = SENSITIVE_FIELDS):
        super().__init__()
        self.fields = frozenset(fields)

    def filter(self, record: logging.LogRecord) -> bool:
        for name in self.fields & record.__dict__.keys():
            setattr(record, name, _mask(getattr(record, name)))
        return True


def _mask(value: Any) -> str:
    text = str(value)
    # Keep the last 4 characters of long values for support lookups
    if len(text) > 8:
        return MASK + text[-4:]
    return MASK


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = SERVICE_NAME


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout; masking runs on the handler so every logger is covered
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SensitiveDataFilter())
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_circuit_opened(endpoint: str, failure_count: int, cooldown_seconds: float) -> None:
    logging.getLogger("conditions_gateway.circuit").warning(
        "Circuit opened",
        extra={
            "step": "circuit_open",
            "endpoint": endpoint,
            "failure_count": failure_count,
            "cooldown_seconds": cooldown_seconds,
        },
    )


def log_retries_exhausted(endpoint: str, attempts: int, reason: str, correlation_id: Optional[str]) -> None:
    logging.getLogger("conditions_gateway.upstream").error(
        "Upstream retries exhausted",
        extra={
            "step": "retry_exhausted",
            "endpoint": endpoint,
            "attempts": attempts,
            "reason": reason,
            "correlation_id": correlation_id,
        },
    )


def log_normalization_error(error: Exception, correlation_id: Optional[str]) -> None:
    logging.getLogger("conditions_gateway.normalizer").warning(
        "Installment schedule rejected",
        extra={
            "step": "normalization_error",
            "error_code": getattr(error, "code", type(error).__name__),
            "detail": str(error),
            "correlation_id": correlation_id,
        },
    )


def log_conditions_served(
    correlation_id: Optional[str],
    status: str,
    option_count: int,
    cached: bool,
    duration_ms: float,
    reason: Optional[str] = None,
) -> None:
    """Log structured lookup outcome for analysis"""
    logging.getLogger("conditions_gateway.conditions").info(
        "Conditions lookup completed",
        extra={
            "step": "conditions_complete",
            "correlation_id": correlation_id,
            "status": status,
            "option_count": option_count,
            "cached": cached,
            "reason": reason,
            "duration_ms": duration_ms,
        },
    )
