"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "domain_error"


class ValidationError(DomainException):
    """Input has the wrong shape or an unsupported value"""

    code = "validation_error"


class PrecisionError(DomainException):
    """Decimal amount has more precision than the currency's minor unit"""

    code = "precision_error"


class CurrencyMismatchError(DomainException):
    """Operation combined amounts in different currencies"""

    code = "currency_mismatch"

    def __init__(self, left: str, right: str):
        self.left = left
        self.right = right
        super().__init__(f"Cannot combine {left} with {right}")


class MalformedScheduleError(DomainException):
    """Upstream installment schedule is missing, inconsistent or invalid"""

    code = "malformed_schedule"


class CircuitOpenError(DomainException):
    """Circuit for the upstream endpoint is open; no call was attempted"""

    code = "circuit_open"

    def __init__(self, endpoint: str, retry_after: float):
        self.endpoint = endpoint
        self.retry_after = retry_after
        super().__init__(f"Circuit for '{endpoint}' is open. Retry after {retry_after:.1f}s")


class UpstreamUnavailableError(DomainException):
    """Authorizer did not answer successfully within the retry budget"""

    code = "upstream_unavailable"

    def __init__(self, endpoint: str, attempts: int, reason: str):
        self.endpoint = endpoint
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"'{endpoint}' unavailable after {attempts} attempt(s): {reason}")


class UpstreamRejectedError(DomainException):
    """Authorizer answered with a non-retryable error or an unreadable body"""

    code = "upstream_rejected"

    def __init__(self, endpoint: str, reason: str, status_code: int | None = None):
        self.endpoint = endpoint
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"'{endpoint}' rejected the request: {reason}")
