"""Idempotency key issuance for mutating authorizer calls"""

import uuid

IDEMPOTENCY_HEADER = "Idempotency-Key"


class IdempotencyKeyIssuer:
    """
    Issue one UUID-v4 key per logical mutating operation.

    The issuer keeps no state. Callers issue once per business operation and
    pass the same key to every retry of it.
    """

    def issue(self) -> str:
        return str(uuid.uuid4())
