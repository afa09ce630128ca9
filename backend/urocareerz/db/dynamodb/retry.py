from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    DdbConflict,
    DdbError,
    DdbInternal,
    DdbThrottled,
    DdbUnavailable,
    DdbValidation,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 6
    base_delay_s: float = 0.05
    max_delay_s: float = 1.5

    def delay_for(self, attempt: int) -> float:
        # Full jitter exponential backoff.
        ceiling = min(self.max_delay_s, self.base_delay_s * (2 ** max(0, attempt - 1)))
        return random.random() * ceiling


TRANSACTION_POLICY = RetryPolicy(max_attempts=8, base_delay_s=0.08, max_delay_s=2.0)

# error code -> (error class, message, retryable)
_CODE_MAP: dict[str, tuple[type[DdbError], str, bool]] = {
    "ConditionalCheckFailedException": (DdbConflict, "Conditional check failed", False),
    "ValidationException": (DdbValidation, "DynamoDB request validation failed", False),
    "ParamValidationError": (DdbValidation, "DynamoDB request validation failed", False),
    "AccessDeniedException": (DdbUnavailable, "DynamoDB access denied", False),
    "UnrecognizedClientException": (DdbUnavailable, "DynamoDB access denied", False),
    "ResourceNotFoundException": (DdbUnavailable, "DynamoDB table not found", False),
    "ProvisionedThroughputExceededException": (DdbThrottled, "DynamoDB throttled", True),
    "ThrottlingException": (DdbThrottled, "DynamoDB throttled", True),
    "RequestLimitExceeded": (DdbThrottled, "DynamoDB throttled", True),
    "InternalServerError": (DdbThrottled, "DynamoDB temporarily unavailable", True),
    "ServiceUnavailable": (DdbThrottled, "DynamoDB temporarily unavailable", True),
    "TransactionConflictException": (DdbThrottled, "DynamoDB transaction conflict", True),
}


def _client_error_parts(e: ClientError) -> tuple[str, str | None, list[str]]:
    resp = e.response or {}
    code = str((resp.get("Error") or {}).get("Code") or "")
    request_id = (resp.get("ResponseMetadata") or {}).get("RequestId")
    reasons = [str((r or {}).get("Code") or "None") for r in (resp.get("CancellationReasons") or [])]
    return code, request_id, reasons


def _map_cancellation(reasons: list[str]) -> tuple[type[DdbError], str, bool]:
    # A cancelled transaction is a conflict when any guard condition failed; it is
    # worth retrying only when the sole cause was contention with another writer.
    if "ConditionalCheckFailed" in reasons:
        return DdbConflict, "Transaction condition failed", False
    if "TransactionConflict" in reasons or "ThrottlingError" in reasons:
        return DdbThrottled, "Transaction conflicted with a concurrent write", True
    if "ValidationError" in reasons:
        return DdbValidation, "Transaction validation failed", False
    return DdbInternal, "Transaction cancelled", False


def map_aws_error(
    *,
    operation: str,
    table_name: str | None,
    key: dict[str, Any] | None,
    exc: Exception,
) -> DdbError:
    if isinstance(exc, DdbError):
        return exc

    if isinstance(exc, ClientError):
        code, request_id, reasons = _client_error_parts(exc)
        if code == "TransactionCanceledException":
            cls, message, retryable = _map_cancellation(reasons)
        else:
            cls, message, retryable = _CODE_MAP.get(
                code, (DdbInternal, f"DynamoDB request failed ({code or 'ClientError'})", False)
            )
        return cls(
            message=message,
            operation=operation,
            table_name=table_name,
            key=key,
            aws_request_id=request_id,
            retryable=retryable,
            cause=exc,
            reasons=reasons or None,
        )

    if isinstance(exc, BotoCoreError):
        return DdbUnavailable(
            message="DynamoDB client error",
            operation=operation,
            table_name=table_name,
            key=key,
            retryable=True,
            cause=exc,
        )

    return DdbInternal(
        message="Unexpected DynamoDB error",
        operation=operation,
        table_name=table_name,
        key=key,
        cause=exc,
    )


def ddb_call(
    operation: str,
    fn: Callable[[], T],
    *,
    table_name: str | None = None,
    key: dict[str, Any] | None = None,
    retry_policy: RetryPolicy | None = None,
) -> T:
    policy = retry_policy or RetryPolicy()
    attempts = max(1, int(policy.max_attempts))

    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except Exception as e:  # noqa: BLE001
            mapped = map_aws_error(operation=operation, table_name=table_name, key=key, exc=e)
            if not mapped.retryable or attempt >= attempts:
                if mapped is e:
                    raise
                raise mapped from e
            time.sleep(policy.delay_for(attempt))
