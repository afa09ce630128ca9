from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(slots=True)
class DdbError(Exception):
    """A storage failure already classified for the API layer.

    Subclasses pin the HTTP status the problem handler answers with.
    """

    http_status: ClassVar[int] = 500
    title: ClassVar[str] = "Storage Error"

    message: str
    operation: str | None = None
    table_name: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None
    # One code per TransactWriteItems entry, in request order; "None" = passed.
    reasons: list[str] | None = None

    def __str__(self) -> str:
        return self.message

    def failed_item_indexes(self) -> list[int]:
        return [i for i, code in enumerate(self.reasons or []) if code and code != "None"]

    def log_fields(self) -> dict[str, Any]:
        fields = {
            "operation": self.operation,
            "table": self.table_name,
            "awsRequestId": self.aws_request_id,
            "retryable": bool(self.retryable),
        }
        failed = self.failed_item_indexes()
        if failed:
            fields["failedItems"] = failed
        return {k: v for k, v in fields.items() if v is not None}


@dataclass(slots=True)
class DdbValidation(DdbError):
    http_status: ClassVar[int] = 400
    title: ClassVar[str] = "Bad Request"


@dataclass(slots=True)
class DdbConflict(DdbError):
    """Conditional write lost (duplicate email, already reviewed, thread closed...)."""

    http_status: ClassVar[int] = 409
    title: ClassVar[str] = "Conflict"


@dataclass(slots=True)
class DdbThrottled(DdbError):
    http_status: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbUnavailable(DdbError):
    http_status: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbInternal(DdbError):
    pass


def http_status_for(exc: DdbError) -> tuple[int, str]:
    return int(type(exc).http_status), str(type(exc).title)
