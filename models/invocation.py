"""Request and error-classification models for the resilient invoker."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class EndpointKind(str, Enum):
    GENERATE = "generate"
    PREDICT = "predict"

    @property
    def action(self) -> str:
        """Return the REST action suffix for the endpoint."""
        return "predict" if self is EndpointKind.PREDICT else "generateContent"


class ErrorKind(str, Enum):
    TRANSIENT_RATE_LIMIT = "transient_rate_limit"
    QUOTA_EXHAUSTED = "quota_exhausted"
    BILLING_REQUIRED = "billing_required"
    GENERIC = "generic"


@dataclass(frozen=True)
class InvocationRequest:
    """One logical request, carried unchanged through every retry attempt."""

    payload: Dict[str, Any]
    endpoint_kind: EndpointKind = EndpointKind.GENERATE
    retry_budget: int = 2
    backoff_delay_ms: int = 2000

    def __post_init__(self) -> None:
        if self.retry_budget < 0:
            raise ValueError("retry_budget must be non-negative.")
        if self.backoff_delay_ms <= 0:
            raise ValueError("backoff_delay_ms must be positive.")


@dataclass(frozen=True)
class ErrorClassification:
    """Signals derived from a failed response's status and message.

    Several signals may be set at once (a 429 is both rate-limited and
    quota-classified). `kind` resolves them by precedence, so a 429 reports
    TRANSIENT_RATE_LIMIT; `terminal_kind` is the error the invoker raises
    once no retry is left.
    """

    status: Optional[int]
    message: str
    rate_limited: bool = False
    quota_exhausted: bool = False
    billing_required: bool = False

    @property
    def kind(self) -> ErrorKind:
        if self.rate_limited:
            return ErrorKind.TRANSIENT_RATE_LIMIT
        return self.terminal_kind

    @property
    def terminal_kind(self) -> ErrorKind:
        if self.billing_required:
            return ErrorKind.BILLING_REQUIRED
        if self.quota_exhausted:
            return ErrorKind.QUOTA_EXHAUSTED
        return ErrorKind.GENERIC
