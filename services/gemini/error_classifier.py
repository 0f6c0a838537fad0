"""Pure helpers that classify failed responses and schedule backoff delays."""

from __future__ import annotations

from typing import List, Optional

from models.invocation import ErrorClassification

RATE_LIMIT_STATUS = 429
FORBIDDEN_STATUS = 403

QUOTA_KEYWORDS = (
    "quota",
    "exceed",
    "exhausted",
    "insufficient tokens",
    "billing",
    "billed users",
    "daily limit",
)

BILLING_KEYWORDS = (
    "billed users",
    "billing account",
    "billing required",
    "enable billing",
)


def classify(status: Optional[int], message: str) -> ErrorClassification:
    """Map an HTTP status and error message to an ErrorClassification.

    Args:
        status: HTTP status code, or None when no response was received.
        message: Human-readable error message (matched case-insensitively).

    Returns:
        The classification with every matching signal set.
    """
    lower = (message or "").lower()
    rate_limited = status == RATE_LIMIT_STATUS
    quota = status in (RATE_LIMIT_STATUS, FORBIDDEN_STATUS) or any(k in lower for k in QUOTA_KEYWORDS)
    billing = any(k in lower for k in BILLING_KEYWORDS)
    return ErrorClassification(
        status=status,
        message=message or "",
        rate_limited=rate_limited,
        quota_exhausted=quota,
        billing_required=billing,
    )


def backoff_delays(retry_budget: int, base_delay_ms: int) -> List[int]:
    """Return the delays (ms) slept before each retry, doubling every time."""
    if retry_budget < 0:
        raise ValueError("retry_budget must be non-negative.")
    return [base_delay_ms * (2 ** attempt) for attempt in range(retry_budget)]
