"""Exception taxonomy for image preprocessing and remote inference calls."""

from __future__ import annotations

from typing import Optional

QUOTA_NOTICE = (
    "The free usage allowance is used up for today. "
    "Try again tomorrow or after enabling billing."
)
BILLING_NOTICE = (
    "Image generation is limited to billed accounts. "
    "Enable billing in Google AI Studio to summon a spirit."
)


class InvocationError(Exception):
    """Base class for every error surfaced by the pipelines.

    Args:
        message: Short user-facing message.
        status: HTTP status that produced the error, when there was one.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class InvalidInput(InvocationError):
    """The uploaded file is not a decodable image."""


class EncodingFailure(InvocationError):
    """The normalized image could not be re-encoded."""


class MissingCredentialError(InvocationError):
    """No API key is configured; no request was attempted."""

    def __init__(self, message: str = "The API key is not set. Configure GOOGLE_API_KEY.") -> None:
        super().__init__(message)


class QuotaExhaustedError(InvocationError):
    """Usage allowance exhausted for the current period. Never retried."""

    def __init__(self, raw_message: str, status: Optional[int] = None) -> None:
        super().__init__(QUOTA_NOTICE, status)
        self.raw_message = raw_message


class BillingRequiredError(InvocationError):
    """The endpoint requires a billed account."""

    def __init__(self, raw_message: str, status: Optional[int] = None) -> None:
        super().__init__(BILLING_NOTICE, status)
        self.raw_message = raw_message


class EmptyResultError(InvocationError):
    """The model answered without any usable text."""


class NetworkFailure(InvocationError):
    """The request never produced an HTTP response."""


class GenericInvocationError(InvocationError):
    """Any other non-success response; carries the raw message."""


class FallbackImageError(InvocationError):
    """The fallback image-synthesis service failed."""
