"""Resilient invocation of the remote inference endpoints.

A single logical request is retried only for transient rate limiting
(HTTP 429) while retry budget remains, sleeping with exponential backoff
between attempts. Quota exhaustion and billing errors are terminal: the
quota hook is notified once and the call fails without further retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from models.inference_config import InferenceConfig
from models.invocation import EndpointKind, ErrorClassification, ErrorKind, InvocationRequest
from services.gemini.error_classifier import RATE_LIMIT_STATUS, backoff_delays, classify
from services.gemini.errors import (
    BillingRequiredError,
    GenericInvocationError,
    MissingCredentialError,
    NetworkFailure,
    QuotaExhaustedError,
)
from services.gemini.response_parser import extract_error_message

QuotaHook = Optional[Callable[[], None]]


def _response_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


class ResilientInvoker:
    """Issue requests to the generate/predict endpoints with retry and backoff.

    Args:
        client: Shared `httpx.AsyncClient` used for every request.
        config: Immutable inference configuration (models, base URL, budgets).
        api_key: Credential passed as the `key` query parameter. May be empty,
            in which case every call fails with MissingCredentialError.
        sleep: Coroutine used for backoff waits (seconds); injectable for tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: InferenceConfig,
        api_key: Optional[str],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if client is None:
            raise ValueError("httpx.AsyncClient is required.")
        self.client = client
        self.config = config
        self.api_key = (api_key or "").strip()
        self._sleep = sleep

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    def endpoint_url(self, endpoint_kind: EndpointKind) -> str:
        """Return `<base><model>:<action>` for the endpoint kind."""
        model = self.config.model_for(endpoint_kind.value)
        return f"{self.config.api_base}{model}:{endpoint_kind.action}"

    def build_request(
        self,
        payload: Dict[str, Any],
        endpoint_kind: EndpointKind = EndpointKind.GENERATE,
        *,
        retry_budget: Optional[int] = None,
        backoff_delay_ms: Optional[int] = None,
    ) -> InvocationRequest:
        """Create an InvocationRequest using the configured defaults."""
        return InvocationRequest(
            payload=payload,
            endpoint_kind=endpoint_kind,
            retry_budget=(
                retry_budget if retry_budget is not None
                else self.config.retry_budget_for(endpoint_kind.value)
            ),
            backoff_delay_ms=backoff_delay_ms or self.config.backoff_base_ms,
        )

    async def invoke(self, request: InvocationRequest, *, on_quota_exhausted: QuotaHook = None) -> Dict[str, Any]:
        """Run the request until it succeeds or fails terminally.

        Args:
            request: The logical request, including its retry budget and base delay.
            on_quota_exhausted: Called exactly once when the failure is quota-classified.

        Returns:
            The parsed JSON response body, unmodified.

        Raises:
            MissingCredentialError: No API key configured.
            QuotaExhaustedError: Quota-classified failure (including 429 after the budget is spent).
            BillingRequiredError: The endpoint requires a billed account.
            NetworkFailure: No HTTP response was received.
            GenericInvocationError: Any other non-success response.
        """
        if not self.api_key:
            raise MissingCredentialError()

        url = self.endpoint_url(request.endpoint_kind)
        delays = iter(backoff_delays(request.retry_budget, request.backoff_delay_ms))
        attempt = 0

        while True:
            attempt += 1
            try:
                response = await self.client.post(url, params={"key": self.api_key}, json=request.payload)
            except httpx.HTTPError as exc:
                status = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
                delay_ms = next(delays, None) if status == RATE_LIMIT_STATUS else None
                if delay_ms is not None:
                    await self._backoff(request, attempt, delay_ms)
                    continue
                logging.error("%s request failed without a response: %s", request.endpoint_kind.value, exc)
                raise NetworkFailure(f"Network error: {exc}") from exc

            if response.is_success:
                body = _response_json(response)
                if body is None:
                    raise GenericInvocationError("Response body was not valid JSON.", response.status_code)
                if attempt > 1:
                    logging.info("%s request succeeded after %d attempts", request.endpoint_kind.value, attempt)
                return body

            message = extract_error_message(_response_json(response), response.status_code)
            classification = classify(response.status_code, message)

            delay_ms = next(delays, None) if classification.rate_limited else None
            if delay_ms is not None:
                await self._backoff(request, attempt, delay_ms)
                continue

            self._raise_terminal(request, classification, on_quota_exhausted)

    async def _backoff(self, request: InvocationRequest, attempt: int, delay_ms: int) -> None:
        logging.warning(
            "%s request rate limited (attempt %d); retrying in %d ms",
            request.endpoint_kind.value,
            attempt,
            delay_ms,
        )
        await self._sleep(delay_ms / 1000.0)

    @staticmethod
    def _raise_terminal(
        request: InvocationRequest,
        classification: ErrorClassification,
        on_quota_exhausted: QuotaHook,
    ) -> None:
        kind = classification.terminal_kind
        logging.error(
            "%s request failed (status=%s, kind=%s): %s",
            request.endpoint_kind.value,
            classification.status,
            kind.value,
            classification.message,
        )
        if classification.quota_exhausted and on_quota_exhausted is not None:
            on_quota_exhausted()
        if kind is ErrorKind.BILLING_REQUIRED:
            raise BillingRequiredError(classification.message, classification.status)
        if kind is ErrorKind.QUOTA_EXHAUSTED:
            raise QuotaExhaustedError(classification.message, classification.status)
        raise GenericInvocationError(classification.message, classification.status)
