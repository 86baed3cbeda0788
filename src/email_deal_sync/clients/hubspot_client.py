"""
HubSpot CRM API client for the email-to-deal sync pipeline.

Handles:
- Bearer-token authenticated JSON requests over httpx
- Rate-limit (429) retries via tenacity with Retry-After or linear backoff
- Typed errors for non-success responses
- Normalizing 204 No Content to an empty result
"""

import math
import os
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
)

from ..errors import HubSpotApiError, HubSpotRateLimitError, RateLimitExhaustedError
from .backoff import BackoffPolicy

logger = structlog.get_logger(__name__)

DEFAULT_API_BASE = 'https://api.hubapi.com'


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After header in seconds, or None if absent, non-numeric or non-finite."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds < 0:
        return None
    return seconds


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or 'Unknown error'
    if isinstance(body, dict) and body.get('message'):
        return str(body['message'])
    return response.reason_phrase or 'Unknown error'


class HubSpotClient:
    """
    Async HubSpot client with rate-limit retry.

    Configuration via environment variables:
    - HUBSPOT_API_KEY: Private app access token (required)
    - HUBSPOT_API_BASE: API base URL (default: https://api.hubapi.com)
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        backoff: BackoffPolicy | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the HubSpot client.

        Args:
            api_key: Access token (defaults to HUBSPOT_API_KEY env var)
            api_base: Base URL (defaults to HUBSPOT_API_BASE or the public API)
            backoff: Retry and pacing policy (defaults to BackoffPolicy())
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or os.getenv('HUBSPOT_API_KEY')
        if not self.api_key:
            raise ValueError('HUBSPOT_API_KEY environment variable is required')

        self.api_base = (api_base or os.getenv('HUBSPOT_API_BASE') or DEFAULT_API_BASE).rstrip('/')
        self.backoff = backoff or BackoffPolicy()

        self._client = httpx.AsyncClient(
            base_url=self.api_base,
            headers={
                'Authorization': f'Bearer {self.api_key}',
                'Content-Type': 'application/json',
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> 'HubSpotClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send a request, retrying rate-limit responses.

        Args:
            method: HTTP method
            path: API path (e.g. /crm/v3/objects/deals/search)
            json: JSON request body
            params: Query parameters

        Returns:
            Decoded JSON body ({} for 204 No Content)

        Raises:
            RateLimitExhaustedError: 429 on every attempt
            HubSpotApiError: Any other non-success response
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(HubSpotRateLimitError),
            stop=stop_after_attempt(self.backoff.max_attempts),
            wait=self.backoff.wait,
            sleep=self.backoff.sleep,
            before_sleep=self._log_rate_limited,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._send(method, path, json=json, params=params)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            logger.error(
                'hubspot.rate_limit_exhausted',
                method=method,
                path=path,
                attempts=self.backoff.max_attempts,
            )
            raise RateLimitExhaustedError(
                f'HubSpot rate limit persisted after {self.backoff.max_attempts} attempts',
                attempts=self.backoff.max_attempts,
                context={'method': method, 'path': path},
            ) from last

        return result

    async def _send(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Single HTTP round trip, mapped onto the error hierarchy."""
        response = await self._client.request(method, path, json=json, params=params)

        if response.status_code == 429:
            raise HubSpotRateLimitError(
                f'HubSpot API rate limited: {_error_message(response)}',
                retry_after=_parse_retry_after(response.headers.get('retry-after')),
                context={'method': method, 'path': path},
            )

        if not response.is_success:
            message = _error_message(response)
            raise HubSpotApiError(
                f'HubSpot API Error ({response.status_code}): {message}',
                status_code=response.status_code,
                context={'method': method, 'path': path},
            )

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def _log_rate_limited(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else None
        logger.warning(
            'hubspot.rate_limited',
            attempt=retry_state.attempt_number,
            max_retries=self.backoff.max_retries,
            retry_in_seconds=delay,
        )

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request('GET', path, params=params)

    async def post(self, path: str, json: Any) -> dict[str, Any]:
        return await self.request('POST', path, json=json)

    async def put(self, path: str, json: Any) -> dict[str, Any]:
        return await self.request('PUT', path, json=json)

    async def health_check(self) -> dict[str, bool | str]:
        """
        Verify API connectivity with a minimal request.

        Returns:
            Dict with 'healthy' bool and optional 'error' message
        """
        try:
            await self.get('/crm/v3/objects/deals', params={'limit': 1})
            return {'healthy': True, 'api_base': self.api_base}
        except Exception as e:
            return {'healthy': False, 'error': str(e)}

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
