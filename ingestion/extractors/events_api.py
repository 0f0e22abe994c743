"""
Events API client with authentication, rate limiting, and retry logic.

This module provides page-at-a-time extraction with:
- Endpoint selection: privileged stream endpoint when a stream token is set,
  the rate-limited public endpoint otherwise
- Exponential backoff retry logic for transient failures
- Patient waiting on rate limits (never surfaced as an error)
- Cursor expiry recovery by restarting pagination from the head
- One long-lived HTTP connection pool reused across pages
"""

import httpx
import asyncio
from typing import Dict, Any, Optional
from pydantic import ValidationError as PydanticValidationError
from core.config import Settings
from core.exceptions import (
    AuthError,
    CredentialExpiredError,
    TransientError,
    UnknownError,
)
from ingestion.extractors.response_policy import (
    ResponseCategory,
    RetryAction,
    action_for,
    backoff_delay,
    classify,
    error_code_from_body,
    parse_retry_after,
)
from schemas.events import EventsPageResponse, FetchPage
import logging

logger = logging.getLogger(__name__)


class EventsAPIClient:
    """
    Fetch pages of raw events from the source API.

    Each fetch_page call returns one logical result or raises one logical
    terminal failure; retries, rate-limit waits and cursor restarts all
    happen inside the call.

    Attributes:
        max_retries: Retries after the first attempt for transient failures (default: 3)
        retry_delay: Initial backoff delay in seconds, doubled per retry (default: 1.0)
        timeout: Per-request timeout in seconds (default: 10.0)
        rate_limit_margin: Seconds added to every Retry-After wait (default: 1)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        stream_token: Optional[str] = None,
        events_endpoint: str = "/events",
        stream_endpoint: str = "/events/d4ta/x7k9/feed",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        rate_limit_margin: int = 1,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url
        self.stream_token = stream_token
        self.events_endpoint = events_endpoint
        self.stream_endpoint = stream_endpoint
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.rate_limit_margin = rate_limit_margin

        headers = {"X-API-Key": api_key}
        if stream_token:
            headers["X-Stream-Token"] = stream_token

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport
        )

        self.requests_made = 0
        self.consecutive_failures = 0

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "EventsAPIClient":
        return cls(
            base_url=settings.API_BASE_URL,
            api_key=settings.TARGET_API_KEY,
            stream_token=settings.STREAM_TOKEN,
            events_endpoint=settings.EVENTS_ENDPOINT,
            stream_endpoint=settings.STREAM_ENDPOINT,
            timeout=settings.REQUEST_TIMEOUT,
            max_retries=settings.MAX_RETRIES,
            retry_delay=settings.RETRY_DELAY,
            rate_limit_margin=settings.RATE_LIMIT_MARGIN,
            **kwargs
        )

    @property
    def privileged(self) -> bool:
        return bool(self.stream_token)

    @property
    def endpoint(self) -> str:
        return self.stream_endpoint if self.privileged else self.events_endpoint

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "EventsAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def fetch_page(self, page_size: int, cursor: Optional[str] = None) -> FetchPage:
        """
        Fetch one page of events starting at `cursor`.

        Args:
            page_size: Number of events requested
            cursor: Opaque pagination token, None to start from the head

        Returns:
            The fetched page

        Raises:
            AuthError: API key rejected by the public endpoint
            CredentialExpiredError: Stream token rejected by the privileged endpoint
            TransientError: Network/server failures outlasted every retry
            UnknownError: Any other failure
        """
        params: Dict[str, Any] = {"limit": page_size}
        if cursor is not None:
            params["cursor"] = cursor

        retries = 0

        while True:
            response: Optional[httpx.Response] = None
            transport_error: Optional[httpx.HTTPError] = None
            self.requests_made += 1

            try:
                logger.debug(f"GET {self.endpoint} params={params}")
                response = await self._client.get(self.endpoint, params=params)
            except httpx.HTTPError as e:
                transport_error = e

            error_code = None
            if response is not None and response.status_code == 400:
                error_code = error_code_from_body(self._json_or_none(response))

            category = classify(
                transport_error if transport_error is not None else response.status_code,
                privileged=self.privileged,
                cursor_supplied="cursor" in params,
                error_code=error_code
            )

            action = action_for(category)

            if action is RetryAction.RETURN:
                self.consecutive_failures = 0
                return self._parse_page(response)

            if action is RetryAction.RESTART_FROM_HEAD:
                logger.warning(
                    "Cursor expired. Restarting from the beginning "
                    "(already ingested events are deduplicated on write)"
                )
                params.pop("cursor", None)
                continue

            if action is RetryAction.WAIT_AND_RETRY:
                retry_after = parse_retry_after(response.headers)
                wait = retry_after + self.rate_limit_margin
                logger.warning(f"Rate limited (429). Waiting {wait}s before retry")
                await asyncio.sleep(wait)
                continue

            if action is RetryAction.BACKOFF_AND_RETRY:
                self.consecutive_failures += 1
                if retries < self.max_retries:
                    retries += 1
                    delay = backoff_delay(retries, self.retry_delay)
                    reason = (
                        type(transport_error).__name__ if transport_error
                        else f"HTTP {response.status_code}"
                    )
                    logger.warning(
                        f"Transient failure ({reason}). Retrying in {delay}s "
                        f"(retry {retries}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue

                raise TransientError(
                    f"Fetch failed after {self.max_retries} retries",
                    context={
                        "endpoint": self.endpoint,
                        "status_code": response.status_code if response is not None else None,
                    },
                    original_exception=transport_error,
                    attempts=retries + 1
                )

            raise self._failure(category, response, transport_error)

    def _failure(
        self,
        category: ResponseCategory,
        response: Optional[httpx.Response],
        transport_error: Optional[Exception]
    ) -> Exception:
        context = {
            "endpoint": self.endpoint,
            "status_code": response.status_code if response is not None else None,
        }
        if category is ResponseCategory.AUTH:
            return AuthError(
                f"Auth error ({response.status_code}). Check the API key",
                context=context
            )
        if category is ResponseCategory.CREDENTIAL_EXPIRED:
            return CredentialExpiredError(
                "Stream token expired or revoked. Get a new one and restart; progress is saved",
                context=context
            )
        if response is not None:
            context["response_body"] = response.text[:500]
        return UnknownError(
            "Unexpected response from events API",
            context=context,
            original_exception=transport_error
        )

    def _parse_page(self, response: httpx.Response) -> FetchPage:
        try:
            return EventsPageResponse.model_validate(response.json()).to_page()
        except (ValueError, PydanticValidationError) as e:
            raise UnknownError(
                "Failed to parse events page",
                context={
                    "endpoint": self.endpoint,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

    @staticmethod
    def _json_or_none(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
