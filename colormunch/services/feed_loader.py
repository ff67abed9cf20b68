"""
Relayed feed loader.

Fetches one Kuler API request at a time through the relay, retrying
transport errors and unusable payloads up to a fixed number of attempts.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import httpx

from colormunch.core.config import Settings, get_settings
from colormunch.core.events import COMPLETE, FAILED, EventChannel, FeedEvent
from colormunch.services.validation import strip_html_tags

logger = logging.getLogger(__name__)


class LoaderState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting-response"


def check_proxy_url(proxy_url: Any, caller: str) -> None:
    """Raise ValueError unless proxy_url is an absolute http(s) URL."""
    if not proxy_url or not isinstance(proxy_url, str):
        raise ValueError(f"{caller}: a valid proxy_url is required.")
    try:
        url = httpx.URL(proxy_url)
    except httpx.InvalidURL as e:
        raise ValueError(f"{caller}: invalid proxy_url {proxy_url!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"{caller}: proxy_url must be an absolute http(s) URL, got {proxy_url!r}")


class FeedLoader(EventChannel):
    """
    Single-flight loader for relay requests.

    Events:
        FAILED: busy is True if a request is already in progress,
            otherwise message describes the error
        COMPLETE: data holds the relay payload ({"items": [...]})
    """

    def __init__(
        self,
        proxy_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__()
        check_proxy_url(proxy_url, "FeedLoader()")

        self.proxy_url = proxy_url
        self.settings = settings or get_settings()
        self.max_attempts = max(1, self.settings.relay_max_attempts)

        self._client = http_client
        self._owns_client = http_client is None

        self.state = LoaderState.IDLE
        self.request_url = ""
        self.attempts = 0
        self.response: Optional[Dict[str, Any]] = None

    @property
    def busy(self) -> bool:
        return self.state is LoaderState.AWAITING_RESPONSE

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.relay_timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this loader created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def load(self, request_url: str) -> FeedEvent:
        """
        Load a Kuler API request through the relay.

        Args:
            request_url: Full Kuler API url with query parameters

        Returns:
            The FeedEvent that was emitted
        """
        if not request_url or not isinstance(request_url, str):
            detail = FeedEvent(message="load(): a valid request_url is required")
            self.emit(FAILED, detail)
            return detail

        if self.busy:
            detail = FeedEvent(message="A request is already in progress", busy=True)
            self.emit(FAILED, detail)
            return detail

        self.state = LoaderState.AWAITING_RESPONSE
        self.request_url = strip_html_tags(request_url)
        self.attempts = 0

        try:
            event_name, detail = await self._fetch_with_retry()
        finally:
            # also reached on cancellation
            self.state = LoaderState.IDLE

        self.emit(event_name, detail)
        return detail

    async def _fetch_with_retry(self) -> Tuple[str, FeedEvent]:
        while self.attempts < self.max_attempts:
            self.attempts += 1
            try:
                payload = await self._request()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(
                    f"Relay request failed (attempt {self.attempts}/{self.max_attempts}): {e}"
                )
                payload = None

            if self._is_feed(payload):
                self.response = payload
                logger.debug(f"Relay returned {len(payload['items'])} items after {self.attempts} attempt(s)")
                return COMPLETE, FeedEvent(message="Complete", data=payload)

            if self.attempts < self.max_attempts:
                delay = self._backoff_delay()
                if delay > 0:
                    await asyncio.sleep(delay)

        message = f"Request for {self.request_url} failed after {self.attempts} attempts."
        logger.error(message)
        return FAILED, FeedEvent(message=message)

    async def _request(self) -> Any:
        request_id = uuid.uuid4().hex
        response = await self._get_client().get(
            self.proxy_url,
            params={"requestid": request_id, "request_url": self.request_url},
            timeout=self.settings.relay_timeout_seconds,
        )
        response.raise_for_status()

        echoed = response.headers.get("X-Request-ID")
        if echoed and echoed != request_id:
            raise ValueError(f"Response for request {echoed} does not match request {request_id}")

        return response.json()

    def _backoff_delay(self) -> float:
        base = self.settings.relay_retry_backoff
        if base <= 0:
            return 0.0
        return min(base * (2 ** (self.attempts - 1)), self.settings.relay_retry_backoff_max)

    @staticmethod
    def _is_feed(payload: Any) -> bool:
        return isinstance(payload, dict) and isinstance(payload.get("items"), list)
