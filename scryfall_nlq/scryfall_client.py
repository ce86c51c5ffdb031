"""Async client for the Scryfall card search API.

Wraps GET /cards/search with the courtesies Scryfall asks for: a minimum
interval between requests, a descriptive User-Agent, and backoff on 429.
Results are cached in memory for a configurable TTL.
"""

import asyncio
import logging
import time
from typing import Any
from urllib.parse import urlparse

import httpx

from scryfall_nlq.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Allowed API hosts
ALLOWED_DOMAINS = [
    "api.scryfall.com",
]

SEARCH_PATH = "/cards/search"
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class ScryfallAPIError(Exception):
    """Error response or transport failure from the Scryfall API."""

    def __init__(
        self,
        message: str,
        status: int = 0,
        code: str = "unknown",
        details: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details

    def __str__(self) -> str:
        return f"{self.message} (status {self.status}, {self.code})"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
        }


class RateLimitError(ScryfallAPIError):
    """HTTP 429 from Scryfall."""

    def __init__(self, message: str, retry_after: float | None = None, details: str | None = None):
        super().__init__(message, status=429, code="rate_limited", details=details)
        self.retry_after = retry_after


def is_valid_api_url(url: str) -> bool:
    """Validate that a base URL points at an allowed Scryfall host over HTTPS."""
    if not url:
        return False

    parsed = urlparse(url)
    return parsed.scheme == "https" and parsed.netloc in ALLOWED_DOMAINS


class ScryfallClient:
    """Rate limited, cached client for Scryfall card search.

    Implements the CardSearcher protocol used by the query builder.
    """

    def __init__(self, config: Settings | None = None, base_url: str | None = None):
        """Initialize client.

        Args:
            config: Settings to use, defaults to the environment settings
            base_url: Override for the API root (must be an allowed host)
        """
        self.config = config or default_settings
        self.base_url = (base_url or self.config.base_url).rstrip("/")
        if not is_valid_api_url(self.base_url):
            raise ValueError(f"Invalid Scryfall API URL: {self.base_url}")

        self._http_client: httpx.AsyncClient | None = None
        self._rate_lock = asyncio.Lock()
        self._last_request = 0.0
        self._cache: dict[tuple, tuple[float, dict[str, Any]]] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                headers={
                    "User-Agent": self.config.user_agent,
                    "Accept": "application/json",
                },
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def __aenter__(self) -> "ScryfallClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and close HTTP client."""
        await self.close()

    def clear_cache(self) -> None:
        self._cache.clear()

    async def search_cards(
        self,
        query: str,
        limit: int = 20,
        page: int = 1,
        order: str | None = None,
        direction: str | None = None,
        unique: str | None = None,
    ) -> dict[str, Any]:
        """Search cards with Scryfall syntax.

        Args:
            query: Scryfall query string
            limit: Maximum number of cards kept in "data"
            page: Result page (Scryfall pages hold 175 cards)
            order: Sort field, e.g. "name" or "usd"
            direction: "auto", "asc" or "desc"
            unique: "cards", "art" or "prints"

        Returns:
            Scryfall list object with "total_cards", "has_more" and "data".
            A query with no matches returns total_cards 0 and empty data.

        Raises:
            RateLimitError: If still rate limited after all retries
            ScryfallAPIError: On any other error response or transport failure
        """
        params: dict[str, Any] = {"q": query}
        if page > 1:
            params["page"] = page
        if order:
            params["order"] = order
        if direction:
            params["dir"] = direction
        if unique:
            params["unique"] = unique

        key = (query, page, order, direction, unique)
        result = self._cache_get(key)
        if result is None:
            result = await self._request(SEARCH_PATH, params)
            self._cache_put(key, result)
        else:
            logger.debug("Cache hit for %r (page %d)", query, page)

        return {**result, "data": list(result.get("data", []))[:limit]}

    def _cache_get(self, key: tuple) -> dict[str, Any] | None:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            del self._cache[key]
            return None
        return value

    def _cache_put(self, key: tuple, value: dict[str, Any]) -> None:
        self._cache[key] = (time.monotonic() + self.config.cache_ttl_seconds, value)

    async def _throttle(self) -> None:
        """Keep at least rate_limit_ms between requests."""
        async with self._rate_lock:
            interval = self.config.rate_limit_ms / 1000
            wait = self._last_request + interval - time.monotonic()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request = time.monotonic()

    def _backoff_seconds(self, attempt: int, error: ScryfallAPIError | None) -> float:
        # Exponential backoff: 1x, 2x, 4x ... the base interval, capped
        delay_ms = self.config.rate_limit_ms * self.config.backoff_multiplier ** (attempt - 1)
        if isinstance(error, RateLimitError) and error.retry_after:
            delay_ms = max(delay_ms, error.retry_after * 1000)
        return min(delay_ms, self.config.max_backoff_ms) / 1000

    async def _request(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a JSON resource with rate limiting and retries."""
        client = await self._get_client()
        max_retries = self.config.max_retries

        last_error: ScryfallAPIError | None = None
        for attempt in range(max_retries + 1):
            if attempt > 0:
                delay = self._backoff_seconds(attempt, last_error)
                logger.warning(
                    "Request attempt %d/%d failed: %s. Retrying in %.2fs...",
                    attempt, max_retries + 1, last_error, delay
                )
                await asyncio.sleep(delay)

            await self._throttle()
            logger.debug("GET %s %s", path, params)

            try:
                response = await client.get(path, params=params)
            except httpx.TimeoutException as e:
                last_error = ScryfallAPIError(
                    "Scryfall request timed out", status=0, code="timeout", details=str(e)
                )
                continue
            except httpx.HTTPError as e:
                last_error = ScryfallAPIError(
                    "Could not reach Scryfall", status=0, code="network_error", details=str(e)
                )
                continue

            if response.status_code == 404:
                return {"object": "list", "total_cards": 0, "has_more": False, "data": []}

            if response.status_code >= 400:
                error = self._error_from_response(response)
                if response.status_code not in RETRYABLE_STATUS:
                    raise error
                last_error = error
                continue

            if attempt > 0:
                logger.info("Request succeeded on attempt %d/%d", attempt + 1, max_retries + 1)
            return response.json()

        # All retries exhausted
        logger.warning("Request failed after %d attempts: %s", max_retries + 1, last_error)
        raise last_error

    @staticmethod
    def _error_from_response(response: httpx.Response) -> ScryfallAPIError:
        """Build a typed error from a Scryfall error object."""
        try:
            body = response.json()
        except ValueError:
            body = {}

        message = body.get("details") or f"Scryfall returned HTTP {response.status_code}"
        code = body.get("code", "http_error")

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                message,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                details=body.get("details"),
            )

        return ScryfallAPIError(
            message,
            status=response.status_code,
            code=code,
            details=body.get("details"),
        )
