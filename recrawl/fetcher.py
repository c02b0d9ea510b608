import asyncio
import logging
import random
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

DEFAULT_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

MAX_BACKOFF = 30.0


class CredentialProvider(Protocol):
    def headers(self) -> Dict[str, str]: ...

    async def refresh(self) -> bool:
        """Return True when new credentials are available for a retry."""
        ...


class StaticCredentials:
    """Fixed headers (e.g. a bearer token from the environment); cannot refresh."""

    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self._headers = dict(headers or {})

    @classmethod
    def bearer(cls, token: Optional[str]) -> "StaticCredentials":
        if not token:
            return cls()
        value = token if token.lower().startswith("bearer ") else f"Bearer {token}"
        return cls({"Authorization": value})

    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    async def refresh(self) -> bool:
        return False


def retry_delay(response: Optional[httpx.Response], attempt: int, base_delay: float) -> float:
    """
    Backoff for a failed attempt (1-based). 429 honours Retry-After,
    server errors and transport failures back off exponentially, other
    client errors retry after a short linear wait.
    """
    if response is None:
        return min(base_delay * 2 ** attempt, 15.0)
    status = response.status_code
    if status == 429:
        retry_after = response.headers.get("retry-after")
        if retry_after and retry_after.isdigit():
            return min(float(retry_after), MAX_BACKOFF)
        return min(base_delay * 2 ** attempt, MAX_BACKOFF)
    if status >= 500 or status == 404:
        return min(base_delay * attempt, 5.0)
    return min(base_delay * attempt, 3.0)


class Fetcher:
    """
    Async JSON client shared by one retailer job.

    Every request goes out with a random desktop user agent and, when
    configured, through the proxy URL. Failures are retried up to
    `max_retries` attempts before a FetchError is raised.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        max_retries: int = 5,
        base_delay: float = 1.0,
        proxy: Optional[str] = None,
        credentials: Optional[CredentialProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.credentials = credentials or StaticCredentials()
        kwargs: Dict[str, Any] = {"timeout": timeout, "follow_redirects": True, "headers": DEFAULT_HEADERS}
        if transport is not None:
            kwargs["transport"] = transport
        elif proxy:
            kwargs["proxy"] = proxy
        self._client = httpx.AsyncClient(**kwargs)

    @classmethod
    def from_settings(cls, settings, credentials: Optional[CredentialProvider] = None) -> "Fetcher":
        return cls(
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            proxy=settings.proxy_url,
            credentials=credentials,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def request_json(self, method: str, url: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> Any:
        last_status = None
        last_message = ""
        for attempt in range(1, self.max_retries + 1):
            merged = {"User-Agent": random.choice(USER_AGENTS), **self.credentials.headers(), **(headers or {})}
            response = None
            try:
                response = await self._client.request(method, url, headers=merged, **kwargs)
                if response.status_code == 401 and await self.credentials.refresh():
                    logger.warning("[FETCH] 401 from %s, retrying with refreshed credentials", url)
                    last_status, last_message = 401, "unauthorized, credentials refreshed"
                    continue
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                last_status = exc.response.status_code
                last_message = str(exc)
            except (httpx.TransportError, ValueError) as exc:
                # ValueError: body was not JSON
                last_status = None
                last_message = f"{type(exc).__name__}: {exc}"

            if attempt == self.max_retries:
                break
            delay = retry_delay(response if last_status else None, attempt, self.base_delay)
            logger.info(
                "[FETCH] %s %s failed (%s) - waiting %.1fs. Attempt %d/%d",
                method, url, last_status or last_message, delay, attempt, self.max_retries,
            )
            await asyncio.sleep(delay)

        raise FetchError(url, last_status, last_message)

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request_json("GET", url, headers=headers, params=params)

    async def post_json(self, url: str, payload: Any, headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request_json("POST", url, headers=headers, json=payload)
