"""aiohttp transport for http and https locators."""

from __future__ import annotations

import asyncio
import logging
import re
from types import TracebackType
from typing import Optional

import aiohttp

from ..models.config import FetchOptions
from .protocols import HttpResponse

logger = logging.getLogger(__name__)

_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.IGNORECASE)

# Transport failures a caller should treat as a failed retrieval
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError)


def decode_content(content: bytes, content_type: str = "") -> str:
    """
    Decode a response body to text.

    The charset declared in the Content-Type header wins when Python knows
    it and the body decodes cleanly; otherwise the body is read as UTF-8
    with undecodable bytes replaced.
    """
    match = _CHARSET_RE.search(content_type or "")
    if match:
        charset = match.group(1)
        try:
            return content.decode(charset)
        except (UnicodeDecodeError, LookupError):
            logger.debug(f"Body does not decode as declared charset {charset}, using utf-8")

    return content.decode("utf-8", errors="replace")


class AsyncHttpClient:
    """
    One aiohttp session serving GET requests for any number of fetchers.

    Every call is a single attempt. Status codes are reported back as-is;
    only transport failures and oversized bodies raise.

    Example:
        async with AsyncHttpClient.from_options(FetchOptions()) as client:
            response = await client.get("https://example.com")
            if response.ok:
                print(decode_content(response.content, response.content_type))
    """

    DEFAULT_MAX_CONTENT_SIZE = 50 * 1024 * 1024
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        max_content_size: int = DEFAULT_MAX_CONTENT_SIZE,
        proxy: Optional[str] = None,
        default_timeout: float = 30.0,
        default_headers: Optional[dict[str, str]] = None,
    ) -> None:
        """
        Args:
            max_content_size: Largest body accepted, in bytes
            proxy: Proxy URL passed to aiohttp
            default_timeout: Total timeout used when get() is given none
            default_headers: Session-level headers
        """
        self.max_content_size = max_content_size
        self.proxy = proxy
        self.default_timeout = default_timeout
        self.default_headers = dict(default_headers or {})
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_options(cls, options: FetchOptions) -> AsyncHttpClient:
        """Build a client whose limits, proxy and headers come from FetchOptions."""
        return cls(
            max_content_size=options.max_content_size,
            proxy=options.proxy,
            default_timeout=options.timeout,
            default_headers=dict(options.headers),
        )

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._session.closed

    async def __aenter__(self) -> AsyncHttpClient:
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=100, limit_per_host=10, ttl_dns_cache=300),
            headers=self.default_headers,
        )
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    async def _read_limited(self, response: aiohttp.ClientResponse) -> bytes:
        declared = response.content_length
        if declared is not None and declared > self.max_content_size:
            raise ValueError(f"{response.url} declares {declared} bytes, limit is {self.max_content_size}")

        body = bytearray()
        async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
            body.extend(chunk)
            if len(body) > self.max_content_size:
                raise ValueError(f"{response.url} body exceeds {self.max_content_size} bytes")
        return bytes(body)

    async def get(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> HttpResponse:
        """
        GET a URL once, following redirects.

        Args:
            url: Absolute http(s) URL
            timeout: Total timeout in seconds for this request
            headers: Headers merged over the session headers

        Raises:
            RuntimeError: If called outside 'async with'
            aiohttp.ClientError: On connection or protocol failures
            asyncio.TimeoutError: When the request runs past the timeout
            ValueError: When the body is larger than max_content_size
        """
        if not self.is_open:
            raise RuntimeError("AsyncHttpClient must be used as 'async with AsyncHttpClient() as client'")
        assert self._session is not None

        logger.debug(f"GET {url}")
        request_timeout = aiohttp.ClientTimeout(total=timeout or self.default_timeout)
        async with self._session.get(url, timeout=request_timeout, headers=headers, proxy=self.proxy) as response:
            body = await self._read_limited(response)
            logger.debug(f"{url} -> {response.status} ({len(body)} bytes)")
            return HttpResponse(
                status_code=response.status,
                content=body,
                content_type=response.headers.get("Content-Type", ""),
                headers=dict(response.headers),
                url=str(response.url),
            )
