"""Protocol definitions for remote retrieval."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

HTTP_OK = 200


@dataclass(frozen=True)
class HttpResponse:
    """
    Immutable response returned by a RemoteClient.

    Attributes:
        status_code: HTTP status code (200, 404, etc.)
        content: Raw response content as bytes
        content_type: Content-Type header value
        headers: All response headers
        url: Final URL after any redirects
    """

    status_code: int
    content: bytes
    content_type: str = ""
    headers: dict[str, str] | None = None
    url: str = ""

    @property
    def ok(self) -> bool:
        return self.status_code == HTTP_OK


class RemoteClient(Protocol):
    """
    Protocol for remote retrieval collaborators.

    This abstraction allows for:
    - Mock implementations in tests
    - Different transports (aiohttp for HTTP, urllib for FTP)
    - One client shared by many pipelines on the same event loop
    """

    async def get(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> HttpResponse:
        """
        Retrieve a URL.

        Args:
            url: The URL to fetch
            timeout: Request timeout in seconds
            headers: Optional request headers

        Returns:
            HttpResponse with status, content, and headers

        Raises:
            Exception on transport-level failures
        """
        ...
