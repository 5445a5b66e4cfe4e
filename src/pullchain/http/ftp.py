"""FTP retrieval for ftp:// locators."""

from __future__ import annotations

import asyncio
import logging
import urllib.request
from typing import Optional

from .protocols import HTTP_OK, HttpResponse

logger = logging.getLogger(__name__)


class FtpClient:
    """
    Retrieves ftp:// URLs with urllib in a worker thread.

    FTP has no status line, so a completed transfer is reported as
    HTTP_OK and any failure is raised as an OSError (urllib.error.URLError).
    """

    def __init__(self, max_content_size: int = 50 * 1024 * 1024, default_timeout: float = 30.0) -> None:
        self._max_content_size = max_content_size
        self._default_timeout = default_timeout

    def _retrieve(self, url: str, timeout: float) -> bytes:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            content = response.read(self._max_content_size + 1)
        if len(content) > self._max_content_size:
            raise ValueError(f"Content size limit exceeded: >{self._max_content_size} bytes")
        return content

    async def get(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> HttpResponse:
        """Download an FTP resource. Headers are ignored."""
        logger.debug(f"RETR {url}")
        content = await asyncio.to_thread(self._retrieve, url, timeout or self._default_timeout)
        return HttpResponse(status_code=HTTP_OK, content=content, url=url)
