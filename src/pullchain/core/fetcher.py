"""Fetcher: turns a locator into raw content."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..archive import ArchiveExtractor, ZipExtractor
from ..emitter import EventEmitter
from ..errors import ArchiveError, FetchError
from ..http import TRANSPORT_ERRORS, AsyncHttpClient, FtpClient, RemoteClient, decode_content
from ..models.config import FetchOptions

logger = logging.getLogger(__name__)

RawContent = Union[str, bytes]

REMOTE_SCHEMES = frozenset({"http", "https", "ftp"})
FTP_SCHEMES = frozenset({"ftp"})
ZIP_SUFFIX = ".zip"

_URI_PATTERN = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*)://")


class Fetcher:
    """
    Resolves a locator to raw content and reports it as an event.

    Dispatch is a one-shot decision made in this order:
    1. A URI with a supported scheme (http, https, ftp) is retrieved remotely
    2. Anything else is a filesystem path:
       - a directory yields its resolved absolute path
       - a *.zip file is extracted and yields the extraction directory
       - any other file yields its contents

    fetch() emits exactly one event: CONTENT with the raw content, or
    ERROR with a FetchError. A Fetcher is single-use.

    Example:
        fetcher = Fetcher("https://example.com", {"headers": {"User-Agent": "foo"}})
        fetcher.on(Fetcher.CONTENT, lambda content: print(len(content)))
        fetcher.on(Fetcher.ERROR, lambda error: print(f"Failed: {error}"))
        await fetcher.fetch()
    """

    CONTENT = "content"
    ERROR = "error"

    def __init__(
        self,
        locator: str,
        options: Union[FetchOptions, Mapping[str, Any], None] = None,
        *,
        http_client: Optional[RemoteClient] = None,
        ftp_client: Optional[RemoteClient] = None,
        extractor: Optional[ArchiveExtractor] = None,
    ) -> None:
        """
        Initialize the Fetcher.

        Args:
            locator: URI or filesystem path
            options: Overrides merged on top of the default FetchOptions
            http_client: Shared HTTP client; a private one is opened per fetch if None
            ftp_client: Client used for ftp:// locators
            extractor: Archive extraction collaborator
        """
        self._locator = locator
        self.options = FetchOptions().merged(options)
        self._emitter = EventEmitter()
        self._http_client = http_client
        self._ftp_client = ftp_client
        self._extractor = extractor or ZipExtractor()
        self._fetched = False

    @property
    def locator(self) -> str:
        return self._locator

    def on(self, event: str, callback: Callable[..., Any], scope: Optional[object] = None) -> None:
        """Subscribe to CONTENT or ERROR."""
        self._emitter.on(event, callback, scope)

    @staticmethod
    def is_uri(locator: Optional[str]) -> bool:
        """Check whether a locator is a URI with a supported remote scheme."""
        if not locator:
            return False
        match = _URI_PATTERN.match(locator)
        return bool(match) and match.group("scheme").lower() in REMOTE_SCHEMES

    @staticmethod
    def is_zip_file(filename: Optional[str]) -> bool:
        """Check whether a filename carries the .zip suffix, in any case."""
        return bool(filename) and filename.lower().endswith(ZIP_SUFFIX)

    async def fetch(self) -> None:
        """
        Retrieve the locator and emit CONTENT or ERROR.

        Raises:
            RuntimeError: If called more than once
        """
        if self._fetched:
            raise RuntimeError("Fetcher instances are single-use; create a new one to fetch again.")
        self._fetched = True

        try:
            if self.is_uri(self._locator):
                content = await self._visit()
            else:
                content = await self._read_file()
        except FetchError as e:
            logger.warning(f"Fetch failed for {self._locator}: {e}")
            self._emitter.emit(self.ERROR, e)
            return

        logger.debug(f"Fetched {self._locator}: {len(content)} {'chars' if isinstance(content, str) else 'bytes'}")
        self._emitter.emit(self.CONTENT, content)

    def _remote_client(self, scheme: str) -> Optional[RemoteClient]:
        if scheme in FTP_SCHEMES:
            if self._ftp_client is None:
                self._ftp_client = FtpClient(
                    max_content_size=self.options.max_content_size,
                    default_timeout=self.options.timeout,
                )
            return self._ftp_client
        return self._http_client

    async def _visit(self) -> str:
        """Retrieve a remote locator; only HTTP 200 counts as success."""
        url = self._locator
        scheme = url.split("://", 1)[0].lower()
        headers = dict(self.options.headers)
        logger.debug(f"Retrieving {url} remotely")

        try:
            client = self._remote_client(scheme)
            if client is not None:
                response = await client.get(url, timeout=self.options.timeout, headers=headers)
            else:
                async with AsyncHttpClient.from_options(self.options) as http_client:
                    response = await http_client.get(url, timeout=self.options.timeout, headers=headers)
        except TRANSPORT_ERRORS as e:
            raise FetchError(f"Request to {url} failed: {str(e) or type(e).__name__}", locator=url) from e

        if not response.ok:
            raise FetchError(
                f"{url} responded with HTTP {response.status_code}",
                locator=url,
                status_code=response.status_code,
            )

        return decode_content(response.content, response.content_type)

    async def _read_file(self) -> RawContent:
        """Read a local path: directory, archive or plain file."""
        try:
            resolved = Path(self._locator).expanduser().resolve(strict=True)
        except (OSError, RuntimeError, ValueError) as e:
            raise FetchError(f"Cannot resolve path {self._locator!r}: {e}", locator=self._locator) from e

        if resolved.is_dir():
            logger.debug(f"{self._locator} is a directory")
            return str(resolved)

        if self.is_zip_file(resolved.name):
            logger.debug(f"Extracting archive {resolved}")
            try:
                target = await asyncio.to_thread(self._extractor.extract, resolved, self.options.extract_dir)
            except FetchError:
                raise
            except (OSError, ValueError, RuntimeError, NotImplementedError, EOFError) as e:
                raise ArchiveError(f"Cannot extract {resolved}: {e}", locator=self._locator) from e
            return str(target)

        try:
            data = await asyncio.to_thread(resolved.read_bytes)
        except OSError as e:
            raise FetchError(f"Cannot read {self._locator}: {e}", locator=self._locator) from e

        try:
            return data.decode(self.options.encoding)
        except (UnicodeDecodeError, LookupError):
            logger.debug(f"{self._locator} is not {self.options.encoding} text, delivering bytes")
            return data
