"""Remote retrieval clients for pullchain."""

from .client import TRANSPORT_ERRORS, AsyncHttpClient, decode_content
from .ftp import FtpClient
from .protocols import HTTP_OK, HttpResponse, RemoteClient

__all__ = [
    "AsyncHttpClient",
    "FtpClient",
    "HTTP_OK",
    "HttpResponse",
    "RemoteClient",
    "TRANSPORT_ERRORS",
    "decode_content",
]
