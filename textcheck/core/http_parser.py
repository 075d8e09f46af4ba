"""
HTTP request parser using httptools for efficient parsing.

This module provides an incremental request parser with:
- Strict size limits for security
- Proper error handling and validation
- One parser per connection, queueing every request that completes
"""

from collections import deque
from typing import Deque, Dict, List, Optional

import httptools

from .http_messages import RawRequest


class HTTPParserError(Exception):
    """Custom exception for HTTP parsing errors"""
    pass


class RequestTooLargeError(HTTPParserError):
    """Request headers or body exceed the configured limits"""
    pass


class HTTPParser:
    """Parses the HTTP requests of one connection using httptools.

    A single read may carry several requests back to back; each one is
    converted to a :class:`RawRequest` when its message completes and queued
    on :attr:`requests` in arrival order.

    Constants:
        MAX_URL_SIZE: Maximum length of the request target (1MB, GET carries text)
        MAX_HEADER_SIZE: Maximum size per header (8KB)
        MAX_HEADERS: Maximum number of headers per request (100)
    """
    MAX_URL_SIZE = 1048576
    MAX_HEADER_SIZE = 8192
    MAX_HEADERS = 100

    def __init__(self, body_limit: int = 10485760, client: str = "unknown"):
        self.body_limit = body_limit
        self.client = client
        self.parser = httptools.HttpRequestParser(self)
        self.requests: Deque[RawRequest] = deque()
        self.in_message = False
        self._reset()

    def _reset(self) -> None:
        self.headers: Dict[str, str] = {}
        self._url_parts: List[bytes] = []
        self._url_size = 0
        self._body_parts: List[bytes] = []
        self._body_size = 0
        self.method: Optional[str] = None
        self.keep_alive = False

    def on_message_begin(self) -> None:
        self._reset()
        self.in_message = True

    def on_url(self, url: bytes) -> None:
        """Collect the request target; httptools may deliver it in pieces."""
        self._url_size += len(url)
        if self._url_size > self.MAX_URL_SIZE:
            raise RequestTooLargeError("URL too long")
        self._url_parts.append(url)

    def on_header(self, name: bytes, value: bytes) -> None:
        """Process a single header from the request.

        Raises:
            HTTPParserError: If header limits are exceeded or content is invalid
        """
        if len(self.headers) >= self.MAX_HEADERS:
            raise HTTPParserError("Too many headers")
        if len(value) > self.MAX_HEADER_SIZE:
            raise HTTPParserError("Header value too long")
        try:
            name_str = name.decode("ascii").lower()
        except UnicodeDecodeError:
            raise HTTPParserError("Invalid header encoding")
        self.headers[name_str] = value.decode("latin-1")

    def on_headers_complete(self) -> None:
        self.method = self.parser.get_method().decode("ascii")
        self.keep_alive = self.parser.should_keep_alive()

    def on_body(self, body: bytes) -> None:
        self._body_size += len(body)
        if self._body_size > self.body_limit:
            raise RequestTooLargeError("Request body too large")
        self._body_parts.append(body)

    def on_message_complete(self) -> None:
        try:
            target = b"".join(self._url_parts).decode("ascii")
        except UnicodeDecodeError:
            raise HTTPParserError("Request target is not ASCII")
        self.requests.append(RawRequest(
            method=self.method or "GET",
            target=target,
            headers=self.headers,
            body=b"".join(self._body_parts),
            client=self.client,
            keep_alive=self.keep_alive,
        ))
        self.in_message = False

    def feed_data(self, data: bytes) -> None:
        """Feed raw request data to the parser.

        Raises:
            RequestTooLargeError: If a size limit is exceeded
            HTTPParserError: If parsing fails
        """
        try:
            self.parser.feed_data(data)
        except httptools.HttpParserCallbackError as e:
            # Errors raised by our callbacks arrive chained to this one.
            cause = e.__context__ or e.__cause__
            if isinstance(cause, HTTPParserError):
                raise cause
            raise HTTPParserError(f"Parser error: {e}")
        except httptools.HttpParserUpgrade:
            raise HTTPParserError("Protocol upgrade not supported")
        except httptools.HttpParserError as e:
            raise HTTPParserError(f"Parser error: {e}")
