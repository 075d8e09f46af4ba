"""
Transport-neutral request and response values exchanged between the
connection layer and the session handler.
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Dict, List, Tuple
from urllib.parse import urlsplit

SERVER_NAME = "textcheck"


@dataclass(frozen=True)
class RawRequest:
    """One parsed HTTP request.

    Header names are lower-cased.
    """
    method: str
    target: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    client: str = "unknown"
    keep_alive: bool = False

    @property
    def path(self) -> str:
        return urlsplit(self.target).path or "/"

    @property
    def query(self) -> str:
        return urlsplit(self.target).query


@dataclass
class RawResponse:
    """HTTP response ready to be written to a client."""
    status: int
    body: bytes = b""
    content_type: str = "text/plain; charset=UTF-8"
    headers: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def reason(self) -> str:
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return "Unknown"

    @classmethod
    def text(cls, status: int, message: str) -> "RawResponse":
        """Plain-text response with a short reason."""
        return cls(status=status, body=message.encode("utf-8"))

    def to_bytes(self, keep_alive: bool = False) -> bytes:
        lines = [
            f"HTTP/1.1 {self.status} {self.reason}",
            f"Server: {SERVER_NAME}",
            f"Content-Type: {self.content_type}",
            f"Content-Length: {len(self.body)}",
            f"Connection: {'keep-alive' if keep_alive else 'close'}",
        ]
        lines.extend(f"{name}: {value}" for name, value in self.headers)
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("latin-1") + self.body
