"""
Server configuration.

Values come from the dataclass defaults, then ``TEXTCHECK_*`` environment
variables, then command-line arguments. The configuration is immutable once
the server starts.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .server_utils import ServerConfigError

DEFAULT_PORT = 8081
DEFAULT_ENGINE = "textcheck.engine.simple_rules:SimpleRuleEngine"
LOG_FORMATS = ("json", "text")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ServerConfigError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class ServerConfig:
    """Configuration for the check server.

    Attributes:
        host: Address to bind to
        port: Port to listen on (0 picks a free port)
        engine: ``module:attribute`` reference of the analysis engine
        persist: Serve in the foreground until stopped
        backlog: Listen queue length
        max_connections: Simultaneous connections served
        workers: Threads running analysis engine calls
        read_timeout: Seconds allowed between reads of one request
        keepalive_timeout: Seconds an idle keep-alive connection is kept
        max_requests_per_connection: Keep-alive request limit
        body_limit: Maximum request body size in bytes
        max_text_length: Maximum number of characters to check, None for no limit
        shutdown_timeout: Seconds ``stop`` waits for in-flight requests
        allow_ips: Client addresses/networks allowed (empty allows all)
        block_ips: Client addresses/networks refused
        rate_limit: Requests per second per client, None disables limiting
        rate_burst: Burst size for the rate limiter
        allow_origins: Origins sent in CORS headers (empty disables CORS)
        log_level: Logging level name
        log_format: ``json`` or ``text``
        log_file: Optional log file path
    """
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    engine: str = DEFAULT_ENGINE
    persist: bool = False
    backlog: int = 2048
    max_connections: int = 1000
    workers: int = 8
    read_timeout: float = 30.0
    keepalive_timeout: float = 5.0
    max_requests_per_connection: int = 100
    body_limit: int = 10 * 1024 * 1024
    max_text_length: Optional[int] = None
    shutdown_timeout: float = 30.0
    allow_ips: Tuple[str, ...] = field(default_factory=tuple)
    block_ips: Tuple[str, ...] = field(default_factory=tuple)
    rate_limit: Optional[float] = None
    rate_burst: int = 20
    allow_origins: Tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """Create configuration from ``TEXTCHECK_*`` environment variables.

        Keyword arguments override both the environment and the defaults.

        Raises:
            ServerConfigError: If a numeric variable cannot be parsed
        """
        values = dict(
            host=os.getenv("TEXTCHECK_HOST", cls.host),
            port=_env_int("TEXTCHECK_PORT", cls.port),
            engine=os.getenv("TEXTCHECK_ENGINE", cls.engine),
            workers=_env_int("TEXTCHECK_WORKERS", cls.workers),
            max_text_length=_env_int("TEXTCHECK_MAX_TEXT_LENGTH", cls.max_text_length),
            log_level=os.getenv("TEXTCHECK_LOG_LEVEL", cls.log_level),
            log_format=os.getenv("TEXTCHECK_LOG_FORMAT", cls.log_format),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> "ServerConfig":
        """Validate configuration values and return ``self``.

        Raises:
            ServerConfigError: If a value is out of range
        """
        if not isinstance(self.port, int) or isinstance(self.port, bool):
            raise ServerConfigError("Port must be an integer")
        if not 0 <= self.port <= 65535:
            raise ServerConfigError("Port number must be between 0 and 65535")
        if self.workers < 1:
            raise ServerConfigError("Worker count must be at least 1")
        if self.backlog < 1:
            raise ServerConfigError("Backlog must be at least 1")
        if self.max_connections < 1:
            raise ServerConfigError("max_connections must be at least 1")
        if self.max_requests_per_connection < 1:
            raise ServerConfigError("max_requests_per_connection must be at least 1")
        for name in ("read_timeout", "keepalive_timeout", "shutdown_timeout"):
            if getattr(self, name) <= 0:
                raise ServerConfigError(f"{name} must be > 0")
        if self.body_limit < 1:
            raise ServerConfigError("body_limit must be at least 1")
        if self.max_text_length is not None and self.max_text_length < 0:
            raise ServerConfigError("max_text_length must not be negative")
        if self.rate_limit is not None and self.rate_limit <= 0:
            raise ServerConfigError("rate_limit must be > 0")
        if self.rate_burst < 1:
            raise ServerConfigError("rate_burst must be at least 1")
        if self.log_format not in LOG_FORMATS:
            raise ServerConfigError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
        return self
