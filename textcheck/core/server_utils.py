"""
Utility functions for check server configuration and operation.

This module provides core functionality for:
- Logging setup (structured JSON or plain text)
- Event loop setup with uvloop
- Listening socket arguments
- Classification of startup bind failures
"""

import asyncio
import errno
import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

if sys.platform != "win32":
    import uvloop
else:
    uvloop = None

LOGGER_NAME = "textcheck"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger(__name__)


class ServerConfigError(Exception):
    """Custom exception for server configuration errors"""
    pass


class BindError(ServerConfigError):
    """The listening socket could not be bound."""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(f"Cannot listen on {host}:{port}: {reason}")
        self.host = host
        self.port = port


class PortInUseError(BindError):
    """Another process already listens on the requested port."""

    def __init__(self, host: str, port: int):
        super().__init__(host, port, "address already in use")


def configure_logging(level="INFO", log_format: str = "json",
                      log_file: Optional[str] = None) -> logging.Logger:
    """Configure logging for the check server.

    Args:
        level: Logging level name or number (default: INFO)
        log_format: ``json`` for structured records, ``text`` for plain lines
        log_file: Optional path to log file

    Returns:
        Configured ``textcheck`` logger instance
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    if log_format == "json":
        formatter = JsonFormatter(JSON_FORMAT)
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    return root


def setup_uvloop() -> None:
    """Install uvloop as the event loop policy on platforms that have it.

    Raises:
        ServerConfigError: If uvloop setup fails
    """
    if uvloop is None:
        logger.info("uvloop not supported on %s, using the default event loop", sys.platform)
        return
    try:
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        logger.debug("Using uvloop event loop")
    except Exception as e:
        logger.error("Failed to setup uvloop: %s", e)
        raise ServerConfigError("Failed to initialize event loop")


def get_server_kwargs(backlog: int = 2048) -> Dict[str, Any]:
    """Get ``asyncio.start_server`` keyword arguments.

    ``SO_REUSEPORT`` is left off on purpose: with it a second server could
    bind a port that is already being served.
    """
    return {
        "reuse_address": True,
        "backlog": backlog,
        "start_serving": True,
    }


def classify_bind_error(error: OSError, host: str, port: int) -> BindError:
    """Translate an ``OSError`` from binding into a startup error."""
    if error.errno == errno.EADDRINUSE or getattr(error, "winerror", None) == 10048:
        return PortInUseError(host, port)
    return BindError(host, port, error.strerror or str(error))
