#!/usr/bin/env python3
"""
Starting and stopping the check server.

``start_server`` either blocks in the foreground until the server is
stopped (``persist=True``) or runs it on a background thread with its own
event loop and returns once it is listening.
"""

import argparse
import asyncio
import logging
import signal
import sys
import threading
from typing import List, Optional, Union

from textcheck.engine.base import AnalysisEngine, AnalysisEngineError, load_engine

from .config import DEFAULT_PORT, LOG_FORMATS, ServerConfig
from .server_core import CheckServer
from .server_utils import ServerConfigError, configure_logging, setup_uvloop

logger = logging.getLogger(__name__)


class ServerThread(threading.Thread):
    """Runs a :class:`CheckServer` on a private event loop."""

    def __init__(self, server: CheckServer):
        super().__init__(name=f"textcheck-server-{server.config.port}", daemon=True)
        self.server = server
        self.started = threading.Event()
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        asyncio.run(self._main())

    async def _main(self) -> None:
        try:
            await self.server.start()
        except BaseException as e:
            self.error = e
            self.started.set()
            return
        self.started.set()
        await self.server.serve_forever()


async def _serve_until_stopped(server: CheckServer) -> None:
    await server.start()
    loop = asyncio.get_running_loop()
    stop_tasks = set()

    def _request_stop():
        logger.info("Stop requested, shutting down")
        task = loop.create_task(server.stop())
        stop_tasks.add(task)
        task.add_done_callback(stop_tasks.discard)

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)
    try:
        await server.serve_forever()
    finally:
        # Reached on KeyboardInterrupt where signal handlers are unavailable.
        await server.stop()
        if sys.platform != "win32":
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)


def start_server(engine: Union[AnalysisEngine, str, None] = None, port: int = DEFAULT_PORT,
                 persist: bool = False, config: Optional[ServerConfig] = None,
                 **options) -> CheckServer:
    """Start a check server.

    Args:
        engine: Engine instance or ``module:attribute`` reference; defaults to
            the configured engine
        port: Port to listen on
        persist: Block and serve until stopped instead of serving from a
            background thread
        config: Complete configuration; ``port``, ``persist`` and ``options``
            are ignored when given
        **options: Further :class:`ServerConfig` fields

    Returns:
        The server, listening (background) or already stopped (persist)

    Raises:
        PortInUseError: If the port is taken
        BindError: If the socket cannot be bound
    """
    if config is None:
        config = ServerConfig(port=port, persist=persist, **options)
    server = CheckServer(load_engine(engine or config.engine), config)

    if config.persist:
        setup_uvloop()
        try:
            asyncio.run(_serve_until_stopped(server))
        except KeyboardInterrupt:
            logger.info("Interrupted")
        return server

    thread = ServerThread(server)
    thread.start()
    thread.started.wait()
    if thread.error is not None:
        thread.join()
        raise thread.error
    server.thread = thread
    return server


def stop_server(server: CheckServer, timeout: Optional[float] = None) -> None:
    """Stop a running server and release its socket."""
    server.stop_threadsafe(timeout)
    if server.thread is not None and server.thread is not threading.current_thread():
        server.thread.join()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="textcheck-server",
        description="Serve text checks over HTTP, answering with XML match lists.",
    )
    parser.add_argument("--host", help="address to bind (default 127.0.0.1)")
    parser.add_argument("--port", type=int, help=f"port to listen on (default {DEFAULT_PORT})")
    parser.add_argument("--engine", help="analysis engine as module:attribute")
    parser.add_argument("--workers", type=int, help="threads running analysis calls")
    parser.add_argument("--max-text-length", type=int, help="refuse longer texts")
    parser.add_argument("--allow-ip", action="append", default=[], metavar="CIDR",
                        help="only serve these clients (repeatable)")
    parser.add_argument("--block-ip", action="append", default=[], metavar="CIDR",
                        help="refuse these clients (repeatable)")
    parser.add_argument("--rate-limit", type=float, help="requests per second per client")
    parser.add_argument("--burst", type=int, help="rate limiter burst size")
    parser.add_argument("--allow-origin", action="append", default=[], metavar="ORIGIN",
                        help="send CORS headers for this origin (repeatable)")
    parser.add_argument("--log-level", help="logging level (default INFO)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="log record format")
    parser.add_argument("--log-file", help="also write logs to this file")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig.from_env(
        host=args.host,
        port=args.port,
        engine=args.engine,
        workers=args.workers,
        max_text_length=args.max_text_length,
        allow_ips=tuple(args.allow_ip) or None,
        block_ips=tuple(args.block_ip) or None,
        rate_limit=args.rate_limit,
        rate_burst=args.burst,
        allow_origins=tuple(args.allow_origin) or None,
        log_level=args.log_level,
        log_format=args.log_format,
        log_file=args.log_file,
        persist=True,
    ).validate()


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point; serves until SIGINT/SIGTERM."""
    args = build_parser().parse_args(argv)
    try:
        config = config_from_args(args)
    except (ServerConfigError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level.upper(), config.log_format, config.log_file)
    try:
        start_server(config=config)
    except (ServerConfigError, AnalysisEngineError, ValueError) as e:
        logger.error("Server failed to start: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
