"""
Core check server implementation providing asynchronous request handling.

This module implements the long-running server with features including:
- Asynchronous I/O using asyncio, one task per connection
- Analysis engine calls on a thread pool so accepting never blocks
- HTTP keep-alive with idle and read timeouts
- Graceful shutdown that never leaves a partial response on the wire
- Structured access logs, request IDs and Prometheus metrics
"""

import asyncio
import enum
import logging
import socket
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from textcheck.engine.base import AnalysisEngine
from textcheck.features import metrics
from textcheck.features.security import CORSConfig, IPFilter, RateLimiter

from .config import ServerConfig
from .http_messages import RawRequest, RawResponse
from .http_parser import HTTPParser, HTTPParserError, RequestTooLargeError
from .server_utils import ServerConfigError, classify_bind_error, get_server_kwargs
from .session_handler import SessionHandler

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("textcheck.access")

READ_CHUNK = 65536


class ServerState(enum.Enum):
    STOPPED = "stopped"
    LISTENING = "listening"


class RequestTimeoutError(Exception):
    """The client stopped sending in the middle of a request."""
    pass


def _access_log_payload(method: str, path: str, status: int, length: int,
                        duration: float, client: str, request_id: str) -> dict:
    return {
        "method": method,
        "path": path,
        "status": status,
        "length": length,
        "duration_s": round(duration, 6),
        "client": client,
        "request_id": request_id,
    }


class ConnectionHandler:
    """Serves the requests arriving on one client connection.

    ``busy`` is true from the first byte of a request until its response
    has been written; shutdown closes connections that are not busy at once.
    ``writing`` is true while a response is being handed to the socket.
    """

    def __init__(self, sessions: SessionHandler, config: ServerConfig, client: str,
                 client_ip: str = "0.0.0.0",
                 rate_limiter: Optional[RateLimiter] = None,
                 is_stopping=lambda: False):
        self.sessions = sessions
        self.config = config
        self.client = client
        self.client_ip = client_ip
        self.rate_limiter = rate_limiter
        self.is_stopping = is_stopping
        self.busy = False
        self.writing = False

    async def handle_connection(self, reader: asyncio.StreamReader,
                                writer: asyncio.StreamWriter) -> None:
        """Handle keep-alive connection with multiple requests"""
        parser = HTTPParser(body_limit=self.config.body_limit, client=self.client)
        requests_handled = 0
        keep_alive = True

        while keep_alive and not self.is_stopping():
            self.busy = False
            idle_timeout = (self.config.read_timeout if requests_handled == 0
                            else self.config.keepalive_timeout)
            try:
                request = await self._read_request(reader, parser, idle_timeout)
            except RequestTooLargeError as e:
                await self.send_response(writer, RawResponse.text(413, str(e)))
                break
            except HTTPParserError as e:
                logger.warning("Malformed HTTP request from %s: %s", self.client, e)
                await self.send_response(writer, RawResponse.text(400, "Malformed HTTP request"))
                break
            except RequestTimeoutError:
                await self.send_response(writer, RawResponse.text(408, "Request timeout"))
                break

            if request is None:
                break

            try:
                response = await self._respond(request)
                requests_handled += 1
                keep_alive = (request.keep_alive
                              and requests_handled < self.config.max_requests_per_connection
                              and not self.is_stopping())
                await self.send_response(writer, response, keep_alive)
            finally:
                self.busy = False

    async def _read_request(self, reader: asyncio.StreamReader, parser: HTTPParser,
                            idle_timeout: float) -> Optional[RawRequest]:
        """Return the next request of the connection.

        Requests already parsed from an earlier read are served before the
        socket is read again. Returns None when the client closes or stays
        idle before sending anything.
        """
        while not parser.requests:
            timeout = self.config.read_timeout if parser.in_message else idle_timeout
            try:
                data = await asyncio.wait_for(reader.read(READ_CHUNK), timeout=timeout)
            except asyncio.TimeoutError:
                if parser.in_message:
                    raise RequestTimeoutError()
                return None
            if not data:
                if parser.in_message:
                    logger.debug("Client %s closed the connection mid-request", self.client)
                return None
            self.busy = True
            parser.feed_data(data)

        self.busy = True
        return parser.requests.popleft()

    async def _respond(self, request: RawRequest) -> RawResponse:
        request_id = str(uuid.uuid4())
        start_time = time.perf_counter()
        metrics.REQ_IN_FLIGHT.inc()
        try:
            if self.rate_limiter and not self.rate_limiter.is_allowed(self.client_ip):
                response = RawResponse.text(429, "Too many requests")
            else:
                response = await self.sessions.handle(request)
        except Exception:
            logger.exception("Error processing request %s", request_id)
            response = RawResponse.text(500, "Internal Server Error")
        finally:
            metrics.REQ_IN_FLIGHT.dec()

        duration = time.perf_counter() - start_time
        response.headers.append(("X-Request-ID", request_id))
        metrics.REQ_TOTAL.labels(status=str(response.status)).inc()
        metrics.REQ_LATENCY.observe(duration)
        if response.status >= 500:
            metrics.REQ_ERRORS.inc()

        payload = _access_log_payload(request.method, request.path, response.status,
                                      len(response.body), duration, self.client, request_id)
        access_logger.info("%s %s %s", request.method, request.path, response.status,
                           extra=payload)
        return response

    async def send_response(self, writer: asyncio.StreamWriter, response: RawResponse,
                            keep_alive: bool = False) -> None:
        if not any(name == "X-Request-ID" for name, _ in response.headers):
            response.headers.append(("X-Request-ID", str(uuid.uuid4())))
        self.writing = True
        writer.write(response.to_bytes(keep_alive))
        await writer.drain()
        self.writing = False

    def drop(self, writer: asyncio.StreamWriter) -> None:
        """Close the connection of a cancelled task.

        A response already handed to the transport is flushed before the
        close; otherwise the connection is aborted so nothing is written.
        """
        if self.writing:
            writer.close()
        else:
            writer.transport.abort()


class CheckServer:
    """Check server bound to one address.

    Attributes:
        engine: The analysis engine answering check requests
        config: Immutable server configuration
        state: Current :class:`ServerState`
    """

    def __init__(self, engine: AnalysisEngine, config: Optional[ServerConfig] = None):
        self.engine = engine
        self.config = (config or ServerConfig()).validate()
        self.state = ServerState.STOPPED

        self.ip_filter = IPFilter.from_strings(self.config.allow_ips, self.config.block_ips)
        self.rate_limiter = None
        if self.config.rate_limit:
            self.rate_limiter = RateLimiter(rate=self.config.rate_limit,
                                            burst=self.config.rate_burst)
        self.cors_config = CORSConfig(allowed_origins=tuple(self.config.allow_origins))

        self._started = False
        self._stopping = False
        self._server: Optional[asyncio.AbstractServer] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._stopped_event: Optional[asyncio.Event] = None
        self._connections: Dict[asyncio.Task, ConnectionHandler] = {}
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.sessions: Optional[SessionHandler] = None
        self.thread = None

    @property
    def port(self) -> int:
        """The bound port once listening, the configured port otherwise."""
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self.config.port

    @property
    def is_stopping(self) -> bool:
        return self._stopping

    async def start(self) -> None:
        """Bind the listening socket and begin accepting connections.

        Raises:
            PortInUseError: If the port is already in use
            BindError: If binding fails for any other reason
            ServerConfigError: If the server was started before
        """
        if self._started:
            raise ServerConfigError("A server instance can only be started once")
        self._started = True

        self.loop = asyncio.get_running_loop()
        self._stopped_event = asyncio.Event()
        self._semaphore = asyncio.Semaphore(self.config.max_connections)
        self._executor = ThreadPoolExecutor(max_workers=self.config.workers,
                                            thread_name_prefix="textcheck-analysis")
        self.sessions = SessionHandler(self.engine, self._executor,
                                       max_text_length=self.config.max_text_length,
                                       cors_config=self.cors_config)

        try:
            self._server = await asyncio.start_server(
                self._handle_client,
                self.config.host,
                self.config.port,
                **get_server_kwargs(self.config.backlog),
            )
        except OSError as e:
            self._executor.shutdown(wait=False)
            self._stopped_event.set()
            error = classify_bind_error(e, self.config.host, self.config.port)
            logger.error("%s", error)
            raise error from e

        self.state = ServerState.LISTENING
        logger.info("Server listening on http://%s:%s", self.config.host, self.port)

    async def serve_forever(self) -> None:
        """Wait until the server has been stopped."""
        if self._stopped_event is None:
            raise ServerConfigError("Server has not been started")
        await self._stopped_event.wait()

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop accepting connections and shut down.

        Idle connections are closed immediately. In-flight requests get
        ``timeout`` seconds (default ``config.shutdown_timeout``) to finish;
        the rest are cancelled and their connections aborted.
        """
        if self.state is not ServerState.LISTENING:
            return
        if self._stopping:
            await self._stopped_event.wait()
            return
        self._stopping = True
        timeout = self.config.shutdown_timeout if timeout is None else timeout
        logger.info("Initiating graceful shutdown...")

        self._server.close()

        for task, connection in list(self._connections.items()):
            if not connection.busy:
                task.cancel()

        tasks = list(self._connections)
        if tasks:
            logger.info("Waiting for %d active connections to complete...", len(tasks))
            done, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning("Aborting %d connections that didn't complete in time", len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.wait(pending, timeout=5.0)

        try:
            await asyncio.wait_for(self._server.wait_closed(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Listening socket did not close cleanly")

        self._executor.shutdown(wait=False, cancel_futures=True)
        self.state = ServerState.STOPPED
        self._stopped_event.set()
        logger.info("Server shutdown complete")

    def stop_threadsafe(self, timeout: Optional[float] = None) -> None:
        """Stop a server running on another thread's event loop and wait."""
        if self.loop is None or self.loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self.stop(timeout), self.loop)
        future.result()

    async def _handle_client(self, reader: asyncio.StreamReader,
                             writer: asyncio.StreamWriter) -> None:
        """Handle incoming client connections with resource management.

        Manages connection lifecycle including:
        - Refusal while shutting down, IP filtering
        - Connection limiting via semaphore
        - Resource tracking for graceful shutdown
        - Aborting the transport when the connection task is cancelled
        """
        peername = writer.get_extra_info("peername")
        client_ip = peername[0] if peername else "0.0.0.0"
        client = f"{peername[0]}:{peername[1]}" if peername else "unknown"

        sock = writer.get_extra_info("socket")
        if sock is not None:
            try:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                logger.debug("Could not set TCP_NODELAY for %s", client)

        task = asyncio.current_task()
        connection = ConnectionHandler(self.sessions, self.config, client, client_ip,
                                       rate_limiter=self.rate_limiter,
                                       is_stopping=lambda: self._stopping)
        self._connections[task] = connection
        try:
            if self._stopping:
                await connection.send_response(writer, RawResponse.text(503, "Server is shutting down"))
            elif not self.ip_filter.is_allowed(client_ip):
                logger.warning("Refused connection from %s", client)
                await connection.send_response(writer, RawResponse.text(403, "Forbidden"))
            else:
                async with self._semaphore:
                    await connection.handle_connection(reader, writer)
        except asyncio.CancelledError:
            connection.drop(writer)
            raise
        except (ConnectionResetError, BrokenPipeError):
            logger.debug("Client %s went away", client)
        except Exception:
            logger.exception("Connection handler raised an unexpected exception")
        finally:
            self._connections.pop(task, None)
            if not writer.is_closing():
                writer.close()
            try:
                await writer.wait_closed()
            except Exception:
                logger.debug("Error closing writer", exc_info=True)
