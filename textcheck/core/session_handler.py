"""
Handling of one check request, from decoding to the finished response.

This module provides:
- Routing of the check endpoint and the health/metrics endpoints
- Request decoding and client error responses
- The analysis engine call on a worker thread
- Validation of engine output and XML rendering
"""

import asyncio
import logging
import time
from concurrent.futures import Executor
from typing import List, Optional

from textcheck.engine.base import AnalysisEngine, AnalysisEngineError, check_result
from textcheck.features import metrics
from textcheck.features.security import CORSConfig, cors_headers

from .http_messages import RawRequest, RawResponse
from .matches import Match
from .positions import TextPositions
from .request_decoder import CheckRequest, RequestError, decode_request
from .xml_response import build_response

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = "text/xml; charset=UTF-8"
CHECK_PATH = "/"
HEALTH_PATHS = ("/health", "/-/health")
METRICS_PATH = "/metrics"
CHECK_METHODS = ("GET", "POST")


class SessionHandler:
    """Turns one :class:`RawRequest` into one :class:`RawResponse`.

    The handler keeps no per-request state; a single instance serves all
    connections of a server.
    """

    def __init__(self, engine: AnalysisEngine, executor: Optional[Executor] = None,
                 max_text_length: Optional[int] = None,
                 cors_config: Optional[CORSConfig] = None):
        self.engine = engine
        self.executor = executor
        self.max_text_length = max_text_length
        self.cors_config = cors_config or CORSConfig()

    async def handle(self, request: RawRequest) -> RawResponse:
        """Process a single request and return the complete response."""
        path = request.path

        if path in HEALTH_PATHS:
            return RawResponse.text(200, "OK")
        if path == METRICS_PATH:
            body, content_type = metrics.render_metrics()
            return RawResponse(200, body, content_type=content_type)
        if path != CHECK_PATH:
            return RawResponse.text(404, "Not found")

        if request.method not in CHECK_METHODS:
            response = RawResponse.text(405, f"Method not allowed: {request.method}")
            response.headers.append(("Allow", ", ".join(CHECK_METHODS)))
            return response

        response = await self._check(request)
        response.headers.extend(cors_headers(request.headers.get("origin"), self.cors_config))
        return response

    async def _check(self, request: RawRequest) -> RawResponse:
        try:
            check_request = decode_request(
                request.method,
                request.query,
                request.body,
                self.engine.languages,
                self.max_text_length,
            )
        except RequestError as e:
            logger.info("Rejected request from %s: %s", request.client, e)
            return RawResponse.text(e.status, str(e))

        loop = asyncio.get_running_loop()
        try:
            body = await loop.run_in_executor(self.executor, self.run_check, check_request)
        except AnalysisEngineError as e:
            logger.error("Analysis failed for %s: %s", request.client, e,
                         exc_info=e.__cause__ or e)
            return RawResponse.text(500, "Analysis engine error")
        return RawResponse(200, body, content_type=XML_CONTENT_TYPE)

    def run_check(self, check_request: CheckRequest) -> bytes:
        """Run the engine and render its matches. Blocking; runs on a worker thread.

        Raises:
            AnalysisEngineError: If the engine fails or returns unusable matches
        """
        start = time.perf_counter()
        try:
            result = self.engine.analyze(check_request.text, check_request.language_code)
        except AnalysisEngineError:
            raise
        except Exception as e:
            raise AnalysisEngineError(f"{type(e).__name__}: {e}") from e
        finally:
            metrics.ANALYSIS_LATENCY.observe(time.perf_counter() - start)

        matches = check_result(result)
        self._check_bounds(check_request.text, matches)
        metrics.MATCHES_TOTAL.inc(len(matches))
        return build_response(matches)

    @staticmethod
    def _check_bounds(text: str, matches: List[Match]) -> None:
        positions = TextPositions(text)
        for match in matches:
            if not (positions.contains(match.from_row, match.from_col)
                    and positions.contains(match.to_row, match.to_col)):
                raise AnalysisEngineError(
                    f"Match for {match.rule_id} lies outside the checked text"
                )
