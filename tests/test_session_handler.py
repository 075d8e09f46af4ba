"""
Tests for request routing, engine invocation and response rendering
"""
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor

import pytest

from textcheck.core.http_messages import RawRequest
from textcheck.core.matches import Match
from textcheck.core.request_decoder import CheckRequest
from textcheck.core.session_handler import SessionHandler, XML_CONTENT_TYPE
from textcheck.engine.base import AnalysisEngineError, FunctionEngine
from textcheck.features.security import CORSConfig

SENTENCE_START = Match(
    from_row=0, from_col=0, to_row=0, to_col=5,
    rule_id="UPPERCASE_SENTENCE_START",
    message="This sentence does not start with an uppercase letter",
    replacements=("This",),
    context="this is a test.",
    context_offset=0,
    error_length=4,
)


class RecordingEngine(FunctionEngine):
    def __init__(self, result=None, error=None):
        super().__init__(self._run, ["en", "de"])
        self.calls = []
        self.result = [SENTENCE_START] if result is None else result
        self.error = error

    def _run(self, text, language_code):
        self.calls.append((text, language_code))
        if self.error is not None:
            raise self.error
        return self.result


def get(target, **kwargs):
    return RawRequest(method="GET", target=target, client="127.0.0.1:5000", **kwargs)


@pytest.mark.asyncio
async def test_documented_scenario():
    engine = RecordingEngine()
    handler = SessionHandler(engine)
    response = await handler.handle(get("/?language=en&text=this%20is%20a%20test"))

    assert response.status == 200
    assert response.content_type == XML_CONTENT_TYPE
    assert engine.calls == [("this is a test", "en")]

    errors = ET.fromstring(response.body).findall("error")
    assert len(errors) == 1
    assert dict(errors[0].attrib) == {
        "fromy": "0", "fromx": "0", "toy": "0", "tox": "5",
        "ruleId": "UPPERCASE_SENTENCE_START",
        "msg": "This sentence does not start with an uppercase letter",
        "replacements": "This",
        "context": "this is a test.",
        "contextoffset": "0",
        "errorlength": "4",
    }


@pytest.mark.asyncio
async def test_post_matches_get():
    engine = RecordingEngine()
    with ThreadPoolExecutor(max_workers=2) as executor:
        handler = SessionHandler(engine, executor)
        from_get = await handler.handle(get("/?language=en&text=this+is+a+test"))
        from_post = await handler.handle(RawRequest(
            method="POST", target="/", body=b"language=en&text=this+is+a+test"))
    assert from_get.status == from_post.status == 200
    assert from_get.body == from_post.body
    assert engine.calls == [("this is a test", "en")] * 2


@pytest.mark.asyncio
async def test_no_matches():
    handler = SessionHandler(RecordingEngine(result=[]))
    response = await handler.handle(get("/?language=en&text=Fine."))
    assert response.status == 200
    assert len(ET.fromstring(response.body)) == 0


@pytest.mark.asyncio
async def test_missing_text_never_reaches_engine():
    engine = RecordingEngine()
    response = await SessionHandler(engine).handle(get("/?language=en"))
    assert response.status == 400
    assert response.content_type.startswith("text/plain")
    assert b"text" in response.body
    assert engine.calls == []


@pytest.mark.asyncio
async def test_unknown_language_never_reaches_engine():
    engine = RecordingEngine()
    response = await SessionHandler(engine).handle(get("/?language=xx&text=hello"))
    assert response.status == 422
    assert engine.calls == []


@pytest.mark.asyncio
async def test_text_too_long():
    engine = RecordingEngine()
    handler = SessionHandler(engine, max_text_length=3)
    response = await handler.handle(get("/?language=en&text=hello"))
    assert response.status == 413
    assert engine.calls == []


@pytest.mark.asyncio
async def test_engine_failure_is_500_without_xml():
    handler = SessionHandler(RecordingEngine(error=RuntimeError("boom")))
    response = await handler.handle(get("/?language=en&text=hello"))
    assert response.status == 500
    assert response.content_type.startswith("text/plain")
    assert b"<matches" not in response.body


@pytest.mark.asyncio
async def test_engine_returning_garbage_is_500():
    handler = SessionHandler(RecordingEngine(result=["not a match"]))
    response = await handler.handle(get("/?language=en&text=hello"))
    assert response.status == 500


@pytest.mark.asyncio
async def test_match_outside_text_is_500():
    outside = Match(0, 0, 3, 1, "RULE", "msg", (), "abc", 0, 1)
    handler = SessionHandler(RecordingEngine(result=[outside]))
    response = await handler.handle(get("/?language=en&text=hello"))
    assert response.status == 500


def test_run_check_wraps_engine_errors():
    handler = SessionHandler(RecordingEngine(error=KeyError("x")))
    with pytest.raises(AnalysisEngineError) as ctx:
        handler.run_check(CheckRequest("en", "hello"))
    assert isinstance(ctx.value.__cause__, KeyError)


@pytest.mark.asyncio
async def test_unknown_path_is_404():
    response = await SessionHandler(RecordingEngine()).handle(get("/check?language=en&text=a"))
    assert response.status == 404


@pytest.mark.asyncio
async def test_other_methods_are_405():
    handler = SessionHandler(RecordingEngine())
    response = await handler.handle(RawRequest(method="PUT", target="/?language=en&text=a"))
    assert response.status == 405
    assert ("Allow", "GET, POST") in response.headers


@pytest.mark.asyncio
async def test_health_and_metrics():
    handler = SessionHandler(RecordingEngine())
    health = await handler.handle(get("/health"))
    assert health.status == 200
    assert health.body == b"OK"

    await handler.handle(get("/?language=en&text=hello"))
    metrics = await handler.handle(get("/metrics"))
    assert metrics.status == 200
    assert b"textcheck_analysis_duration_seconds" in metrics.body


@pytest.mark.asyncio
async def test_cors_headers_for_allowed_origin():
    handler = SessionHandler(RecordingEngine(),
                             cors_config=CORSConfig(allowed_origins=("https://editor.example",)))
    response = await handler.handle(get("/?language=en&text=hello",
                                        headers={"origin": "https://editor.example"}))
    assert ("Access-Control-Allow-Origin", "https://editor.example") in response.headers

    response = await handler.handle(get("/?language=en&text=hello",
                                        headers={"origin": "https://other.example"}))
    assert not any(name.startswith("Access-Control") for name, _ in response.headers)
