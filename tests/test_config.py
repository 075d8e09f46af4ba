"""
Tests for server configuration
"""
import pytest

from textcheck.core.config import DEFAULT_ENGINE, DEFAULT_PORT, ServerConfig
from textcheck.core.server_utils import ServerConfigError


def test_defaults():
    config = ServerConfig().validate()
    assert config.port == DEFAULT_PORT == 8081
    assert config.engine == DEFAULT_ENGINE
    assert config.persist is False
    assert config.allow_ips == ()


def test_from_env(monkeypatch):
    monkeypatch.setenv("TEXTCHECK_PORT", "9000")
    monkeypatch.setenv("TEXTCHECK_HOST", "0.0.0.0")
    monkeypatch.setenv("TEXTCHECK_WORKERS", "3")
    monkeypatch.setenv("TEXTCHECK_LOG_FORMAT", "text")
    config = ServerConfig.from_env()
    assert (config.host, config.port, config.workers) == ("0.0.0.0", 9000, 3)
    assert config.log_format == "text"


def test_overrides_beat_environment(monkeypatch):
    monkeypatch.setenv("TEXTCHECK_PORT", "9000")
    config = ServerConfig.from_env(port=9100, workers=None)
    assert config.port == 9100
    assert config.workers == ServerConfig.workers


def test_bad_integer_in_environment(monkeypatch):
    monkeypatch.setenv("TEXTCHECK_PORT", "eighty")
    with pytest.raises(ServerConfigError):
        ServerConfig.from_env()


@pytest.mark.parametrize("kwargs", [
    dict(port=-1),
    dict(port=70000),
    dict(port="8081"),
    dict(workers=0),
    dict(read_timeout=0),
    dict(shutdown_timeout=-1),
    dict(body_limit=0),
    dict(max_text_length=-5),
    dict(rate_limit=0),
    dict(log_format="xml"),
])
def test_validate_rejects(kwargs):
    with pytest.raises(ServerConfigError):
        ServerConfig(**kwargs).validate()


def test_config_is_immutable():
    config = ServerConfig()
    with pytest.raises(AttributeError):
        config.port = 1
