# tests/test_run_server.py

import json
import logging

import pytest

import src.run_server as run_server
from src.trivelastic.logs import JsonFormatter, configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_missing_configuration_exits_nonzero_without_serving(monkeypatch):
    for name in ("ES_URL", "ES_API_KEY", "ES_INDEX"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(run_server.config_mod, "load_dotenv", lambda: False)

    def exploding_run(*args, **kwargs):
        raise AssertionError("uvicorn.run must not be called with bad config")

    monkeypatch.setattr(run_server.uvicorn, "run", exploding_run)

    assert run_server.main([]) == 1


def test_main_builds_pool_and_serves(monkeypatch):
    monkeypatch.setenv("ES_URL", "https://es.example.com")
    monkeypatch.setenv("ES_API_KEY", "secret")
    monkeypatch.setenv("ES_INDEX", "docs")
    monkeypatch.setenv("PORT", "8181")
    monkeypatch.setattr(run_server.config_mod, "load_dotenv", lambda: False)

    captured = {}

    def fake_run(app, host, port, log_config):
        captured["app"] = app
        captured["host"] = host
        captured["port"] = port

    monkeypatch.setattr(run_server.uvicorn, "run", fake_run)

    exit_code = run_server.main(["--workers", "2", "--host", "127.0.0.1"])

    assert exit_code == 0
    assert captured["host"] == "127.0.0.1"
    assert captured["port"] == 8181
    assert captured["app"] is not None


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        "trivelastic.elasticsearch", logging.WARNING, __file__, 1,
        "attempt %d failed", (2,), None,
    )
    record.component = "elasticsearch"
    record.attempt = 2

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "attempt 2 failed"
    assert data["level"] == "warning"
    assert data["logger"] == "trivelastic.elasticsearch"
    assert data["component"] == "elasticsearch"
    assert data["attempt"] == 2


def test_configure_logging_sets_level_and_single_handler():
    configure_logging("debug", json_format=True)
    configure_logging("warning", json_format=False)

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0].formatter, JsonFormatter)
