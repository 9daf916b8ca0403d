import logging

from fluentql.__version__ import __version__
from fluentql.logging.filters import (
    ContextFilter,
    clear_request_context,
    set_logging_context,
    set_request_context,
)
from fluentql.settings import _reload_settings


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="sample",
        args=(),
        exc_info=None,
    )


def test_context_filter_respects_static_environment():
    set_logging_context(environment="qa", extra={"region": "us-east"})
    try:
        record = _record()
        assert ContextFilter().filter(record)
        assert getattr(record, "environment") == "qa"
        assert getattr(record, "region") == "us-east"
    finally:
        set_logging_context(environment=None, extra=None)


def test_context_filter_uses_request_context():
    set_logging_context(environment=None, extra=None)
    set_request_context(request_id="req-1", user_id="user-7")
    try:
        record = _record()
        assert ContextFilter().filter(record)
        assert record.request_id == "req-1"
        assert record.user_id == "user-7"
    finally:
        clear_request_context()


def test_context_filter_no_config_is_graceful():
    set_logging_context(environment=None, extra=None)
    record = _record()
    assert ContextFilter().filter(record)
    assert record.environment == "dev"
    assert record.request_id is None


def test_context_filter_tags_sdk():
    record = _record()
    ContextFilter().filter(record)
    assert record.sdk_name == "fluentql"
    assert record.sdk_version == __version__


def test_context_filter_falls_back_to_app_env(monkeypatch):
    set_logging_context(environment=None, extra=None)
    monkeypatch.setenv("FLUENTQL_APP_ENV", "qa")
    _reload_settings()

    record = _record()
    ContextFilter().filter(record)

    assert record.environment == "qa"


def test_explicit_environment_wins_over_app_env(monkeypatch):
    monkeypatch.setenv("FLUENTQL_APP_ENV", "qa")
    _reload_settings()
    set_logging_context(environment="prod")
    try:
        record = _record()
        ContextFilter().filter(record)
        assert record.environment == "prod"
    finally:
        set_logging_context(environment=None, extra=None)
