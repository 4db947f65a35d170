"""Tests for settings, logging setup and the error types."""

import io
import json
import logging

import pytest
from pydantic import ValidationError

from catalog_recs.config import Settings
from catalog_recs.logging_config import JSONFormatter, setup_logging


def test_defaults():
    s = Settings(_env_file=None)
    assert s.default_limit == 8
    assert s.default_related_limit == 6
    assert s.price_band_lower == 0.7
    assert s.price_band_upper == 1.3
    assert s.enforce_price_band is False
    assert s.v1_merge_strategy == "first"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("REPOSITORY_BACKEND", "MEMORY")
    monkeypatch.setenv("QUERY_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    s = Settings(_env_file=None)
    assert s.repository_backend == "memory"
    assert s.query_timeout_seconds == 2.5
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize("field, value", [
    ("log_level", "LOUD"),
    ("log_format", "xml"),
    ("repository_backend", "mongo"),
    ("v1_merge_strategy", "avg"),
    ("query_concurrency", 0),
])
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_asyncpg_dsn_strips_driver():
    s = Settings(_env_file=None, database_url="postgresql+asyncpg://u:p@db:5432/shop")
    assert s.asyncpg_dsn == "postgresql://u:p@db:5432/shop"


def test_cors_origin_list():
    s = Settings(_env_file=None, cors_origins="http://a.test, http://b.test,")
    assert s.cors_origin_list == ["http://a.test", "http://b.test"]


def test_json_formatter_includes_extra_data():
    record = logging.LogRecord(
        "catalog_recs.engine", logging.INFO, __file__, 1, "served %s", ("v1",), None)
    record.extra_data = {"product_id": "abc"}

    entry = json.loads(JSONFormatter().format(record))

    assert entry["level"] == "INFO"
    assert entry["logger"] == "catalog_recs.engine"
    assert entry["message"] == "served v1"
    assert entry["product_id"] == "abc"


def test_setup_logging_text(tmp_path):
    stream = io.StringIO()
    log_file = tmp_path / "recs.log"
    s = Settings(_env_file=None, log_format="text", log_file=str(log_file))
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    try:
        setup_logging(s, stream=stream)
        logging.getLogger("catalog_recs.test").info("hello")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])

    assert "[INFO] catalog_recs.test: hello" in stream.getvalue()
    assert "hello" in log_file.read_text(encoding="utf-8")
