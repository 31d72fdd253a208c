"""Structured logging tests."""

import json
import logging

import httpx
import pytest

from HttpGet.logging_config import (
    JSONFormatter,
    default_log_dir,
    mask_sensitive_data,
    setup_logging,
)
from HttpGet.settings import LoggingConfiguration


@pytest.fixture
def package_logger():
    logger = logging.getLogger("HttpGet")
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if getattr(handler, "_httpget_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


def _record(message, **extra):
    record = logging.makeLogRecord({"name": "HttpGet.test", "levelname": "INFO", "msg": message})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_mask_sensitive_data_recurses():
    masked = mask_sensitive_data(
        {"headers": {"Authorization": "Basic abc", "accept": "*/*"}, "password": "x", "status": 200}
    )

    assert masked == {
        "headers": {"Authorization": "***masked***", "accept": "*/*"},
        "password": "***masked***",
        "status": 200,
    }


def test_json_formatter_includes_extra_fields():
    line = JSONFormatter().format(_record("request complete", status=200, url="http://x/"))
    payload = json.loads(line)

    assert payload["message"] == "request complete"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "HttpGet.test"
    assert payload["status"] == 200
    assert payload["url"] == "http://x/"
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_masks_and_serialises_objects():
    line = JSONFormatter().format(_record("hop", auth=("user", "pw"), headers=httpx.Headers()))
    payload = json.loads(line)

    assert payload["auth"] == "***masked***"
    assert isinstance(payload["headers"], str)


def test_default_log_dir_override(monkeypatch, tmp_path):
    monkeypatch.setenv("HTTPGET_LOG_DIR", str(tmp_path))
    assert default_log_dir() == tmp_path


def test_setup_logging_writes_jsonl(package_logger, tmp_path):
    logger = setup_logging(LoggingConfiguration(level="debug"), tmp_path, console=False)
    logging.getLogger("HttpGet.orchestrator").info("request complete", extra={"status": 204})
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "http-get.jsonl").read_text(encoding="utf-8").splitlines()
    payload = json.loads(lines[-1])

    assert logger.level == logging.DEBUG
    assert payload["logger"] == "HttpGet.orchestrator"
    assert payload["status"] == 204


def test_setup_logging_replaces_previous_handlers(package_logger, tmp_path):
    setup_logging(LoggingConfiguration(), tmp_path)
    setup_logging(LoggingConfiguration(), tmp_path)

    managed = [h for h in package_logger.handlers if getattr(h, "_httpget_managed", False)]
    assert len(managed) == 2

