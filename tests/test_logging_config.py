"""Tests for the loguru setup."""

from __future__ import annotations

import json
import logging
import sys

import pytest
from loguru import logger

from phase_assistant.logging_config import CHATTY_LOGGERS, setup_logging

from conftest import make_settings


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)


def _read(path) -> list[str]:
    logger.remove()
    return path.read_text(encoding="utf-8").splitlines()


class TestSetupLogging:
    def test_file_sink_receives_loguru_and_stdlib_records(self, tmp_path):
        log_file = tmp_path / "logs" / "phase_assistant.log"
        setup_logging(make_settings(tmp_path, log_file=log_file))

        logger.info("ingest finished")
        logging.getLogger("pydantic_ai").warning("retrying model request")

        lines = _read(log_file)
        assert any("ingest finished" in line for line in lines)
        assert any("retrying model request" in line for line in lines)

    def test_http_chatter_is_quiet_below_debug(self, tmp_path):
        log_file = tmp_path / "app.log"
        setup_logging(make_settings(tmp_path, log_file=log_file))

        logging.getLogger("httpx").info("HTTP Request: POST https://test.openai.azure.com/")
        logging.getLogger("httpx").warning("connection reset")

        lines = _read(log_file)
        assert not any("HTTP Request" in line for line in lines)
        assert any("connection reset" in line for line in lines)

    def test_debug_keeps_http_chatter(self, tmp_path):
        log_file = tmp_path / "app.log"
        setup_logging(make_settings(tmp_path, log_file=log_file, log_level="debug"))

        logging.getLogger("httpx").info("HTTP Request: POST https://test.openai.azure.com/")

        assert any("HTTP Request" in line for line in _read(log_file))

    def test_json_sink(self, tmp_path):
        log_file = tmp_path / "app.jsonl"
        setup_logging(make_settings(tmp_path, log_file=log_file, log_json=True))

        logger.warning("retrieval degraded")

        records = [json.loads(line)["record"] for line in _read(log_file)]
        assert [r["message"] for r in records if r["level"]["name"] == "WARNING"] == ["retrieval degraded"]
