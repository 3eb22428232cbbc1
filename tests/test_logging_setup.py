"""Tests for the JSONL logging sink."""

import json
import logging
import sys

from noderesolve.logging_setup import JsonlHandler
from noderesolve.logging_setup import init_json_logging


def test_records_are_json_lines(tmp_path):
    path = tmp_path / "out" / "log.jsonl"
    handler = JsonlHandler(str(path))
    logger = logging.getLogger("noderesolve.test")
    record = logger.makeRecord(
        "noderesolve.test", logging.INFO, __file__, 1, "resolved %s", ("lodash",), None, extra={"uri": "file:///a"}
    )

    handler.emit(record)

    line = json.loads(path.read_text())
    assert line["lvl"] == "INFO"
    assert line["logger"] == "noderesolve.test"
    assert line["message"] == "resolved lodash"
    assert line["uri"] == "file:///a"
    assert line["schema"]["name"] == "noderesolve.log"


def test_exception_info_is_kept(tmp_path):
    handler = JsonlHandler(str(tmp_path / "log.jsonl"))
    try:
        raise ValueError("broken manifest")
    except ValueError:
        record = logging.LogRecord("noderesolve", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    data = handler.format_record(record)

    assert "ValueError: broken manifest" in data["exc"]


def test_init_installs_single_handler(tmp_path, restore_root_logger):
    init_json_logging(str(tmp_path / "a.jsonl"), "debug")
    init_json_logging(str(tmp_path / "b.jsonl"), "debug")

    root = restore_root_logger
    sinks = [h for h in root.handlers if isinstance(h, JsonlHandler)]
    assert len(sinks) == 1
    assert sinks[0].path.name == "b.jsonl"
    assert root.level == logging.DEBUG


def test_resolution_fields_are_grouped(tmp_path):
    handler = JsonlHandler(str(tmp_path / "log.jsonl"))
    record = logging.makeLogRecord(
        {
            "name": "noderesolve.resolution.resolver",
            "msg": "resolved",
            "specifier": "lodash",
            "referrer": "file:///app/main.js",
            "address": "file:///app/node_modules/lodash/lodash.js",
            "attempt": 2,
        }
    )

    data = handler.format_record(record)

    assert data["resolution"] == {
        "specifier": "lodash",
        "referrer": "file:///app/main.js",
        "address": "file:///app/node_modules/lodash/lodash.js",
    }
    assert data["attempt"] == 2
    assert "specifier" not in data


def test_plain_records_have_no_resolution_block(tmp_path):
    handler = JsonlHandler(str(tmp_path / "log.jsonl"))

    data = handler.format_record(logging.makeLogRecord({"msg": "hello"}))

    assert "resolution" not in data
    assert data["message"] == "hello"
    assert "source" in data
