import json
import logging
import sys

from doseflow.core.logging import JsonLineFormatter, logging_config


def _record(**extra):
    fields = {
        "name": "doseflow.services.missed_detection",
        "levelname": "INFO",
        "levelno": logging.INFO,
        "msg": "swept %s events",
        "args": (3,),
    }
    fields.update(extra)
    return logging.makeLogRecord(fields)


def test_json_line_carries_context():
    line = JsonLineFormatter().format(_record(doseflow_job="detect_missed", doseflow_events=3))
    data = json.loads(line)
    assert data["message"] == "swept 3 events"
    assert data["level"] == "INFO"
    assert data["context"] == {"job": "detect_missed", "events": 3}
    assert data["time"].endswith("Z")
    assert "T" in data["time"]


def test_json_line_without_extras_has_no_context():
    data = json.loads(JsonLineFormatter().format(_record()))
    assert "context" not in data
    assert "exception" not in data


def test_exception_is_rendered():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(exc_info=sys.exc_info())
    data = json.loads(JsonLineFormatter().format(record))
    assert "RuntimeError: boom" in data["exception"]


def test_format_selects_formatter():
    assert logging_config("json")["handlers"]["stderr"]["formatter"] == "json"
    assert logging_config("text", "DEBUG")["handlers"]["stderr"]["formatter"] == "text"
    assert logging_config("text", "DEBUG")["root"]["level"] == "DEBUG"
