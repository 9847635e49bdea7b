"""Logging setup shared by the API and the background worker.

``LOG_FORMAT`` selects one-line JSON records ("json") or plain text ("text").
Structured fields ride on ``extra={"doseflow_<field>": ...}`` and land under
``context`` in the JSON output.
"""

import json
import logging
import logging.config
import time
from typing import Any

EXTRA_PREFIX = "doseflow_"
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JsonLineFormatter(logging.Formatter):
    converter = time.gmtime
    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {
            key[len(EXTRA_PREFIX):]: value
            for key, value in vars(record).items()
            if key.startswith(EXTRA_PREFIX)
        }
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)


def logging_config(log_format: str, level: int | str = logging.INFO) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonLineFormatter},
            "text": {"format": TEXT_FORMAT},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "json" if log_format == "json" else "text",
            },
        },
        "loggers": {
            # Request lines are already covered by the gateway.
            "uvicorn.access": {"level": "WARNING"},
        },
        "root": {"level": level, "handlers": ["stderr"]},
    }


def setup_logging(log_format: str, level: int | str = logging.INFO) -> None:
    logging.config.dictConfig(logging_config(log_format, level))
