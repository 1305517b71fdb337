"""Logging setup for the API process and the CLI.

LOG_FORMAT=json emits one JSON object per line (service, version and
request_id on every record); LOG_FORMAT=text is for local development.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from unfurler.middleware.request_id import get_request_id

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"

# Third-party loggers that are chatty below WARNING: httpx logs every outbound
# request, PIL logs every chunk the header parser looks at.
_QUIET_LOGGERS = ("httpx", "httpcore", "PIL")


class RequestIDFilter(logging.Filter):
    def filter(self, record):
        record.request_id = get_request_id()
        return True


def _formatter(log_format: str, service: str, version: str) -> logging.Formatter:
    if log_format != "json":
        return logging.Formatter(TEXT_FORMAT)
    return JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s %(request_id)s",
        rename_fields={
            "levelname": "level",
            "name": "logger",
            "asctime": "timestamp",
        },
        static_fields={"service": service, "version": version},
    )


def configure_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    service: str = "unfurler",
    version: str = "",
):
    """Replace the root logger's handlers with a single stdout handler.

    Args:
        log_format: "json" or "text"
        log_level: Python log level name; unknown names fall back to INFO
        service: value of the ``service`` field in JSON output
        version: value of the ``version`` field in JSON output
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    handler.setFormatter(_formatter(log_format, service, version))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
