"""Log output setup for the ledger service.

Deployed instances write one JSON object per record to stdout.  Ledger code
passes ``campaign_id``, ``milestone_index``, ``caller`` and the rejection
``code`` through ``extra=``; whichever of them a record carries become
top-level keys of its JSON object.

Setting ``ENVIRONMENT=development`` switches to plain one-line text.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

_LEDGER_KEYS = ("campaign_id", "milestone_index", "caller", "code")

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Third-party loggers that are chatty at INFO
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx")


class JSONFormatter(logging.Formatter):
    """Render a record as a JSON object on a single line."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, object] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, getattr(record, key))
            for key in _LEDGER_KEYS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_handler(environment: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if environment == "development":
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(JSONFormatter())
    return handler


def configure_logging(environment: str = "development", level: str = "INFO") -> None:
    """Route every log record through a single stdout handler.

    Runs from the application lifespan.  Handlers installed earlier (uvicorn
    adds its own) are replaced.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_build_handler(environment))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
