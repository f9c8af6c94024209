"""
Logging configuration.

- request_id attached to every record (taken from X-Request-ID or generated)
- JSON lines in production, plain text otherwise
- application loggers are quiet below WARNING in production
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from typing import Any, Dict, Optional

from flask import g, has_request_context

GENERIC_ERROR_MESSAGE = 'An unexpected error occurred. Please try again.'


def assign_request_id(incoming: Optional[str] = None) -> str:
    rid = (incoming or '').strip()[:64] or uuid.uuid4().hex
    g.request_id = rid
    return rid


def get_request_id() -> str:
    if has_request_context():
        return getattr(g, 'request_id', None) or '-'
    return '-'


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id = get_request_id()
        return True


class ProductionFilter(logging.Filter):
    """Drop chatty application records; errors keep only a generic message."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not record.name.startswith('academy'):
            return True
        if record.levelno < logging.WARNING:
            return False
        if record.levelno >= logging.ERROR:
            record.msg = GENERIC_ERROR_MESSAGE
            record.args = ()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        base: Dict[str, Any] = {
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'request_id': getattr(record, 'request_id', '-'),
        }
        for key in ('course_id', 'user_id', 'order_id'):
            if hasattr(record, key):
                base[key] = getattr(record, key)
        return json.dumps(base, ensure_ascii=False)


def configure_logging(level='INFO', production: bool = False) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(RequestIdFilter())
    if production:
        handler.setFormatter(JsonFormatter())
        handler.addFilter(ProductionFilter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s'
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)

    logging.getLogger('werkzeug').setLevel(max(level, logging.INFO))
    logging.getLogger('engineio').setLevel(logging.WARNING)
    logging.getLogger('socketio').setLevel(logging.WARNING)
