"""Build Loki log events from request, query and error data, masking passwords"""
import datetime
import json
import numbers
import re
from typing import Any, Dict, Optional, Sequence
from .models import EventType, LogEvent, LogLevel

PASSWORD_MASK = "*****"
SQL_PASSWORD_MASK = "'*******'"
SQL_PASSWORD_MIN_LENGTH = 10

# Matches "password": "..." at any escaping depth, e.g. inside a JSON string
# that was itself serialized into the payload.
_EMBEDDED_PASSWORD = re.compile(
    r'(?P<q>\\*)"(?P<key>password)(?P=q)"\s*:\s*(?P=q)"(?:(?!(?P=q)").)*(?P=q)"',
    re.IGNORECASE,
)
_PLACEHOLDER = re.compile(r"\?")


def status_to_log_level(status_code: Optional[int]) -> LogLevel:
    if status_code is not None and status_code >= 500:
        return LogLevel.ERROR
    if status_code is not None and status_code >= 400:
        return LogLevel.WARN
    return LogLevel.INFO


def redact(value: Any) -> Any:
    """Copy of value with every 'password' key (any case, any depth) masked"""
    if isinstance(value, dict):
        return {
            key: PASSWORD_MASK if str(key).lower() == "password" else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def _mask_embedded(match: "re.Match") -> str:
    q = match.group("q")
    return f'{q}"{match.group("key")}{q}": {q}"{PASSWORD_MASK}{q}"'


def sanitize(payload: Any) -> str:
    """Serialize payload to JSON with passwords masked.

    The structural pass covers parsed bodies; the textual pass covers bodies
    that arrive as already-serialized JSON strings.
    """
    text = json.dumps(redact(payload), default=str)
    return _EMBEDDED_PASSWORD.sub(_mask_embedded, text)


def format_sql_value(param: Any) -> str:
    """Render one bound parameter as a SQL literal"""
    if param is None:
        return "NULL"
    if isinstance(param, bool):
        return "1" if param else "0"
    if isinstance(param, numbers.Number):
        return str(param)
    if isinstance(param, str):
        return "'" + param.replace("'", "''") + "'"
    if isinstance(param, (datetime.datetime, datetime.date, datetime.time)):
        return f"'{param.isoformat()}'"
    return "'" + str(param).replace("'", "''") + "'"


def fill_sql_params(sql: str, params: Optional[Sequence[Any]]) -> str:
    """Substitute '?' placeholders in order; surplus placeholders stay literal.

    Long string parameters of a query that mentions a password are masked.
    """
    if not params:
        return sql

    mentions_password = "password" in sql.lower()
    remaining = iter(params)

    def replace(match):
        try:
            param = next(remaining)
        except StopIteration:
            return "?"
        if mentions_password and isinstance(param, str) and len(param) > SQL_PASSWORD_MIN_LENGTH:
            return SQL_PASSWORD_MASK
        return format_sql_value(param)

    return _PLACEHOLDER.sub(replace, sql)


class LogFormatter:
    """Produces LogEvents labelled with the configured component"""

    def __init__(self, source: str):
        self.source = source

    def format(self, level, event_type, payload: Dict[str, Any]) -> LogEvent:
        labels = {
            "component": self.source,
            "level": LogLevel(level).value,
            "type": EventType(event_type).value,
        }
        return LogEvent(labels=labels, payload=sanitize(payload))

    def http_event(self,
                   method: str,
                   path: str,
                   status_code: int,
                   authorized: bool,
                   req_body: Any = None,
                   res_body: Any = None) -> LogEvent:
        payload = {
            "authorized": bool(authorized),
            "path": path,
            "method": method,
            "statusCode": status_code,
            "reqBody": req_body,
            "resBody": res_body,
        }
        return self.format(status_to_log_level(status_code), EventType.HTTP, payload)

    def db_query_event(self, sql: str, params: Optional[Sequence[Any]] = None) -> LogEvent:
        payload = {
            "authorized": None,
            "path": None,
            "method": None,
            "statusCode": None,
            "reqBody": fill_sql_params(sql, params),
            "resBody": None,
        }
        return self.format(LogLevel.INFO, EventType.DB_QUERY, payload)

    def factory_event(self, status_code: int, req_body: Any = None, res_body: Any = None) -> LogEvent:
        payload = {
            "authorized": None,
            "path": "/api/order",
            "method": "POST",
            "statusCode": status_code,
            "reqBody": req_body,
            "resBody": res_body,
        }
        level = LogLevel.INFO if status_code == 200 else LogLevel.ERROR
        return self.format(level, EventType.FACTORY_REQUEST, payload)

    def unhandled_error_event(self, status_code: int, message: str, stack: Optional[str] = None) -> LogEvent:
        # The stack trace travels in 'path' so it is indexed alongside request paths
        payload = {
            "authorized": None,
            "path": stack,
            "method": None,
            "statusCode": status_code,
            "reqBody": None,
            "resBody": {"message": message},
        }
        return self.format(LogLevel.ERROR, EventType.UNHANDLED_ERROR, payload)
