"""Log event models for the Loki shipper"""
import time
from dataclasses import dataclass, field
from typing import Any, Dict
from enum import Enum


class EventType(str, Enum):
    """Value of the 'type' stream label"""
    HTTP = "http"
    DB_QUERY = "db query"
    FACTORY_REQUEST = "factory request"
    UNHANDLED_ERROR = "unhandled error"


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


def now_nanos_string() -> str:
    """Current epoch time in nanoseconds, as Loki expects it"""
    return str(time.time_ns())


@dataclass
class LogEvent:
    """One log line: stream labels plus the redacted JSON payload"""
    labels: Dict[str, str]
    payload: str
    timestamp: str = field(default_factory=now_nanos_string)

    def to_stream(self) -> Dict[str, Any]:
        return {"stream": dict(self.labels), "values": [[self.timestamp, self.payload]]}

    def to_push_body(self) -> Dict[str, Any]:
        """Loki push envelope holding this single entry"""
        return {"streams": [self.to_stream()]}
