"""Structured log formatting, redaction and Loki shipping"""
from .models import EventType, LogEvent, LogLevel
from .formatter import LogFormatter, fill_sql_params, sanitize, status_to_log_level
from .shipper import LokiShipper

__all__ = [
    'EventType',
    'LogEvent',
    'LogLevel',
    'LogFormatter',
    'LokiShipper',
    'fill_sql_params',
    'sanitize',
    'status_to_log_level'
]
