"""Shared fakes for the telemetry tests"""
import json
from typing import Any, Dict, List
import httpx
from config import Config
from utils.http import HttpTransport


def make_config(**overrides) -> Config:
    """Config with test endpoints and zero backoff, independent of the environment"""
    values: Dict[str, Any] = {
        "metrics_url": "https://otlp.example.test/otlp/v1/metrics",
        "metrics_api_key": "metrics-key",
        "metrics_source": "pizza-test",
        "logging_url": "https://logs.example.test/loki/api/v1/push",
        "logging_user_id": "1234",
        "logging_api_key": "logs-key",
        "logging_source": "pizza-test",
        "export_interval": 10.0,
        "http_timeout": 1.0,
        "http_max_attempts": 3,
        "http_backoff_multiplier": 0,
        "http_backoff_max": 0,
        "instance_id": "test-instance",
    }
    values.update(overrides)
    return Config(**values)


class FakeEndpoint:
    """httpx.MockTransport handler that records requests and replays statuses"""

    def __init__(self, statuses=None, error: Exception = None):
        self.requests: List[httpx.Request] = []
        self.statuses = list(statuses or [])
        self.error = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        status = self.statuses.pop(0) if self.statuses else 200
        return httpx.Response(status, json={})

    def transport(self, max_attempts: int = 3) -> HttpTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return HttpTransport(timeout=1.0, max_attempts=max_attempts, backoff_multiplier=0, backoff_max=0, client=client)

    @property
    def payloads(self) -> List[Any]:
        return [json.loads(request.content) for request in self.requests]


class RecordingShipper:
    """Stands in for LokiShipper, keeping shipped events in memory"""

    def __init__(self):
        self.events = []
        self.sent = 0
        self.failed = 0
        self.dropped = 0
        self.pending = 0
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def ship(self, event):
        self.events.append(event)
        self.sent += 1

    async def shutdown(self, timeout: float = 2.0):
        self.closed = True


def otlp_metrics(payload) -> List[Dict[str, Any]]:
    return payload["resourceMetrics"][0]["scopeMetrics"][0]["metrics"]


def data_point(record) -> Dict[str, Any]:
    body = record.get("sum") or record.get("gauge")
    return body["dataPoints"][0]


def attributes(record) -> Dict[str, str]:
    return {attr["key"]: attr["value"]["stringValue"] for attr in data_point(record)["attributes"]}


def find_metrics(payload, name) -> List[Dict[str, Any]]:
    return [record for record in otlp_metrics(payload) if record["name"] == name]
