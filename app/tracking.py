"""Tracking hooks called by the pizza service's routers and data layer"""
from typing import Any, Optional, Sequence
from metrics.models import LatencyKind
from metrics.store import MetricStore
from logs.formatter import LogFormatter
from logs.models import LogEvent
from logs.shipper import LokiShipper
from logging_config import get_logger


logger = get_logger(__name__)


class Tracker:
    """Single entry point for metric updates and log shipping.

    Every hook is synchronous and returns immediately: store updates are
    in-memory and log entries are handed to the shipper without waiting.
    """

    def __init__(self, store: MetricStore, formatter: LogFormatter, shipper: LokiShipper):
        self.store = store
        self.formatter = formatter
        self.shipper = shipper

    @classmethod
    def from_config(cls, config, store: Optional[MetricStore] = None, shipper: Optional[LokiShipper] = None) -> "Tracker":
        return cls(
            store=store or MetricStore(),
            formatter=LogFormatter(config.logging_source),
            shipper=shipper or LokiShipper(config),
        )

    def track_request(self,
                      method: str,
                      path: str,
                      status_code: int,
                      authorized: bool = False,
                      req_body: Any = None,
                      res_body: Any = None,
                      duration_ms: Optional[float] = None) -> None:
        self.store.record_request(method)
        if duration_ms is not None:
            self.store.observe_latency(duration_ms, LatencyKind.REQUEST)
        self._emit(lambda: self.formatter.http_event(method, path, status_code, authorized, req_body, res_body))

    def track_auth(self, success: bool) -> None:
        """A login attempt finished; successful logins count as an active user"""
        self.store.record_auth_outcome(success)
        if success:
            self.store.set_active_users(1)

    def track_logout(self) -> None:
        self.store.set_active_users(-1)

    def track_order(self, item_count: int, revenue: float) -> None:
        self.store.record_order(item_count, revenue)

    def track_failed_order(self) -> None:
        self.store.increment_failed_orders()

    def track_factory_request(self,
                              status_code: int,
                              req_body: Any = None,
                              res_body: Any = None,
                              duration_ms: Optional[float] = None) -> None:
        if duration_ms is not None:
            self.store.observe_latency(duration_ms, LatencyKind.FACTORY)
        self._emit(lambda: self.formatter.factory_event(status_code, req_body, res_body))

    def track_db_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        self._emit(lambda: self.formatter.db_query_event(sql, params))

    def track_unhandled_error(self, status_code: int, message: str, stack: Optional[str] = None) -> None:
        self._emit(lambda: self.formatter.unhandled_error_event(status_code, message, stack))

    def _emit(self, build) -> None:
        try:
            event: LogEvent = build()
        except (TypeError, ValueError) as e:
            logger.error("Could not format log event", error=str(e), event_type="log_format_error")
            return
        self.shipper.ship(event)
