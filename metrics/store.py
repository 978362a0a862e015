"""In-process metric store updated by the request tracking hooks"""
import math
import threading
from typing import Dict, List
from .models import LatencyKind, MetricSnapshot
from logging_config import get_logger


logger = get_logger(__name__)


def _method_name(method) -> str:
    return str(method or "UNKNOWN").upper()


class MetricStore:
    """Counters, gauges and per-interval latency buffers for one service process.

    Mutations never raise and never do I/O. A single lock guards every field so
    sync handlers running in the worker thread pool and the exporter task on the
    event loop always see consistent values.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._requests_by_method: Dict[str, int] = {}
        self._total_requests = 0
        self._active_users = 0
        self._auth_successful = 0
        self._auth_failed = 0
        self._orders = 0
        self._items_sold = 0
        self._revenue = 0.0
        self._failed_orders = 0
        self._latency: Dict[LatencyKind, List[float]] = {kind: [] for kind in LatencyKind}

    def increment_request_count(self, method: str) -> None:
        method = _method_name(method)
        with self._lock:
            self._requests_by_method[method] = self._requests_by_method.get(method, 0) + 1

    def increment_total(self) -> None:
        with self._lock:
            self._total_requests += 1

    def record_request(self, method: str) -> None:
        """Count one request under its method and in the total as a single update"""
        method = _method_name(method)
        with self._lock:
            self._requests_by_method[method] = self._requests_by_method.get(method, 0) + 1
            self._total_requests += 1

    def set_active_users(self, delta: int) -> None:
        """Apply a +1/-1 change to the active user gauge, never going below zero"""
        try:
            delta = int(delta)
        except (TypeError, ValueError, OverflowError):
            logger.debug("Ignoring invalid active user change", delta=delta, event_type="metric_invalid_value")
            return
        with self._lock:
            self._active_users = max(0, self._active_users + delta)

    def record_auth_outcome(self, success: bool) -> None:
        with self._lock:
            if success:
                self._auth_successful += 1
            else:
                self._auth_failed += 1

    def record_order(self, item_count: int, revenue: float) -> None:
        try:
            items = max(0, int(item_count))
            amount = float(revenue)
        except (TypeError, ValueError, OverflowError):
            logger.debug(
                "Ignoring order with invalid values",
                item_count=item_count,
                revenue=revenue,
                event_type="metric_invalid_value"
            )
            return
        if not math.isfinite(amount):
            logger.debug("Ignoring order with non-finite revenue", revenue=revenue, event_type="metric_invalid_value")
            return
        with self._lock:
            self._orders += 1
            self._items_sold += items
            self._revenue += max(0.0, amount)

    def increment_failed_orders(self) -> None:
        with self._lock:
            self._failed_orders += 1

    def observe_latency(self, duration_ms: float, kind) -> None:
        try:
            kind = LatencyKind(kind)
        except ValueError:
            logger.debug("Ignoring latency sample of unknown kind", kind=kind, event_type="latency_unknown_kind")
            return
        try:
            duration_ms = float(duration_ms)
        except (TypeError, ValueError):
            logger.debug("Ignoring invalid latency sample", duration_ms=duration_ms, event_type="metric_invalid_value")
            return
        if not math.isfinite(duration_ms):
            logger.debug("Ignoring non-finite latency sample", duration_ms=duration_ms, event_type="metric_invalid_value")
            return
        with self._lock:
            self._latency[kind].append(duration_ms)

    @property
    def active_users(self) -> int:
        with self._lock:
            return self._active_users

    def pending_latency_samples(self, kind) -> List[float]:
        """Samples recorded since the last drain, without draining them"""
        with self._lock:
            return list(self._latency[LatencyKind(kind)])

    def snapshot(self, drain_latency: bool = True) -> MetricSnapshot:
        """Copy every series; latency buffers are swapped out and emptied when draining"""
        with self._lock:
            if drain_latency:
                latency = self._latency
                self._latency = {kind: [] for kind in LatencyKind}
            else:
                latency = {kind: list(samples) for kind, samples in self._latency.items()}

            return MetricSnapshot(
                requests_by_method=dict(self._requests_by_method),
                total_requests=self._total_requests,
                active_users=self._active_users,
                auth_successful=self._auth_successful,
                auth_failed=self._auth_failed,
                orders=self._orders,
                items_sold=self._items_sold,
                revenue=self._revenue,
                failed_orders=self._failed_orders,
                latency_samples=latency,
            )
