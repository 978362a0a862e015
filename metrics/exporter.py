"""Periodic OTLP exporter pushing the metric store to Grafana over HTTP/JSON"""
import asyncio
import time
from statistics import fmean
from typing import Any, Dict, List, Optional, Set
from .models import LatencyKind, MetricSnapshot, MetricType, MetricValue
from .store import MetricStore
from collectors.base import BaseCollector
from collectors.host import HostCollector
from config import Config
from logging_config import get_logger, log_export_cycle, log_error
from utils.http import HttpTransport, TransportError

logger = get_logger(__name__)

AGGREGATION_TEMPORALITY_CUMULATIVE = "AGGREGATION_TEMPORALITY_CUMULATIVE"

LATENCY_METRIC_NAMES = {
    LatencyKind.REQUEST: "requestLatency",
    LatencyKind.FACTORY: "factoryLatency",
}


class OTLPExporter:
    """Turns store snapshots into OTLP metric records and sends one batch per interval"""

    def __init__(self,
                 config: Config,
                 store: MetricStore,
                 transport: Optional[HttpTransport] = None,
                 collectors: Optional[List[BaseCollector]] = None):
        self.config = config
        self.store = store
        self.transport = transport or HttpTransport.from_config(config)
        self.collectors = collectors if collectors is not None else [HostCollector(config)]

        self.export_count = 0
        self.export_failures = 0
        self.last_export_time = 0.0
        self._healthy = True
        self._export_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    async def start(self) -> None:
        """Start the periodic export task"""
        if self._export_task is None:
            self._export_task = asyncio.create_task(self._export_loop())
            logger.info(
                "OTLP exporter started",
                endpoint=self.config.metrics_url,
                interval_seconds=self.config.export_interval
            )

    async def stop(self) -> None:
        """Cancel the export task and any in-flight pushes; no further exports run after this returns"""
        if self._export_task:
            self._export_task.cancel()
            try:
                await self._export_task
            except asyncio.CancelledError:
                pass
            self._export_task = None
        in_flight = list(self._pending)
        for task in in_flight:
            task.cancel()
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)
        logger.info("OTLP exporter stopped")

    async def shutdown(self) -> None:
        """Stop exporting and release the transport and collectors"""
        await self.stop()
        await self.transport.aclose()
        for collector in self.collectors:
            collector.cleanup()

    @property
    def is_running(self) -> bool:
        return self._export_task is not None and not self._export_task.done()

    def is_healthy(self) -> bool:
        """Check if the last export succeeded"""
        return self._healthy

    @property
    def pending(self) -> int:
        """Export cycles still waiting on their push"""
        return len(self._pending)

    async def _export_loop(self):
        """Tick on a fixed cadence, running each export cycle as its own task"""
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while True:
            deadline += self.config.export_interval
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            task = loop.create_task(self._run_export())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run_export(self):
        try:
            await self.export_once()
        except Exception as e:
            self.export_failures += 1
            log_error(logger, e, {"component": "export_loop", "export_failures": self.export_failures})

    async def export_once(self) -> bool:
        """Run one export cycle; returns False when the push failed"""
        start_time = time.time()
        self.export_count += 1

        # Draining happens here, before the send, so buffers never outlive a cycle
        snapshot = self.store.snapshot(drain_latency=True)
        host_metrics = await self._collect_host_metrics()
        metrics = self.build_metrics(snapshot, host_metrics, timestamp=start_time)
        payload = self.create_payload([self.create_metric(metric) for metric in metrics])

        try:
            await self.transport.post_json(self.config.metrics_url, payload, headers=self.config.metrics_headers())
        except TransportError as e:
            self.export_failures += 1
            self._healthy = False
            logger.error(
                "Error pushing metrics",
                error=str(e),
                status_code=e.status_code,
                endpoint=e.url,
                metric_count=len(metrics),
                event_type="otlp_export_error"
            )
            log_export_cycle(logger, len(metrics), time.time() - start_time, success=False)
            return False

        self._healthy = True
        self.last_export_time = time.time()
        log_export_cycle(logger, len(metrics), self.last_export_time - start_time)
        return True

    async def _collect_host_metrics(self) -> List[MetricValue]:
        results = await asyncio.gather(
            *(collector.collect_async() for collector in self.collectors),
            return_exceptions=True
        )
        host_metrics = []
        for collector, result in zip(self.collectors, results):
            if isinstance(result, Exception):
                logger.error("Collector failed", collector=collector.name, error=str(result), event_type="collection_error")
            else:
                host_metrics.extend(result)
        return host_metrics

    def build_metrics(self,
                      snapshot: MetricSnapshot,
                      host_metrics: Optional[List[MetricValue]] = None,
                      timestamp: Optional[float] = None) -> List[MetricValue]:
        """Flatten a snapshot plus host gauges into the ordered list of series to send"""
        ts = timestamp or time.time()
        metrics = []

        def add(name, value, metric_type, unit="1", labels=None):
            metrics.append(MetricValue(
                name=name,
                value=value,
                labels=labels or {},
                metric_type=metric_type,
                unit=unit,
                timestamp=ts
            ))

        for method, count in snapshot.requests_by_method.items():
            add("requests", count, MetricType.COUNTER, labels={"method": method})
        add("totalRequests", snapshot.total_requests, MetricType.COUNTER)
        add("activeUsers", snapshot.active_users, MetricType.GAUGE)

        for metric in host_metrics or []:
            if metric.timestamp is None:
                metric.timestamp = ts
            metrics.append(metric)

        add("orders", snapshot.orders, MetricType.COUNTER)
        add("itemsSold", snapshot.items_sold, MetricType.COUNTER)
        add("revenue", float(snapshot.revenue), MetricType.COUNTER)
        add("failedOrders", snapshot.failed_orders, MetricType.COUNTER)
        add("authenticationAttempts", snapshot.auth_successful, MetricType.COUNTER, labels={"status": "successful"})
        add("authenticationAttempts", snapshot.auth_failed, MetricType.COUNTER, labels={"status": "failed"})

        for kind, name in LATENCY_METRIC_NAMES.items():
            samples = snapshot.latency_samples.get(kind) or []
            if not samples:
                continue
            add(name, float(samples[-1]), MetricType.GAUGE, unit="ms")
            add(f"{name}Average", float(fmean(samples)), MetricType.GAUGE, unit="ms")

        return metrics

    def create_metric(self, metric: MetricValue) -> Dict[str, Any]:
        """Render one MetricValue as an OTLP JSON metric record"""
        attributes = dict(metric.labels)
        attributes["source"] = self.config.metrics_source

        data_point = {
            metric.value_type: metric.value,
            "timeUnixNano": int((metric.timestamp or time.time()) * 1_000_000_000),
            "attributes": self._convert_labels_to_attributes(attributes),
        }
        body: Dict[str, Any] = {"dataPoints": [data_point]}

        if metric.metric_type == MetricType.COUNTER:
            body["aggregationTemporality"] = AGGREGATION_TEMPORALITY_CUMULATIVE
            body["isMonotonic"] = True

        record: Dict[str, Any] = {"name": metric.name, "unit": metric.unit}
        if metric.help_text:
            record["description"] = metric.help_text
        record[metric.metric_type.value] = body
        return record

    def create_payload(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Wrap records in the resourceMetrics/scopeMetrics envelope"""
        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": self._convert_labels_to_attributes(self.config.get_otlp_resource_attributes())
                    },
                    "scopeMetrics": [
                        {
                            "scope": {"name": self.config.service_name, "version": self.config.service_version},
                            "metrics": records,
                        }
                    ],
                }
            ]
        }

    def _convert_labels_to_attributes(self, labels: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Convert labels to OTLP attributes; values always travel as strings"""
        return [
            {"key": key, "value": {"stringValue": str(value)}}
            for key, value in labels.items()
        ]
