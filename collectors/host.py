"""Host CPU and memory usage gauges"""
import os
from typing import List
import psutil
from .base import BaseCollector
from metrics.models import MetricValue, MetricType
from logging_config import get_logger


logger = get_logger(__name__)


def get_cpu_usage_percentage() -> float:
    """1-minute load average per logical core, as a percentage of one core"""
    cores = psutil.cpu_count(logical=True) or 1
    load_1m = os.getloadavg()[0]
    return round(load_1m / cores, 2) * 100


def get_memory_usage_percentage() -> float:
    """Used (total minus free) memory as a percentage of total"""
    memory = psutil.virtual_memory()
    if not memory.total:
        return 0.0
    used = memory.total - memory.free
    return round(used / memory.total * 100, 2)


class HostCollector(BaseCollector):
    """Samples memoryUsagePercent and cpuUsagePercent once per export"""

    def __init__(self, config=None):
        super().__init__(config, "host")

    def collect(self) -> List[MetricValue]:
        metrics = []

        try:
            metrics.append(MetricValue(
                name="memoryUsagePercent",
                value=float(get_memory_usage_percentage()),
                labels={},
                help_text="Used memory as a percentage of total",
                metric_type=MetricType.GAUGE,
                unit="%"
            ))
        except OSError as e:
            logger.warning("Memory usage unavailable", error=str(e), event_type="collector_error")

        try:
            metrics.append(MetricValue(
                name="cpuUsagePercent",
                value=float(get_cpu_usage_percentage()),
                labels={},
                help_text="1-minute load average per core",
                metric_type=MetricType.GAUGE,
                unit="%"
            ))
        except (OSError, AttributeError) as e:
            # os.getloadavg is unavailable on some platforms
            logger.warning("CPU usage unavailable", error=str(e), event_type="collector_error")

        return metrics
