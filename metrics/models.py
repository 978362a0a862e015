"""Metric models shared by the store, collectors and the OTLP exporter"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
from enum import Enum

Number = Union[int, float]


class MetricType(Enum):
    """OpenTelemetry metric types"""
    COUNTER = "sum"
    GAUGE = "gauge"


class LatencyKind(str, Enum):
    """Latency sample buffers kept by the store"""
    FACTORY = "factory"
    REQUEST = "request"


@dataclass
class MetricValue:
    """Single metric value for OTLP export"""
    name: str
    value: Number
    labels: Dict[str, str]
    help_text: str = ""
    metric_type: MetricType = MetricType.GAUGE
    unit: str = "1"
    timestamp: Optional[float] = None

    def __post_init__(self):
        # Ensure labels is never None
        if self.labels is None:
            self.labels = {}

    @property
    def value_type(self) -> str:
        """OTLP JSON value key for this value"""
        if isinstance(self.value, int) and not isinstance(self.value, bool):
            return "asInt"
        return "asDouble"


@dataclass(frozen=True)
class MetricSnapshot:
    """Point-in-time copy of the store taken by one export cycle"""
    requests_by_method: Dict[str, int] = field(default_factory=dict)
    total_requests: int = 0
    active_users: int = 0
    auth_successful: int = 0
    auth_failed: int = 0
    orders: int = 0
    items_sold: int = 0
    revenue: float = 0.0
    failed_orders: int = 0
    latency_samples: Dict[LatencyKind, List[float]] = field(default_factory=dict)
