"""Metric store and metric models"""
from .models import LatencyKind, MetricSnapshot, MetricType, MetricValue
from .store import MetricStore

__all__ = [
    'LatencyKind',
    'MetricSnapshot',
    'MetricType',
    'MetricValue',
    'MetricStore'
]
