"""Host metric collectors"""
from .base import BaseCollector
from .host import HostCollector

__all__ = [
    'BaseCollector',
    'HostCollector'
]
