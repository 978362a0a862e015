"""HTTP middleware for request tracking"""
from .tracking import RequestTrackingMiddleware

__all__ = ['RequestTrackingMiddleware']
