"""Starlette middleware feeding every HTTP exchange to the tracker"""
import json
import time
from typing import Any, Iterable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from app.tracking import Tracker
from logging_config import get_logger


logger = get_logger(__name__)


def decode_body(raw: bytes) -> Any:
    """Parsed JSON when possible, text otherwise, None for an empty body"""
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def should_capture_body(response: Response) -> bool:
    """Buffered JSON bodies only; streamed (no content-length) and non-JSON responses pass through"""
    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    is_json = content_type == "application/json" or content_type.endswith("+json")
    return is_json and "content-length" in response.headers


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Counts requests, times them and ships an http log entry per exchange"""

    def __init__(self, app, tracker: Tracker, exclude_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.tracker = tracker
        self.exclude_paths = frozenset(exclude_paths if exclude_paths is not None else ("/health",))

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        start_time = time.perf_counter()
        req_body = decode_body(await request.body())
        path = request.url.path + (f"?{request.url.query}" if request.url.query else "")
        authorized = "authorization" in request.headers

        try:
            response = await call_next(request)
        except Exception:
            # The app's exception handler logs the error itself
            self.tracker.track_request(
                request.method,
                path,
                500,
                authorized=authorized,
                req_body=req_body,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )
            raise

        if not should_capture_body(response):
            self.tracker.track_request(
                request.method,
                path,
                response.status_code,
                authorized=authorized,
                req_body=req_body,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )
            return response

        raw = b"".join([chunk async for chunk in response.body_iterator])
        duration_ms = (time.perf_counter() - start_time) * 1000

        self.tracker.track_request(
            request.method,
            path,
            response.status_code,
            authorized=authorized,
            req_body=req_body,
            res_body=decode_body(raw),
            duration_ms=duration_ms,
        )

        return Response(
            content=raw,
            status_code=response.status_code,
            headers=response.headers,
            background=response.background,
        )
