"""Async HTTP transport for pushing telemetry to Grafana ingestion endpoints"""
import json
from typing import Any, Dict, Optional
import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from logging_config import get_logger


logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class TransportError(Exception):
    """A push to an ingestion endpoint failed (network error or non-2xx)"""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.retryable = retryable


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, TransportError) and error.retryable


class HttpTransport:
    """POSTs JSON bodies with a per-attempt timeout and exponential backoff retry"""

    def __init__(self,
                 timeout: float = 5.0,
                 max_attempts: int = 3,
                 backoff_multiplier: float = 0.5,
                 backoff_max: float = 4.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.backoff_max = backoff_max
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config, client: Optional[httpx.AsyncClient] = None) -> "HttpTransport":
        return cls(
            timeout=config.http_timeout,
            max_attempts=config.http_max_attempts,
            backoff_multiplier=config.http_backoff_multiplier,
            backoff_max=config.http_backoff_max,
            client=client,
        )

    async def post_json(self, url: str, payload: Any, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """Send payload, retrying transient failures; raises TransportError when all attempts fail"""
        body = json.dumps(payload)
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=self.backoff_max),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        "Retrying telemetry push",
                        url=url,
                        attempt=attempt.retry_state.attempt_number,
                        event_type="transport_retry"
                    )
                response = await self._post_once(url, body, request_headers)
        return response

    async def _post_once(self, url: str, body: str, headers: Dict[str, str]) -> httpx.Response:
        try:
            response = await self._client.post(url, content=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out after {self.timeout}s: {e}", url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error: {e}", url) from e

        if not response.is_success:
            raise TransportError(
                f"HTTP status: {response.status_code}",
                url,
                status_code=response.status_code,
                retryable=response.status_code in RETRYABLE_STATUS_CODES,
            )
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
