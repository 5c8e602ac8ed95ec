"""HTTP transport with bounded retries and timeouts."""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog
from pydantic import BaseModel, Field

from .config import settings
from .errors import NetworkUnavailable, ProtocolFailure, TransientFailure

logger = structlog.get_logger(__name__)

BINARY_MEDIA_TYPES = {"application/pdf", "application/octet-stream"}


class Outcome(str, Enum):
    """Classification of one logical HTTP call."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    PROTOCOL_FAILURE = "protocol_failure"
    NETWORK_UNAVAILABLE = "network_unavailable"


class RequestSpec(BaseModel):
    """Description of a request relative to the transport's base URL."""

    method: str = Field("GET", description="HTTP method")
    path: str = Field(..., description="Path or absolute URL")
    params: Dict[str, Any] = Field(default_factory=dict, description="Query parameters")
    body: Optional[Any] = Field(None, description="JSON request body")
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra headers")


class TransportResult(BaseModel):
    """Tagged result of :meth:`Transport.send`."""

    outcome: Outcome
    status_code: Optional[int] = None
    data: Any = Field(None, description="Parsed JSON body on success")
    content: Optional[bytes] = Field(None, description="Raw body for binary responses")
    media_type: Optional[str] = None
    message: Optional[str] = Field(None, description="Failure description")
    attempts: int = Field(0, description="Number of requests actually sent")

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    def raise_for_outcome(self) -> "TransportResult":
        """Raise the matching error for a failed outcome, else return self."""
        if self.outcome == Outcome.NETWORK_UNAVAILABLE:
            raise NetworkUnavailable(self.message or "Network unavailable")
        if self.outcome == Outcome.TRANSIENT_FAILURE:
            raise TransientFailure(self.message or "Request failed after retries")
        if self.outcome == Outcome.PROTOCOL_FAILURE:
            raise ProtocolFailure(
                self.message or f"Request failed with status {self.status_code}",
                status_code=self.status_code,
            )
        return self


def default_is_online() -> bool:
    """Report whether the device is online."""
    return not settings.offline


class Transport:
    """Sends one logical HTTP call with retries, backoff and a hard timeout.

    Connection errors and timeouts are retried up to ``max_retries`` times,
    waiting ``base_delay * 2 ** attempt`` between attempts. A non-2xx status
    is never retried. Nothing is cached at this layer.
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        base_delay: Optional[float] = None,
        is_online: Optional[Callable[[], bool]] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.base_delay = settings.retry_base_delay if base_delay is None else base_delay
        self.is_online = is_online or default_is_online
        self._http_transport = http_transport
        self._sleep = sleep or asyncio.sleep
        self.logger = logger.bind(component="Transport", base_url=self.base_url)

    async def send(
        self,
        request: RequestSpec,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> TransportResult:
        """Send a request and classify the outcome."""
        max_retries = self.max_retries if max_retries is None else max_retries
        timeout = self.timeout if timeout is None else timeout
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        if not self.is_online():
            self.logger.warning("Offline, request not sent", path=request.path)
            return TransportResult(
                outcome=Outcome.NETWORK_UNAVAILABLE,
                message="You are offline. Please check your internet connection and try again.",
            )

        attempt = 0
        while True:
            try:
                response = await asyncio.wait_for(
                    self._request(request, timeout), timeout=timeout
                )
            except (httpx.TransportError, asyncio.TimeoutError) as e:
                error = str(e) or type(e).__name__
                if attempt >= max_retries:
                    self.logger.warning(
                        "Request failed, retries exhausted",
                        path=request.path,
                        attempts=attempt + 1,
                        error=error,
                    )
                    return TransportResult(
                        outcome=Outcome.TRANSIENT_FAILURE,
                        message=f"Failed to connect to {self.base_url}: {error}",
                        attempts=attempt + 1,
                    )
                delay = self.base_delay * 2**attempt
                self.logger.debug(
                    "Transient failure, retrying",
                    path=request.path,
                    attempt=attempt + 1,
                    delay=delay,
                    error=error,
                )
                await self._sleep(delay)
                attempt += 1
                continue
            except httpx.RequestError as e:
                # Undecodable or otherwise malformed exchange; retrying won't help
                self.logger.warning(
                    "Request failed", path=request.path, error=str(e), error_type=type(e).__name__
                )
                return TransportResult(
                    outcome=Outcome.PROTOCOL_FAILURE,
                    message=f"Request to {self.base_url} failed: {e}",
                    attempts=attempt + 1,
                )

            return self._classify(request, response, attempt + 1)

    async def _request(self, request: RequestSpec, timeout: float) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=timeout,
            transport=self._http_transport,
        ) as client:
            return await client.request(
                request.method,
                request.path,
                params=request.params or None,
                json=request.body,
                headers=request.headers or None,
            )

    def _classify(
        self, request: RequestSpec, response: httpx.Response, attempts: int
    ) -> TransportResult:
        media_type = response.headers.get("content-type", "").split(";")[0].strip().lower()

        if not response.is_success:
            message = None
            try:
                payload = response.json()
                if isinstance(payload, dict):
                    message = payload.get("message")
            except ValueError:
                pass
            message = message or f"Request failed with status {response.status_code}"
            self.logger.warning(
                "Request rejected",
                path=request.path,
                status=response.status_code,
                message=message,
            )
            return TransportResult(
                outcome=Outcome.PROTOCOL_FAILURE,
                status_code=response.status_code,
                message=message,
                attempts=attempts,
            )

        if media_type in BINARY_MEDIA_TYPES:
            return TransportResult(
                outcome=Outcome.SUCCESS,
                status_code=response.status_code,
                content=response.content,
                media_type=media_type,
                attempts=attempts,
            )

        try:
            data = response.json() if response.content else None
        except ValueError:
            return TransportResult(
                outcome=Outcome.PROTOCOL_FAILURE,
                status_code=response.status_code,
                message="Response body is not valid JSON",
                attempts=attempts,
            )

        return TransportResult(
            outcome=Outcome.SUCCESS,
            status_code=response.status_code,
            data=data,
            media_type=media_type or None,
            attempts=attempts,
        )
