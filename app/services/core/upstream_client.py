"""
HTTP client for the upstream prediction/odds provider.

The provider is an opaque HTTP service exposing:

    GET /market?status=&match_id=&league=&limit=&mode=lite|full&include_v2=
    Authorization: Bearer <api key>
    -> {"matches": [...], "total_count": N}

Every attempt builds a fresh request with its own timeout, so a deadline that
fired on one attempt never affects the next. Failures are classified into
UpstreamTimeout / UpstreamHttpError / UpstreamTransportError; all three are
retried with exponential backoff up to the configured budget.

One instance is created per process in the FastAPI lifespan and closed on
shutdown:

    client = UpstreamClient.from_settings(settings)
    app.state.upstream_client = client
    ...
    await client.close()
"""
import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from app.core import metrics
from app.core.logging import get_logger
from app.services.core.retry import retry_with_backoff
from app.services.sync.errors import (
    UpstreamError,
    UpstreamHttpError,
    UpstreamNotConfigured,
    UpstreamTimeout,
    UpstreamTransportError,
)

logger = get_logger(__name__)


def is_retryable(exc: BaseException) -> bool:
    """Timeouts, HTTP errors and transport failures are retried; configuration errors are not."""
    return isinstance(exc, UpstreamError) and not isinstance(exc, UpstreamNotConfigured)


class UpstreamClient:
    """
    Async client for the upstream market provider.

    Attributes:
        base_url: Provider base URL (empty means not configured)
        timeout_seconds: Per-attempt deadline
        max_attempts: Total attempts per call
        initial_delay: First backoff delay in seconds
        max_delay: Backoff cap in seconds
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        initial_delay: float = 2.0,
        max_delay: float = 30.0,
        jitter: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=asyncio.sleep,
    ):
        self.base_url = base_url.rstrip("/") if base_url else ""
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings, **overrides) -> "UpstreamClient":
        """Build a client from application settings."""
        kwargs = dict(
            base_url=settings.UPSTREAM_BASE_URL,
            api_key=settings.UPSTREAM_API_KEY,
            timeout_seconds=settings.upstream_timeout_seconds,
            max_attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
            initial_delay=settings.retry_initial_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
            jitter=settings.UPSTREAM_RETRY_JITTER,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "X-Application": "match-sync-api",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._client is None:
            limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._get_headers(),
                limits=limits,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _attempt(self, path: str, params: Dict[str, Any], attempt: int) -> Dict[str, Any]:
        """One attempt: fresh request, fresh timeout, classified failure."""
        client = self._get_client()
        request = client.build_request(
            "GET",
            path,
            params=params,
            timeout=httpx.Timeout(self.timeout_seconds),
        )

        try:
            response = await asyncio.wait_for(client.send(request), timeout=self.timeout_seconds)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise UpstreamTimeout(
                f"Upstream timed out after {self.timeout_seconds:.1f}s (attempt {attempt})",
                attempts=attempt,
            ) from e
        except httpx.RequestError as e:
            raise UpstreamTransportError(
                f"Upstream transport error on attempt {attempt}: {e}",
                attempts=attempt,
            ) from e

        if not response.is_success:
            raise UpstreamHttpError(
                f"Upstream returned HTTP {response.status_code} (attempt {attempt})",
                status_code=response.status_code,
                attempts=attempt,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamTransportError(
                f"Upstream returned an unreadable body (attempt {attempt})",
                attempts=attempt,
            ) from e

        if not isinstance(payload, dict):
            raise UpstreamTransportError(
                f"Upstream returned {type(payload).__name__}, expected an object",
                attempts=attempt,
            )

        return payload

    async def fetch(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET `path` with retry-with-backoff.

        Args:
            path: Path relative to the base URL
            params: Query parameters (None values are dropped)

        Returns:
            Parsed JSON object

        Raises:
            UpstreamNotConfigured: No base URL configured
            UpstreamTimeout | UpstreamHttpError | UpstreamTransportError:
                Failure of the last attempt once the budget is spent
        """
        if not self.configured:
            metrics.record_upstream_failure(UpstreamNotConfigured.error_type, 0.0)
            raise UpstreamNotConfigured("UPSTREAM_BASE_URL is not configured", attempts=0)

        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        started = time.perf_counter()

        def _on_retry(exc: BaseException, attempt: int, delay: float) -> None:
            metrics.record_upstream_retry(getattr(exc, "error_type", "unknown"))

        try:
            payload = await retry_with_backoff(
                lambda attempt: self._attempt(path, clean_params, attempt),
                max_attempts=self.max_attempts,
                initial_delay=self.initial_delay,
                max_delay=self.max_delay,
                retry_on=is_retryable,
                jitter=self.jitter,
                on_retry=_on_retry,
                sleep=self._sleep,
            )
        except UpstreamError as e:
            metrics.record_upstream_failure(e.error_type, time.perf_counter() - started)
            logger.error(
                f"Upstream {path} failed after {e.attempts} attempt(s): {e}",
                extra={"error_type": e.error_type, "path": path},
            )
            raise

        metrics.record_upstream_success(time.perf_counter() - started)
        return payload

    async def fetch_market(
        self,
        status: Optional[str] = None,
        match_id: Optional[str] = None,
        league: Optional[str] = None,
        limit: Optional[int] = None,
        mode: Optional[str] = None,
        include_v2: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Fetch the provider's market listing.

        Returns:
            Dict with `matches` (list) and `total_count`
        """
        params = {
            "status": status,
            "match_id": match_id,
            "league": league,
            "limit": limit,
            "mode": mode,
            "include_v2": None if include_v2 is None else str(include_v2).lower(),
        }
        payload = await self.fetch("/market", params)

        matches = payload.get("matches")
        if not isinstance(matches, list):
            matches = []
        return {
            "matches": matches,
            "total_count": payload.get("total_count", len(matches)),
        }

    async def ping(self) -> Dict[str, Any]:
        """Single-attempt reachability check used by the health endpoint."""
        if not self.configured:
            return {"status": "not_configured"}
        started = time.perf_counter()
        try:
            await self._attempt("/market", {"limit": 1, "mode": "lite"}, attempt=1)
        except UpstreamError as e:
            return {"status": "unreachable", "error_type": e.error_type, "error": str(e)}
        return {
            "status": "connected",
            "response_time_ms": round((time.perf_counter() - started) * 1000, 1),
        }
