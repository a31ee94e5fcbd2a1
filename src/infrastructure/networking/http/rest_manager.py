"""
REST Transport Manager

REST transport with strategy composition: authentication, retry and
exchange error mapping are plugged in through a RestStrategySet.

GET requests carry exactly the canonical query string that was signed and
POST requests carry exactly the signed JSON bytes.
"""

import asyncio
import time
from collections import deque
from typing import Any, Callable, Dict, Optional

import aiohttp
import msgspec
from yarl import URL

from config.structs import RestConfig
from infrastructure.exceptions.exchange import ExchangeRestError, NetworkError, RateLimitError
from infrastructure.logging import LoggerInterface, get_logger
from .strategies import RestStrategySet, RequestMetrics
from .structs import HTTPMethod
from .utils import canonical_body, canonical_query


class RestManager:
    """
    REST transport manager with strategy composition.

    Args:
        base_url: Scheme and host, e.g. https://api.bybit.com
        strategy_set: Auth, retry and error-mapping strategies
        config: Timeouts, concurrency and attempt limits
        logger: Injected logger
        time_ms: Millisecond wall clock used for request timestamps
    """

    def __init__(
        self,
        base_url: str,
        strategy_set: Optional[RestStrategySet] = None,
        config: Optional[RestConfig] = None,
        logger: Optional[LoggerInterface] = None,
        time_ms: Optional[Callable[[], int]] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.strategy_set = strategy_set or RestStrategySet()
        self.config = config or RestConfig()
        self.logger = logger or get_logger('rest.manager')
        self._time_ms = time_ms or (lambda: int(time.time() * 1000))

        self._session: Optional[aiohttp.ClientSession] = None
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent)

        self._metrics = RequestMetrics()
        self._latency_samples = deque(maxlen=1000)

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_session(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                headers={
                    'User-Agent': self.config.user_agent,
                    'Accept': 'application/json',
                },
            )

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _parse_response(self, response_text: str) -> Any:
        if not response_text:
            return None
        try:
            return msgspec.json.decode(response_text)
        except msgspec.DecodeError:
            raise ExchangeRestError(400, f"Invalid JSON response: {response_text[:100]}")

    def _update_metrics(self, latency_ms: float, success: bool, rate_limited: bool = False) -> None:
        self._metrics.total_requests += 1
        if success:
            self._metrics.successful_requests += 1
        else:
            self._metrics.failed_requests += 1
        if rate_limited:
            self._metrics.rate_limit_hits += 1

        self._latency_samples.append(latency_ms)
        sorted_samples = sorted(self._latency_samples)
        n = len(sorted_samples)
        self._metrics.avg_latency_ms = sum(sorted_samples) / n
        self._metrics.p95_latency_ms = sorted_samples[min(int(0.95 * n), n - 1)]

    async def request(
        self,
        method: HTTPMethod,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Execute a request with signing, retry and error mapping.

        Returns:
            Decoded JSON response

        Raises:
            NetworkError: Transport failure or transient exchange error
            ExchangeRejectedError: The exchange refused the request
        """
        await self._ensure_session()

        start_time = time.perf_counter()
        success = False
        rate_limited = False

        async with self._semaphore:
            try:
                response = await self._execute_with_retry(method, endpoint, params, json_data)
                success = True
                return response
            except RateLimitError:
                rate_limited = True
                raise
            finally:
                execution_time_ms = (time.perf_counter() - start_time) * 1000
                self._update_metrics(execution_time_ms, success, rate_limited)
                self.logger.latency("rest_request", execution_time_ms,
                                    endpoint=endpoint, method=method.value, success=success)

    def _build_request(
        self,
        method: HTTPMethod,
        endpoint: str,
        params: Optional[Dict[str, Any]],
        json_data: Optional[Dict[str, Any]],
    ):
        headers: Dict[str, str] = {}
        query = canonical_query(params)
        body = b""

        if method == HTTPMethod.POST:
            body = canonical_body(json_data if json_data is not None else {})
            headers['Content-Type'] = 'application/json'
            payload = body.decode('utf-8')
        else:
            payload = query

        auth = self.strategy_set.auth_strategy
        if auth is not None and auth.requires_auth(endpoint):
            auth_data = auth.sign_request(method, endpoint, payload, self._time_ms())
            headers.update(auth_data.headers)

        url_text = f"{self.base_url}{endpoint}"
        if query:
            url_text = f"{url_text}?{query}"
        # encoded=True keeps the query byte-identical to what was signed
        url = URL(url_text, encoded=True)

        request_kwargs: Dict[str, Any] = {'headers': headers}
        if method == HTTPMethod.POST:
            request_kwargs['data'] = body
        return url, request_kwargs

    async def _execute_with_retry(
        self,
        method: HTTPMethod,
        endpoint: str,
        params: Optional[Dict[str, Any]],
        json_data: Optional[Dict[str, Any]],
    ) -> Any:
        retry_strategy = self.strategy_set.retry_strategy
        max_attempts = self.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                # Re-sign every attempt so the timestamp stays inside recv_window
                url, request_kwargs = self._build_request(method, endpoint, params, json_data)
                return await self._send_once(method, url, request_kwargs)
            except NetworkError as e:
                if attempt == max_attempts or not retry_strategy.should_retry(attempt, e):
                    raise
                self._metrics.retried_requests += 1
                self.logger.warning("Retrying request", endpoint=endpoint, attempt=attempt, error=str(e))
                await retry_strategy.wait(attempt, e)

        raise NetworkError(500, "Maximum retry attempts exceeded")

    async def _send_once(self, method: HTTPMethod, url: URL, request_kwargs: Dict[str, Any]) -> Any:
        handler = self.strategy_set.exception_handler_strategy
        try:
            async with self._session.request(method.value, url, **request_kwargs) as response:
                response_text = await response.text()
                status = response.status
                retry_after = response.headers.get('Retry-After')
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(503, f"Request failed: {e!r}") from e

        if status >= 400:
            if handler is not None:
                raise handler.handle_error(status, response_text)
            if status == 429:
                raise RateLimitError(status, response_text, retry_after=float(retry_after) if retry_after else None)
            if status >= 500:
                raise NetworkError(status, f"HTTP {status}: {response_text[:200]}")
            raise ExchangeRestError(status, f"HTTP {status}: {response_text[:200]}")

        payload = self._parse_response(response_text)
        if handler is not None:
            error = handler.check_payload(payload)
            if error is not None:
                raise error
        return payload

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(HTTPMethod.GET, endpoint, params=params)

    async def post(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request(HTTPMethod.POST, endpoint, json_data=json_data)

    def get_metrics(self) -> RequestMetrics:
        return self._metrics

    def reset_metrics(self) -> None:
        self._metrics = RequestMetrics()
        self._latency_samples.clear()
