"""
Upstream HTTP fetching with exponential backoff retry logic.

Every dataset route talks to its third-party API through ``UpstreamFetcher``.
The retry loop is explicit: each attempt produces an ``AttemptResult``
tagged SUCCESS, RETRYABLE or FATAL, and the loop decides whether to sleep
and try again. ``sleep`` and the random source are injected so backoff can
be unit-tested without real delays.

Classification:
- 2xx with a JSON body that is not an error envelope: SUCCESS
- transport errors, timeouts, malformed JSON, error envelopes: RETRYABLE
- 5xx, 408, 429: RETRYABLE
- other 4xx: FATAL, unless the policy sets ``retry_client_errors``
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
import structlog

from lifeline_shared.errors import (
    UpstreamError,
    UpstreamErrorBody,
    UpstreamHttpError,
    UpstreamTransportError,
    UpstreamUnavailableError,
)
from lifeline_shared.metrics import CivicMetrics

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429})

SleepFunc = Callable[[float], Awaitable[None]]
ErrorBodyDetector = Callable[[Any], Optional[str]]


class AttemptOutcome(Enum):
    """Outcome of a single upstream attempt"""
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior"""
    max_retries: int = 3
    initial_delay: float = 0.2  # seconds
    max_delay: float = 2.0  # seconds
    exponential_base: float = 2.0
    jitter_range: float = 0.0  # +/- fraction of the delay
    retry_client_errors: bool = False


@dataclass
class UpstreamRequest:
    """One logical upstream call."""
    upstream: str
    url: str
    method: str = "GET"
    json_body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 10.0
    error_body: Optional[ErrorBodyDetector] = None


@dataclass
class AttemptResult:
    outcome: AttemptOutcome
    payload: Any = None
    error: Optional[UpstreamError] = None


@dataclass
class FetchResult:
    """Tagged result of a logical fetch after all attempts."""
    upstream: str
    outcome: AttemptOutcome
    payload: Any = None
    error: Optional[UpstreamError] = None
    attempts: int = 0
    delays: List[float] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS

    def unwrap(self) -> Any:
        """Return the payload or raise ``UpstreamUnavailableError``."""
        if self.ok:
            return self.payload
        raise UpstreamUnavailableError(self.upstream, cause=self.error)


def calculate_delay(retry_index: int, policy: RetryPolicy, rng: random.Random) -> float:
    """
    Calculate delay before a retry with exponential backoff and jitter.

    Args:
        retry_index: 0 for the first retry, 1 for the second, ...
        policy: Retry configuration
        rng: Random source for jitter

    Returns:
        Delay in seconds, never above ``policy.max_delay``
    """
    delay = policy.initial_delay * (policy.exponential_base ** retry_index)
    delay = min(delay, policy.max_delay)

    if policy.jitter_range > 0:
        jitter = rng.uniform(-policy.jitter_range, policy.jitter_range)
        delay = min(delay * (1 + jitter), policy.max_delay)

    return max(0.0, delay)


def classify_status(status: int, policy: RetryPolicy) -> AttemptOutcome:
    """Classify a non-2xx status as retryable or fatal."""
    if status >= 500 or status in RETRYABLE_STATUS_CODES:
        return AttemptOutcome.RETRYABLE
    if 400 <= status < 500 and not policy.retry_client_errors:
        return AttemptOutcome.FATAL
    return AttemptOutcome.RETRYABLE


def error_key_detector(body: Any) -> Optional[str]:
    """Detect the ``{"error": ...}`` envelope used by ArcGIS and HUD."""
    if isinstance(body, dict) and body.get("error"):
        error = body["error"]
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or error)
        return str(error)
    return None


class UpstreamFetcher:
    """JSON fetcher with bounded, per-call retries over a shared aiohttp session."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        metrics: Optional[CivicMetrics] = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.session = session
        self.metrics = metrics
        self.sleep = sleep
        self.rng = rng or random.Random()

    async def fetch_json(self, request: UpstreamRequest, policy: RetryPolicy) -> FetchResult:
        """
        Run the retry loop for one logical request.

        Never raises for upstream failures; inspect the returned result or
        call ``unwrap()``.
        """
        result = FetchResult(upstream=request.upstream, outcome=AttemptOutcome.RETRYABLE)
        started = time.monotonic()

        for attempt in range(policy.max_retries + 1):
            attempt_result = await self._attempt(request, policy)
            result.attempts = attempt + 1
            result.outcome = attempt_result.outcome
            result.payload = attempt_result.payload
            result.error = attempt_result.error
            self._count_attempt(request.upstream, attempt_result.outcome)

            if attempt_result.outcome == AttemptOutcome.SUCCESS:
                break

            if attempt_result.outcome == AttemptOutcome.FATAL:
                logger.error(
                    "upstream_fatal_error",
                    upstream=request.upstream,
                    attempt=attempt + 1,
                    error=str(attempt_result.error),
                )
                break

            if attempt == policy.max_retries:
                logger.error(
                    "upstream_retries_exhausted",
                    upstream=request.upstream,
                    attempts=attempt + 1,
                    error=str(attempt_result.error),
                )
                break

            delay = calculate_delay(attempt, policy, self.rng)
            result.delays.append(delay)
            if self.metrics:
                self.metrics.upstream_retries.labels(upstream=request.upstream).inc()

            logger.warning(
                "upstream_retry",
                upstream=request.upstream,
                attempt=attempt + 1,
                max_attempts=policy.max_retries + 1,
                delay_seconds=round(delay, 3),
                error=str(attempt_result.error),
            )
            await self.sleep(delay)

        if self.metrics:
            self.metrics.upstream_duration.labels(upstream=request.upstream).observe(
                time.monotonic() - started
            )
        return result

    async def _attempt(self, request: UpstreamRequest, policy: RetryPolicy) -> AttemptResult:
        upstream = request.upstream
        headers = {"accept": "application/json", **request.headers}
        timeout = aiohttp.ClientTimeout(total=request.timeout_seconds)

        try:
            async with self.session.request(
                request.method,
                request.url,
                json=request.json_body,
                headers=headers,
                timeout=timeout,
            ) as response:
                status = response.status
                if not 200 <= status < 300:
                    return AttemptResult(
                        outcome=classify_status(status, policy),
                        error=UpstreamHttpError(upstream, status),
                    )
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    return AttemptResult(
                        outcome=AttemptOutcome.RETRYABLE,
                        error=UpstreamTransportError(upstream, f"malformed JSON: {e}"),
                    )
        except asyncio.TimeoutError:
            return AttemptResult(
                outcome=AttemptOutcome.RETRYABLE,
                error=UpstreamTransportError(upstream, f"timed out after {request.timeout_seconds}s"),
            )
        except aiohttp.ClientError as e:
            return AttemptResult(
                outcome=AttemptOutcome.RETRYABLE,
                error=UpstreamTransportError(upstream, f"{type(e).__name__}: {e}"),
            )

        if request.error_body is not None:
            detail = request.error_body(payload)
            if detail is not None:
                return AttemptResult(
                    outcome=AttemptOutcome.RETRYABLE,
                    error=UpstreamErrorBody(upstream, detail),
                )

        return AttemptResult(outcome=AttemptOutcome.SUCCESS, payload=payload)

    def _count_attempt(self, upstream: str, outcome: AttemptOutcome) -> None:
        if self.metrics:
            self.metrics.upstream_attempts.labels(upstream=upstream, outcome=outcome.value).inc()
