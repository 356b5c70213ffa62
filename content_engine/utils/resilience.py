"""Retry, rate limiting and circuit breaking for outbound LLM calls"""

import asyncio
import logging
import random
import threading
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Iterable, List, Optional, TypeVar

from ..errors import CircuitOpenError, GatewayError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status codes worth retrying
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def is_retryable(error: Exception) -> bool:
    if isinstance(error, CircuitOpenError):
        return False
    if isinstance(error, GatewayError):
        return error.retryable
    return isinstance(error, (asyncio.TimeoutError, ConnectionError))


def backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter: float = 0.3,
                  rand: Callable[[], float] = random.random) -> float:
    """Exponential delay for the given 1-based attempt, capped, plus up to ``jitter`` of extra"""
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return delay + delay * jitter * rand()


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 5.0,
    jitter: float = 0.3,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``func`` with exponential backoff on retryable errors.

    Non-retryable errors propagate immediately. When every attempt fails a
    GatewayError wrapping the last error is raised.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e
            if attempt == max_attempts:
                break
            delay = backoff_delay(attempt, base_delay, max_delay, jitter)
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}. Retrying in {delay:.2f}s")
            await sleep(delay)

    status_code = getattr(last_error, "status_code", None)
    raise GatewayError(
        f"Failed after {max_attempts} attempts: {last_error}",
        status_code=status_code,
        retryable=False,
    ) from last_error


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class CircuitBreaker:
    """Stops calling a failing service until a cool-down has elapsed.

    CLOSED counts consecutive failures and opens at ``failure_threshold``.
    OPEN rejects calls with CircuitOpenError for ``reset_timeout`` seconds.
    HALF_OPEN admits a trial call; success closes the circuit, failure reopens it.
    """

    def __init__(self, failure_threshold: int = 3, reset_timeout: float = 30.0,
                 clock: Callable[[], float] = time.monotonic):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at = 0.0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def before_call(self) -> None:
        with self._lock:
            if self._state is CircuitState.OPEN:
                if self._clock() - self._opened_at < self.reset_timeout:
                    raise CircuitOpenError()
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit breaker half-open, allowing trial call")

    def record_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.info("Circuit breaker closed")
            self._state = CircuitState.CLOSED
            self._failures = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN or self._failures >= self.failure_threshold:
                if self._state is not CircuitState.OPEN:
                    logger.error(f"Circuit breaker opened after {self._failures} failure(s)")
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        self.before_call()
        try:
            result = await func()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


class RateLimiter:
    """Sliding-window limiter: at most ``max_requests`` per ``window`` seconds"""

    def __init__(self, max_requests: int = 8, window: float = 60.0,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._timestamps: Deque[float] = deque()

    def _reserve(self) -> float:
        """Record a request if there is room; otherwise return how long to wait"""
        with self._lock:
            now = self._clock()
            while self._timestamps and now - self._timestamps[0] >= self.window:
                self._timestamps.popleft()
            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                return 0.0
            return self.window - (now - self._timestamps[0])

    async def acquire(self) -> None:
        while True:
            wait = self._reserve()
            if wait <= 0:
                return
            logger.info(f"Rate limit reached, waiting {wait:.1f}s")
            await self._sleep(wait)


async def gather_bounded(
    factories: Iterable[Callable[[], Awaitable[T]]],
    concurrency: int = 3,
) -> List[Any]:
    """Run coroutine factories with at most ``concurrency`` in flight.

    All-settled: each result slot holds either the value or the raised
    exception, in input order.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run(factory: Callable[[], Awaitable[T]]) -> T:
        async with semaphore:
            return await factory()

    return await asyncio.gather(*(run(factory) for factory in factories), return_exceptions=True)
