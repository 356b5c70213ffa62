"""Resilient gateway in front of an LLM client"""

import asyncio
import logging
from typing import Optional

from ..errors import GatewayTimeoutError
from ..interfaces.llm_client import LLMClientInterface
from ..models.config_models import EngineConfig
from ..utils.cache import TTLCache, make_cache_key
from ..utils.resilience import CircuitBreaker, RateLimiter, retry_async

logger = logging.getLogger(__name__)


class LLMGateway:
    """Sends prompts to the LLM client with caching, rate limiting, retries and a circuit breaker.

    The cache, limiter and breaker are meant to be shared by all requests in
    the process; construct one gateway and inject it everywhere.
    """

    def __init__(
        self,
        client: LLMClientInterface,
        config: EngineConfig,
        cache: Optional[TTLCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        sleep=asyncio.sleep,
    ):
        self.client = client
        self.config = config
        self.cache = cache if cache is not None else TTLCache(ttl=config.cache_ttl)
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter(
            max_requests=config.rate_limit_requests, window=config.rate_limit_window
        )
        self.circuit_breaker = circuit_breaker if circuit_breaker is not None else CircuitBreaker(
            failure_threshold=config.circuit_failure_threshold, reset_timeout=config.circuit_reset_timeout
        )
        self._sleep = sleep

    async def complete(
        self,
        prompt: str,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_key: Optional[str] = None,
        use_cache: bool = True,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Return the raw text completion for ``prompt``.

        Raises:
            GatewayError: When the call fails after retries or is rejected by the breaker
        """
        model = model or self.config.content_model
        key = cache_key or make_cache_key(model, prompt)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Cache hit for {key[:60]}")
                return cached

        deadline = timeout or self.config.api_timeout
        temperature = self.config.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.config.max_tokens

        async def attempt() -> str:
            await self.rate_limiter.acquire()
            try:
                return await asyncio.wait_for(
                    self.client.complete(prompt, model, temperature=temperature, max_tokens=max_tokens),
                    timeout=deadline,
                )
            except asyncio.TimeoutError as e:
                raise GatewayTimeoutError(f"Request to {model} timed out after {deadline}s") from e

        async def with_retries() -> str:
            return await retry_async(
                attempt,
                max_attempts=self.config.max_retries,
                base_delay=self.config.retry_base_delay,
                max_delay=self.config.retry_max_delay,
                jitter=self.config.retry_jitter,
                sleep=self._sleep,
            )

        logger.info(f"Calling {model} (timeout {deadline}s)")
        content = await self.circuit_breaker.call(with_retries)
        if use_cache and content:
            self.cache.set(key, content)
        return content
