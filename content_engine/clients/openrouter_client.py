"""OpenRouter client implementation"""

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..errors import GatewayError, GatewayTimeoutError
from ..interfaces.llm_client import LLMClientInterface
from ..utils.resilience import RETRYABLE_STATUS_CODES

logger = logging.getLogger(__name__)

_STATUS_MESSAGES = {
    401: "API authentication failed - check OPENROUTER_API_KEY",
    429: "Rate limit exceeded - please wait before retrying",
    503: "AI service temporarily unavailable",
}


def _status_message(status_code: int, detail: str) -> str:
    if status_code in _STATUS_MESSAGES:
        return f"{_STATUS_MESSAGES[status_code]} ({status_code})"
    if status_code >= 500:
        return f"AI service error ({status_code}): {detail}"
    return f"AI request failed ({status_code}): {detail}"


class OpenRouterClient(LLMClientInterface):
    """Client for the OpenRouter chat completions API"""

    def __init__(self, api_key: str, base_url: str, site_url: Optional[str] = None,
                 site_name: Optional[str] = None, timeout: float = 60.0):
        """Initialize OpenRouter client"""
        headers = {}
        if site_url:
            headers["HTTP-Referer"] = site_url
        if site_name:
            headers["X-Title"] = site_name
        # Retries are handled by the gateway
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
            timeout=timeout,
            default_headers=headers or None,
        )

    async def complete(self, prompt: str, model: str, temperature: float = 0.7,
                       max_tokens: Optional[int] = None) -> str:
        """Execute chat completion against OpenRouter"""
        logger.debug(f"Calling {model} with prompt of {len(prompt)} chars")
        kwargs = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise GatewayTimeoutError() from e
        except openai.APIConnectionError as e:
            raise GatewayError(f"Network error contacting AI service: {e}", retryable=True) from e
        except openai.APIStatusError as e:
            status = e.status_code
            raise GatewayError(
                _status_message(status, str(e)),
                status_code=status,
                retryable=status in RETRYABLE_STATUS_CODES,
            ) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
