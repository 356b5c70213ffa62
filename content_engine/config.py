"""Configuration management for the content engine"""

import os
from typing import Optional
from dotenv import load_dotenv

from .errors import ConfigurationError
from .models.config_models import EngineConfig

# Load environment variables from .env file
load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def validate_api_keys() -> Optional[str]:
    """Validate that all required API keys are present"""
    if not os.getenv("OPENROUTER_API_KEY"):
        return "OPENROUTER_API_KEY is not set"
    return None


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_number(name: str, default, cast=float):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


class ConfigLoader:
    """Loader for application configuration"""

    @staticmethod
    def load_config() -> EngineConfig:
        """Load configuration from environment

        Returns:
            EngineConfig populated from environment variables

        Raises:
            ConfigurationError: If required configuration is missing
        """
        load_dotenv()

        if error := validate_api_keys():
            raise ConfigurationError(f"Configuration error: {error}")

        defaults = EngineConfig()
        return EngineConfig(
            api_key=os.getenv("OPENROUTER_API_KEY"),
            base_url=os.getenv("OPENROUTER_BASE_URL", defaults.base_url),
            site_url=os.getenv("YOUR_SITE_URL") or None,
            site_name=os.getenv("YOUR_SITE_NAME") or None,
            research_model=os.getenv("RESEARCH_MODEL", defaults.research_model),
            content_model=os.getenv("CONTENT_MODEL", defaults.content_model),
            temperature=_env_number("TEMPERATURE", defaults.temperature),
            max_tokens=_env_number("MAX_TOKENS", defaults.max_tokens, int),
            api_timeout=_env_number("API_TIMEOUT", defaults.api_timeout),
            service_timeout=_env_number("SERVICE_TIMEOUT", defaults.service_timeout),
            max_retries=_env_number("MAX_RETRIES", defaults.max_retries, int),
            retry_base_delay=_env_number("RETRY_BASE_DELAY", defaults.retry_base_delay),
            retry_max_delay=_env_number("RETRY_MAX_DELAY", defaults.retry_max_delay),
            cache_ttl=_env_number("CACHE_TTL", defaults.cache_ttl),
            rate_limit_requests=_env_number("RATE_LIMIT_REQUESTS", defaults.rate_limit_requests, int),
            rate_limit_window=_env_number("RATE_LIMIT_WINDOW", defaults.rate_limit_window),
            circuit_failure_threshold=_env_number(
                "CIRCUIT_FAILURE_THRESHOLD", defaults.circuit_failure_threshold, int
            ),
            circuit_reset_timeout=_env_number("CIRCUIT_RESET_TIMEOUT", defaults.circuit_reset_timeout),
            enable_context_questions=_env_bool("ENABLE_CONTEXT_QUESTIONS", defaults.enable_context_questions),
            enable_ai_factor_questions=_env_bool(
                "ENABLE_AI_FACTOR_QUESTIONS", defaults.enable_ai_factor_questions
            ),
            enhance_sources=_env_bool("ENHANCE_SOURCES", defaults.enhance_sources),
            max_request_length=_env_number("MAX_REQUEST_LENGTH", defaults.max_request_length, int),
        )
