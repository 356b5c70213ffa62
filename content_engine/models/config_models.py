"""Configuration models for the content engine"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class EngineConfig:
    """Runtime configuration for the LLM gateway and the generation pipeline"""
    api_key: str = ""
    base_url: str = "https://openrouter.ai/api/v1"
    site_url: Optional[str] = None
    site_name: Optional[str] = None

    research_model: str = "perplexity/sonar"
    content_model: str = "anthropic/claude-3.5-sonnet"
    temperature: float = 0.7
    max_tokens: int = 4000

    api_timeout: float = 60.0
    service_timeout: float = 120.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 5.0
    retry_jitter: float = 0.3

    cache_ttl: float = 300.0
    rate_limit_requests: int = 8
    rate_limit_window: float = 60.0
    circuit_failure_threshold: int = 3
    circuit_reset_timeout: float = 30.0

    enable_context_questions: bool = True
    enable_ai_factor_questions: bool = True
    enhance_sources: bool = False
    enhance_concurrency: int = 3
    max_request_length: int = 500
