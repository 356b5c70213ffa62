"""Interface for Language Model clients"""

from abc import ABC, abstractmethod
from typing import Optional


class LLMClientInterface(ABC):
    """Abstract base class for LLM clients"""

    @abstractmethod
    async def complete(self, prompt: str, model: str, temperature: float = 0.7,
                       max_tokens: Optional[int] = None) -> str:
        """Send a single-user-message chat completion and return the text content"""
        pass
