"""Interface for research engines"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.research_models import ResearchData


class ResearchEngineInterface(ABC):
    """Abstract base class for research engines"""

    @abstractmethod
    async def perform_research(self, user_request: str, model: Optional[str] = None,
                               guidance: Optional[str] = None) -> ResearchData:
        """Discover and rank sources for the request"""
        pass
