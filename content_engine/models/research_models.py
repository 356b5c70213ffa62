"""Data models for research"""

from dataclasses import dataclass, field
from typing import List, Dict, Any
from enum import Enum


class Credibility(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SourceType(str, Enum):
    DOCUMENTATION = "documentation"
    GUIDE = "guide"
    CASE_STUDY = "case_study"
    VENDOR = "vendor"
    COMMUNITY = "community"
    BLOG = "blog"
    NEWS = "news"
    OTHER = "other"


@dataclass
class ResearchSource:
    """Research source information"""
    title: str
    url: str
    summary: str = ""
    credibility: Credibility = Credibility.MEDIUM
    relevance: float = 0.5
    source_type: SourceType = SourceType.OTHER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "summary": self.summary,
            "credibility": self.credibility.value,
            "relevance": self.relevance,
            "sourceType": self.source_type.value,
        }


@dataclass
class ResearchData:
    """Research bundle handed from the research engine to the generators"""
    sources: List[ResearchSource] = field(default_factory=list)
    research_summary: str = ""
    key_insights: List[str] = field(default_factory=list)
    confidence: float = 0.0

    @classmethod
    def empty(cls) -> "ResearchData":
        """Result used when research could not be completed"""
        return cls(sources=[], research_summary="Research could not be completed", key_insights=[], confidence=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sources": [source.to_dict() for source in self.sources],
            "researchSummary": self.research_summary,
            "keyInsights": list(self.key_insights),
            "confidence": self.confidence,
        }
