"""Research engine: discovers and ranks sources for a technology request"""

import logging
from typing import List, Optional

from ..clients.llm_gateway import LLMGateway
from ..errors import ContentEngineError, GatewayError, GenerationCancelled
from ..interfaces.research_engine import ResearchEngineInterface
from ..models.config_models import EngineConfig
from ..models.research_models import ResearchData, ResearchSource
from ..utils.number_utils import clamp, parse_float
from ..utils.resilience import gather_bounded
from ..utils.response_parser import ResponseParser
from .content_validator import ContentValidator

logger = logging.getLogger(__name__)

DEFAULT_RESEARCH_GUIDANCE = """You are an expert technology consultant conducting research for a scope of work document.

Requirements:
1. Find 5-10 high-quality, recent sources
2. Prioritize official documentation, vendor guides, and authoritative technical resources
3. Include implementation-specific details (sizing, architecture, integration)
4. Focus on practical guidance for professional services scoping
5. Ensure all URLs are real and accessible
6. Provide relevance scores (0.0-1.0) based on implementation specificity
7. Include diverse source types for comprehensive coverage"""

RESEARCH_JSON_CONTRACT = """Respond in this EXACT JSON format:

{
  "sources": [
    {
      "title": "exact title from source",
      "url": "full URL",
      "summary": "what this source covers that is relevant to the implementation",
      "credibility": "high|medium|low",
      "relevance": 0.85,
      "sourceType": "documentation|guide|case_study|vendor|community|blog|news|other"
    }
  ],
  "researchSummary": "analysis of scope, requirements, challenges and best practices",
  "keyInsights": ["specific technical requirement", "implementation challenge", "timeline consideration"],
  "confidence": 0.85
}

CRITICAL: Return ONLY the JSON object. No explanations, no markdown, no nesting under other keys."""

ENHANCE_PROMPT = """Summarize how the following source helps scope a professional services engagement for: "{request}"

Source title: {title}
Source URL: {url}
Current summary: {summary}

Return ONLY JSON: {{"summary": "2-3 sentence implementation-focused summary", "relevance": 0.0-1.0}}"""


class ResearchEngine(ResearchEngineInterface):
    """Finds sources with a single research prompt; optionally enhances each source"""

    def __init__(self, gateway: LLMGateway, config: EngineConfig,
                 validator: Optional[ContentValidator] = None,
                 parser: Optional[ResponseParser] = None):
        self.gateway = gateway
        self.config = config
        self.validator = validator or ContentValidator()
        self.parser = parser or ResponseParser()

    def build_prompt(self, user_request: str, guidance: Optional[str] = None) -> str:
        preamble = (guidance or "").strip() or DEFAULT_RESEARCH_GUIDANCE
        return (
            f"{preamble}\n\n"
            f'Research the following technology implementation request: "{user_request}"\n\n'
            f"{RESEARCH_JSON_CONTRACT}"
        )

    async def perform_research(self, user_request: str, model: Optional[str] = None,
                               guidance: Optional[str] = None) -> ResearchData:
        """Research the request; returns ResearchData.empty() when research fails"""
        model = model or self.config.research_model
        logger.info(f"Performing research with {model} for: {user_request[:80]}")
        cache_key = None if guidance else f"research:{model}:{user_request}"

        try:
            response = await self.gateway.complete(
                self.build_prompt(user_request, guidance),
                model=model,
                timeout=self.config.api_timeout,
                cache_key=cache_key,
            )
        except GatewayError as e:
            logger.warning(f"Research call failed, continuing without sources: {e}")
            return ResearchData.empty()
        except GenerationCancelled:
            raise
        except ContentEngineError as e:
            logger.error(f"Research failed unexpectedly, continuing without sources: {e}")
            return ResearchData.empty()

        parsed = self.parser.unwrap(self.parser.parse(response, kind="object"), "sources")
        if not isinstance(parsed, dict) or not isinstance(parsed.get("sources"), list):
            logger.warning("Research response had no sources array")
            return ResearchData.empty()

        research = self._to_research_data(parsed)
        logger.info(f"Found {len(research.sources)} sources")

        if self.config.enhance_sources and research.sources:
            research.sources = await self.enhance_sources(research.sources, user_request, model)
            research.sources.sort(key=lambda source: source.relevance, reverse=True)
        return research

    def _to_research_data(self, parsed: dict) -> ResearchData:
        sources = []
        for raw in parsed.get("sources", []):
            source = self.validator.sanitize_source(raw)
            if source is not None:
                sources.append(source)
        sources.sort(key=lambda source: source.relevance, reverse=True)

        confidence = parse_float(parsed.get("confidence"))
        insights = parsed.get("keyInsights")
        return ResearchData(
            sources=sources,
            research_summary=str(parsed.get("researchSummary") or "Research completed successfully"),
            key_insights=[str(item) for item in insights if item] if isinstance(insights, list) else [],
            confidence=clamp(confidence) if confidence is not None else 0.7,
        )

    async def enhance_sources(self, sources: List[ResearchSource], user_request: str,
                              model: Optional[str] = None) -> List[ResearchSource]:
        """Re-summarize each source; a failed enhancement keeps the original source"""

        def make_task(source: ResearchSource):
            async def task() -> ResearchSource:
                return await self._enhance_source(source, user_request, model)
            return task

        results = await gather_bounded(
            [make_task(source) for source in sources],
            concurrency=self.config.enhance_concurrency,
        )
        enhanced = []
        for source, result in zip(sources, results):
            if isinstance(result, Exception):
                logger.warning(f"Enhancement failed for {source.url}: {result}")
                enhanced.append(source)
            else:
                enhanced.append(result)
        return enhanced

    async def _enhance_source(self, source: ResearchSource, user_request: str,
                              model: Optional[str]) -> ResearchSource:
        response = await self.gateway.complete(
            ENHANCE_PROMPT.format(request=user_request, title=source.title, url=source.url, summary=source.summary),
            model=model or self.config.research_model,
            timeout=self.config.api_timeout,
        )
        parsed = self.parser.loads(response, kind="object")
        summary = str(parsed.get("summary") or "").strip()
        relevance = parse_float(parsed.get("relevance"))
        return ResearchSource(
            title=source.title,
            url=source.url,
            summary=summary or source.summary,
            credibility=source.credibility,
            relevance=clamp(relevance) if relevance is not None else source.relevance,
            source_type=source.source_type,
        )
