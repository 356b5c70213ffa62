"""Question generator: one scoping question per scaling factor, plus context questions"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from ..clients.llm_gateway import LLMGateway
from ..errors import GatewayError, ResponseParseError
from ..models.config_models import EngineConfig
from ..models.factor_models import SCALING_CATEGORIES, template_for
from ..models.research_models import ResearchData
from ..models.scope_models import Question, Service
from ..utils.expression import referenced_identifiers
from ..utils.response_parser import ResponseParser
from ..utils.text_utils import (
    dedupe,
    extract_key_terms,
    extract_technology_name,
    generate_slug,
    make_unique_slug,
)
from .content_validator import ContentValidator

logger = logging.getLogger(__name__)

FACTOR_QUESTIONS_PROMPT = """You are scoping a professional services engagement for "{request}".

Write one clear scoping question for each of these scaling factors. Each answer drives the
effort of the listed services.

{factor_lines}

Research insights: {insights}

Return ONLY a valid JSON array with one entry per factor:
[
  {{
    "mappingKey": "the factor key exactly as listed",
    "text": "question specific to {technology}",
    "type": "number" or "multiple_choice",
    "options": ["option1", "option2", "option3"] (multiple_choice only),
    "calculationType": "quantity" or "multiplier" or "include_exclude",
    "defaultValue": "sensible default"
  }}
]"""

CONTEXT_QUESTIONS_PROMPT = """Based on research about "{request}", generate 3-6 scoping questions that cover these UNCOVERED scaling dimensions:

{categories}

Research insights: {insights}

Requirements:
1. Generate questions specific to "{request}" using the research context
2. Each question should target one of the uncovered scaling dimensions above
3. Questions should be practical and affect project scope/effort
4. Use number for quantities and multiple_choice for complexity/approach

Return ONLY a valid JSON array:
[
  {{
    "text": "specific question",
    "type": "multiple_choice" or "number",
    "options": ["option1", "option2", "option3"] (if multiple_choice),
    "mappingKey": "factor_from_uncovered_list_above",
    "calculationType": "quantity" or "multiplier" or "include_exclude",
    "defaultValue": "appropriate default"
  }}
]"""


class QuestionGenerator:
    """Derives scoping questions from the scaling factors the services consume"""

    def __init__(self, gateway: LLMGateway, config: EngineConfig,
                 validator: Optional[ContentValidator] = None,
                 parser: Optional[ResponseParser] = None):
        self.gateway = gateway
        self.config = config
        self.validator = validator or ContentValidator()
        self.parser = parser or ResponseParser()

    def extract_scaling_factors(self, services: Sequence[Service]) -> List[str]:
        """Union of factor keys consumed by services and subservices, in first-appearance order"""
        factors: List[str] = []
        items: List[Any] = []
        for service in services:
            items.append(service)
            items.extend(service.subservices)
        for item in items:
            factors.extend(item.scaling_factors)
            if item.quantity_driver:
                factors.append(item.quantity_driver)
            if item.calculation_rules:
                for expression in item.calculation_rules.expressions():
                    factors.extend(sorted(referenced_identifiers(expression)))
        return dedupe(factors)

    def find_impacted(self, factor: str, services: Sequence[Service]) -> List[str]:
        impacted = []
        for service in services:
            if factor in service.scaling_factors or service.quantity_driver == factor:
                impacted.append(service.id)
            for sub in service.subservices:
                if factor in sub.scaling_factors or sub.quantity_driver == factor:
                    impacted.append(sub.id)
        return impacted

    def infer_impacted(self, text: str, services: Sequence[Service]) -> List[str]:
        """Ids of services/subservices sharing key terms with the question text"""
        terms = extract_key_terms(text)
        impacted = []
        for service in services:
            if terms & extract_key_terms(f"{service.name} {service.description}"):
                impacted.append(service.id)
            for sub in service.subservices:
                if terms & extract_key_terms(f"{sub.name} {sub.description}"):
                    impacted.append(sub.id)
        return impacted

    def _services_using(self, factor: str, services: Sequence[Service]) -> List[str]:
        names = []
        for service in services:
            if any(factor in item.scaling_factors or item.quantity_driver == factor
                   for item in [service, *service.subservices]):
                names.append(service.name)
        return names

    def template_question(self, factor: str) -> Dict[str, Any]:
        template = template_for(factor)
        return {
            "text": template.text,
            "type": template.type.value,
            "options": list(template.options),
            "mappingKey": factor,
            "calculationType": template.calculation_type.value,
            "defaultValue": template.default_value,
        }

    async def _ai_factor_questions(self, factors: List[str], services: Sequence[Service],
                                   research_data: ResearchData, user_request: str,
                                   model: Optional[str]) -> Dict[str, Dict[str, Any]]:
        """One batched call; returns raw questions keyed by factor, empty on failure"""
        lines = []
        for factor in factors:
            used_by = ", ".join(self._services_using(factor, services)[:2]) or "general scope"
            lines.append(f"- {factor} (affects: {used_by})")
        prompt = FACTOR_QUESTIONS_PROMPT.format(
            request=user_request,
            technology=extract_technology_name(user_request),
            factor_lines="\n".join(lines),
            insights=", ".join(research_data.key_insights[:3]) or "None",
        )
        try:
            response = await self.gateway.complete(prompt, model=model, timeout=self.config.api_timeout)
            parsed = self.parser.loads(response, kind="array")
        except (GatewayError, ResponseParseError) as e:
            logger.warning(f"AI factor questions failed, using templates: {e}")
            return {}
        if not isinstance(parsed, list):
            return {}

        by_factor: Dict[str, Dict[str, Any]] = {}
        for raw in parsed:
            if not isinstance(raw, dict):
                continue
            question = self.validator.sanitize_question(raw, 0)
            if question is None or question.mapping_key not in factors:
                continue
            if question.mapping_key in by_factor:
                continue
            entry = dict(raw)
            entry["mappingKey"] = question.mapping_key
            if entry.get("defaultValue") is None:
                entry["defaultValue"] = template_for(question.mapping_key).default_value
            by_factor[question.mapping_key] = entry
        return by_factor

    async def generate_context_questions(self, existing_keys: Set[str], research_data: ResearchData,
                                         user_request: str, model: Optional[str] = None) -> List[Dict[str, Any]]:
        """Questions for scaling categories the factor questions do not cover; [] on failure"""
        uncovered = {
            category: factors for category, factors in SCALING_CATEGORIES.items()
            if not any(factor in existing_keys for factor in factors)
        }
        if not uncovered:
            return []

        prompt = CONTEXT_QUESTIONS_PROMPT.format(
            request=user_request,
            categories="\n".join(f"{name}: {', '.join(factors)}" for name, factors in uncovered.items()),
            insights=", ".join(research_data.key_insights[:3]) or "None",
        )
        try:
            response = await self.gateway.complete(prompt, model=model, timeout=self.config.api_timeout)
            parsed = self.parser.loads(response, kind="array")
        except (GatewayError, ResponseParseError) as e:
            logger.warning(f"Context question generation failed: {e}")
            return []
        if not isinstance(parsed, list):
            return []
        return [raw for raw in parsed if isinstance(raw, dict)]

    async def generate_questions(self, services: Sequence[Service], research_data: ResearchData,
                                 user_request: str, model: Optional[str] = None) -> List[Question]:
        """Generate one question per scaling factor, followed by any context questions"""
        model = model or self.config.content_model
        factors = self.extract_scaling_factors(services)
        logger.info(f"Generating questions for {len(factors)} scaling factors: {', '.join(factors)}")

        ai_questions: Dict[str, Dict[str, Any]] = {}
        if factors and self.config.enable_ai_factor_questions:
            ai_questions = await self._ai_factor_questions(factors, services, research_data, user_request, model)

        used_slugs: Set[str] = set()
        questions: List[Question] = []

        def add(raw: Dict[str, Any], impacts: List[str]) -> None:
            index = len(questions)
            raw = dict(raw)
            raw["id"] = f"q_{index + 1}"
            raw["required"] = True
            raw["impacts"] = impacts
            raw.pop("slug", None)
            question = self.validator.sanitize_question(raw, index)
            if question is None:
                return
            question.slug = make_unique_slug(generate_slug(question.text), used_slugs)
            questions.append(question)

        for factor in factors:
            raw = ai_questions.get(factor) or self.template_question(factor)
            add(raw, self.find_impacted(factor, services))

        if self.config.enable_context_questions:
            existing = {q.mapping_key for q in questions if q.mapping_key}
            for raw in await self.generate_context_questions(existing, research_data, user_request, model):
                question = self.validator.sanitize_question(raw, 0)
                if question is None:
                    continue
                if question.mapping_key and question.mapping_key in existing:
                    continue
                if question.mapping_key:
                    existing.add(question.mapping_key)
                add(raw, self.infer_impacted(question.text, services))

        logger.info(f"Generated {len(questions)} questions")
        return questions
