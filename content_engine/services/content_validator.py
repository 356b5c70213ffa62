"""Sanitizes untrusted generated structures into guaranteed-shape content"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ContentValidationError
from ..models.research_models import Credibility, ResearchSource, SourceType
from ..models.scope_models import (
    Calculation,
    CalculationRules,
    CalculationType,
    GeneratedContent,
    Phase,
    Question,
    QuestionType,
    Service,
    Subservice,
)
from ..utils.number_utils import clamp, clean_number, parse_float, round2
from ..utils.text_utils import (
    DEFAULT_TECHNOLOGY,
    SLUG_MAX_LENGTH,
    dedupe,
    generate_slug,
    normalize_factor_key,
)

logger = logging.getLogger(__name__)

DEFAULT_HOURS = 8
DEFAULT_TOTAL_HOURS = 40
DEFAULT_RELEVANCE = 0.5


def _default_questions() -> List[Question]:
    return [
        Question(
            id="q_1",
            text="What is the primary scope of your project?",
            slug="project_scope",
            type=QuestionType.MULTIPLE_CHOICE,
            options=["New implementation", "Upgrade/migration", "Configuration changes"],
            calculation_type=CalculationType.MULTIPLIER,
            default_value="New implementation",
        ),
        Question(
            id="q_2",
            text="What is the size of your environment?",
            slug="env_size",
            type=QuestionType.MULTIPLE_CHOICE,
            options=["Small (1-50 users)", "Medium (51-500 users)", "Large (501+ users)"],
            calculation_type=CalculationType.MULTIPLIER,
            default_value="Medium (51-500 users)",
        ),
    ]


def _default_calculations() -> List[Calculation]:
    return [
        Calculation(
            id="calc_1",
            name="Base Implementation Complexity",
            value="1.2",
            unit="multiplier",
            source="Default complexity multiplier",
            slug="base_complexity",
            result_type="multiplier",
        )
    ]


def _as_mapping(raw: Any) -> Optional[Dict[str, Any]]:
    if hasattr(raw, "to_dict"):
        return raw.to_dict()
    if isinstance(raw, Mapping):
        return dict(raw)
    return None


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, list):
        value = "; ".join(str(item) for item in value if item)
    text = str(value).strip()
    return text or default


def _first(data: Mapping, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _hours(value: Any, default: float = DEFAULT_HOURS) -> Any:
    number = parse_float(value)
    if number is None or number < 0:
        return default
    return clean_number(number)


def _quantity(value: Any, default: Any = 1) -> Any:
    number = parse_float(value)
    if number is None or number < 0:
        return default
    return clean_number(number)


def _expression(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(clean_number(float(value)))
    text = str(value).strip()
    return text or None


def _factor_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return []
    return dedupe(normalize_factor_key(item) for item in value if isinstance(item, str))


def _enum(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value or "").strip().lower())
    except ValueError:
        return default


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


class ContentValidator:
    """Coerces parsed LLM output and assembled content into typed, well-formed models.

    The sanitize_* methods are the single mapping step between untrusted JSON
    and the internal dataclasses; nothing deeper in the pipeline sees raw dicts.
    """

    def sanitize_source(self, raw: Any) -> Optional[ResearchSource]:
        data = _as_mapping(raw)
        if data is None:
            return None
        title = _text(data.get("title"))
        url = _text(data.get("url"))
        if not title or not url:
            return None

        relevance = parse_float(data.get("relevance"))
        relevance = DEFAULT_RELEVANCE if relevance is None else clamp(relevance)

        return ResearchSource(
            title=title,
            url=url,
            summary=_text(data.get("summary")),
            credibility=_enum(Credibility, data.get("credibility"), Credibility.MEDIUM),
            relevance=relevance,
            source_type=_enum(SourceType, _first(data, "sourceType", "source_type"), SourceType.OTHER),
        )

    def sanitize_rules(self, raw: Any) -> Optional[CalculationRules]:
        if not isinstance(raw, Mapping):
            return None
        rules = CalculationRules(
            quantity=_expression(raw.get("quantity")),
            multiplier=_expression(raw.get("multiplier")),
            included=_expression(raw.get("included")),
        )
        return None if rules.is_empty() else rules

    def sanitize_subservice(self, raw: Any, service_index: int, sub_index: int) -> Optional[Subservice]:
        data = _as_mapping(raw)
        if data is None:
            return None
        base_hours = _hours(_first(data, "baseHours", "base_hours", "hours"))
        driver = normalize_factor_key(_first(data, "quantityDriver", "quantity_driver") or "")
        return Subservice(
            id=_text(data.get("id"), f"sub_{service_index + 1}_{sub_index + 1}"),
            name=_text(_first(data, "name", "subservice"), f"Subservice {sub_index + 1}"),
            description=_text(data.get("description")),
            base_hours=base_hours,
            hours=_hours(data.get("hours"), base_hours),
            quantity=_quantity(data.get("quantity")),
            scaling_factors=_factor_list(_first(data, "scalingFactors", "scaling_factors")),
            quantity_driver=driver or None,
            calculation_rules=self.sanitize_rules(_first(data, "calculationRules", "calculation_rules")),
            mapped_questions=_string_list(data.get("mappedQuestions")),
            service_description=_text(data.get("serviceDescription")),
            key_assumptions=_text(data.get("keyAssumptions")),
            client_responsibilities=_text(data.get("clientResponsibilities")),
            out_of_scope=_text(data.get("outOfScope")),
        )

    def sanitize_service(self, raw: Any, index: int) -> Optional[Service]:
        """Map one raw service onto a Service; None when it has no usable name"""
        data = _as_mapping(raw)
        if data is None:
            return None
        name = _text(_first(data, "name", "service"))
        if not name:
            return None

        phase = _text(data.get("phase"))
        if phase:
            phase = Phase.normalize(phase)
        else:
            inferred = Phase.match(name)
            phase = inferred.value if inferred else Phase.EXECUTION.value

        raw_subservices = data.get("subservices")
        subservices = []
        if isinstance(raw_subservices, list):
            for j, raw_sub in enumerate(raw_subservices):
                sub = self.sanitize_subservice(raw_sub, index, j)
                if sub is not None:
                    subservices.append(sub)

        hours = _hours(data.get("hours"))
        driver = normalize_factor_key(_first(data, "quantityDriver", "quantity_driver") or "")
        return Service(
            id=_text(data.get("id"), f"svc_{index + 1}"),
            name=name,
            description=_text(data.get("description")),
            phase=phase,
            hours=hours,
            base_hours=_hours(_first(data, "baseHours", "base_hours"), hours),
            quantity=1,
            subservices=subservices,
            service_description=_text(data.get("serviceDescription")),
            key_assumptions=_text(data.get("keyAssumptions")),
            client_responsibilities=_text(data.get("clientResponsibilities")),
            out_of_scope=_text(data.get("outOfScope")),
            scaling_factors=_factor_list(_first(data, "scalingFactors", "scaling_factors")),
            quantity_driver=driver or None,
            calculation_rules=self.sanitize_rules(_first(data, "calculationRules", "calculation_rules")),
            mapped_questions=_string_list(data.get("mappedQuestions")),
        )

    def sanitize_question(self, raw: Any, index: int) -> Optional[Question]:
        data = _as_mapping(raw)
        if data is None:
            return None
        text = _text(_first(data, "text", "question"))
        if not text:
            return None

        options = _string_list(data.get("options"))
        question_type = _enum(
            QuestionType, data.get("type"), QuestionType.MULTIPLE_CHOICE if options else QuestionType.NUMBER
        )

        calculation_type = _enum(
            CalculationType, _first(data, "calculationType", "calculation_type"), CalculationType.QUANTITY
        )

        slug = normalize_factor_key(data.get("slug") or "")[:SLUG_MAX_LENGTH].rstrip("_")
        mapping_key = normalize_factor_key(_first(data, "mappingKey", "mapping_key") or "")
        context = _text(data.get("context")) or None
        return Question(
            id=_text(data.get("id"), f"q_{index + 1}"),
            text=text,
            slug=slug or generate_slug(text),
            type=question_type,
            options=options,
            required=bool(data.get("required", True)),
            mapping_key=mapping_key or None,
            calculation_type=calculation_type,
            default_value=_first(data, "defaultValue", "default_value"),
            impacts=_string_list(data.get("impacts")),
            context=context,
        )

    def sanitize_calculation(self, raw: Any, index: int) -> Optional[Calculation]:
        data = _as_mapping(raw)
        if data is None:
            return None
        name = _text(data.get("name"))
        if not name:
            return None
        value = data.get("value")
        return Calculation(
            id=_text(data.get("id"), f"calc_{index + 1}"),
            name=name,
            value=0 if value is None else value,
            unit=_text(data.get("unit"), "units"),
            source=_text(data.get("source"), "User Input"),
            formula=_text(data.get("formula")) or None,
            mapped_questions=_string_list(data.get("mappedQuestions")),
            mapped_services=_string_list(data.get("mappedServices")),
            slug=_text(data.get("slug")) or normalize_factor_key(name)[:SLUG_MAX_LENGTH].rstrip("_"),
            result_type=_text(data.get("resultType"), "quantity"),
        )

    def sanitize_services(self, raw_services: Any) -> List[Service]:
        """Sanitize a list of raw services.

        Raises:
            ContentValidationError: If the input is not a list or holds no valid service
        """
        if not isinstance(raw_services, list):
            raise ContentValidationError("Services must be an array")
        services = []
        for i, raw in enumerate(raw_services):
            service = self.sanitize_service(raw, i)
            if service is not None:
                services.append(service)
        if not services:
            raise ContentValidationError("No valid services generated")
        return services

    def sanitize_questions(self, raw_questions: Any) -> List[Question]:
        if not isinstance(raw_questions, list):
            return []
        questions = []
        for i, raw in enumerate(raw_questions):
            question = self.sanitize_question(raw, i)
            if question is not None:
                questions.append(question)
        return questions

    def validate(self, partial: Any) -> GeneratedContent:
        """Coerce assembled content into a GeneratedContent.

        Raises:
            ContentValidationError: If services are missing or none is valid
        """
        data = _as_mapping(partial) or {}

        technology = _text(data.get("technology"), DEFAULT_TECHNOLOGY)

        services = self.sanitize_services(data.get("services"))

        questions = self.sanitize_questions(data.get("questions"))
        if not questions:
            logger.warning("No valid questions, using default questions")
            questions = _default_questions()

        calculations = []
        raw_calculations = data.get("calculations")
        if isinstance(raw_calculations, list):
            for i, raw in enumerate(raw_calculations):
                calculation = self.sanitize_calculation(raw, i)
                if calculation is not None:
                    calculations.append(calculation)
        if not calculations:
            calculations = _default_calculations()

        sources = []
        raw_sources = data.get("sources")
        if isinstance(raw_sources, list):
            for raw in raw_sources:
                source = self.sanitize_source(raw)
                if source is not None:
                    sources.append(source)

        total = parse_float(_first(data, "totalHours", "total_hours"))
        total_hours = round2(total) if total is not None and total > 0 else DEFAULT_TOTAL_HOURS

        return GeneratedContent(
            technology=technology,
            questions=questions,
            services=services,
            calculations=calculations,
            sources=sources,
            total_hours=total_hours,
        )
