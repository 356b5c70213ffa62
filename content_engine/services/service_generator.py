"""Service generator: phase-structured services with scaling-aware subservices"""

import logging
from typing import List, Optional, Tuple

from ..clients.llm_gateway import LLMGateway
from ..errors import ContentValidationError, ResponseParseError, ServiceGenerationError
from ..models.config_models import EngineConfig
from ..models.research_models import ResearchData
from ..models.scope_models import PHASE_COVERAGE_KEYWORDS, Phase, Service
from ..utils.response_parser import ResponseParser
from ..utils.text_utils import extract_technology_name
from .content_validator import ContentValidator

logger = logging.getLogger(__name__)

MIN_SERVICES = 4
MIN_SUBSERVICES = 12
RECOMMENDED_SUBSERVICES = 15
MIN_PHASE_COVERAGE = 60

SERVICE_PROMPT = """Generate exactly 5 professional services for "{request}" implementation with scaling metadata.

Research Context: {summary}
Key Insights: {insights}

Requirements:
1. Generate EXACTLY 5 services, one for each project phase. The "phase" field must be one of:
   "Initiation", "Planning", "Execution", "Monitoring & Controlling", "Closing".
   - Initiation: requirements gathering, stakeholder analysis, current state assessment
   - Planning: architecture design, project planning, detailed technical specifications
   - Execution: implementation, deployment, configuration, data migration
   - Monitoring & Controlling: testing, quality assurance, performance monitoring, validation
   - Closing: knowledge transfer, documentation, handover, project sign-off

2. Each service MUST include: name, description, serviceDescription, keyAssumptions,
   clientResponsibilities, outOfScope, phase, hours (sum of subservice hours),
   quantity (always 1) and subservices (4-5 entries).

3. Each subservice MUST include: name, description, serviceDescription, keyAssumptions,
   clientResponsibilities, outOfScope, baseHours (hours per unit), scalingFactors (array),
   quantityDriver (primary scaling factor) and optionally calculationRules
   ({{"quantity": "...", "multiplier": "...", "included": "..."}}).

4. Use these scaling factors where appropriate: user_count, mailbox_count, site_count,
   data_volume_gb, integration_count, complexity (low/medium/high), security_level,
   admin_count, training_groups, system_count, test_scenarios, documentation_sets.

Example calculation rules for SUBSERVICES ONLY:
- quantity: "user_count || 1"
- quantity: "Math.ceil(data_volume_gb / 100)"
- multiplier: "site_count > 1 ? 1.5 : 1.0"
- multiplier: "complexity === 'high' ? 1.5 : 1.0"

Services must NOT have calculation rules; they represent project phases, not scalable units.
Every subservice should have either calculationRules or a quantityDriver.
{extra}
Return ONLY a valid JSON array with all 5 services. No markdown, no explanations."""


def _service_text(service: Service) -> str:
    parts = [service.name, service.description, service.phase, service.service_description]
    for sub in service.subservices:
        parts.extend([sub.name, sub.description, sub.service_description])
    return " ".join(part for part in parts if part).lower()


def phase_coverage(services: List[Service]) -> Tuple[int, List[Phase]]:
    """Percentage of canonical phases represented, and the phases that are missing"""
    text = " ".join(_service_text(service) for service in services)
    missing = [
        phase for phase, keywords in PHASE_COVERAGE_KEYWORDS.items()
        if not any(keyword in text for keyword in keywords)
    ]
    covered = len(PHASE_COVERAGE_KEYWORDS) - len(missing)
    return round(covered / len(PHASE_COVERAGE_KEYWORDS) * 100), missing


class ServiceGenerator:
    """Generates services from research context and enforces volume and coverage thresholds"""

    def __init__(self, gateway: LLMGateway, config: EngineConfig,
                 validator: Optional[ContentValidator] = None,
                 parser: Optional[ResponseParser] = None):
        self.gateway = gateway
        self.config = config
        self.validator = validator or ContentValidator()
        self.parser = parser or ResponseParser()

    def build_prompt(self, research_data: ResearchData, user_request: str,
                     guidance: Optional[str] = None) -> str:
        extra = f"\nAdditional guidance:\n{guidance.strip()}\n" if guidance and guidance.strip() else ""
        return SERVICE_PROMPT.format(
            request=user_request,
            summary=research_data.research_summary or "No research summary available",
            insights=", ".join(research_data.key_insights[:3]) or "None",
            extra=extra,
        )

    async def generate_services(self, research_data: ResearchData, user_request: str,
                                model: Optional[str] = None, guidance: Optional[str] = None) -> List[Service]:
        """Generate and validate services.

        Raises:
            ServiceGenerationError: On empty/unparseable output or when thresholds are not met
            GatewayError: When the LLM call fails after retries
        """
        model = model or self.config.content_model
        technology = extract_technology_name(user_request)
        logger.info(f"Generating services for {technology} with {model}")

        response = await self.gateway.complete(
            self.build_prompt(research_data, user_request, guidance),
            model=model,
            timeout=self.config.service_timeout,
        )
        if not response or not response.strip():
            raise ServiceGenerationError("Empty response from AI service")

        services = self.parse_services(response)
        self.validate_services(services)
        return services

    def parse_services(self, response: str) -> List[Service]:
        try:
            parsed = self.parser.loads(response)
        except ResponseParseError as e:
            raise ServiceGenerationError(f"Failed to parse services: {e}") from e

        if isinstance(parsed, dict) and isinstance(parsed.get("services"), list):
            parsed = parsed["services"]
        if not isinstance(parsed, list):
            raise ServiceGenerationError("Service response is not an array")

        try:
            return self.validator.sanitize_services(parsed)
        except ContentValidationError as e:
            raise ServiceGenerationError(str(e)) from e

    def validate_services(self, services: List[Service]) -> None:
        total_subservices = sum(len(service.subservices) for service in services)
        logger.info(f"Generated {len(services)} services with {total_subservices} subservices")

        if len(services) < MIN_SERVICES:
            raise ServiceGenerationError(
                f"Insufficient services generated: {len(services)} (minimum {MIN_SERVICES})"
            )
        if total_subservices < MIN_SUBSERVICES:
            raise ServiceGenerationError(
                f"Insufficient subservices generated: {total_subservices} (minimum {MIN_SUBSERVICES})"
            )
        if total_subservices < RECOMMENDED_SUBSERVICES:
            logger.warning(f"Only {total_subservices} subservices generated, {RECOMMENDED_SUBSERVICES}+ recommended")

        coverage, missing = phase_coverage(services)
        if coverage < MIN_PHASE_COVERAGE:
            names = ", ".join(phase.value for phase in missing)
            raise ServiceGenerationError(
                f"Insufficient phase coverage: {coverage}% (minimum {MIN_PHASE_COVERAGE}%), missing {names}"
            )
        if missing:
            logger.warning(f"Phase coverage {coverage}%, missing {', '.join(p.value for p in missing)}")
