"""Research orchestrator: sequences the generation pipeline and reports progress"""

import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence

from ..errors import GenerationCancelled, InputValidationError
from ..interfaces.research_engine import ResearchEngineInterface
from ..models.config_models import EngineConfig
from ..models.scope_models import (
    ApplyResult,
    EventType,
    GeneratedContent,
    Question,
    Service,
    StepStatus,
    StreamingEvent,
)
from ..utils.text_utils import extract_technology_name
from .calculation_engine import CalculationEngine
from .content_validator import ContentValidator
from .question_generator import QuestionGenerator
from .service_generator import ServiceGenerator

logger = logging.getLogger(__name__)

MIN_REQUEST_LENGTH = 3

ProgressCallback = Callable[[StreamingEvent], None]
CancelCheck = Callable[[], Awaitable[bool]]


class ResearchOrchestrator:
    """Runs research, service, question and calculation stages in order.

    Components are built once by the caller and injected here; the
    orchestrator keeps no per-request state between calls.
    """

    def __init__(
        self,
        research_engine: ResearchEngineInterface,
        service_generator: ServiceGenerator,
        question_generator: QuestionGenerator,
        calculation_engine: CalculationEngine,
        validator: ContentValidator,
        config: EngineConfig,
    ):
        self.research_engine = research_engine
        self.service_generator = service_generator
        self.question_generator = question_generator
        self.calculation_engine = calculation_engine
        self.validator = validator
        self.config = config

    def validate_request(self, user_request: Any) -> str:
        """Return the stripped request or raise InputValidationError"""
        if not isinstance(user_request, str):
            raise InputValidationError("Input is required and must be a string")
        stripped = user_request.strip()
        if len(stripped) < MIN_REQUEST_LENGTH:
            raise InputValidationError(f"Input must be at least {MIN_REQUEST_LENGTH} characters")
        if len(stripped) > self.config.max_request_length:
            raise InputValidationError(f"Input must be at most {self.config.max_request_length} characters")
        return stripped

    async def generate_content(
        self,
        user_request: str,
        on_progress: Optional[ProgressCallback] = None,
        models: Optional[Mapping[str, str]] = None,
        prompts: Optional[Mapping[str, str]] = None,
        is_cancelled: Optional[CancelCheck] = None,
    ) -> GeneratedContent:
        """Run the full pipeline.

        Emits step/progress events through ``on_progress``. Any failure emits a
        single error event and is re-raised. When ``is_cancelled`` reports
        true between stages, GenerationCancelled is raised and no further
        LLM calls are made.
        """
        models = models or {}
        prompts = prompts or {}
        research_model = models.get("research") or self.config.research_model
        content_model = models.get("content") or self.config.content_model

        def emit(event: StreamingEvent) -> None:
            if on_progress is not None:
                on_progress(event)

        def step(step_id: str, status: StepStatus, progress: int, model: Optional[str] = None) -> None:
            emit(StreamingEvent(type=EventType.STEP, step_id=step_id, status=status, progress=progress, model=model))

        async def check_cancelled(stage: str) -> None:
            if is_cancelled is not None and await is_cancelled():
                logger.info(f"Client disconnected, stopping before {stage}")
                raise GenerationCancelled(f"Generation cancelled before {stage}")

        try:
            user_request = self.validate_request(user_request)
            logger.info(f"Starting content generation for: {user_request[:80]}")

            await check_cancelled("research")
            step("research", StepStatus.IN_PROGRESS, 10, research_model)
            research = await self.research_engine.perform_research(
                user_request, model=research_model, guidance=prompts.get("research")
            )
            emit(StreamingEvent(
                type=EventType.PROGRESS,
                step_id="research",
                progress=30,
                sources=[source.title for source in research.sources],
            ))
            step("research", StepStatus.COMPLETED, 35, research_model)

            await check_cancelled("services")
            step("services", StepStatus.IN_PROGRESS, 40, content_model)
            services = await self.service_generator.generate_services(
                research, user_request, model=content_model, guidance=prompts.get("analysis")
            )
            step("services", StepStatus.COMPLETED, 50, content_model)

            await check_cancelled("questions")
            step("questions", StepStatus.IN_PROGRESS, 60, content_model)
            questions = await self.question_generator.generate_questions(
                services, research, user_request, model=content_model
            )
            step("questions", StepStatus.COMPLETED, 70, content_model)

            await check_cancelled("calculations")
            step("calculations", StepStatus.IN_PROGRESS, 80)
            result = self.apply_responses(services, questions, {})
            step("calculations", StepStatus.COMPLETED, 90)

            content = self.validator.validate(GeneratedContent(
                technology=extract_technology_name(user_request),
                questions=questions,
                services=result.services,
                calculations=result.calculations,
                sources=research.sources,
                total_hours=result.total_hours,
            ))
            logger.info(
                f"Generated {len(content.services)} services, {len(content.questions)} questions, "
                f"{content.total_hours} total hours"
            )
            emit(StreamingEvent(type=EventType.COMPLETE, progress=100, content=content))
            return content
        except GenerationCancelled:
            raise
        except Exception as e:
            logger.error(f"Content generation failed: {e}")
            emit(StreamingEvent(type=EventType.ERROR, error=str(e)))
            raise

    def apply_responses(self, services: List[Service], questions: Sequence[Question],
                        responses: Optional[Mapping[str, Any]]) -> ApplyResult:
        """Recalculate services against new responses without calling the LLM"""
        self.calculation_engine.apply_responses(services, questions, responses)
        response_map = self.calculation_engine.build_response_map(questions, responses)
        calculations = self.calculation_engine.generate_calculations(services, questions, response_map)
        return ApplyResult(
            services=services,
            calculations=calculations,
            total_hours=self.calculation_engine.calculate_total_hours(services),
        )
