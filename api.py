# api.py
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from content_engine.errors import (
    ConfigurationError,
    ContentValidationError,
    GenerationCancelled,
    InputValidationError,
)
from content_engine.main import create_orchestrator
from content_engine.models.scope_models import EventType, StreamingEvent
from content_engine.services.orchestrator import ResearchOrchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

# --- API Setup ---

app = FastAPI(
    title="ScopeStack Content Engine API",
    description="Research-to-scope generation for technology implementation projects",
    version="1.0.0",
)

# --- Global Resources Initialized on Startup ---

orchestrator: Optional[ResearchOrchestrator] = None


@app.on_event("startup")
async def startup_event():
    logger.info("API startup event triggered.")
    load_dotenv()

    global orchestrator
    try:
        orchestrator = create_orchestrator()
        logger.info("Content engine initialized.")
    except ConfigurationError as e:
        logger.error(f"Failed to initialize content engine: {e}")


def get_orchestrator() -> ResearchOrchestrator:
    if orchestrator is None:
        raise HTTPException(status_code=500, detail="Content engine not initialized. Check OPENROUTER_API_KEY.")
    return orchestrator


# Pydantic models for API request and response
class ModelSelection(BaseModel):
    research: Optional[str] = Field(None, description="Model used for source research.")
    analysis: Optional[str] = Field(None, description="Model used for request analysis.")
    content: Optional[str] = Field(None, description="Model used for service and question generation.")
    format: Optional[str] = Field(None, description="Model used for output formatting.")


class PromptOverrides(BaseModel):
    parsing: Optional[str] = Field(None, description="Request parsing prompt (accepted, not used).")
    research: Optional[str] = Field(None, description="Replaces the research guidance preamble.")
    analysis: Optional[str] = Field(None, description="Extra guidance appended to service generation.")


class ResearchRequest(BaseModel):
    input: Optional[Any] = Field(None, description="Free-text description of the technology project.")
    models: Optional[ModelSelection] = Field(None, description="Optional per-stage model overrides.")
    prompts: Optional[PromptOverrides] = Field(None, description="Optional prompt overrides.")


class ApplyResponsesRequest(BaseModel):
    services: List[Dict[str, Any]] = Field(..., description="Previously generated services.")
    questions: List[Dict[str, Any]] = Field([], description="Previously generated questions.")
    responses: Dict[str, Any] = Field({}, description="Answers keyed by question id, slug or mapping key.")


def format_sse(event: StreamingEvent) -> str:
    return f"data: {json.dumps(event.to_dict())}\n\n"


async def stream_generation(engine: ResearchOrchestrator, user_request: str, request: Request,
                            models: Dict[str, str], prompts: Dict[str, str]) -> AsyncIterator[str]:
    """Run the pipeline in a task and relay its events as server-sent events"""
    queue: asyncio.Queue = asyncio.Queue()

    async def is_cancelled() -> bool:
        return await request.is_disconnected()

    async def run() -> None:
        try:
            await engine.generate_content(
                user_request,
                on_progress=queue.put_nowait,
                models=models,
                prompts=prompts,
                is_cancelled=is_cancelled,
            )
        except GenerationCancelled:
            logger.info("Generation cancelled by client disconnect")
        except Exception as e:
            # Already reported to the client as an error event
            logger.error(f"Research stream failed: {e}")
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(run())
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield format_sse(event)
            if event.type in (EventType.COMPLETE, EventType.ERROR):
                break
    finally:
        await task


@app.post("/api/research")
async def research_endpoint(body: ResearchRequest, request: Request,
                            engine: ResearchOrchestrator = Depends(get_orchestrator)):
    try:
        user_request = engine.validate_request(body.input)
    except InputValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    logger.info(f"Received research request: {user_request[:80]}")
    models = {k: v for k, v in (body.models.model_dump() if body.models else {}).items() if v}
    prompts = {k: v for k, v in (body.prompts.model_dump() if body.prompts else {}).items() if v}

    return StreamingResponse(
        stream_generation(engine, user_request, request, models, prompts),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.post("/api/apply-responses")
async def apply_responses_endpoint(body: ApplyResponsesRequest,
                                   engine: ResearchOrchestrator = Depends(get_orchestrator)):
    try:
        services = engine.validator.sanitize_services(body.services)
    except ContentValidationError as e:
        return JSONResponse(status_code=422, content={"error": str(e)})
    questions = engine.validator.sanitize_questions(body.questions)

    result = engine.apply_responses(services, questions, body.responses)
    return result.to_dict()


@app.get("/api/health")
async def health_endpoint():
    status = {"status": "ok"}
    if orchestrator is not None:
        gateway = getattr(orchestrator.service_generator, "gateway", None)
        if gateway is not None:
            status["circuit"] = gateway.circuit_breaker.state.value
    return status


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
