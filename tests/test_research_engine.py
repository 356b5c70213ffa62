from __future__ import annotations

import json

import pytest

from content_engine.errors import GatewayError, GenerationCancelled, ResponseParseError
from content_engine.models.research_models import SourceType
from content_engine.services.research_engine import DEFAULT_RESEARCH_GUIDANCE, ResearchEngine
from tests.conftest import ENHANCE_MARKER, RESEARCH_MARKER, RESEARCH_RESPONSE

REQUEST = "Microsoft Exchange Online migration for 500 users"


@pytest.fixture
def engine(gateway, config, validator) -> ResearchEngine:
    return ResearchEngine(gateway, config, validator=validator)


@pytest.mark.asyncio
async def test_sources_are_sanitized_and_ranked(engine, fake_client):
    fake_client.add(RESEARCH_MARKER, "Here is my research:\n```json\n" + RESEARCH_RESPONSE + "\n```")

    research = await engine.perform_research(REQUEST)

    assert [s.relevance for s in research.sources] == [0.9, 0.6]
    assert research.sources[0].source_type is SourceType.GUIDE
    assert research.key_insights == ["Mailbox count drives effort", "Plan for coexistence"]
    assert research.confidence == 0.8
    assert fake_client.calls[0]["model"] == "perplexity/sonar"


@pytest.mark.asyncio
async def test_research_results_are_cached_per_request(engine, fake_client):
    fake_client.add(RESEARCH_MARKER, RESEARCH_RESPONSE)

    await engine.perform_research(REQUEST)
    await engine.perform_research(REQUEST)

    assert len(fake_client.calls) == 1


@pytest.mark.asyncio
async def test_guidance_replaces_preamble(engine, fake_client):
    fake_client.add(RESEARCH_MARKER, RESEARCH_RESPONSE)

    await engine.perform_research(REQUEST, model="openai/gpt-4o-search", guidance="Only use vendor sources")

    prompt = fake_client.calls[0]["prompt"]
    assert prompt.startswith("Only use vendor sources")
    assert DEFAULT_RESEARCH_GUIDANCE not in prompt
    assert fake_client.calls[0]["model"] == "openai/gpt-4o-search"


@pytest.mark.asyncio
async def test_wrapped_payload_and_clamped_values(engine, fake_client):
    payload = {"research": {
        "sources": [
            {"title": "Guide", "url": "https://example.com", "relevance": 7},
            {"title": "Missing url"},
        ],
        "confidence": 4,
    }}
    fake_client.add(RESEARCH_MARKER, json.dumps(payload))

    research = await engine.perform_research(REQUEST)

    assert len(research.sources) == 1
    assert research.sources[0].relevance == 1.0
    assert research.confidence == 1.0


@pytest.mark.asyncio
async def test_failures_return_empty_research(engine, fake_client):
    fake_client.add(RESEARCH_MARKER, "I was unable to find sources.")
    research = await engine.perform_research(REQUEST)
    assert research.sources == []
    assert research.confidence == 0.0


@pytest.mark.asyncio
async def test_gateway_failure_returns_empty_research(engine, fake_client):
    fake_client.add(RESEARCH_MARKER, GatewayError("Rate limit exceeded", status_code=429, retryable=True))
    research = await engine.perform_research(REQUEST)
    assert research.sources == []
    assert len(fake_client.calls) == 3


@pytest.mark.asyncio
async def test_unexpected_engine_error_returns_empty_research(engine, fake_client):
    fake_client.add(RESEARCH_MARKER, ResponseParseError("Malformed provider payload"))
    research = await engine.perform_research(REQUEST)
    assert research.sources == []
    assert len(fake_client.calls) == 1


@pytest.mark.asyncio
async def test_cancellation_is_not_swallowed(engine, fake_client):
    fake_client.add(RESEARCH_MARKER, GenerationCancelled("client went away"))
    with pytest.raises(GenerationCancelled):
        await engine.perform_research(REQUEST)


@pytest.mark.asyncio
async def test_enhancement_keeps_original_on_failure(engine, config, fake_client):
    config.enhance_sources = True
    fake_client.add(RESEARCH_MARKER, RESEARCH_RESPONSE)
    fake_client.add(
        ENHANCE_MARKER,
        json.dumps({"summary": "Step-by-step planning checklist", "relevance": 0.95}),
        "not json",
    )

    research = await engine.perform_research(REQUEST)

    assert len(research.sources) == 2
    summaries = {s.title: s.summary for s in research.sources}
    assert summaries["Microsoft 365 deployment planning"] == "Step-by-step planning checklist"
    assert summaries["Exchange Online migration guide"] == "Official migration paths"
    assert research.sources[0].relevance == 0.95
