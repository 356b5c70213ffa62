from __future__ import annotations

import json

import pytest

from content_engine.errors import GatewayError, ServiceGenerationError
from content_engine.models.research_models import ResearchData
from content_engine.models.scope_models import Phase
from content_engine.services.service_generator import ServiceGenerator, phase_coverage
from tests.conftest import SERVICES_MARKER, make_raw_services

REQUEST = "Microsoft Exchange Online migration for 500 users"


@pytest.fixture
def generator(gateway, config, validator) -> ServiceGenerator:
    return ServiceGenerator(gateway, config, validator=validator)


@pytest.fixture
def research() -> ResearchData:
    return ResearchData(research_summary="Mailbox count drives effort", key_insights=["Plan coexistence"],
                        confidence=0.8)


def _generic_services(count: int, subs_each: int) -> list:
    return [
        {
            "name": f"Work Package {i + 1}",
            "subservices": [{"name": f"Task {i + 1}.{j + 1}", "baseHours": 4} for j in range(subs_each)],
        }
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_five_services_with_all_phases_succeed(generator, fake_client, research):
    fake_client.add(SERVICES_MARKER, "```json\n" + json.dumps(make_raw_services()) + "\n```")

    services = await generator.generate_services(research, REQUEST)

    assert len(services) == 5
    assert sum(len(s.subservices) for s in services) == 16
    assert [s.phase for s in services] == [phase.value for phase in Phase]
    assert all(s.quantity == 1 for s in services)
    assert phase_coverage(services) == (100, [])

    again = generator.parse_services(json.dumps(make_raw_services()))
    assert [s.to_dict() for s in again] == [s.to_dict() for s in services]


@pytest.mark.asyncio
async def test_prompt_includes_research_and_guidance(generator, fake_client, research):
    fake_client.add(SERVICES_MARKER, json.dumps(make_raw_services()))

    await generator.generate_services(research, REQUEST, model="openai/gpt-4o", guidance="Prefer staged migration")

    call = fake_client.calls_for(SERVICES_MARKER)[0]
    assert call["model"] == "openai/gpt-4o"
    assert "Mailbox count drives effort" in call["prompt"]
    assert "Additional guidance:\nPrefer staged migration" in call["prompt"]
    assert REQUEST in call["prompt"]


@pytest.mark.asyncio
async def test_wrapped_services_are_accepted(generator, fake_client, research):
    fake_client.add(SERVICES_MARKER, json.dumps({"services": make_raw_services()}))
    services = await generator.generate_services(research, REQUEST)
    assert len(services) == 5


@pytest.mark.asyncio
async def test_too_few_services_fails(generator, fake_client, research):
    fake_client.add(SERVICES_MARKER, json.dumps(make_raw_services()[:3]))
    with pytest.raises(ServiceGenerationError, match="Insufficient services"):
        await generator.generate_services(research, REQUEST)


@pytest.mark.asyncio
async def test_too_few_subservices_fails(generator, fake_client, research):
    raw = make_raw_services()
    for service in raw:
        service["subservices"] = service["subservices"][:2]
    fake_client.add(SERVICES_MARKER, json.dumps(raw))
    with pytest.raises(ServiceGenerationError, match="Insufficient subservices"):
        await generator.generate_services(research, REQUEST)


@pytest.mark.asyncio
async def test_poor_phase_coverage_fails(generator, fake_client, research):
    fake_client.add(SERVICES_MARKER, json.dumps(_generic_services(5, 3)))
    with pytest.raises(ServiceGenerationError, match="phase coverage"):
        await generator.generate_services(research, REQUEST)


@pytest.mark.asyncio
async def test_empty_and_unparseable_responses_fail(generator, fake_client, research):
    fake_client.add(SERVICES_MARKER, "", "Sorry, I cannot help with that.")
    with pytest.raises(ServiceGenerationError, match="Empty response"):
        await generator.generate_services(research, REQUEST)
    with pytest.raises(ServiceGenerationError, match="parse"):
        await generator.generate_services(research, REQUEST)


@pytest.mark.asyncio
async def test_gateway_errors_propagate(generator, fake_client, research):
    fake_client.add(SERVICES_MARKER, GatewayError("API authentication failed", status_code=401))
    with pytest.raises(GatewayError):
        await generator.generate_services(research, REQUEST)


def test_phase_coverage_reports_missing_phases(validator):
    services = validator.sanitize_services(_generic_services(4, 3))
    coverage, missing = phase_coverage(services)
    assert coverage == 20
    assert Phase.EXECUTION not in missing
    assert len(missing) == 4
