from __future__ import annotations

import json
from typing import Any, List, Optional, Tuple

import pytest

from content_engine.clients.llm_gateway import LLMGateway
from content_engine.interfaces.llm_client import LLMClientInterface
from content_engine.models.config_models import EngineConfig
from content_engine.services.content_validator import ContentValidator

RESEARCH_MARKER = "Research the following technology implementation request"
SERVICES_MARKER = "professional services for"
FACTOR_QUESTIONS_MARKER = "Write one clear scoping question"
CONTEXT_QUESTIONS_MARKER = "UNCOVERED scaling dimensions"
ENHANCE_MARKER = "Summarize how the following source"


class FakeLLMClient(LLMClientInterface):
    """Replies are scripted per prompt marker; the last reply for a marker repeats."""

    def __init__(self, default: str = "") -> None:
        self.script: List[Tuple[str, List[Any]]] = []
        self.default = default
        self.calls: List[dict] = []

    def add(self, marker: str, *replies: Any) -> "FakeLLMClient":
        self.script.append((marker, list(replies)))
        return self

    def calls_for(self, marker: str) -> List[dict]:
        return [call for call in self.calls if marker in call["prompt"]]

    async def complete(self, prompt: str, model: str, temperature: float = 0.7,
                       max_tokens: Optional[int] = None) -> str:
        self.calls.append({"prompt": prompt, "model": model})
        reply: Any = self.default
        for marker, replies in self.script:
            if marker in prompt:
                reply = replies[0] if len(replies) == 1 else replies.pop(0)
                break
        if isinstance(reply, Exception):
            raise reply
        return reply


async def no_sleep(_delay: float) -> None:
    return None


def _sub(name: str, base_hours: float, **extra: Any) -> dict:
    data = {
        "name": name,
        "description": f"{name} activities",
        "serviceDescription": f"Delivery of {name.lower()}",
        "keyAssumptions": "Client provides timely access",
        "clientResponsibilities": "Provide a project contact",
        "outOfScope": "Hardware procurement",
        "baseHours": base_hours,
        "scalingFactors": [],
    }
    data.update(extra)
    return data


def make_raw_services() -> List[dict]:
    return [
        {
            "name": "Project Initiation and Stakeholder Alignment",
            "description": "Kickoff, requirements gathering and current state assessment",
            "phase": "Initiation",
            "hours": 20,
            "subservices": [
                _sub("Stakeholder Kickoff", 4),
                _sub("Requirements Gathering", 8, scalingFactors=["site_count"], quantityDriver="site_count"),
                _sub("Current State Assessment", 6, scalingFactors=["user_count"],
                     calculationRules={"quantity": "Math.ceil(user_count / 100)"}),
            ],
        },
        {
            "name": "Solution Planning and Architecture Design",
            "description": "Target architecture and migration planning",
            "phase": "Planning",
            "hours": 30,
            "subservices": [
                _sub("Architecture Design", 16, scalingFactors=["complexity"],
                     calculationRules={"multiplier": "complexity === 'high' ? 1.5 : 1.0"}),
                _sub("Migration Planning", 8, scalingFactors=["site_count"], quantityDriver="site_count"),
                _sub("Integration Planning", 4, scalingFactors=["integration_count"],
                     quantityDriver="integration_count"),
            ],
        },
        {
            "name": "Implementation and Deployment",
            "description": "Tenant configuration and data migration",
            "phase": "Execution",
            "hours": 60,
            "subservices": [
                _sub("Tenant Configuration", 12),
                _sub("Mailbox Migration", 0.5, scalingFactors=["mailbox_count"], quantityDriver="mailbox_count"),
                _sub("Data Migration", 2, scalingFactors=["data_volume_gb"],
                     calculationRules={"quantity": "Math.ceil(data_volume_gb / 100)"}),
                _sub("Integration Build", 8, scalingFactors=["integration_count"],
                     quantityDriver="integration_count"),
            ],
        },
        {
            "name": "Testing and Quality Assurance",
            "description": "Functional testing and user acceptance",
            "phase": "Monitoring & Controlling",
            "hours": 20,
            "subservices": [
                _sub("Test Planning", 4),
                _sub("Test Execution", 1, scalingFactors=["test_scenarios"], quantityDriver="test_scenarios"),
                _sub("User Acceptance Testing", 6),
            ],
        },
        {
            "name": "Training and Handover",
            "description": "Administrator training, documentation and knowledge transfer",
            "phase": "Closing",
            "hours": 18,
            "subservices": [
                _sub("Admin Training", 4, scalingFactors=["admin_count"], quantityDriver="admin_count"),
                _sub("Documentation", 6),
                _sub("Knowledge Transfer", 4),
            ],
        },
    ]


RESEARCH_RESPONSE = json.dumps({
    "sources": [
        {
            "title": "Exchange Online migration guide",
            "url": "https://learn.microsoft.com/exchange/migration",
            "summary": "Official migration paths",
            "credibility": "high",
            "relevance": 0.6,
            "sourceType": "documentation",
        },
        {
            "title": "Microsoft 365 deployment planning",
            "url": "https://learn.microsoft.com/microsoft-365/deploy",
            "summary": "Deployment planning checklist",
            "credibility": "high",
            "relevance": 0.9,
            "sourceType": "guide",
        },
    ],
    "researchSummary": "Migrations are driven by mailbox count and data volume.",
    "keyInsights": ["Mailbox count drives effort", "Plan for coexistence"],
    "confidence": 0.8,
})


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(
        api_key="test-key",
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=0.0,
        rate_limit_requests=100,
    )


@pytest.fixture
def fake_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def gateway(fake_client: FakeLLMClient, config: EngineConfig) -> LLMGateway:
    return LLMGateway(fake_client, config, sleep=no_sleep)


@pytest.fixture
def validator() -> ContentValidator:
    return ContentValidator()


@pytest.fixture
def raw_services() -> List[dict]:
    return make_raw_services()


@pytest.fixture
def services(validator: ContentValidator, raw_services: List[dict]):
    return validator.sanitize_services(raw_services)
