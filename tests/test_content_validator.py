from __future__ import annotations

import pytest

from content_engine.errors import ContentValidationError
from content_engine.models.research_models import Credibility, SourceType
from content_engine.models.scope_models import CalculationType, Phase, QuestionType
from content_engine.services.content_validator import ContentValidator


@pytest.fixture
def validator() -> ContentValidator:
    return ContentValidator()


def test_empty_services_raise(validator):
    with pytest.raises(ContentValidationError):
        validator.validate({"technology": "Exchange", "services": []})


def test_missing_or_malformed_services_raise(validator):
    with pytest.raises(ContentValidationError, match="array"):
        validator.validate({"technology": "Exchange"})
    with pytest.raises(ContentValidationError, match="No valid services"):
        validator.validate({"services": [{"description": "no name"}, "junk"]})


def test_validate_fills_defaults(validator, raw_services):
    content = validator.validate({"services": raw_services, "totalHours": "abc"})

    assert content.technology == "Technology Solution"
    assert [q.slug for q in content.questions] == ["project_scope", "env_size"]
    assert content.calculations[0].name == "Base Implementation Complexity"
    assert content.calculations[0].value == "1.2"
    assert content.total_hours == 40
    assert content.sources == []


def test_total_hours_rounded_when_positive(validator, raw_services):
    content = validator.validate({"services": raw_services, "totalHours": 123.456})
    assert content.total_hours == 123.46
    content = validator.validate({"services": raw_services, "totalHours": 0})
    assert content.total_hours == 40


def test_sanitize_service_assigns_ids_and_phase(validator):
    service = validator.sanitize_service({
        "name": "Knowledge Transfer",
        "hours": "12",
        "quantity": 4,
        "subservices": [
            {"name": "Admin Training", "baseHours": 6, "scalingFactors": ["Admin Count"]},
            {"name": "Runbooks"},
            "junk",
        ],
    }, 2)

    assert service.id == "svc_3"
    assert service.quantity == 1
    assert service.hours == 12
    assert service.phase == Phase.EXECUTION.value
    assert [sub.id for sub in service.subservices] == ["sub_3_1", "sub_3_2"]
    assert service.subservices[0].scaling_factors == ["admin_count"]
    assert service.subservices[1].base_hours == 8


def test_phase_is_normalized_or_inferred(validator):
    assert validator.sanitize_service({"name": "Kickoff", "phase": "project initiation"}, 0).phase == "Initiation"
    assert validator.sanitize_service({"name": "QA", "phase": "Testing"}, 0).phase == "Monitoring & Controlling"
    assert validator.sanitize_service({"name": "Solution Design"}, 0).phase == "Planning"
    assert validator.sanitize_service({"name": "Hypercare", "phase": "Aftercare"}, 0).phase == "Aftercare"


def test_negative_or_invalid_hours_default(validator):
    sub = validator.sanitize_subservice({"name": "Config", "baseHours": -3}, 0, 0)
    assert sub.base_hours == 8
    sub = validator.sanitize_subservice({"name": "Config", "baseHours": 0, "quantity": 0}, 0, 0)
    assert sub.base_hours == 0
    assert sub.quantity == 0


def test_calculation_rules_are_kept_as_expressions(validator):
    sub = validator.sanitize_subservice({
        "name": "Data Migration",
        "calculationRules": {"quantity": "Math.ceil(data_volume_gb / 100)", "multiplier": 1.5, "included": True},
    }, 0, 0)
    assert sub.calculation_rules.quantity == "Math.ceil(data_volume_gb / 100)"
    assert sub.calculation_rules.multiplier == "1.5"
    assert sub.calculation_rules.included == "true"
    assert validator.sanitize_rules({}) is None


def test_sanitize_question_infers_type(validator):
    question = validator.sanitize_question({"text": "Which approach?", "options": ["Cutover", "Staged"]}, 0)
    assert question.type is QuestionType.MULTIPLE_CHOICE
    assert question.id == "q_1"

    question = validator.sanitize_question({
        "question": "How many mailboxes need to be migrated?",
        "type": "NUMBER",
        "mappingKey": "Mailbox Count",
        "calculationType": "bogus",
        "defaultValue": 100,
    }, 4)
    assert question.type is QuestionType.NUMBER
    assert question.slug == "mailbox_qty"
    assert question.mapping_key == "mailbox_count"
    assert question.calculation_type is CalculationType.QUANTITY
    assert question.id == "q_5"

    assert validator.sanitize_question({"type": "number"}, 0) is None


def test_sanitize_source(validator):
    source = validator.sanitize_source({
        "title": "Guide", "url": "https://example.com", "relevance": 3, "credibility": "HIGH",
        "sourceType": "unknown",
    })
    assert source.relevance == 1.0
    assert source.credibility is Credibility.HIGH
    assert source.source_type is SourceType.OTHER
    assert validator.sanitize_source({"title": "No url"}) is None


def test_validate_accepts_dataclass_content(validator, services):
    content = validator.validate({"technology": "Exchange", "services": services, "totalHours": 10})
    assert [s.id for s in content.services] == [s.id for s in services]
    assert sum(len(s.subservices) for s in content.services) == 16
