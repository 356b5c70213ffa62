"""Scaling factor vocabulary shared by the question generator and the calculation engine"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from enum import Enum

from .scope_models import QuestionType, CalculationType


class FactorKind(str, Enum):
    USER_COUNT = "user_count"
    MAILBOX_COUNT = "mailbox_count"
    SITE_COUNT = "site_count"
    DATA_VOLUME_GB = "data_volume_gb"
    INTEGRATION_COUNT = "integration_count"
    COMPLEXITY = "complexity"
    SECURITY_LEVEL = "security_level"
    ADMIN_COUNT = "admin_count"
    TRAINING_GROUPS = "training_groups"
    SYSTEM_COUNT = "system_count"
    TEST_SCENARIOS = "test_scenarios"
    DOCUMENTATION_SETS = "documentation_sets"
    DEVICE_COUNT = "device_count"
    LOCATION_COUNT = "location_count"

    @classmethod
    def lookup(cls, factor: str) -> Optional["FactorKind"]:
        for kind in cls:
            if kind.value == factor:
                return kind
        return None


@dataclass
class FactorTemplate:
    """Static question template for a well-known scaling factor"""
    text: str
    type: QuestionType
    calculation_type: CalculationType
    default_value: Any
    unit: str
    options: List[str] = field(default_factory=list)


FACTOR_TEMPLATES: Dict[FactorKind, FactorTemplate] = {
    FactorKind.USER_COUNT: FactorTemplate(
        "How many users will be affected by this implementation?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 100, "users",
    ),
    FactorKind.MAILBOX_COUNT: FactorTemplate(
        "How many mailboxes need to be migrated?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 100, "mailboxes",
    ),
    FactorKind.SITE_COUNT: FactorTemplate(
        "How many sites or locations are involved?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 1, "sites",
    ),
    FactorKind.DATA_VOLUME_GB: FactorTemplate(
        "What is the total data volume in GB?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 100, "GB",
    ),
    FactorKind.INTEGRATION_COUNT: FactorTemplate(
        "How many system integrations are required?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 1, "integrations",
    ),
    FactorKind.COMPLEXITY: FactorTemplate(
        "What is the complexity level of this implementation?",
        QuestionType.MULTIPLE_CHOICE, CalculationType.MULTIPLIER, "Medium - Some customization", "units",
        options=["Low - Standard configuration", "Medium - Some customization", "High - Extensive customization"],
    ),
    FactorKind.SECURITY_LEVEL: FactorTemplate(
        "What level of security requirements apply?",
        QuestionType.MULTIPLE_CHOICE, CalculationType.MULTIPLIER, "Standard - Industry compliance", "units",
        options=["Basic - Standard security", "Standard - Industry compliance", "Enhanced - Strict regulatory requirements"],
    ),
    FactorKind.ADMIN_COUNT: FactorTemplate(
        "How many administrators need training?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 2, "administrators",
    ),
    FactorKind.TRAINING_GROUPS: FactorTemplate(
        "How many separate training groups are needed?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 1, "groups",
    ),
    FactorKind.SYSTEM_COUNT: FactorTemplate(
        "How many systems are involved in this implementation?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 1, "systems",
    ),
    FactorKind.TEST_SCENARIOS: FactorTemplate(
        "How many test scenarios need to be executed?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 10, "scenarios",
    ),
    FactorKind.DOCUMENTATION_SETS: FactorTemplate(
        "How many documentation sets are required?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 1, "sets",
    ),
    FactorKind.DEVICE_COUNT: FactorTemplate(
        "How many devices are in scope?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 50, "devices",
    ),
    FactorKind.LOCATION_COUNT: FactorTemplate(
        "How many physical locations are in scope?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 1, "locations",
    ),
}


def template_for(factor: str) -> FactorTemplate:
    """Return the static template for a factor, or a generic numeric one"""
    kind = FactorKind.lookup(factor)
    if kind is not None:
        return FACTOR_TEMPLATES[kind]
    readable = factor.replace("_", " ")
    return FactorTemplate(
        f"What is the value for {readable}?",
        QuestionType.NUMBER, CalculationType.QUANTITY, 1, "units",
    )


def unit_for(factor: str) -> str:
    kind = FactorKind.lookup(factor)
    return FACTOR_TEMPLATES[kind].unit if kind is not None else "units"


# Scaling categories checked for coverage when proposing context questions
SCALING_CATEGORIES: Dict[str, List[str]] = {
    "Scale/Volume": ["user_count", "mailbox_count", "data_volume_gb", "device_count"],
    "Complexity": ["complexity", "security_level", "integration_complexity"],
    "Geography/Distribution": ["site_count", "location_count", "region_count"],
    "Integration/Dependencies": ["integration_count", "system_count", "third_party_count"],
    "Support/Training": ["admin_count", "training_groups", "support_level"],
    "Timeline/Approach": ["migration_approach", "downtime_tolerance", "rollout_strategy"],
}
