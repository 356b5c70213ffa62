"""Data models for generated scope content"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
from enum import Enum

from .research_models import ResearchSource


class Phase(str, Enum):
    """Canonical project lifecycle phases"""
    INITIATION = "Initiation"
    PLANNING = "Planning"
    EXECUTION = "Execution"
    MONITORING = "Monitoring & Controlling"
    CLOSING = "Closing"

    @classmethod
    def normalize(cls, value: str) -> str:
        """Map a free-text phase name onto a canonical phase.

        Matching is by substring against PHASE_STEMS, checked in phase order.
        Unrecognized names are returned unchanged (stripped).
        """
        text = (value or "").strip()
        lowered = text.lower()
        for phase, stems in PHASE_STEMS.items():
            if any(stem in lowered for stem in stems):
                return phase.value
        return text

    @classmethod
    def match(cls, value: str) -> Optional["Phase"]:
        normalized = cls.normalize(value)
        for phase in cls:
            if phase.value == normalized:
                return phase
        return None


# Substring stems used to normalize phase names
PHASE_STEMS: Dict[Phase, tuple] = {
    Phase.INITIATION: ("initiat", "start", "charter"),
    Phase.PLANNING: ("plan", "design", "architect"),
    Phase.EXECUTION: ("execut", "implement", "deploy", "build"),
    Phase.MONITORING: ("monitor", "control", "test", "quality"),
    Phase.CLOSING: ("clos", "train", "handover"),
}

# Keywords that show a phase is represented somewhere in the generated services
PHASE_COVERAGE_KEYWORDS: Dict[Phase, tuple] = {
    Phase.INITIATION: ("initiation", "charter", "stakeholder", "initial", "kickoff", "startup"),
    Phase.PLANNING: ("planning", "design", "architecture", "strategy", "blueprint", "analysis", "assessment"),
    Phase.EXECUTION: ("execution", "implementation", "development", "build", "deployment", "configuration", "setup"),
    Phase.MONITORING: ("monitoring", "testing", "quality", "validation", "control", "tracking", "assurance"),
    Phase.CLOSING: ("closing", "training", "handover", "documentation", "knowledge transfer", "closure", "completion"),
}


class QuestionType(str, Enum):
    NUMBER = "number"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    BOOLEAN = "boolean"


class CalculationType(str, Enum):
    QUANTITY = "quantity"
    MULTIPLIER = "multiplier"
    INCLUDE_EXCLUDE = "include_exclude"


class EventType(str, Enum):
    STEP = "step"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class StepStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


@dataclass
class CalculationRules:
    """Expressions that scale a subservice from question responses"""
    quantity: Optional[str] = None
    multiplier: Optional[str] = None
    included: Optional[str] = None

    def expressions(self) -> List[str]:
        return [expr for expr in (self.quantity, self.multiplier, self.included) if expr]

    def is_empty(self) -> bool:
        return not self.expressions()

    def to_dict(self) -> Dict[str, str]:
        data = {}
        if self.quantity:
            data["quantity"] = self.quantity
        if self.multiplier:
            data["multiplier"] = self.multiplier
        if self.included:
            data["included"] = self.included
        return data


@dataclass
class Subservice:
    """A schedulable unit of work inside a service"""
    id: str
    name: str
    description: str = ""
    base_hours: float = 0.0
    hours: float = 0.0
    quantity: float = 1
    scaling_factors: List[str] = field(default_factory=list)
    quantity_driver: Optional[str] = None
    calculation_rules: Optional[CalculationRules] = None
    mapped_questions: List[str] = field(default_factory=list)
    service_description: str = ""
    key_assumptions: str = ""
    client_responsibilities: str = ""
    out_of_scope: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "baseHours": self.base_hours,
            "hours": self.hours,
            "quantity": self.quantity,
            "scalingFactors": list(self.scaling_factors),
            "mappedQuestions": list(self.mapped_questions),
            "serviceDescription": self.service_description,
            "keyAssumptions": self.key_assumptions,
            "clientResponsibilities": self.client_responsibilities,
            "outOfScope": self.out_of_scope,
        }
        if self.quantity_driver:
            data["quantityDriver"] = self.quantity_driver
        if self.calculation_rules and not self.calculation_rules.is_empty():
            data["calculationRules"] = self.calculation_rules.to_dict()
        return data


@dataclass
class Service:
    """A phase-level deliverable; its quantity is always 1"""
    id: str
    name: str
    description: str = ""
    phase: str = Phase.EXECUTION.value
    hours: float = 0.0
    base_hours: float = 0.0
    quantity: float = 1
    subservices: List[Subservice] = field(default_factory=list)
    service_description: str = ""
    key_assumptions: str = ""
    client_responsibilities: str = ""
    out_of_scope: str = ""
    scaling_factors: List[str] = field(default_factory=list)
    quantity_driver: Optional[str] = None
    calculation_rules: Optional[CalculationRules] = None
    mapped_questions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "phase": self.phase,
            "hours": self.hours,
            "baseHours": self.base_hours,
            "quantity": self.quantity,
            "subservices": [sub.to_dict() for sub in self.subservices],
            "serviceDescription": self.service_description,
            "keyAssumptions": self.key_assumptions,
            "clientResponsibilities": self.client_responsibilities,
            "outOfScope": self.out_of_scope,
            "mappedQuestions": list(self.mapped_questions),
        }
        if self.scaling_factors:
            data["scalingFactors"] = list(self.scaling_factors)
        if self.quantity_driver:
            data["quantityDriver"] = self.quantity_driver
        if self.calculation_rules and not self.calculation_rules.is_empty():
            data["calculationRules"] = self.calculation_rules.to_dict()
        return data


@dataclass
class Question:
    """A scoping question whose answer feeds the calculation engine"""
    id: str
    text: str
    slug: str
    type: QuestionType = QuestionType.NUMBER
    options: List[str] = field(default_factory=list)
    required: bool = True
    mapping_key: Optional[str] = None
    calculation_type: CalculationType = CalculationType.QUANTITY
    default_value: Any = None
    impacts: List[str] = field(default_factory=list)
    context: Optional[str] = None

    @property
    def response_key(self) -> str:
        """Key this question's answer is stored under in the response map"""
        return self.mapping_key or self.slug or self.id

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "text": self.text,
            "slug": self.slug,
            "type": self.type.value,
            "options": list(self.options),
            "required": self.required,
            "calculationType": self.calculation_type.value,
            "defaultValue": self.default_value,
            "impacts": list(self.impacts),
        }
        if self.mapping_key:
            data["mappingKey"] = self.mapping_key
        if self.context:
            data["context"] = self.context
        return data


@dataclass
class Calculation:
    """A user-facing numeric record derived from responses"""
    id: str
    name: str
    value: Any
    unit: str
    source: str
    formula: Optional[str] = None
    mapped_questions: List[str] = field(default_factory=list)
    mapped_services: List[str] = field(default_factory=list)
    slug: str = ""
    result_type: str = "quantity"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "source": self.source,
            "mappedQuestions": list(self.mapped_questions),
            "mappedServices": list(self.mapped_services),
            "slug": self.slug,
            "resultType": self.result_type,
        }
        if self.formula:
            data["formula"] = self.formula
        return data


@dataclass
class GeneratedContent:
    """Final output of the generation pipeline"""
    technology: str
    questions: List[Question] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)
    calculations: List[Calculation] = field(default_factory=list)
    sources: List[ResearchSource] = field(default_factory=list)
    total_hours: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "technology": self.technology,
            "questions": [q.to_dict() for q in self.questions],
            "services": [s.to_dict() for s in self.services],
            "calculations": [c.to_dict() for c in self.calculations],
            "sources": [s.to_dict() for s in self.sources],
            "totalHours": self.total_hours,
        }


@dataclass
class ApplyResult:
    """Result of re-running calculations against new responses"""
    services: List[Service]
    calculations: List[Calculation]
    total_hours: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "services": [s.to_dict() for s in self.services],
            "calculations": [c.to_dict() for c in self.calculations],
            "totalHours": self.total_hours,
        }


@dataclass
class StreamingEvent:
    """Progress event sent to the client over the event stream"""
    type: EventType
    step_id: Optional[str] = None
    status: Optional[StepStatus] = None
    progress: Optional[int] = None
    model: Optional[str] = None
    sources: Optional[List[str]] = None
    content: Optional[GeneratedContent] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.step_id is not None:
            data["stepId"] = self.step_id
        if self.status is not None:
            data["status"] = self.status.value
        if self.progress is not None:
            data["progress"] = self.progress
        if self.model is not None:
            data["model"] = self.model
        if self.sources is not None:
            data["sources"] = list(self.sources)
        if self.content is not None:
            data["content"] = self.content.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data
