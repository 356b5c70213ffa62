"""Computes subservice quantities, hours and calculation records from question responses"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models.factor_models import unit_for
from ..models.scope_models import Calculation, CalculationRules, Question, Service, Subservice
from ..utils.expression import referenced_identifiers, safe_evaluate, to_number, truthy
from ..utils.number_utils import clean_number, round2
from ..utils.text_utils import dedupe, factor_display_name

logger = logging.getLogger(__name__)


def _is_present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and value.strip() == "")


def _as_quantity(value: Any, default: float = 1.0) -> float:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return default
    return number


class CalculationEngine:
    """Applies question responses to services.

    Services never scale: their quantity is pinned to 1. Subservices carry
    the scaling, computed from ``base_hours`` on every run so that applying
    the same responses twice yields the same result.
    """

    def build_response_map(self, questions: Sequence[Question], responses: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Map each question's response key to its answer or default value"""
        responses = dict(responses or {})
        response_map: Dict[str, Any] = dict(responses)
        for question in questions:
            value = question.default_value
            for key in (question.id, question.slug, question.mapping_key):
                if key and _is_present(responses.get(key)):
                    value = responses[key]
                    break
            response_map[question.response_key] = value
        return response_map

    def _evaluate_rules(self, rules: CalculationRules, response_map: Mapping[str, Any]) -> Dict[str, Any]:
        result = {"quantity": None, "multiplier": 1.0, "included": True}
        if rules.quantity:
            result["quantity"] = _as_quantity(safe_evaluate(rules.quantity, response_map))
        if rules.multiplier:
            result["multiplier"] = _as_quantity(safe_evaluate(rules.multiplier, response_map))
        if rules.included:
            result["included"] = truthy(safe_evaluate(rules.included, response_map))
        return result

    def consumed_factors(self, item: Any, response_map: Optional[Mapping[str, Any]] = None) -> List[str]:
        """Factor keys a service or subservice depends on"""
        factors = list(item.scaling_factors)
        if item.quantity_driver:
            factors.append(item.quantity_driver)
        if item.calculation_rules:
            for expression in item.calculation_rules.expressions():
                names = referenced_identifiers(expression)
                if response_map is not None:
                    names = {name for name in names if name in response_map}
                factors.extend(sorted(names))
        return dedupe(factors)

    def _mapped_questions(self, factors: List[str], questions: Sequence[Question]) -> List[str]:
        slugs = []
        for factor in factors:
            matches = [q.slug for q in questions if q.mapping_key == factor]
            slugs.extend(matches or [factor])
        return dedupe(slugs)

    def calculate_subservice(self, sub: Subservice, response_map: Mapping[str, Any]) -> Subservice:
        base_hours = sub.base_hours or 0
        multiplier = 1.0

        if sub.calculation_rules and not sub.calculation_rules.is_empty():
            evaluated = self._evaluate_rules(sub.calculation_rules, response_map)
            # Without a quantity rule the driver is not consulted
            quantity = evaluated["quantity"] if evaluated["quantity"] is not None else 1.0
            multiplier = evaluated["multiplier"]
            if not evaluated["included"]:
                quantity = 0.0
        elif sub.quantity_driver:
            value = response_map.get(sub.quantity_driver)
            quantity = _as_quantity(value) if _is_present(value) else 1.0
        elif sub.scaling_factors:
            total = 0.0
            for factor in sub.scaling_factors:
                number = to_number(response_map.get(factor))
                if not math.isnan(number) and number > 0:
                    total += number
            quantity = max(total, 1.0)
        else:
            quantity = 1.0

        sub.quantity = clean_number(float(quantity))
        sub.hours = round2(quantity * base_hours * multiplier)
        return sub

    def calculate_service(self, service: Service, response_map: Mapping[str, Any]) -> Service:
        service.quantity = 1
        if service.subservices:
            for sub in service.subservices:
                self.calculate_subservice(sub, response_map)
            service.hours = round2(sum(sub.hours for sub in service.subservices))
            return service

        service.hours = service.base_hours
        if service.calculation_rules and not service.calculation_rules.is_empty():
            evaluated = self._evaluate_rules(service.calculation_rules, response_map)
            if evaluated["multiplier"] != 1 and service.base_hours:
                service.hours = round2(service.base_hours * evaluated["multiplier"])
        return service

    def apply_responses(self, services: List[Service], questions: Sequence[Question],
                        responses: Optional[Mapping[str, Any]]) -> List[Service]:
        """Recompute quantities and hours in place; returns the same list"""
        response_map = self.build_response_map(questions, responses)
        for service in services:
            self.calculate_service(service, response_map)
            for sub in service.subservices:
                sub.mapped_questions = self._mapped_questions(self.consumed_factors(sub, response_map), questions)
            service.mapped_questions = dedupe(
                self._mapped_questions(self.consumed_factors(service, response_map), questions)
                + [slug for sub in service.subservices for slug in sub.mapped_questions]
            )
        return services

    def generate_calculations(self, services: Sequence[Service], questions: Sequence[Question],
                              response_map: Mapping[str, Any]) -> List[Calculation]:
        """One record per consumed question factor, plus the project total"""
        factors = dedupe(q.mapping_key for q in questions if q.mapping_key)
        calculations = []

        for factor in factors:
            affected = []
            for service in services:
                uses = factor in self.consumed_factors(service) or any(
                    factor in self.consumed_factors(sub) for sub in service.subservices
                )
                if uses:
                    affected.append(service.name)
            if not affected:
                logger.debug(f"Skipping calculation for unused factor {factor}")
                continue

            value = response_map.get(factor)
            calculations.append(Calculation(
                id=f"calc_{len(calculations) + 1}",
                name=factor_display_name(factor),
                value=value if _is_present(value) else 0,
                unit=unit_for(factor),
                source="User Input",
                mapped_questions=[factor],
                mapped_services=affected,
                slug=factor[:15].rstrip("_"),
                result_type="quantity",
            ))

        calculations.append(Calculation(
            id=f"calc_{len(calculations) + 1}",
            name="Total Project Hours",
            value=self.calculate_total_hours(services),
            unit="hours",
            source="Calculated",
            formula="Sum of all service hours × quantities",
            mapped_questions=[],
            mapped_services=[service.name for service in services],
            slug="total_hours",
            result_type="total",
        ))
        return calculations

    def calculate_total_hours(self, services: Sequence[Service]) -> Any:
        total = 0.0
        for service in services:
            if service.subservices:
                total += sum(round(float(sub.quantity) * float(sub.base_hours or 0), 2) for sub in service.subservices)
            else:
                total += round(float(service.quantity) * float(service.hours or 0), 2)
        return round2(total)
