"""
Validators — field-level checks for algorithms and run requests.
==================================================================
Validators collect every failure instead of stopping at the first one;
services turn a failed outcome into a ValidationError carrying the list.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List

from algolab.core.errors import FieldError
from algolab.models.domain import (
    Algorithm, AlgorithmSession, ParameterType, parse_parameter_value,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationOutcome:
    errors: List[FieldError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, field_name: str, message: str):
        self.errors.append(FieldError(field_name, message))


class AlgorithmValidator:

    def __init__(self, classifier_factory):
        self.classifier_factory = classifier_factory

    def validate(self, algorithm: Algorithm) -> ValidationOutcome:
        outcome = ValidationOutcome()

        if not (algorithm.name or "").strip():
            outcome.add("name", "Name is required")
        if not (algorithm.alias or "").strip():
            outcome.add("alias", "Alias is required")
        elif algorithm.is_classification_algorithm and not self.classifier_factory.is_registered(algorithm.alias):
            outcome.add("alias", f"Unknown classifier alias '{algorithm.alias}'")

        names = Counter((p.name or "").strip().lower() for p in algorithm.parameters or [])
        ids = Counter(p.algorithm_parameter_id for p in algorithm.parameters or [])
        for i, param in enumerate(algorithm.parameters or []):
            prefix = f"parameters[{i}]"
            name = (param.name or "").strip()
            if not name:
                outcome.add(f"{prefix}.name", "Parameter name is required")
            elif names[name.lower()] > 1:
                outcome.add(f"{prefix}.name", f"Duplicate parameter name '{name}'")
            if param.algorithm_parameter_id and ids[param.algorithm_parameter_id] > 1:
                outcome.add(f"{prefix}.algorithm_parameter_id", f"Duplicate parameter id {param.algorithm_parameter_id}")

            try:
                param_type = ParameterType(param.type)
            except ValueError:
                outcome.add(f"{prefix}.type", f"Unknown parameter type '{param.type}'")
                continue

            if param.default_value is not None:
                try:
                    parse_parameter_value(param_type, param.default_value)
                except (TypeError, ValueError):
                    outcome.add(f"{prefix}.default_value", f"'{param.default_value}' is not a valid {param_type.value}")

        return outcome


class AlgorithmSessionValidator:

    def __init__(self, algorithm_dao, data_set_dao):
        self.algorithm_dao = algorithm_dao
        self.data_set_dao = data_set_dao

    def validate(self, session: AlgorithmSession) -> ValidationOutcome:
        outcome = ValidationOutcome()

        algorithm = self.algorithm_dao.find_algorithm(session.algorithm_id)
        if algorithm is None:
            outcome.add("algorithm_id", f"Algorithm {session.algorithm_id} does not exist")
        if self.data_set_dao.find_data_set(session.data_set_id) is None:
            outcome.add("data_set_id", f"Data set {session.data_set_id} does not exist")
        if algorithm is None:
            return outcome

        parameters = {p.algorithm_parameter_id: p for p in algorithm.parameters}
        seen = set()
        for i, value in enumerate(session.parameter_values or []):
            prefix = f"parameter_values[{i}]"
            param = parameters.get(value.algorithm_parameter_id)
            if param is None:
                outcome.add(prefix, f"Parameter {value.algorithm_parameter_id} does not belong to algorithm {algorithm.algorithm_id}")
                continue
            if value.algorithm_parameter_id in seen:
                outcome.add(prefix, f"Parameter '{param.name}' is bound more than once")
            seen.add(value.algorithm_parameter_id)

            slots = value.populated_slots()
            if len(slots) != 1:
                outcome.add(prefix, f"Exactly one value must be set for '{param.name}', got {len(slots)}")
            elif slots[0] != ParameterType(param.type):
                outcome.add(prefix, f"'{param.name}' expects a {ParameterType(param.type).value} value, got {slots[0].value}")

        return outcome
