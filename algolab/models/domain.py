"""
Domain Model — plain objects passed between services, factories and classifiers.
=================================================================================
ORM rows never leave the persistence layer; mappers translate them into these.
Feature vectors are plain lists of floats here; their chunked storage form
lives only inside the persistence codec.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ParameterType(str, Enum):
    INT = "int"
    DOUBLE = "double"
    STRING = "string"


class DataSetType(str, Enum):
    CLASSIFICATION = "classification"
    REGRESSION = "regression"
    CLUSTERING = "clustering"


class AlgorithmSessionStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"


class EstimationStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def parse_parameter_value(param_type: ParameterType, raw: Any) -> Any:
    """Coerce a raw value (usually text) into the Python type of a parameter."""
    if raw is None:
        return None
    if param_type == ParameterType.INT:
        if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
            raise ValueError(f"{raw!r} is not an integer")
        return int(raw)
    if param_type == ParameterType.DOUBLE:
        if isinstance(raw, bool):
            raise ValueError(f"{raw!r} is not a number")
        return float(raw)
    return str(raw)


@dataclass
class AlgorithmParameter:
    name: str
    type: ParameterType
    default_value: Optional[str] = None
    algorithm_parameter_id: int = 0  # 0 = not yet persisted
    algorithm_id: int = 0

    def default(self) -> Any:
        return parse_parameter_value(self.type, self.default_value)


@dataclass
class Algorithm:
    name: str
    alias: str
    is_classification_algorithm: bool = True
    description: Optional[str] = None
    author_id: Optional[int] = None
    parameters: List[AlgorithmParameter] = field(default_factory=list)
    algorithm_id: int = 0


@dataclass
class AlgorithmParameterValue:
    """A value bound to one parameter for one run. Exactly one slot is populated."""
    algorithm_parameter_id: int
    int_value: Optional[int] = None
    double_value: Optional[float] = None
    string_value: Optional[str] = None
    algorithm_parameter_value_id: int = 0
    algorithm_session_id: int = 0

    @classmethod
    def for_parameter(cls, parameter: AlgorithmParameter, raw: Any) -> "AlgorithmParameterValue":
        value = parse_parameter_value(parameter.type, raw)
        slots = {
            ParameterType.INT: "int_value",
            ParameterType.DOUBLE: "double_value",
            ParameterType.STRING: "string_value",
        }
        return cls(algorithm_parameter_id=parameter.algorithm_parameter_id, **{slots[parameter.type]: value})

    def populated_slots(self) -> List[ParameterType]:
        slots = []
        if self.int_value is not None:
            slots.append(ParameterType.INT)
        if self.double_value is not None:
            slots.append(ParameterType.DOUBLE)
        if self.string_value is not None:
            slots.append(ParameterType.STRING)
        return slots

    @property
    def value(self) -> Any:
        if self.int_value is not None:
            return self.int_value
        if self.double_value is not None:
            return self.double_value
        return self.string_value


@dataclass
class AlgorithmParameterValuePair:
    """What a classifier receives in init(): the definition plus the bound value."""
    parameter: AlgorithmParameter
    value: Any


@dataclass
class EstimateRequest:
    alias: Optional[str]
    config: Optional[str] = None  # serialized JSON


@dataclass
class AlgorithmSession:
    algorithm_id: int
    data_set_id: int
    parameter_values: List[AlgorithmParameterValue] = field(default_factory=list)
    estimate: Optional[EstimateRequest] = None
    status: AlgorithmSessionStatus = AlgorithmSessionStatus.QUEUED
    algorithm_session_id: int = 0
    created_at: Optional[datetime] = None


@dataclass
class DataSet:
    name: str
    type: DataSetType = DataSetType.CLASSIFICATION
    author_id: Optional[int] = None
    description: Optional[str] = None
    data_set_id: int = 0


@dataclass
class ClassificationSample:
    features: Optional[List[float]]
    label: Optional[int] = None
    classification_sample_id: int = 0
    data_set_id: int = 0


@dataclass
class ClassificationDecision:
    """Classifier output for one sample, before it is persisted."""
    sample: ClassificationSample
    label: int
    score: Optional[float] = None


@dataclass
class ClassificationResult:
    classification_sample_id: int
    decision: int
    expected: Optional[int] = None
    score: Optional[float] = None
    estimation_id: int = 0
    classification_result_id: int = 0


@dataclass
class EstimateValue:
    value: Optional[float]
    summary: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Estimation:
    algorithm_session_id: int
    alias: str
    config: Optional[str] = None
    status: EstimationStatus = EstimationStatus.RUNNING
    value: Optional[float] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    estimation_id: int = 0
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
