"""
Row <-> domain mapping. The only place that touches the feature codec.
"""

import json
import logging
from typing import List, Optional

from algolab.models.domain import (
    Algorithm, AlgorithmParameter, AlgorithmParameterValue, AlgorithmSession,
    AlgorithmSessionStatus, ClassificationResult, ClassificationSample, DataSet,
    DataSetType, EstimateRequest, Estimation, EstimationStatus, ParameterType,
)
from algolab.models.entities import (
    AlgorithmEntity, AlgorithmParameterEntity, AlgorithmParameterValueEntity,
    AlgorithmSessionEntity, ClassificationResultEntity, ClassificationSampleEntity,
    DataSetEntity, EstimationEntity, FeatureTupleEntity,
)
from algolab.persistence import codec

logger = logging.getLogger(__name__)

_TUPLE_COLUMNS = [f"value_{i}" for i in range(codec.CAPACITY)]


# ── Algorithms ──

def parameter_to_domain(row: AlgorithmParameterEntity) -> AlgorithmParameter:
    return AlgorithmParameter(
        algorithm_parameter_id=row.id,
        algorithm_id=row.algorithm_id,
        name=row.name,
        type=ParameterType(row.type),
        default_value=row.default_value,
    )


def parameter_to_row(param: AlgorithmParameter, row: Optional[AlgorithmParameterEntity] = None) -> AlgorithmParameterEntity:
    row = row or AlgorithmParameterEntity()
    row.algorithm_id = param.algorithm_id
    row.name = param.name
    row.type = ParameterType(param.type).value
    row.default_value = param.default_value
    return row


def algorithm_to_domain(row: AlgorithmEntity) -> Algorithm:
    return Algorithm(
        algorithm_id=row.id,
        name=row.name,
        alias=row.alias,
        description=row.description,
        is_classification_algorithm=bool(row.is_classification_algorithm),
        author_id=row.author_id,
        parameters=[parameter_to_domain(p) for p in row.parameters],
    )


def algorithm_to_row(algorithm: Algorithm, row: Optional[AlgorithmEntity] = None) -> AlgorithmEntity:
    """Parameters are not mapped; they are persisted through their own DAO."""
    row = row or AlgorithmEntity()
    row.name = algorithm.name
    row.alias = algorithm.alias
    row.description = algorithm.description
    row.is_classification_algorithm = algorithm.is_classification_algorithm
    row.author_id = algorithm.author_id
    return row


# ── Sessions ──

def parameter_value_to_domain(row: AlgorithmParameterValueEntity) -> AlgorithmParameterValue:
    return AlgorithmParameterValue(
        algorithm_parameter_value_id=row.id,
        algorithm_session_id=row.algorithm_session_id,
        algorithm_parameter_id=row.algorithm_parameter_id,
        int_value=row.int_value,
        double_value=row.double_value,
        string_value=row.string_value,
    )


def session_to_domain(row: AlgorithmSessionEntity) -> AlgorithmSession:
    estimate = None
    if row.estimate_alias:
        estimate = EstimateRequest(alias=row.estimate_alias, config=row.estimate_config)
    return AlgorithmSession(
        algorithm_session_id=row.id,
        algorithm_id=row.algorithm_id,
        data_set_id=row.data_set_id,
        status=AlgorithmSessionStatus(row.status),
        estimate=estimate,
        created_at=row.created_at,
        parameter_values=[parameter_value_to_domain(v) for v in row.parameter_values],
    )


def session_to_row(session: AlgorithmSession) -> AlgorithmSessionEntity:
    return AlgorithmSessionEntity(
        algorithm_id=session.algorithm_id,
        data_set_id=session.data_set_id,
        status=AlgorithmSessionStatus(session.status).value,
        estimate_alias=session.estimate.alias if session.estimate else None,
        estimate_config=session.estimate.config if session.estimate else None,
        parameter_values=[
            AlgorithmParameterValueEntity(
                algorithm_parameter_id=v.algorithm_parameter_id,
                int_value=v.int_value,
                double_value=v.double_value,
                string_value=v.string_value,
            )
            for v in session.parameter_values
        ],
    )


# ── Data sets + samples ──

def data_set_to_domain(row: DataSetEntity) -> DataSet:
    return DataSet(
        data_set_id=row.id,
        name=row.name,
        type=DataSetType(row.type),
        description=row.description,
        author_id=row.author_id,
    )


def data_set_to_row(data_set: DataSet) -> DataSetEntity:
    return DataSetEntity(
        name=data_set.name,
        type=DataSetType(data_set.type).value,
        description=data_set.description,
        author_id=data_set.author_id,
    )


def _tuple_to_chunk(row: FeatureTupleEntity) -> codec.FeatureChunk:
    return codec.FeatureChunk(order=row.order, values=tuple(getattr(row, c) for c in _TUPLE_COLUMNS))


def _chunk_to_tuple(chunk: codec.FeatureChunk) -> FeatureTupleEntity:
    row = FeatureTupleEntity(order=chunk.order)
    for column, value in zip(_TUPLE_COLUMNS, chunk.values):
        setattr(row, column, value)
    return row


def sample_to_domain(row: ClassificationSampleEntity) -> ClassificationSample:
    # A sample with a NULL count never had a vector; its tuple list is empty
    # rather than absent, so the count is what decides.
    chunks = None if row.count is None else [_tuple_to_chunk(t) for t in row.feature_tuples]
    return ClassificationSample(
        classification_sample_id=row.id,
        data_set_id=row.data_set_id,
        label=row.label,
        features=codec.decode(row.count, chunks),
    )


def sample_to_row(sample: ClassificationSample) -> ClassificationSampleEntity:
    chunks = codec.encode(sample.features)
    return ClassificationSampleEntity(
        data_set_id=sample.data_set_id,
        label=sample.label,
        count=None if sample.features is None else len(sample.features),
        feature_tuples=[_chunk_to_tuple(c) for c in chunks or []],
    )


# ── Estimations + results ──

def estimation_to_domain(row: EstimationEntity) -> Estimation:
    try:
        summary = json.loads(row.summary) if row.summary else {}
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Estimation {row.id}: unreadable summary, ignoring")
        summary = {}
    return Estimation(
        estimation_id=row.id,
        algorithm_session_id=row.algorithm_session_id,
        alias=row.alias,
        config=row.config,
        status=EstimationStatus(row.status),
        value=row.value,
        summary=summary,
        error=row.error,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def result_to_domain(row: ClassificationResultEntity) -> ClassificationResult:
    return ClassificationResult(
        classification_result_id=row.id,
        estimation_id=row.estimation_id,
        classification_sample_id=row.classification_sample_id,
        decision=row.decision,
        expected=row.expected,
        score=row.score,
    )


def result_to_row(result: ClassificationResult) -> ClassificationResultEntity:
    return ClassificationResultEntity(
        estimation_id=result.estimation_id,
        classification_sample_id=result.classification_sample_id,
        decision=int(result.decision),
        expected=result.expected,
        score=result.score,
    )


def results_to_domain(rows: List[ClassificationResultEntity]) -> List[ClassificationResult]:
    return [result_to_domain(r) for r in rows]
