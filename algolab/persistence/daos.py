"""
DAOs — integer-keyed read/write contracts over the SQLAlchemy session.
========================================================================
DAOs flush (so ids are populated) but never commit: callers own the
transaction boundary through TransactionScope. Missing rows raise
NotFoundError; constraint violations raise ConflictError.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from algolab.core.errors import ConflictError, NotFoundError
from algolab.models.domain import (
    Algorithm, AlgorithmParameter, AlgorithmSession, AlgorithmSessionStatus,
    ClassificationResult, ClassificationSample, DataSet, Estimation, EstimationStatus,
)
from algolab.models.entities import (
    AlgorithmEntity, AlgorithmParameterEntity, AlgorithmSessionEntity,
    ClassificationResultEntity, ClassificationSampleEntity, DataSetEntity,
    EstimationEntity, RunQueueEntity,
)
from algolab.persistence import mappers

logger = logging.getLogger(__name__)


def _flush(db, what: str):
    try:
        db.flush()
    except IntegrityError as e:
        raise ConflictError(f"{what} conflicts with existing data") from e


# ═══════════════════════════════════════════════════════════════
# ALGORITHMS
# ═══════════════════════════════════════════════════════════════

class AlgorithmDao:

    def __init__(self, db):
        self.db = db

    def _row(self, algorithm_id: int) -> AlgorithmEntity:
        row = self.db.query(AlgorithmEntity).filter(AlgorithmEntity.id == algorithm_id).first()
        if row is None:
            raise NotFoundError(f"Algorithm {algorithm_id} not found")
        return row

    def add_algorithm(self, algorithm: Algorithm) -> Algorithm:
        row = mappers.algorithm_to_row(algorithm)
        self.db.add(row)
        _flush(self.db, "Algorithm")
        added = mappers.algorithm_to_domain(row)
        added.parameters = []
        return added

    def find_algorithm(self, algorithm_id: int) -> Optional[Algorithm]:
        row = self.db.query(AlgorithmEntity).filter(AlgorithmEntity.id == algorithm_id).first()
        return mappers.algorithm_to_domain(row) if row else None

    def get_algorithm(self, algorithm_id: int) -> Algorithm:
        return mappers.algorithm_to_domain(self._row(algorithm_id))

    def get_all_algorithms(self) -> List[Algorithm]:
        rows = self.db.query(AlgorithmEntity).order_by(AlgorithmEntity.id).all()
        return [mappers.algorithm_to_domain(r) for r in rows]

    def update_algorithm(self, algorithm: Algorithm) -> Algorithm:
        row = mappers.algorithm_to_row(algorithm, self._row(algorithm.algorithm_id))
        _flush(self.db, "Algorithm")
        return mappers.algorithm_to_domain(row)

    def delete_algorithm(self, algorithm_id: int):
        self.db.delete(self._row(algorithm_id))
        _flush(self.db, "Algorithm deletion")

    def add_algorithm_to_run_queue(self, session: AlgorithmSession):
        self.db.add(RunQueueEntity(algorithm_session_id=session.algorithm_session_id))
        _flush(self.db, f"Run queue entry for session {session.algorithm_session_id}")


class AlgorithmParameterDao:

    def __init__(self, db):
        self.db = db

    def add_algorithm_parameter(self, param: AlgorithmParameter) -> AlgorithmParameter:
        parent = self.db.query(AlgorithmEntity).filter(AlgorithmEntity.id == param.algorithm_id).first()
        if parent is None:
            raise NotFoundError(f"Algorithm {param.algorithm_id} not found")
        row = mappers.parameter_to_row(param)
        # parameters are delete-orphan children; attach through the parent
        parent.parameters.append(row)
        _flush(self.db, "Algorithm parameter")
        return mappers.parameter_to_domain(row)

    def update_algorithm_parameter(self, param: AlgorithmParameter) -> AlgorithmParameter:
        row = self.db.query(AlgorithmParameterEntity).filter(
            AlgorithmParameterEntity.id == param.algorithm_parameter_id
        ).first()
        if row is None:
            raise NotFoundError(f"Algorithm parameter {param.algorithm_parameter_id} not found")
        mappers.parameter_to_row(param, row)
        _flush(self.db, "Algorithm parameter")
        return mappers.parameter_to_domain(row)

    def delete_algorithm_parameter(self, param: AlgorithmParameter):
        row = self.db.query(AlgorithmParameterEntity).filter(
            AlgorithmParameterEntity.id == param.algorithm_parameter_id
        ).first()
        if row is None:
            raise NotFoundError(f"Algorithm parameter {param.algorithm_parameter_id} not found")
        parent = self.db.query(AlgorithmEntity).filter(AlgorithmEntity.id == row.algorithm_id).first()
        if parent is not None and row in parent.parameters:
            parent.parameters.remove(row)
        else:
            self.db.delete(row)
        _flush(self.db, "Algorithm parameter deletion")


# ═══════════════════════════════════════════════════════════════
# SESSIONS + RUN QUEUE
# ═══════════════════════════════════════════════════════════════

class AlgorithmSessionDao:

    def __init__(self, db):
        self.db = db

    def _row(self, session_id: int) -> AlgorithmSessionEntity:
        row = self.db.query(AlgorithmSessionEntity).filter(AlgorithmSessionEntity.id == session_id).first()
        if row is None:
            raise NotFoundError(f"Algorithm session {session_id} not found")
        return row

    def add_algorithm_session(self, session: AlgorithmSession) -> AlgorithmSession:
        row = mappers.session_to_row(session)
        self.db.add(row)
        _flush(self.db, "Algorithm session")
        return mappers.session_to_domain(row)

    def get_algorithm_session(self, session_id: int) -> AlgorithmSession:
        return mappers.session_to_domain(self._row(session_id))

    def set_status(self, session_id: int, status: AlgorithmSessionStatus) -> AlgorithmSession:
        row = self._row(session_id)
        row.status = status.value
        now = datetime.utcnow()
        if status == AlgorithmSessionStatus.RUNNING:
            row.started_at = now
        elif status == AlgorithmSessionStatus.COMPLETED:
            row.completed_at = now
        _flush(self.db, "Algorithm session")
        return mappers.session_to_domain(row)


class RunQueueDao:

    def __init__(self, db):
        self.db = db

    def next_session_id(self) -> Optional[int]:
        row = self.db.query(RunQueueEntity).order_by(RunQueueEntity.enqueued_at, RunQueueEntity.id).first()
        return row.algorithm_session_id if row else None

    def contains(self, session_id: int) -> bool:
        return self.db.query(RunQueueEntity).filter(
            RunQueueEntity.algorithm_session_id == session_id
        ).first() is not None

    def remove(self, session_id: int) -> bool:
        deleted = self.db.query(RunQueueEntity).filter(
            RunQueueEntity.algorithm_session_id == session_id
        ).delete(synchronize_session=False)
        return bool(deleted)


# ═══════════════════════════════════════════════════════════════
# DATA SETS + SAMPLES
# ═══════════════════════════════════════════════════════════════

class DataSetDao:

    def __init__(self, db):
        self.db = db

    def add_data_set(self, data_set: DataSet) -> DataSet:
        row = mappers.data_set_to_row(data_set)
        self.db.add(row)
        _flush(self.db, "Data set")
        return mappers.data_set_to_domain(row)

    def find_data_set(self, data_set_id: int) -> Optional[DataSet]:
        row = self.db.query(DataSetEntity).filter(DataSetEntity.id == data_set_id).first()
        return mappers.data_set_to_domain(row) if row else None

    def get_data_set(self, data_set_id: int) -> DataSet:
        data_set = self.find_data_set(data_set_id)
        if data_set is None:
            raise NotFoundError(f"Data set {data_set_id} not found")
        return data_set


class ClassificationSampleDao:

    def __init__(self, db):
        self.db = db

    def _query(self, data_set_id: int):
        return self.db.query(ClassificationSampleEntity).filter(
            ClassificationSampleEntity.data_set_id == data_set_id
        )

    def add_samples(self, data_set_id: int, samples: List[ClassificationSample]) -> List[ClassificationSample]:
        rows = []
        for sample in samples:
            sample.data_set_id = data_set_id
            row = mappers.sample_to_row(sample)
            self.db.add(row)
            rows.append(row)
        _flush(self.db, "Classification samples")
        return [mappers.sample_to_domain(r) for r in rows]

    def get_sample_count(self, data_set_id: int) -> int:
        return self._query(data_set_id).count()

    def get_samples(self, data_set_id: int, start: int, count: int) -> List[ClassificationSample]:
        """One page, ordered by sample id. Read-only: no locks, no cursor kept."""
        rows = (
            self._query(data_set_id)
            .order_by(ClassificationSampleEntity.id)
            .offset(start)
            .limit(count)
            .all()
        )
        return [mappers.sample_to_domain(r) for r in rows]

    def delete_samples(self, data_set_id: int, sample_ids: List[int]) -> int:
        rows = self._query(data_set_id).filter(ClassificationSampleEntity.id.in_(sample_ids)).all()
        for row in rows:
            self.db.delete(row)
        _flush(self.db, "Classification sample deletion")
        return len(rows)


# ═══════════════════════════════════════════════════════════════
# ESTIMATIONS + RESULTS
# ═══════════════════════════════════════════════════════════════

class EstimationDao:

    def __init__(self, db):
        self.db = db

    def _row(self, estimation_id: int) -> EstimationEntity:
        row = self.db.query(EstimationEntity).filter(EstimationEntity.id == estimation_id).first()
        if row is None:
            raise NotFoundError(f"Estimation {estimation_id} not found")
        return row

    def add_estimation(self, estimation: Estimation) -> Estimation:
        row = EstimationEntity(
            algorithm_session_id=estimation.algorithm_session_id,
            alias=estimation.alias,
            config=estimation.config,
            status=estimation.status.value,
        )
        self.db.add(row)
        _flush(self.db, "Estimation")
        return mappers.estimation_to_domain(row)

    def get_estimation(self, estimation_id: int) -> Estimation:
        return mappers.estimation_to_domain(self._row(estimation_id))

    def get_session_estimations(self, session_id: int) -> List[Estimation]:
        rows = (
            self.db.query(EstimationEntity)
            .filter(EstimationEntity.algorithm_session_id == session_id)
            .order_by(EstimationEntity.id)
            .all()
        )
        return [mappers.estimation_to_domain(r) for r in rows]

    def complete_estimation(self, estimation_id: int, value: Optional[float], summary: Dict[str, Any]) -> Estimation:
        row = self._row(estimation_id)
        row.status = EstimationStatus.COMPLETED.value
        row.value = value
        row.summary = json.dumps(summary, default=str)
        row.completed_at = datetime.utcnow()
        _flush(self.db, "Estimation")
        return mappers.estimation_to_domain(row)

    def fail_estimation(self, estimation_id: int, error: str) -> Estimation:
        row = self._row(estimation_id)
        row.status = EstimationStatus.FAILED.value
        row.error = error
        row.completed_at = datetime.utcnow()
        _flush(self.db, "Estimation")
        return mappers.estimation_to_domain(row)


class ClassificationResultDao:

    def __init__(self, db):
        self.db = db

    def insert_classification_results(self, results: List[ClassificationResult]) -> List[ClassificationResult]:
        rows = [mappers.result_to_row(r) for r in results]
        self.db.add_all(rows)
        _flush(self.db, "Classification results")
        return mappers.results_to_domain(rows)

    def get_classification_results(self, estimation_id: int) -> List[ClassificationResult]:
        rows = (
            self.db.query(ClassificationResultEntity)
            .filter(ClassificationResultEntity.estimation_id == estimation_id)
            .order_by(ClassificationResultEntity.id)
            .all()
        )
        return mappers.results_to_domain(rows)
