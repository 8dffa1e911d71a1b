"""
Result Store — classification results and the estimations they belong to.
"""

import logging
from typing import List

from algolab.core.database import TransactionScope
from algolab.models.domain import ClassificationResult, EstimateRequest, EstimateValue, Estimation
from algolab.persistence.daos import ClassificationResultDao, EstimationDao

logger = logging.getLogger(__name__)


class ClassificationResultService:

    def __init__(self, db):
        self.transaction_scope = TransactionScope(db)
        self.result_dao = ClassificationResultDao(db)

    def add_classification_results(self, estimation_id: int, results: List[ClassificationResult]) -> List[ClassificationResult]:
        for result in results:
            result.estimation_id = estimation_id
        with self.transaction_scope.begin():
            return self.result_dao.insert_classification_results(results)

    def get_classification_results(self, estimation_id: int) -> List[ClassificationResult]:
        return self.result_dao.get_classification_results(estimation_id)


class EstimationService:
    """start/complete join the caller's transaction; fail commits on its own."""

    def __init__(self, db):
        self.transaction_scope = TransactionScope(db)
        self.estimation_dao = EstimationDao(db)

    def start_estimation(self, session_id: int, request: EstimateRequest) -> Estimation:
        estimation = Estimation(
            algorithm_session_id=session_id,
            alias=(request.alias or "").strip().upper(),
            config=request.config,
        )
        return self.estimation_dao.add_estimation(estimation)

    def complete_estimation(self, estimation_id: int, value: EstimateValue) -> Estimation:
        return self.estimation_dao.complete_estimation(estimation_id, value.value, value.summary)

    def fail_estimation(self, estimation_id: int, error: str) -> Estimation:
        with self.transaction_scope.begin():
            return self.estimation_dao.fail_estimation(estimation_id, error)

    def get_estimation(self, estimation_id: int) -> Estimation:
        return self.estimation_dao.get_estimation(estimation_id)

    def get_session_estimations(self, session_id: int) -> List[Estimation]:
        return self.estimation_dao.get_session_estimations(session_id)
