"""
Algorithm Service — algorithm records and the session execution pipeline
==========================================================================
Single entry point for everything that happens to an algorithm:

  add / update / delete   — record + parameters, one transaction each
  run_algorithm           — validate a run request, persist the session and
                            queue it atomically
  compute_classification_algorithm
                          — consume a queued session: resolve the classifier
                            by alias, stream the data set through it, persist
                            results and score them with the requested estimate

Session states:
  Requested -> Validated -> QUEUED -> RUNNING -> COMPLETED
  (Requested/Validated exist only inside run_algorithm.)
  A failure while RUNNING leaves the session RUNNING and marks its
  estimation FAILED; results already written stay written.
"""

import logging
import time
from typing import List, Optional

from algolab.config import settings
from algolab.core.database import TransactionScope
from algolab.core.errors import AuthorizationError, ConfigurationError, ConflictError, ValidationError
from algolab.core.ml.factories import ClassifierEstimateFactory, ClassifierFactory
from algolab.core.ml.sample_stream import DataSetSampleStreamFactory
from algolab.core.services.result_service import ClassificationResultService, EstimationService
from algolab.core.services.validation import AlgorithmSessionValidator, AlgorithmValidator
from algolab.models.domain import (
    Algorithm, AlgorithmParameter, AlgorithmParameterValue, AlgorithmParameterValuePair,
    AlgorithmSession, AlgorithmSessionStatus, ClassificationResult, DataSetType,
    EstimateRequest, Estimation,
)
from algolab.persistence.daos import (
    AlgorithmDao, AlgorithmParameterDao, AlgorithmSessionDao, DataSetDao, RunQueueDao,
)

logger = logging.getLogger(__name__)


class AlgorithmService:
    """
    Usage:
        service = AlgorithmService(db)
        session = await service.run_algorithm(algorithm_id, data_set_id, values)
        estimation = await service.compute_classification_algorithm(session.algorithm_session_id)
    """

    def __init__(
        self,
        db,
        classifier_factory: Optional[ClassifierFactory] = None,
        estimate_factory: Optional[ClassifierEstimateFactory] = None,
        stream_factory: Optional[DataSetSampleStreamFactory] = None,
    ):
        self.db = db
        self.transaction_scope = TransactionScope(db)

        self.algorithm_dao = AlgorithmDao(db)
        self.algorithm_parameter_dao = AlgorithmParameterDao(db)
        self.algorithm_session_dao = AlgorithmSessionDao(db)
        self.data_set_dao = DataSetDao(db)
        self.run_queue_dao = RunQueueDao(db)

        self.classifier_factory = classifier_factory or ClassifierFactory()
        self.estimate_factory = estimate_factory or ClassifierEstimateFactory()
        self.stream_factory = stream_factory or DataSetSampleStreamFactory(db)

        self.result_service = ClassificationResultService(db)
        self.estimation_service = EstimationService(db)

        self.algorithm_validator = AlgorithmValidator(self.classifier_factory)
        self.algorithm_session_validator = AlgorithmSessionValidator(self.algorithm_dao, self.data_set_dao)

    # ──────────────────────────────────────────────────────────
    # ALGORITHM RECORDS
    # ──────────────────────────────────────────────────────────

    async def add_algorithm(self, algorithm: Algorithm, user_id: Optional[int] = None) -> Algorithm:
        outcome = self.algorithm_validator.validate(algorithm)
        if not outcome.is_valid:
            raise ValidationError("Algorithm is not valid", outcome.errors)

        if user_id is not None:
            algorithm.author_id = user_id

        with self.transaction_scope.begin():
            algorithm.algorithm_id = 0
            added = self.algorithm_dao.add_algorithm(algorithm)

            for param in algorithm.parameters:
                param.algorithm_parameter_id = 0
                param.algorithm_id = added.algorithm_id
                added.parameters.append(self.algorithm_parameter_dao.add_algorithm_parameter(param))

        logger.info(f"Algorithm {added.algorithm_id} '{added.name}' added with {len(added.parameters)} parameters")
        return added

    async def get_all_algorithms(self) -> List[Algorithm]:
        return self.algorithm_dao.get_all_algorithms()

    async def get_algorithm(self, algorithm_id: int) -> Algorithm:
        return self.algorithm_dao.get_algorithm(algorithm_id)

    async def update_algorithm(self, algorithm: Algorithm, user_id: Optional[int] = None) -> Algorithm:
        outcome = self.algorithm_validator.validate(algorithm)
        if not outcome.is_valid:
            raise ValidationError("Algorithm is not valid", outcome.errors)

        existing = self._owned_algorithm(algorithm.algorithm_id, user_id)
        algorithm.author_id = existing.author_id

        existing_ids = {p.algorithm_parameter_id for p in existing.parameters}
        for param in algorithm.parameters:
            param.algorithm_id = algorithm.algorithm_id
            if param.algorithm_parameter_id != 0 and param.algorithm_parameter_id not in existing_ids:
                logger.warning(
                    f"Algorithm {algorithm.algorithm_id}: parameter id {param.algorithm_parameter_id} "
                    f"('{param.name}') is not one of its parameters, inserting as new"
                )
                param.algorithm_parameter_id = 0

        with self.transaction_scope.begin():
            self.algorithm_dao.update_algorithm(algorithm)
            algorithm.parameters = self._reconcile_parameters(existing.parameters, algorithm.parameters)

        logger.info(f"Algorithm {algorithm.algorithm_id} updated")
        return algorithm

    async def delete_algorithm(self, algorithm_id: int, user_id: Optional[int] = None):
        self._owned_algorithm(algorithm_id, user_id)
        with self.transaction_scope.begin():
            self.algorithm_dao.delete_algorithm(algorithm_id)
        logger.info(f"Algorithm {algorithm_id} deleted")

    def _owned_algorithm(self, algorithm_id: int, user_id: Optional[int]) -> Algorithm:
        existing = self.algorithm_dao.find_algorithm(algorithm_id)
        if existing is None:
            raise AuthorizationError("Algorithm does not exist")
        if user_id is not None and existing.author_id != user_id:
            raise AuthorizationError(f"Algorithm {algorithm_id} is not owned by user {user_id}")
        return existing

    def _reconcile_parameters(
        self, existing: List[AlgorithmParameter], incoming: List[AlgorithmParameter],
    ) -> List[AlgorithmParameter]:
        """Delete what disappeared, insert id-0 parameters, update the rest."""
        existing = existing or []
        incoming = incoming or []
        incoming_ids = {p.algorithm_parameter_id for p in incoming}

        for param in existing:
            if param.algorithm_parameter_id not in incoming_ids:
                self.algorithm_parameter_dao.delete_algorithm_parameter(param)

        reconciled = []
        for param in incoming:
            if param.algorithm_parameter_id == 0:
                reconciled.append(self.algorithm_parameter_dao.add_algorithm_parameter(param))
            else:
                reconciled.append(self.algorithm_parameter_dao.update_algorithm_parameter(param))
        return reconciled

    # ──────────────────────────────────────────────────────────
    # SESSIONS
    # ──────────────────────────────────────────────────────────

    async def run_algorithm(
        self,
        algorithm_id: int,
        data_set_id: int,
        parameter_values: List[AlgorithmParameterValue],
        estimate: Optional[EstimateRequest] = None,
    ) -> AlgorithmSession:
        session = AlgorithmSession(
            algorithm_id=algorithm_id,
            data_set_id=data_set_id,
            parameter_values=list(parameter_values or []),
            estimate=estimate,
        )

        outcome = self.algorithm_session_validator.validate(session)
        if estimate is not None and not self.estimate_factory.is_registered(estimate.alias):
            outcome.add("estimate.alias", f"Unknown estimate alias '{estimate.alias}'")
        if not outcome.is_valid:
            raise ValidationError("Algorithm form is not valid", outcome.errors)

        with self.transaction_scope.begin():
            session = self.algorithm_session_dao.add_algorithm_session(session)
            self.algorithm_dao.add_algorithm_to_run_queue(session)

        logger.info(
            f"Session {session.algorithm_session_id} queued: algorithm {algorithm_id} on data set {data_set_id}"
        )
        return session

    async def get_algorithm_session(self, session_id: int) -> AlgorithmSession:
        return self.algorithm_session_dao.get_algorithm_session(session_id)

    async def compute_classification_algorithm(self, session_id: int) -> Optional[Estimation]:
        """
        Consume a queued session. Returns the completed Estimation, or None when
        the session needs no classification processing.
        """
        session = self.algorithm_session_dao.get_algorithm_session(session_id)
        if session.status != AlgorithmSessionStatus.QUEUED:
            raise ConflictError(f"Session {session_id} is {session.status.value}, not queued")

        algorithm = self.algorithm_dao.get_algorithm(session.algorithm_id)

        skip_reason = None
        if not algorithm.is_classification_algorithm:
            skip_reason = f"algorithm {algorithm.algorithm_id} is not a classification algorithm"
        else:
            data_set = self.data_set_dao.get_data_set(session.data_set_id)
            if data_set.type != DataSetType.CLASSIFICATION:
                skip_reason = f"data set {data_set.data_set_id} is a {data_set.type.value} data set"

        if skip_reason:
            with self.transaction_scope.begin():
                self._claim(session_id)
                self.algorithm_session_dao.set_status(session_id, AlgorithmSessionStatus.COMPLETED)
            logger.info(f"Session {session_id} completed without classification: {skip_reason}")
            return None

        request = session.estimate or EstimateRequest(
            alias=settings.DEFAULT_ESTIMATE_ALIAS, config=settings.DEFAULT_ESTIMATE_CONFIG,
        )
        with self.transaction_scope.begin():
            self._claim(session_id)
            self.algorithm_session_dao.set_status(session_id, AlgorithmSessionStatus.RUNNING)
            estimation = self.estimation_service.start_estimation(session_id, request)
        logger.info(
            f"Session {session_id} running: classifier '{algorithm.alias}', "
            f"estimate '{estimation.alias}', estimation {estimation.estimation_id}"
        )

        try:
            return await self._run_classification(session, algorithm, request, estimation)
        except Exception as e:
            logger.error(f"Session {session_id} failed: {e}", exc_info=True)
            try:
                self.estimation_service.fail_estimation(estimation.estimation_id, f"{type(e).__name__}: {e}")
            except Exception as mark_error:
                logger.error(f"Session {session_id}: could not mark estimation failed: {mark_error}")
            raise

    def _claim(self, session_id: int):
        # the queue row is the lock: only the worker whose delete hits it may proceed
        if not self.run_queue_dao.remove(session_id):
            raise ConflictError(f"Session {session_id} was already taken")

    async def _run_classification(
        self,
        session: AlgorithmSession,
        algorithm: Algorithm,
        request: EstimateRequest,
        estimation: Estimation,
    ) -> Estimation:
        t0 = time.time()

        classifier = self.classifier_factory.get_classifier(algorithm.alias)
        classifier.init(self._bind_parameters(algorithm, session))
        estimate = self.estimate_factory.get_estimate(request)
        stream = self.stream_factory.get_stream(session.data_set_id)

        persisted = 0
        batch: List[ClassificationResult] = []
        async for decision in classifier.compute_async(stream):
            batch.append(ClassificationResult(
                classification_sample_id=decision.sample.classification_sample_id,
                decision=decision.label,
                expected=decision.sample.label,
                score=decision.score,
            ))
            if len(batch) >= settings.RESULT_BATCH_SIZE:
                persisted += len(self.result_service.add_classification_results(estimation.estimation_id, batch))
                batch = []
        if batch:
            persisted += len(self.result_service.add_classification_results(estimation.estimation_id, batch))

        results = self.result_service.get_classification_results(estimation.estimation_id)
        value = estimate.estimate(results)

        with self.transaction_scope.begin():
            completed = self.estimation_service.complete_estimation(estimation.estimation_id, value)
            self.algorithm_session_dao.set_status(session.algorithm_session_id, AlgorithmSessionStatus.COMPLETED)

        logger.info(
            f"Session {session.algorithm_session_id} completed: {persisted} results, "
            f"{completed.alias} estimate={completed.value} in {time.time() - t0:.2f}s"
        )
        return completed

    @staticmethod
    def _bind_parameters(algorithm: Algorithm, session: AlgorithmSession) -> List[AlgorithmParameterValuePair]:
        """One pair per algorithm parameter: the session's value, else the parsed default."""
        values = {v.algorithm_parameter_id: v for v in session.parameter_values}
        pairs = []
        for param in algorithm.parameters:
            bound = values.get(param.algorithm_parameter_id)
            if bound is not None:
                pairs.append(AlgorithmParameterValuePair(parameter=param, value=bound.value))
                continue
            try:
                pairs.append(AlgorithmParameterValuePair(parameter=param, value=param.default()))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Default of parameter '{param.name}' is not a valid {param.type}") from e
        return pairs
