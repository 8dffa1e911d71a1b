"""
AlgorithmService — algorithm records, run requests and the session execution pipeline.
"""

import asyncio
import logging
import threading
from unittest.mock import MagicMock, patch

import pytest

from algolab.config import settings
from algolab.core.errors import AuthorizationError, ConflictError, ValidationError
from algolab.core.services.algorithm_service import AlgorithmService
from algolab.core.services.result_service import ClassificationResultService, EstimationService
from algolab.core.services.sample_service import DataSetService, SampleService
from algolab.models.domain import (
    AlgorithmParameter, AlgorithmParameterValue, AlgorithmSession, AlgorithmSessionStatus,
    ClassificationSample, DataSetType, EstimateRequest, EstimationStatus, ParameterType,
)
from algolab.models.entities import (
    AlgorithmParameterEntity, AlgorithmSessionEntity, ClassificationResultEntity, DataSetEntity, EstimationEntity,
)
from algolab.persistence.daos import AlgorithmDao, RunQueueDao
from algolab.tests.builders import make_algorithm, make_data_set, make_samples


def run(coro):
    return asyncio.run(coro)


def seed_data_set(db, n=5, type=DataSetType.CLASSIFICATION, samples=None):
    data_set = DataSetService(db).add_data_set(make_data_set(type=type))
    SampleService(db).add_samples(data_set.data_set_id, samples if samples is not None else make_samples(n))
    return data_set


def k_value(algorithm, k):
    return AlgorithmParameterValue.for_parameter(algorithm.parameters[0], k)


# ═══════════════════════════════════════════════════════════════
# ALGORITHM RECORDS
# ═══════════════════════════════════════════════════════════════

class TestAddAlgorithm:

    def test_ids_are_assigned(self, db):
        algorithm = make_algorithm()
        algorithm.algorithm_id = 77
        algorithm.parameters[0].algorithm_parameter_id = 55

        added = run(AlgorithmService(db).add_algorithm(algorithm))

        assert added.algorithm_id > 0
        assert added.algorithm_id != 77
        assert [p.name for p in added.parameters] == ["k"]
        assert added.parameters[0].algorithm_id == added.algorithm_id
        assert run(AlgorithmService(db).get_algorithm(added.algorithm_id)).parameters[0].default_value == "3"

    def test_author_from_caller(self, db):
        added = run(AlgorithmService(db).add_algorithm(make_algorithm(), user_id=9))
        assert added.author_id == 9

    def test_validation_collects_every_error(self, db):
        algorithm = make_algorithm(alias="SVM", name=" ", parameters=[
            AlgorithmParameter(name="c", type=ParameterType.DOUBLE, default_value="abc"),
            AlgorithmParameter(name="c", type=ParameterType.INT),
        ])

        with pytest.raises(ValidationError) as info:
            run(AlgorithmService(db).add_algorithm(algorithm))

        fields = [e.field for e in info.value.errors]
        assert "name" in fields
        assert "alias" in fields
        assert "parameters[0].default_value" in fields
        assert fields.count("parameters[0].name") + fields.count("parameters[1].name") == 2
        assert run(AlgorithmService(db).get_all_algorithms()) == []

    def test_non_classification_alias_is_free_form(self, db):
        added = run(AlgorithmService(db).add_algorithm(make_algorithm(alias="KMEANS", is_classification=False)))
        assert added.alias == "KMEANS"


class TestUpdateAlgorithm:

    def _seed(self, db, author_id=None):
        algorithm = make_algorithm(author_id=author_id, parameters=[
            AlgorithmParameter(name="k", type=ParameterType.INT, default_value="3"),
            AlgorithmParameter(name="p2", type=ParameterType.STRING, default_value="x"),
            AlgorithmParameter(name="p3", type=ParameterType.DOUBLE, default_value="0.5"),
        ])
        return run(AlgorithmService(db).add_algorithm(algorithm))

    def test_parameters_are_reconciled(self, db):
        existing = self._seed(db)
        p1 = existing.parameters[0]
        incoming = make_algorithm(name="Renamed", parameters=[
            AlgorithmParameter(name="k", type=ParameterType.INT, default_value="5", algorithm_parameter_id=p1.algorithm_parameter_id),
            AlgorithmParameter(name="p4", type=ParameterType.INT, default_value="1"),
        ])
        incoming.algorithm_id = existing.algorithm_id

        run(AlgorithmService(db).update_algorithm(incoming))

        stored = run(AlgorithmService(db).get_algorithm(existing.algorithm_id))
        assert stored.name == "Renamed"
        assert [p.name for p in stored.parameters] == ["k", "p4"]
        assert stored.parameters[0].algorithm_parameter_id == p1.algorithm_parameter_id
        assert stored.parameters[0].default_value == "5"
        assert db.query(AlgorithmParameterEntity).count() == 2

    def test_foreign_parameter_id_is_inserted_as_new(self, db, caplog):
        existing = self._seed(db)
        incoming = make_algorithm(parameters=[
            AlgorithmParameter(name="k", type=ParameterType.INT, default_value="3", algorithm_parameter_id=999),
        ])
        incoming.algorithm_id = existing.algorithm_id

        with caplog.at_level(logging.WARNING):
            run(AlgorithmService(db).update_algorithm(incoming))

        stored = run(AlgorithmService(db).get_algorithm(existing.algorithm_id))
        assert len(stored.parameters) == 1
        assert stored.parameters[0].algorithm_parameter_id != 999
        assert stored.parameters[0].name == "k"
        assert db.query(AlgorithmParameterEntity).count() == 1
        assert "999" in caplog.text

    def test_duplicate_parameter_ids_are_rejected(self, db):
        existing = self._seed(db)
        p1 = existing.parameters[0]
        incoming = make_algorithm(parameters=[
            AlgorithmParameter(name="k", type=ParameterType.INT, default_value="5", algorithm_parameter_id=p1.algorithm_parameter_id),
            AlgorithmParameter(name="k2", type=ParameterType.INT, default_value="6", algorithm_parameter_id=p1.algorithm_parameter_id),
        ])
        incoming.algorithm_id = existing.algorithm_id

        with pytest.raises(ValidationError) as info:
            run(AlgorithmService(db).update_algorithm(incoming))

        fields = [e.field for e in info.value.errors]
        assert fields == ["parameters[0].algorithm_parameter_id", "parameters[1].algorithm_parameter_id"]
        assert db.query(AlgorithmParameterEntity).count() == 3

    def test_missing_algorithm(self, db):
        incoming = make_algorithm()
        incoming.algorithm_id = 404
        with pytest.raises(AuthorizationError):
            run(AlgorithmService(db).update_algorithm(incoming))

    def test_other_users_algorithm(self, db):
        existing = self._seed(db, author_id=1)
        incoming = make_algorithm()
        incoming.algorithm_id = existing.algorithm_id
        with pytest.raises(AuthorizationError):
            run(AlgorithmService(db).update_algorithm(incoming, user_id=2))

    def test_owner_may_update(self, db):
        existing = self._seed(db, author_id=1)
        incoming = make_algorithm(name="Mine")
        incoming.algorithm_id = existing.algorithm_id
        updated = run(AlgorithmService(db).update_algorithm(incoming, user_id=1))
        assert updated.author_id == 1

    def test_failed_reconciliation_rolls_back_the_rename(self, db):
        existing = self._seed(db)
        incoming = make_algorithm(name="Renamed")
        incoming.algorithm_id = existing.algorithm_id
        service = AlgorithmService(db)

        with patch.object(service.algorithm_parameter_dao, "add_algorithm_parameter", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                run(service.update_algorithm(incoming))

        stored = run(AlgorithmService(db).get_algorithm(existing.algorithm_id))
        assert stored.name == existing.name
        assert len(stored.parameters) == 3


class TestDeleteAlgorithm:

    def test_deletes_parameters_too(self, db):
        added = run(AlgorithmService(db).add_algorithm(make_algorithm()))
        run(AlgorithmService(db).delete_algorithm(added.algorithm_id))
        assert run(AlgorithmService(db).get_all_algorithms()) == []
        assert db.query(AlgorithmParameterEntity).count() == 0

    def test_other_users_algorithm(self, db):
        added = run(AlgorithmService(db).add_algorithm(make_algorithm(author_id=1)))
        with pytest.raises(AuthorizationError):
            run(AlgorithmService(db).delete_algorithm(added.algorithm_id, user_id=2))

    def test_missing_algorithm(self, db):
        with pytest.raises(AuthorizationError):
            run(AlgorithmService(db).delete_algorithm(12345))


# ═══════════════════════════════════════════════════════════════
# RUN REQUESTS
# ═══════════════════════════════════════════════════════════════

class TestRunAlgorithm:

    def test_session_is_persisted_and_queued(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm()))
        data_set = seed_data_set(db)

        session = run(AlgorithmService(db).run_algorithm(
            algorithm.algorithm_id, data_set.data_set_id, [k_value(algorithm, 1)],
        ))

        assert session.algorithm_session_id > 0
        assert session.status == AlgorithmSessionStatus.QUEUED
        assert session.parameter_values[0].int_value == 1
        assert RunQueueDao(db).contains(session.algorithm_session_id)

    def test_queue_failure_leaves_no_session(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm()))
        data_set = seed_data_set(db)

        with patch.object(AlgorithmDao, "add_algorithm_to_run_queue", side_effect=RuntimeError("queue down")):
            with pytest.raises(RuntimeError):
                run(AlgorithmService(db).run_algorithm(algorithm.algorithm_id, data_set.data_set_id, []))

        assert db.query(AlgorithmSessionEntity).count() == 0
        assert RunQueueDao(db).next_session_id() is None

    def test_unknown_algorithm_and_data_set(self, db):
        with pytest.raises(ValidationError) as info:
            run(AlgorithmService(db).run_algorithm(404, 405, []))
        assert info.value.message == "Algorithm form is not valid"
        assert {e.field for e in info.value.errors} == {"algorithm_id", "data_set_id"}

    def test_parameter_value_checks(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm()))
        data_set = seed_data_set(db)
        k_id = algorithm.parameters[0].algorithm_parameter_id
        values = [
            AlgorithmParameterValue(algorithm_parameter_id=k_id, double_value=1.5),
            AlgorithmParameterValue(algorithm_parameter_id=k_id, int_value=1, string_value="1"),
            AlgorithmParameterValue(algorithm_parameter_id=9999, int_value=1),
        ]

        with pytest.raises(ValidationError) as info:
            run(AlgorithmService(db).run_algorithm(algorithm.algorithm_id, data_set.data_set_id, values))

        assert len(info.value.errors) == 4
        assert db.query(AlgorithmSessionEntity).count() == 0

    def test_unknown_estimate_alias(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm()))
        data_set = seed_data_set(db)
        with pytest.raises(ValidationError) as info:
            run(AlgorithmService(db).run_algorithm(
                algorithm.algorithm_id, data_set.data_set_id, [], EstimateRequest("F1"),
            ))
        assert [e.field for e in info.value.errors] == ["estimate.alias"]


# ═══════════════════════════════════════════════════════════════
# EXECUTION
# ═══════════════════════════════════════════════════════════════

class TestComputeClassificationAlgorithm:

    def _queue(self, db, algorithm=None, data_set=None, values=None, estimate=None):
        algorithm = algorithm or run(AlgorithmService(db).add_algorithm(make_algorithm()))
        data_set = data_set or seed_data_set(db)
        if values is None:
            values = [k_value(algorithm, 1)] if algorithm.parameters else []
        session = run(AlgorithmService(db).run_algorithm(
            algorithm.algorithm_id, data_set.data_set_id, values, estimate,
        ))
        return session, data_set

    def test_results_follow_stream_order(self, db):
        session, data_set = self._queue(db)

        estimation = run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))

        results = ClassificationResultService(db).get_classification_results(estimation.estimation_id)
        samples = SampleService(db).get_all_samples(data_set.data_set_id)
        assert len(results) == 5
        assert [r.classification_sample_id for r in results] == [s.classification_sample_id for s in samples]
        assert all(r.estimation_id == estimation.estimation_id for r in results)
        assert [r.expected for r in results] == [s.label for s in samples]

    def test_session_and_estimation_complete(self, db):
        session, _ = self._queue(db)

        estimation = run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))

        assert estimation.status == EstimationStatus.COMPLETED
        assert estimation.alias == settings.DEFAULT_ESTIMATE_ALIAS
        assert estimation.value == 1.0
        assert estimation.summary["evaluated"] == 5
        stored = run(AlgorithmService(db).get_algorithm_session(session.algorithm_session_id))
        assert stored.status == AlgorithmSessionStatus.COMPLETED
        assert not RunQueueDao(db).contains(session.algorithm_session_id)

    def test_results_are_written_in_batches(self, db, monkeypatch):
        monkeypatch.setattr(settings, "RESULT_BATCH_SIZE", 2)
        session, _ = self._queue(db)
        service = AlgorithmService(db)

        with patch.object(
            service.result_service, "add_classification_results",
            wraps=service.result_service.add_classification_results,
        ) as add_results:
            estimation = run(service.compute_classification_algorithm(session.algorithm_session_id))

        assert [len(call.args[1]) for call in add_results.call_args_list] == [2, 2, 1]
        assert len(ClassificationResultService(db).get_classification_results(estimation.estimation_id)) == 5

    def test_requested_estimate(self, db):
        session, _ = self._queue(db, estimate=EstimateRequest("roc", '{"positive_class": 1}'))

        estimation = run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))

        assert estimation.alias == "ROC"
        assert estimation.value == pytest.approx(1.0)
        assert estimation.summary["used_scores"] is True

    def test_session_is_consumed_once(self, db):
        session, _ = self._queue(db)
        run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))
        with pytest.raises(ConflictError):
            run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))

    def test_concurrent_workers_consume_a_session_once(self, db, session_factory):
        session, _ = self._queue(db)
        session_id = session.algorithm_session_id
        db_a, db_b = session_factory(), session_factory()
        first, second = AlgorithmService(db_a), AlgorithmService(db_b)
        read_session = second.algorithm_session_dao.get_algorithm_session
        finished = []

        def read_then_fall_behind(sid):
            seen = read_session(sid)
            other = threading.Thread(target=lambda: finished.append(run(first.compute_classification_algorithm(sid))))
            other.start()
            other.join()
            return seen

        try:
            with patch.object(second.algorithm_session_dao, "get_algorithm_session", side_effect=read_then_fall_behind):
                with pytest.raises(ConflictError):
                    run(second.compute_classification_algorithm(session_id))
        finally:
            db_a.close()
            db_b.close()

        assert finished[0].status == EstimationStatus.COMPLETED
        db.expire_all()
        assert db.query(EstimationEntity).count() == 1
        assert db.query(ClassificationResultEntity).count() == 5

    def test_skipped_session_is_claimed_through_the_queue(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm(alias="KMEANS", is_classification=False)))
        session, _ = self._queue(db, algorithm=algorithm)
        RunQueueDao(db).remove(session.algorithm_session_id)
        db.commit()

        with pytest.raises(ConflictError):
            run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))

        stored = run(AlgorithmService(db).get_algorithm_session(session.algorithm_session_id))
        assert stored.status == AlgorithmSessionStatus.QUEUED

    def test_skip_does_not_need_the_data_set(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm(alias="KMEANS", is_classification=False)))
        session, data_set = self._queue(db, algorithm=algorithm)
        db.query(DataSetEntity).filter(DataSetEntity.id == data_set.data_set_id).delete(synchronize_session=False)
        db.commit()

        outcome = run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))

        assert outcome is None
        stored = run(AlgorithmService(db).get_algorithm_session(session.algorithm_session_id))
        assert stored.status == AlgorithmSessionStatus.COMPLETED

    def test_non_classification_algorithm_is_skipped(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm(alias="KMEANS", is_classification=False)))
        session, _ = self._queue(db, algorithm=algorithm)
        factory = MagicMock()

        outcome = run(AlgorithmService(db, classifier_factory=factory).compute_classification_algorithm(
            session.algorithm_session_id
        ))

        assert outcome is None
        factory.get_classifier.assert_not_called()
        stored = run(AlgorithmService(db).get_algorithm_session(session.algorithm_session_id))
        assert stored.status == AlgorithmSessionStatus.COMPLETED
        assert not RunQueueDao(db).contains(session.algorithm_session_id)
        assert db.query(EstimationEntity).count() == 0

    def test_non_classification_data_set_is_skipped(self, db):
        data_set = seed_data_set(db, type=DataSetType.REGRESSION)
        session, _ = self._queue(db, data_set=data_set)
        factory = MagicMock()

        outcome = run(AlgorithmService(db, classifier_factory=factory).compute_classification_algorithm(
            session.algorithm_session_id
        ))

        assert outcome is None
        factory.get_classifier.assert_not_called()

    def test_failure_marks_estimation_failed(self, db):
        unlabeled = [ClassificationSample(features=[1.0, 2.0]) for _ in range(3)]
        data_set = seed_data_set(db, samples=unlabeled)
        session, _ = self._queue(db, data_set=data_set)

        with pytest.raises(ValueError):
            run(AlgorithmService(db).compute_classification_algorithm(session.algorithm_session_id))

        estimations = EstimationService(db).get_session_estimations(session.algorithm_session_id)
        assert len(estimations) == 1
        assert estimations[0].status == EstimationStatus.FAILED
        assert "no labeled samples" in estimations[0].error
        stored = run(AlgorithmService(db).get_algorithm_session(session.algorithm_session_id))
        assert stored.status == AlgorithmSessionStatus.RUNNING
        assert not RunQueueDao(db).contains(session.algorithm_session_id)

    def test_parameters_without_value_use_their_default(self, db):
        algorithm = run(AlgorithmService(db).add_algorithm(make_algorithm()))
        session = AlgorithmSession(algorithm_id=algorithm.algorithm_id, data_set_id=1)

        pairs = AlgorithmService._bind_parameters(algorithm, session)
        assert [(p.parameter.name, p.value) for p in pairs] == [("k", 3)]

        session.parameter_values = [k_value(algorithm, 7)]
        pairs = AlgorithmService._bind_parameters(algorithm, session)
        assert [(p.parameter.name, p.value) for p in pairs] == [("k", 7)]
