"""
Classifier and estimate factories — alias resolution and config deserialization.
"""

import pytest

from algolab.core.errors import ConfigurationError, InvalidArgumentError, NotFoundError
from algolab.core.ml.classifiers import KNearestNeighboursClassifier, RocThresholdClassifier
from algolab.core.ml.estimates import DefaultEstimate, RocEstimate
from algolab.core.ml.factories import ClassifierEstimateFactory, ClassifierFactory
from algolab.models.domain import EstimateRequest


class TestClassifierFactory:

    def test_alias_is_case_insensitive(self):
        factory = ClassifierFactory()
        assert isinstance(factory.get_classifier("roc"), RocThresholdClassifier)
        assert isinstance(factory.get_classifier("ROC"), RocThresholdClassifier)
        assert isinstance(factory.get_classifier(" knn "), KNearestNeighboursClassifier)

    def test_new_instance_per_call(self):
        factory = ClassifierFactory()
        assert factory.get_classifier("KNN") is not factory.get_classifier("KNN")

    def test_unknown_alias(self):
        with pytest.raises(NotFoundError, match="There is no classifier with alias: SVM"):
            ClassifierFactory().get_classifier("SVM")

    def test_none_alias(self):
        with pytest.raises(NotFoundError):
            ClassifierFactory().get_classifier(None)

    def test_registered_aliases(self):
        assert ClassifierFactory().aliases() == ["DEFAULT", "KNN", "NAIVE_BAYES", "ROC"]

    def test_custom_registry(self):
        factory = ClassifierFactory(registry={"ONLY": KNearestNeighboursClassifier})
        assert factory.is_registered("only")
        assert not factory.is_registered("KNN")


class TestClassifierEstimateFactory:

    def test_null_request(self):
        with pytest.raises(InvalidArgumentError):
            ClassifierEstimateFactory().get_estimate(None)

    def test_invalid_argument_is_a_value_error(self):
        with pytest.raises(ValueError):
            ClassifierEstimateFactory().get_estimate(None)

    def test_unknown_alias(self):
        with pytest.raises(InvalidArgumentError, match="There is no estimate with alias: F1"):
            ClassifierEstimateFactory().get_estimate(EstimateRequest("F1"))

    def test_missing_config_means_defaults(self):
        estimate = ClassifierEstimateFactory().get_estimate(EstimateRequest("roc", None))
        assert isinstance(estimate, RocEstimate)
        assert estimate.config.positive_class == 1
        assert estimate.config.max_points == 50

    def test_blank_config_means_defaults(self):
        estimate = ClassifierEstimateFactory().get_estimate(EstimateRequest("DEFAULT", "  "))
        assert isinstance(estimate, DefaultEstimate)
        assert estimate.config.positive_class == 1

    def test_config_is_deserialized(self):
        estimate = ClassifierEstimateFactory().get_estimate(
            EstimateRequest("ROC", '{"positive_class": 0, "use_scores": false}')
        )
        assert estimate.config.positive_class == 0
        assert estimate.config.use_scores is False

    def test_malformed_json(self):
        with pytest.raises(ConfigurationError):
            ClassifierEstimateFactory().get_estimate(EstimateRequest("ROC", "{not json"))

    def test_wrong_shape(self):
        with pytest.raises(ConfigurationError):
            ClassifierEstimateFactory().get_estimate(EstimateRequest("ROC", '{"max_points": 1}'))
