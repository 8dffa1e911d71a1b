"""
Alias-keyed factories for classifiers and estimates.

Both registries are closed: aliases are upper-cased and looked up in a
fixed table. There is no fallback variant for an unknown alias.
"""

import logging
from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError as PydanticValidationError

from algolab.core.errors import ConfigurationError, InvalidArgumentError, NotFoundError
from algolab.core.ml.classifiers import (
    BaseClassifier, GaussianNaiveBayesClassifier, KNearestNeighboursClassifier,
    NearestCentroidClassifier, RocThresholdClassifier,
)
from algolab.core.ml.estimates import (
    BaseClassifierEstimate, DefaultConfig, DefaultEstimate, RocConfig, RocEstimate,
)
from algolab.models.domain import EstimateRequest

logger = logging.getLogger(__name__)


CLASSIFIERS: Dict[str, Type[BaseClassifier]] = {
    cls.alias: cls
    for cls in (
        NearestCentroidClassifier,
        KNearestNeighboursClassifier,
        GaussianNaiveBayesClassifier,
        RocThresholdClassifier,
    )
}

ESTIMATES: Dict[str, Tuple[Type[BaseClassifierEstimate], Type[BaseModel]]] = {
    DefaultEstimate.alias: (DefaultEstimate, DefaultConfig),
    RocEstimate.alias: (RocEstimate, RocConfig),
}


def _normalize(alias: Optional[str]) -> str:
    return (alias or "").strip().upper()


class ClassifierFactory:
    """
    Usage:
        clf = ClassifierFactory().get_classifier("knn")   # new instance per call
    """

    def __init__(self, registry: Optional[Dict[str, Type[BaseClassifier]]] = None):
        self._registry = dict(registry if registry is not None else CLASSIFIERS)

    def aliases(self) -> List[str]:
        return sorted(self._registry)

    def is_registered(self, alias: Optional[str]) -> bool:
        return _normalize(alias) in self._registry

    def get_classifier(self, alias: Optional[str]) -> BaseClassifier:
        cls = self._registry.get(_normalize(alias))
        if cls is None:
            raise NotFoundError(f"There is no classifier with alias: {alias}")
        return cls()


class ClassifierEstimateFactory:
    """
    Usage:
        est = ClassifierEstimateFactory().get_estimate(EstimateRequest("roc", '{"positive_class": 1}'))
        value = est.estimate(results)
    """

    def __init__(self, registry: Optional[Dict[str, Tuple[Type[BaseClassifierEstimate], Type[BaseModel]]]] = None):
        self._registry = dict(registry if registry is not None else ESTIMATES)

    def aliases(self) -> List[str]:
        return sorted(self._registry)

    def is_registered(self, alias: Optional[str]) -> bool:
        return _normalize(alias) in self._registry

    def get_estimate(self, request: Optional[EstimateRequest]) -> BaseClassifierEstimate:
        if request is None:
            raise InvalidArgumentError("estimate request must not be None")

        entry = self._registry.get(_normalize(request.alias))
        if entry is None:
            raise InvalidArgumentError(f"There is no estimate with alias: {request.alias}")

        estimate_cls, config_cls = entry
        return estimate_cls(self._deserialize(config_cls, request.config))

    @staticmethod
    def _deserialize(config_cls: Type[BaseModel], blob: Optional[str]) -> BaseModel:
        if blob is None or not blob.strip():
            return config_cls()
        try:
            return config_cls.model_validate_json(blob)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid {config_cls.__name__}: {e.error_count()} error(s)") from e
