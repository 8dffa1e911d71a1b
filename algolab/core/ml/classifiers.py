"""
Classifiers — the closed set of implementations an algorithm alias can bind to.
=================================================================================
Every classifier follows the same life cycle:

    clf = ClassifierFactory().get_classifier("KNN")
    clf.init(pairs)          # bind tunables; ConfigurationError on missing/mistyped
    clf.train(samples)       # once; consumes the whole sequence
    clf.decide(sample)       # -> int label, repeatable, no state carried between calls

or, as the execution pipeline drives it:

    async for decision in clf.compute_async(stream):
        ...

Implementations:
  DEFAULT      — nearest centroid (scikit-learn NearestCentroid)
  KNN          — k nearest neighbours (KNeighborsClassifier, majority vote)
  NAIVE_BAYES  — gaussian naive Bayes (GaussianNB)
  ROC          — single-feature threshold picked on the training ROC curve (Youden's J)

score(sample) is an optional confidence that the sample belongs to the
highest class label seen in training. Only binary problems produce one.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

import numpy as np
from sklearn.naive_bayes import GaussianNB
from sklearn.neighbors import KNeighborsClassifier, NearestCentroid

from algolab.core.errors import ConfigurationError, ConflictError
from algolab.core.ml.metrics import roc_curve
from algolab.models.domain import (
    AlgorithmParameterValuePair, ClassificationDecision, ClassificationSample,
    ParameterType, parse_parameter_value,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterSpec:
    """A tunable a classifier understands. No default = required."""
    type: ParameterType
    default: Any = None
    minimum: Optional[float] = None


class BaseClassifier(ABC):
    alias: str = ""
    PARAMETERS: Dict[str, ParameterSpec] = {}

    def __init__(self):
        self.params: Dict[str, Any] = {}
        self.classes_: Optional[np.ndarray] = None
        self._trained = False

    # ──────────────────────────────────────────────────────────
    # LIFE CYCLE
    # ──────────────────────────────────────────────────────────

    def init(self, config: Optional[List[AlgorithmParameterValuePair]]):
        supplied = {pair.parameter.name.strip().lower(): pair for pair in config or []}
        bound = {}

        for name, spec in self.PARAMETERS.items():
            pair = supplied.get(name.lower())
            raw = pair.value if pair is not None else None

            if pair is not None and ParameterType(pair.parameter.type) != spec.type:
                raise ConfigurationError(
                    f"{self.alias}: parameter '{name}' must be {spec.type.value}, "
                    f"got {ParameterType(pair.parameter.type).value}"
                )
            if raw is None:
                raw = spec.default
            if raw is None:
                raise ConfigurationError(f"{self.alias}: required parameter '{name}' is missing")

            try:
                value = parse_parameter_value(spec.type, raw)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"{self.alias}: parameter '{name}' is invalid: {e}") from e
            if spec.minimum is not None and value < spec.minimum:
                raise ConfigurationError(f"{self.alias}: parameter '{name}' must be >= {spec.minimum}")
            bound[name] = value

        ignored = set(supplied) - {n.lower() for n in self.PARAMETERS}
        if ignored:
            logger.debug(f"{self.alias}: ignoring unknown parameters {sorted(ignored)}")
        self.params = bound

    def train(self, samples: Iterable[ClassificationSample]):
        if self._trained:
            raise ConflictError(f"{self.alias} classifier is already trained")
        if not self.params and self.PARAMETERS:
            self.init([])

        X, y = self._training_matrix(samples)
        self.classes_ = np.unique(y)
        self._fit(X, y)
        self._trained = True
        logger.info(f"{self.alias}: trained on {len(y)} samples, {len(self.classes_)} classes")

    def decide(self, sample: ClassificationSample) -> int:
        self._require_trained()
        return int(self._predict(self._vector(sample)))

    def score(self, sample: ClassificationSample) -> Optional[float]:
        self._require_trained()
        if self.classes_ is None or len(self.classes_) != 2:
            return None
        return self._score(self._vector(sample))

    async def compute_async(self, stream) -> AsyncIterator[ClassificationDecision]:
        """Train on one pass over the stream, then decide every sample of a second pass."""
        self.train(stream)
        async for sample in stream:
            if sample.features is None:
                logger.warning(f"{self.alias}: sample {sample.classification_sample_id} has no features, skipped")
                continue
            yield ClassificationDecision(sample=sample, label=self.decide(sample), score=self.score(sample))

    # ──────────────────────────────────────────────────────────
    # HOOKS
    # ──────────────────────────────────────────────────────────

    @abstractmethod
    def _fit(self, X: np.ndarray, y: np.ndarray):
        ...

    @abstractmethod
    def _predict(self, x: np.ndarray) -> int:
        ...

    def _score(self, x: np.ndarray) -> Optional[float]:
        return None

    # ──────────────────────────────────────────────────────────
    # HELPERS
    # ──────────────────────────────────────────────────────────

    def _require_trained(self):
        if not self._trained:
            raise ConflictError(f"{self.alias} classifier must be trained before deciding")

    def _vector(self, sample: ClassificationSample) -> np.ndarray:
        if sample.features is None:
            raise ValueError(f"Sample {sample.classification_sample_id} has no feature vector")
        x = np.asarray(sample.features, dtype=float)
        if x.shape[0] != self.n_features_:
            raise ValueError(
                f"Sample {sample.classification_sample_id} has {x.shape[0]} features, "
                f"classifier was trained on {self.n_features_}"
            )
        return x

    def _training_matrix(self, samples: Iterable[ClassificationSample]) -> Tuple[np.ndarray, np.ndarray]:
        rows, labels = [], []
        for sample in samples:
            if sample.label is None or sample.features is None:
                continue
            rows.append(sample.features)
            labels.append(sample.label)

        if not rows:
            raise ValueError(f"{self.alias}: no labeled samples to train on")
        widths = {len(r) for r in rows}
        if len(widths) != 1:
            raise ValueError(f"{self.alias}: samples have inconsistent feature counts {sorted(widths)}")

        self.n_features_ = widths.pop()
        return np.asarray(rows, dtype=float), np.asarray(labels, dtype=int)


# ═══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ═══════════════════════════════════════════════════════════════

class NearestCentroidClassifier(BaseClassifier):
    alias = "DEFAULT"

    def _fit(self, X, y):
        self.model = NearestCentroid()
        self.model.fit(X, y)

    def _predict(self, x):
        return self.model.predict(x.reshape(1, -1))[0]

    def _score(self, x):
        d = np.linalg.norm(self.model.centroids_ - x, axis=1)
        return float(d[0] - d[1])


class KNearestNeighboursClassifier(BaseClassifier):
    alias = "KNN"
    PARAMETERS = {"k": ParameterSpec(ParameterType.INT, default=3, minimum=1)}

    def _fit(self, X, y):
        # ties in the vote go to the smallest label
        self.model = KNeighborsClassifier(n_neighbors=min(self.params["k"], len(y)), algorithm="brute")
        self.model.fit(X, y)

    def _predict(self, x):
        return self.model.predict(x.reshape(1, -1))[0]

    def _score(self, x):
        return float(self.model.predict_proba(x.reshape(1, -1))[0, -1])


class GaussianNaiveBayesClassifier(BaseClassifier):
    alias = "NAIVE_BAYES"
    PARAMETERS = {"var_smoothing": ParameterSpec(ParameterType.DOUBLE, default=1e-9, minimum=0.0)}

    def _fit(self, X, y):
        self.model = GaussianNB(var_smoothing=self.params["var_smoothing"])
        self.model.fit(X, y)

    def _predict(self, x):
        return self.model.predict(x.reshape(1, -1))[0]

    def _score(self, x):
        return float(self.model.predict_proba(x.reshape(1, -1))[0, -1])


class RocThresholdClassifier(BaseClassifier):
    """
    Binary classifier on a single feature. The threshold (and its direction)
    maximise Youden's J = TPR - FPR over the training ROC curve.
    """
    alias = "ROC"
    PARAMETERS = {
        "feature_index": ParameterSpec(ParameterType.INT, default=0, minimum=0),
        "positive_class": ParameterSpec(ParameterType.INT, default=1),
    }

    def _fit(self, X, y):
        index = self.params["feature_index"]
        if index >= X.shape[1]:
            raise ConfigurationError(f"ROC: feature_index {index} out of range for {X.shape[1]} features")

        positive = self.params["positive_class"]
        if len(self.classes_) != 2 or positive not in self.classes_:
            raise ValueError(
                f"ROC: needs exactly two classes including positive_class={positive}, "
                f"got {self.classes_.tolist()}"
            )
        self.negative_class_ = int(self.classes_[self.classes_ != positive][0])

        values = X[:, index]
        actual = y == positive
        best = (-np.inf, 1.0, np.inf)
        for direction in (1.0, -1.0):
            fpr, tpr, thresholds = roc_curve(actual, direction * values)
            j = tpr - fpr
            i = int(np.argmax(j))
            if j[i] > best[0]:
                best = (float(j[i]), direction, float(thresholds[i]))

        self.youden_j_, self.direction_, self.threshold_ = best
        logger.info(
            f"ROC: feature {index} threshold={self.direction_ * self.threshold_:.4f} "
            f"direction={'>=' if self.direction_ > 0 else '<='} J={self.youden_j_:.4f}"
        )

    def _projected(self, x) -> float:
        return self.direction_ * float(x[self.params["feature_index"]])

    def _predict(self, x):
        return self.params["positive_class"] if self._projected(x) >= self.threshold_ else self.negative_class_

    def _score(self, x):
        projected = self._projected(x)
        return projected if self.params["positive_class"] == self.classes_[-1] else -projected
