"""
Classifier Estimates — scoring applied to persisted classification results.
==============================================================================
Each estimate is built from a typed config (deserialized from the JSON blob
stored with the run request) and turns a set of ClassificationResult rows
into one EstimateValue: a scalar plus a JSON-friendly summary.

  DEFAULT — accuracy over results with ground truth; precision/recall/f1
            for `positive_class` in the summary
  ROC     — area under the ROC curve for `positive_class`, from classifier
            scores when every result has one, otherwise from the decisions

Results without ground truth (expected is None) are ignored by both.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List

import numpy as np
from pydantic import BaseModel, Field

from algolab.core.ml.metrics import auc, confusion_counts, roc_curve
from algolab.models.domain import ClassificationResult, EstimateValue

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# CONFIGS
# ═══════════════════════════════════════════════════════════════

class DefaultConfig(BaseModel):
    positive_class: int = 1


class RocConfig(BaseModel):
    positive_class: int = 1
    use_scores: bool = True
    max_points: int = Field(default=50, ge=2, description="Curve points kept in the summary")


# ═══════════════════════════════════════════════════════════════
# ESTIMATES
# ═══════════════════════════════════════════════════════════════

class BaseClassifierEstimate(ABC):
    alias: str = ""

    def __init__(self, config: BaseModel):
        self.config = config

    @abstractmethod
    def estimate(self, results: Iterable[ClassificationResult]) -> EstimateValue:
        ...

    @staticmethod
    def _with_ground_truth(results: Iterable[ClassificationResult]) -> List[ClassificationResult]:
        return [r for r in results if r.expected is not None]


class DefaultEstimate(BaseClassifierEstimate):
    alias = "DEFAULT"

    def estimate(self, results):
        evaluated = self._with_ground_truth(results)
        if not evaluated:
            return EstimateValue(value=None, summary={"evaluated": 0, "reason": "no results with ground truth"})

        expected = np.array([r.expected for r in evaluated], dtype=int)
        decided = np.array([r.decision for r in evaluated], dtype=int)
        correct = int(np.sum(expected == decided))
        accuracy = correct / len(evaluated)

        positive = self.config.positive_class
        counts = confusion_counts(expected == positive, decided == positive)
        labels, label_counts = np.unique(expected, return_counts=True)

        return EstimateValue(
            value=round(accuracy, 6),
            summary={
                "evaluated": len(evaluated),
                "correct": correct,
                "accuracy": round(accuracy, 4),
                "positive_class": positive,
                **counts.to_dict(),
                "class_counts": {str(int(l)): int(c) for l, c in zip(labels, label_counts)},
            },
        )


class RocEstimate(BaseClassifierEstimate):
    alias = "ROC"

    def estimate(self, results):
        evaluated = self._with_ground_truth(results)
        positive = self.config.positive_class
        actual = np.array([r.expected == positive for r in evaluated], dtype=bool)

        if actual.size == 0 or actual.all() or not actual.any():
            return EstimateValue(
                value=None,
                summary={"evaluated": len(evaluated), "reason": "ROC needs both positive and negative ground truth"},
            )

        used_scores = self.config.use_scores and all(r.score is not None for r in evaluated)
        if used_scores:
            scores = np.array([r.score for r in evaluated], dtype=float)
            # scores lean toward the highest label; flip when that is not the positive class
            if positive != max(r.expected for r in evaluated):
                scores = -scores
        else:
            scores = np.array([r.decision == positive for r in evaluated], dtype=float)

        fpr, tpr, _ = roc_curve(actual, scores)
        area = auc(fpr, tpr)

        step = max(1, int(np.ceil(len(fpr) / self.config.max_points)))
        keep = list(range(0, len(fpr), step))
        if keep[-1] != len(fpr) - 1:
            keep.append(len(fpr) - 1)

        return EstimateValue(
            value=round(area, 6),
            summary={
                "evaluated": len(evaluated),
                "positive_class": positive,
                "auc": round(area, 4),
                "used_scores": used_scores,
                "points": [{"fpr": round(float(fpr[i]), 4), "tpr": round(float(tpr[i]), 4)} for i in keep],
            },
        )
