"""
Binary-classification metrics shared by the ROC classifier and the estimates.
Thin wrappers over sklearn.metrics; inputs are 1-D arrays.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
from sklearn import metrics as sk_metrics


@dataclass
class ConfusionCounts:
    tp: int = 0
    fp: int = 0
    fn: int = 0
    tn: int = 0

    @property
    def precision(self) -> float:
        return self.tp / (self.tp + self.fp) if (self.tp + self.fp) else 0.0

    @property
    def recall(self) -> float:
        return self.tp / (self.tp + self.fn) if (self.tp + self.fn) else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if (p + r) else 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "tp": self.tp, "fp": self.fp, "fn": self.fn, "tn": self.tn,
            "precision": round(self.precision, 4),
            "recall": round(self.recall, 4),
            "f1": round(self.f1, 4),
        }


def confusion_counts(actual_positive: np.ndarray, predicted_positive: np.ndarray) -> ConfusionCounts:
    actual = np.asarray(actual_positive, dtype=bool)
    predicted = np.asarray(predicted_positive, dtype=bool)
    tn, fp, fn, tp = sk_metrics.confusion_matrix(actual, predicted, labels=[False, True]).ravel()
    return ConfusionCounts(tp=int(tp), fp=int(fp), fn=int(fn), tn=int(tn))


def roc_curve(actual_positive: np.ndarray, scores: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    ROC curve for "predict positive when score >= threshold".

    Returns (fpr, tpr, thresholds), starting at (0, 0) with an infinite
    threshold and ending at (1, 1). Needs at least one positive and one negative.
    """
    actual = np.asarray(actual_positive, dtype=bool)
    scores = np.asarray(scores, dtype=float)
    positives = int(actual.sum())
    if positives == 0 or positives == actual.size:
        raise ValueError("ROC curve needs both positive and negative samples")

    return sk_metrics.roc_curve(actual, scores, drop_intermediate=False)


def auc(x: np.ndarray, y: np.ndarray) -> float:
    """Trapezoidal area under a curve given in ascending x."""
    x = np.asarray(x, dtype=float)
    if x.size < 2:
        return 0.0
    return float(sk_metrics.auc(x, np.asarray(y, dtype=float)))
