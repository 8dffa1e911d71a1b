"""
Classification execution building blocks
=========================================
  ClassifierFactory          — alias -> classifier instance
  ClassifierEstimateFactory  — estimate request -> configured estimate
  DataSetSampleStreamFactory — data set id -> lazy paged sample stream
"""

from .classifiers import (
    BaseClassifier,
    GaussianNaiveBayesClassifier,
    KNearestNeighboursClassifier,
    NearestCentroidClassifier,
    ParameterSpec,
    RocThresholdClassifier,
)
from .estimates import BaseClassifierEstimate, DefaultConfig, DefaultEstimate, RocConfig, RocEstimate
from .factories import CLASSIFIERS, ESTIMATES, ClassifierEstimateFactory, ClassifierFactory
from .sample_stream import DataSetSampleStream, DataSetSampleStreamFactory

__all__ = [
    "BaseClassifier",
    "GaussianNaiveBayesClassifier",
    "KNearestNeighboursClassifier",
    "NearestCentroidClassifier",
    "ParameterSpec",
    "RocThresholdClassifier",
    "BaseClassifierEstimate",
    "DefaultConfig",
    "DefaultEstimate",
    "RocConfig",
    "RocEstimate",
    "CLASSIFIERS",
    "ESTIMATES",
    "ClassifierEstimateFactory",
    "ClassifierFactory",
    "DataSetSampleStream",
    "DataSetSampleStreamFactory",
]
