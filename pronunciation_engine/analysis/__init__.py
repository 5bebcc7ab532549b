"""Analysis modules for signal features, heuristics and reference comparison"""

from pronunciation_engine.analysis.acoustic import FeatureExtractor, AudioProcessingError
from pronunciation_engine.analysis.classifier import PronunciationClassifier, NativeEvaluation
from pronunciation_engine.analysis.text_patterns import TextPatternDetector
from pronunciation_engine.analysis.comparator import (
    ComparisonError,
    ReferenceCatalog,
    ReferenceComparator
)

__all__ = [
    'FeatureExtractor',
    'AudioProcessingError',
    'PronunciationClassifier',
    'NativeEvaluation',
    'TextPatternDetector',
    'ComparisonError',
    'ReferenceCatalog',
    'ReferenceComparator',
]
