"""Data models for the pronunciation engine"""

from pronunciation_engine.models.frames import AudioClip
from pronunciation_engine.models.features import (
    AudioFeatureSet,
    NonNativePatternDetection,
    QualityScores
)
from pronunciation_engine.models.results import (
    ComparisonResult,
    FusedAssessment,
    PhonemeDetail,
    ReferenceAudioEntry,
    RemoteAssessmentResult,
    WordDetail
)
from pronunciation_engine.models.enums import (
    AttemptStage,
    FailureKind,
    Grade,
    ResponseShape,
    ResultSource
)

__all__ = [
    # Frames
    "AudioClip",
    # Features
    "AudioFeatureSet",
    "NonNativePatternDetection",
    "QualityScores",
    # Results
    "ComparisonResult",
    "FusedAssessment",
    "PhonemeDetail",
    "ReferenceAudioEntry",
    "RemoteAssessmentResult",
    "WordDetail",
    # Enums
    "AttemptStage",
    "FailureKind",
    "Grade",
    "ResponseShape",
    "ResultSource",
]
