"""Data models for assessment results"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import numpy as np

from pronunciation_engine.models.enums import Grade, ResultSource
from pronunciation_engine.models.features import NonNativePatternDetection


@dataclass(frozen=True)
class PhonemeDetail:
    """Per-phoneme score reported by the provider"""
    phoneme: str
    accuracy_score: float = 0.0


@dataclass(frozen=True)
class WordDetail:
    """Per-word assessment block reported by the provider

    Attributes:
        word: Recognised word
        accuracy_score: Word accuracy [0, 100]
        error_type: Provider error label (e.g., "None", "Mispronunciation")
        phonemes: Per-phoneme details, empty when not requested
    """
    word: str
    accuracy_score: float = 0.0
    error_type: str = "None"
    phonemes: List[PhonemeDetail] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.word,
            "accuracy_score": self.accuracy_score,
            "error_type": self.error_type,
            "phonemes": [
                {"phoneme": p.phoneme, "accuracy_score": p.accuracy_score}
                for p in self.phonemes
            ],
        }


@dataclass
class RemoteAssessmentResult:
    """Result of one pass through the remote assessment fallback ladder

    Absent provider fields default to 0 so downstream consumers never need to
    guard against missing scores.

    Attributes:
        recognized_text: Text recognised by the provider
        accuracy_score: Accuracy [0, 100]
        fluency_score: Fluency [0, 100]
        completeness_score: Completeness [0, 100]
        pronunciation_score: Overall pronunciation score [0, 100]
        grade: Letter grade on the remote scale (F for recognition failure)
        grade_description: Human-readable grade description
        source: Which ladder outcome produced this result
        prosody_score: Provider prosody score [0, 100], 0 when absent
        words: Per-word details
        improvements: Improvement suggestions
        positives: Positive remarks
        feedback: One-line summary
        error: Triggering error for demo and no-data results
        prosody_payload: Best hypothesis (plus SNR) for the text detector
    """
    recognized_text: str
    accuracy_score: float
    fluency_score: float
    completeness_score: float
    pronunciation_score: float
    grade: Grade
    grade_description: str
    source: ResultSource
    prosody_score: float = 0.0
    words: List[WordDetail] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    positives: List[str] = field(default_factory=list)
    feedback: str = ""
    error: Optional[str] = None
    prosody_payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Validate score ranges"""
        for name in ('accuracy_score', 'fluency_score', 'completeness_score',
                     'pronunciation_score', 'prosody_score'):
            value = getattr(self, name)
            assert 0.0 <= value <= 100.0, f"{name} must be in [0, 100]"

    @property
    def has_recognition(self) -> bool:
        """True when the provider actually recognised speech"""
        return self.source not in (ResultSource.DEMO, ResultSource.NO_DATA) \
            and bool(self.recognized_text.strip())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "overall_grade": self.grade.value,
            "grade_description": self.grade_description,
            "pronunciation_score": self.pronunciation_score,
            "accuracy_score": self.accuracy_score,
            "fluency_score": self.fluency_score,
            "completeness_score": self.completeness_score,
            "prosody_score": self.prosody_score,
            "recognized_text": self.recognized_text,
            "improvements": list(self.improvements),
            "positives": list(self.positives),
            "feedback": self.feedback,
            "source": self.source.value,
            "words": [w.to_dict() for w in self.words],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ReferenceAudioEntry:
    """Pre-recorded reference rendition of a phrase

    Attributes:
        phrase_id: Normalised catalog key (lower-cased, alphanumeric only)
        reference_text: Phrase text the entry was requested with
        coefficients: MFCC sequence, shape (n_mfcc, frames)
        sample_rate: Sample rate of the stored waveform
        duration: Trimmed duration in seconds
    """
    phrase_id: str
    reference_text: str
    coefficients: np.ndarray
    sample_rate: int
    duration: float

    def __post_init__(self):
        """Validate reference data"""
        assert isinstance(self.coefficients, np.ndarray), "Coefficients must be numpy array"
        assert self.coefficients.ndim == 2, "Coefficients must be (n_mfcc, frames)"
        assert self.sample_rate > 0, "Sample rate must be positive"

    @property
    def frame_count(self) -> int:
        return int(self.coefficients.shape[1])


@dataclass(frozen=True)
class ComparisonResult:
    """Dimension scores of the comparison pipeline, each in [0, 100]"""
    text_accuracy: float
    phoneme_accuracy: float
    prosody_score: float
    stress_score: float
    timing_score: float
    weighted_score: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "text_accuracy": round(self.text_accuracy, 2),
            "phoneme_accuracy": round(self.phoneme_accuracy, 2),
            "prosody_score": round(self.prosody_score, 2),
            "stress_score": round(self.stress_score, 2),
            "timing_score": round(self.timing_score, 2),
            "weighted_score": round(self.weighted_score, 2),
        }


@dataclass
class FusedAssessment:
    """Final graded assessment returned to the caller

    Attributes:
        overall_score: Fused score, integer in [0, 100]
        grade: Letter grade
        grade_description: Human-readable grade description
        accuracy_score: Accuracy dimension [0, 100]
        fluency_score: Fluency dimension [0, 100]
        intonation_score: Intonation dimension [0, 100]
        rhythm_score: Rhythm dimension [0, 100]
        recognized_text: Text recognised for the utterance, empty if unknown
        improvements: Improvement suggestions (at most 3)
        positives: Positive remarks
        feedback: One-line summary
        detection: Non-native pattern detection used for the penalty rules
        diagnostics: Component-level details (scores, sources, features)
        error: Error carried over from a degraded component, if any
    """
    overall_score: int
    grade: Grade
    grade_description: str
    accuracy_score: float
    fluency_score: float
    intonation_score: float
    rhythm_score: float
    recognized_text: str = ""
    improvements: List[str] = field(default_factory=list)
    positives: List[str] = field(default_factory=list)
    feedback: str = ""
    detection: NonNativePatternDetection = field(default_factory=NonNativePatternDetection)
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def __post_init__(self):
        """Validate result data"""
        assert 0 <= self.overall_score <= 100, "Overall score must be in [0, 100]"
        for name in ('accuracy_score', 'fluency_score', 'intonation_score', 'rhythm_score'):
            value = getattr(self, name)
            assert 0.0 <= value <= 100.0, f"{name} must be in [0, 100]"
        assert len(self.improvements) <= 3, "At most 3 improvement strings"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "overall_score": self.overall_score,
            "overall_grade": self.grade.value,
            "grade_description": self.grade_description,
            "accuracy_score": round(self.accuracy_score, 2),
            "fluency_score": round(self.fluency_score, 2),
            "intonation_score": round(self.intonation_score, 2),
            "rhythm_score": round(self.rhythm_score, 2),
            "recognized_text": self.recognized_text,
            "improvements": list(self.improvements),
            "positives": list(self.positives),
            "feedback": self.feedback,
            "diagnostics": {
                "non_native_detection": self.detection.to_dict(),
                **self.diagnostics,
            },
        }
        if self.error is not None:
            data["error"] = self.error
        return data
