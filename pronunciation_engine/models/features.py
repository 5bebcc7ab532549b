"""Data models for extracted acoustic features and derived detections"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Tuple


@dataclass(frozen=True)
class QualityScores:
    """Derived quality sub-scores, each an integer in [0, 100]

    Attributes:
        pronunciation_quality: Stability of pitch, energy and rhythm
        naturalness: Pitch movement, rhythm and voice steadiness
        fluency: Rhythm and spectral dynamics
        clarity: Harmonicity, tonal spectrum and bandwidth
        stress_pattern: Energy and pitch contrast between syllables
        intonation: Pitch movement and spectral symmetry
        rhythm: Syllable regularity and spectral spread
        articulation: Voice steadiness and harmonicity
        prosody: Pitch movement, rhythm and spectral peakedness
        overall: Weighted combination of the scores above
    """
    pronunciation_quality: int = 0
    naturalness: int = 0
    fluency: int = 0
    clarity: int = 0
    stress_pattern: int = 0
    intonation: int = 0
    rhythm: int = 0
    articulation: int = 0
    prosody: int = 0
    overall: int = 0

    def __post_init__(self):
        """Validate score ranges"""
        for name, value in asdict(self).items():
            assert 0 <= value <= 100, f"{name} must be in [0, 100]"

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class AudioFeatureSet:
    """Utterance-level acoustic descriptors for one assessment request

    Created fresh per request and never shared. Ratio fields are clamped to
    [0, 1] by the extractor; ``quality`` is filled in by the classifier.

    Attributes:
        syllable_count: Rising edges of frame energy above the syllable threshold
        average_duration: Seconds per syllable
        rhythm_consistency: 1 - coefficient of variation of inter-syllable intervals
        pitch_variation: Coefficient of variation of voiced pitch estimates
        energy_variation: Coefficient of variation of frame energies
        formants: Average formant candidate frequencies in Hz (at most 3)
        spectral_centroid: Mean spectral centre of mass in Hz
        spectral_rolloff: Mean roll-off frequency in Hz
        spectral_bandwidth: Mean spectral bandwidth in Hz
        spectral_flatness: Mean spectral flatness [0, 1]
        spectral_spread: Mean spectral standard deviation in Hz
        spectral_skewness: Mean third standardised spectral moment
        spectral_kurtosis: Mean excess kurtosis of the spectrum
        spectral_flux: Mean frame-to-frame spectral change [0, 1]
        spectral_contrast: Mean peak/valley contrast [0, 1]
        zero_crossing_rate: Mean zero-crossing rate [0, 1]
        energy_distribution: Histogram of frame energies (fractions per bin)
        jitter: Relative period perturbation [0, 1]
        shimmer: Relative amplitude perturbation [0, 1]
        hnr: Harmonics-to-noise ratio in dB (>= 0)
        mfcc: Mean MFCC vector
        frame_count: Number of analysis frames
        duration: Analysed duration in seconds
        quality: Derived quality sub-scores
    """
    syllable_count: int
    average_duration: float
    rhythm_consistency: float
    pitch_variation: float
    energy_variation: float
    formants: Tuple[float, ...]
    spectral_centroid: float
    spectral_rolloff: float
    spectral_bandwidth: float
    spectral_flatness: float
    spectral_spread: float
    spectral_skewness: float
    spectral_kurtosis: float
    spectral_flux: float
    spectral_contrast: float
    zero_crossing_rate: float
    energy_distribution: Tuple[float, ...]
    jitter: float
    shimmer: float
    hnr: float
    mfcc: Tuple[float, ...]
    frame_count: int = 0
    duration: float = 0.0
    quality: QualityScores = field(default_factory=QualityScores)

    def __post_init__(self):
        """Validate feature ranges"""
        assert self.syllable_count >= 0, "Syllable count must be non-negative"
        assert len(self.formants) <= 3, "At most 3 formants"
        for name in ('rhythm_consistency', 'pitch_variation', 'energy_variation',
                     'spectral_flatness', 'spectral_flux', 'spectral_contrast',
                     'zero_crossing_rate', 'jitter', 'shimmer'):
            value = getattr(self, name)
            assert 0.0 <= value <= 1.0, f"{name} must be in [0, 1]"
        assert self.hnr >= 0.0, "HNR must be non-negative"

    @property
    def is_empty(self) -> bool:
        """True when no audio was analysed (silence or undecodable input)"""
        return self.frame_count == 0

    @classmethod
    def empty(cls, n_mfcc: int = 13, energy_bins: int = 10) -> "AudioFeatureSet":
        """Zeroed feature set returned for silent or unusable input"""
        return cls(
            syllable_count=0,
            average_duration=0.0,
            rhythm_consistency=0.0,
            pitch_variation=0.0,
            energy_variation=0.0,
            formants=(),
            spectral_centroid=0.0,
            spectral_rolloff=0.0,
            spectral_bandwidth=0.0,
            spectral_flatness=0.0,
            spectral_spread=0.0,
            spectral_skewness=0.0,
            spectral_kurtosis=0.0,
            spectral_flux=0.0,
            spectral_contrast=0.0,
            zero_crossing_rate=0.0,
            energy_distribution=(0.0,) * energy_bins,
            jitter=0.0,
            shimmer=0.0,
            hnr=0.0,
            mfcc=(0.0,) * n_mfcc,
        )

    def summary(self) -> Dict[str, float]:
        """Compact view used in response diagnostics"""
        return {
            "syllable_count": self.syllable_count,
            "average_duration": round(self.average_duration, 4),
            "rhythm_consistency": round(self.rhythm_consistency, 4),
            "pitch_variation": round(self.pitch_variation, 4),
            "spectral_centroid": round(self.spectral_centroid, 2),
            "zero_crossing_rate": round(self.zero_crossing_rate, 4),
            "jitter": round(self.jitter, 4),
            "shimmer": round(self.shimmer, 4),
            "hnr": round(self.hnr, 2),
            "duration": round(self.duration, 3),
        }


@dataclass(frozen=True)
class NonNativePatternDetection:
    """Result of a non-native ("katakana") pronunciation detector

    Attributes:
        detected: Whether the accumulated rule weight crossed the cutoff
        confidence: Accumulated rule weight, capped at 1.0
        patterns: Names of the rules that fired, in evaluation order
    """
    detected: bool = False
    confidence: float = 0.0
    patterns: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate detection data"""
        assert 0.0 <= self.confidence <= 1.0, "Confidence must be in [0, 1]"
        assert len(set(self.patterns)) == len(self.patterns), "Patterns must be unique"

    def combine(self, other: "NonNativePatternDetection") -> "NonNativePatternDetection":
        """Union of two detections: either fires, strongest confidence wins"""
        patterns = list(self.patterns)
        for pattern in other.patterns:
            if pattern not in patterns:
                patterns.append(pattern)
        return NonNativePatternDetection(
            detected=self.detected or other.detected,
            confidence=max(self.confidence, other.confidence),
            patterns=tuple(patterns),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "detected": self.detected,
            "confidence": round(self.confidence, 4),
            "patterns": list(self.patterns),
        }
