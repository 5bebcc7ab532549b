"""Heuristic Pronunciation Classifier

Derives the quality sub-scores from an AudioFeatureSet, runs the acoustic
non-native ("katakana") pattern detector and evaluates native-likeness. All
formulas are fixed ratios over the base features; their thresholds come from
DetectorSettings.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from pronunciation_engine.models.features import (
    AudioFeatureSet,
    NonNativePatternDetection,
    QualityScores
)
from pronunciation_engine.config.config_loader import config
from pronunciation_engine.config.settings import DetectorSettings


logger = logging.getLogger(__name__)


def _score(value: float) -> int:
    """Round a 0-100 value and clamp it to [0, 100]"""
    return int(max(0, min(100, round(value))))


@dataclass(frozen=True)
class NativeEvaluation:
    """Native-likeness verdict used by local fusion

    Attributes:
        natural_rhythm: Rhythm consistency above the natural-rhythm threshold
        natural_transitions: Rhythm consistency above the transition threshold
        bonus_score: Sum of native-likeness bonuses [0, 100]
        score: Combined native evaluation score [0, 100]
        improvements: Remediation strings for the failed checks
    """
    natural_rhythm: bool
    natural_transitions: bool
    bonus_score: int
    score: int
    improvements: List[str] = field(default_factory=list)


class PronunciationClassifier:
    """Scores pronunciation quality and flags non-native articulation patterns.

    Attributes:
        settings: Detector thresholds and weights
    """

    def __init__(self, settings: Optional[DetectorSettings] = None):
        self.settings = settings or DetectorSettings.from_config(config)
        logger.info(f"PronunciationClassifier initialized with "
                    f"detection_cutoff={self.settings.detection_cutoff}")

    def enrich(self, features: AudioFeatureSet) -> AudioFeatureSet:
        """Return a copy of the feature set with quality sub-scores filled in"""
        return replace(features, quality=self.quality_scores(features))

    def quality_scores(self, features: AudioFeatureSet) -> QualityScores:
        """Compute the derived quality sub-scores.

        An empty feature set scores zero everywhere.
        """
        if features.is_empty:
            return QualityScores()

        pv = features.pitch_variation
        rc = features.rhythm_consistency
        pitch_movement = min(1.0, pv / 0.3)
        steadiness = max(0.0, 1.0 - (features.jitter + features.shimmer) / 0.2)
        harmonicity = min(1.0, features.hnr / 20.0)

        pitch_stability = max(0.0, 1.0 - pv)
        energy_stability = max(0.0, 1.0 - features.energy_variation)

        scores = {
            'pronunciation_quality': (pitch_stability + energy_stability + rc) / 3 * 100,
            'naturalness': (pitch_movement + rc + steadiness) / 3 * 100,
            'fluency': (rc + min(1.0, (features.spectral_flux + features.spectral_contrast) / 2)) / 2 * 100,
            'clarity': (harmonicity
                        + max(0.0, 1.0 - features.spectral_flatness)
                        + min(1.0, features.spectral_bandwidth / 2000.0)) / 3 * 100,
            'stress_pattern': (50.0 if features.frame_count < 2
                               else min(100.0, (features.energy_variation + pv) / 2 * 100)),
            'intonation': (pitch_movement
                           + max(0.0, 1.0 - abs(features.spectral_skewness) / 2)) / 2 * 100,
            'rhythm': (rc + min(1.0, features.spectral_spread / 1000.0)) / 2 * 100,
            'articulation': (steadiness + harmonicity) / 2 * 100,
            'prosody': (pitch_movement + rc
                        + max(0.0, 1.0 - abs(features.spectral_kurtosis) / 5)) / 3 * 100,
        }
        rounded = {name: _score(value) for name, value in scores.items()}
        weights = self.settings.quality_weights
        overall = sum(rounded[name] * weight for name, weight in weights.items())

        return QualityScores(overall=_score(overall), **rounded)

    def detect(self, features: AudioFeatureSet) -> NonNativePatternDetection:
        """Evaluate the acoustic non-native rules in order.

        Each rule adds its weight independently; detection fires when the sum
        exceeds the cutoff. Nothing fires for an empty feature set.
        """
        if features.is_empty:
            return NonNativePatternDetection()

        s = self.settings
        weights = s.acoustic_weights
        rules = (
            (features.average_duration > s.long_duration,
             weights['duration'], "syllable spacing too long"),
            (features.rhythm_consistency < s.low_rhythm,
             weights['rhythm'], "unnatural rhythm"),
            (features.pitch_variation < s.low_pitch_variation,
             weights['pitch'], "insufficient pitch variation"),
            (features.spectral_centroid < s.low_centroid,
             weights['timbre'], "unnatural timbre"),
            (features.zero_crossing_rate < s.low_zcr,
             weights['complexity'], "insufficient spectral complexity"),
        )

        total = 0.0
        patterns: List[str] = []
        for fired, weight, pattern in rules:
            if fired:
                total += weight
                if pattern not in patterns:
                    patterns.append(pattern)

        confidence = min(1.0, total)
        detected = total > s.detection_cutoff
        if detected:
            logger.debug(f"Non-native pattern detected: confidence={confidence:.2f}, "
                         f"patterns={patterns}")
        return NonNativePatternDetection(detected=detected, confidence=confidence,
                                         patterns=tuple(patterns))

    def native_bonus(self, features: AudioFeatureSet) -> int:
        """Sum of native-likeness bonuses, the opposite-direction checks of the detector"""
        if features.is_empty:
            return 0

        s = self.settings
        bonus = s.native_bonus
        total = 0.0
        if features.average_duration < s.short_duration:
            total += bonus['duration']
        if features.rhythm_consistency > s.high_rhythm:
            total += bonus['rhythm']
        if features.pitch_variation > s.high_pitch_variation:
            total += bonus['pitch']
        if features.spectral_centroid > s.high_centroid:
            total += bonus['timbre']
        if features.zero_crossing_rate > s.high_zcr:
            total += bonus['complexity']
        return _score(total)

    def evaluate_native(self, features: AudioFeatureSet,
                        detection: Optional[NonNativePatternDetection] = None) -> NativeEvaluation:
        """Combine the native bonus with rhythm and transition checks"""
        detection = detection or self.detect(features)
        rc = features.rhythm_consistency
        natural_rhythm = rc > self.settings.natural_rhythm
        natural_transitions = rc > self.settings.natural_transitions
        bonus = self.native_bonus(features)

        score = _score(bonus * 0.4
                       + (25 if natural_rhythm else 0)
                       + (25 if natural_transitions else 0)
                       + rc * 10)

        improvements = []
        if detection.detected:
            improvements.append("Avoid katakana-style pronunciation and aim for natural English sounds")
        if not natural_rhythm:
            improvements.append("Match the stress-timed rhythm of English")
        if not natural_transitions:
            improvements.append("Link sounds smoothly from one to the next")

        return NativeEvaluation(
            natural_rhythm=natural_rhythm,
            natural_transitions=natural_transitions,
            bonus_score=bonus,
            score=score,
            improvements=improvements,
        )
