"""Fusion Engine

This module combines the outputs of the heuristic classifier, the reference
comparator and the remote assessment into one graded pronunciation result.

The pipeline for a full assessment:
    1. Local composite from the acoustic detector, rhythm and transition flags
       and the native-likeness evaluation
    2. Blend with the reference comparator score when one exists
    3. Blend with the remote pronunciation score when one exists
    4. Penalty for a confident non-native detection
    5. Grade cap for a confident non-native detection
    6. Letter grade and feedback

Steps 4 and 5 are separate post-fusion rules so each can be tested on its own.
The comparison pipeline (text, phoneme, prosody, stress and timing dimensions)
shares the same penalty and cap rules but uses its own grade scale.
"""

import logging
from typing import Any, Dict, Optional

from pronunciation_engine.models.enums import Grade
from pronunciation_engine.models.features import AudioFeatureSet, NonNativePatternDetection
from pronunciation_engine.models.results import (
    ComparisonResult,
    FusedAssessment,
    RemoteAssessmentResult
)
from pronunciation_engine.analysis.classifier import NativeEvaluation
from pronunciation_engine.analysis.similarity import text_similarity
from pronunciation_engine.analysis.text_patterns import phoneme_accuracy
from pronunciation_engine.fusion.grading import (
    ASSESSMENT_FEEDBACK,
    COMPARISON_FEEDBACK,
    GradeScale,
    build_rules,
    describe,
    generate_feedback,
    summary_line
)
from pronunciation_engine.config.config_loader import config
from pronunciation_engine.config.settings import FusionSettings


logger = logging.getLogger(__name__)


def _clamp_score(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def _weighted_sum(weights: Dict[str, float], values: Dict[str, float]) -> float:
    """Sum of weight x value over every named component

    Raises:
        FusionError: If a component has no configured weight
    """
    missing = set(values) - set(weights)
    if missing:
        raise FusionError(f"No weight configured for {sorted(missing)}")
    return sum(weights[name] * value for name, value in values.items())


class FusionError(Exception):
    """Exception raised for errors during fusion"""
    pass


class FusionEngine:
    """Combines component scores into a graded assessment.

    Every step is a pure method over data model inputs, so the full pipeline
    is deterministic given its inputs and each rule can be exercised alone.

    Attributes:
        settings: Fusion weights, penalty rules and grade boundaries
        standard_scale: Grade scale of the full assessment
        comparison_scale: Grade scale of the comparison pipeline
        assessment_rules: Feedback rules of the full assessment
        comparison_rules: Feedback rules of the comparison pipeline
    """

    def __init__(self, settings: Optional[FusionSettings] = None):
        self.settings = settings or FusionSettings.from_config(config)
        self.standard_scale = GradeScale(self.settings.standard_scale)
        self.comparison_scale = GradeScale(self.settings.comparison_scale)
        self.assessment_rules = build_rules(ASSESSMENT_FEEDBACK, self.settings.assessment_feedback)
        self.comparison_rules = build_rules(COMPARISON_FEEDBACK, self.settings.comparison_feedback)

        logger.info(f"FusionEngine initialized with local_weights={self.settings.local_weights}, "
                    f"remote_weight={self.settings.remote_weight}")

    def local_composite(self, features: AudioFeatureSet,
                        detection: NonNativePatternDetection,
                        native: NativeEvaluation) -> float:
        """Weighted local score from the heuristic components.

        An empty feature set (silence, undecodable audio) scores 0.
        """
        if features.is_empty:
            return 0.0

        weights = self.settings.local_weights
        if detection.detected:
            acoustic = 100.0 - 100.0 * detection.confidence
        else:
            acoustic = float(native.bonus_score)
        rhythm = 100.0 if native.natural_rhythm else 50.0
        transitions = 100.0 if native.natural_transitions else 60.0

        composite = _weighted_sum(weights, {
            'acoustic': acoustic,
            'rhythm': rhythm,
            'phoneme': transitions,
            'native': float(native.score),
        })
        return _clamp_score(composite)

    def blend_comparator(self, score: float, comparator_score: float) -> float:
        """Blend in the reference comparator when it produced a score"""
        if comparator_score <= 0:
            return score
        w = self.settings.comparator_weight
        return _clamp_score((1.0 - w) * score + w * comparator_score)

    def augment_with_remote(self, score: float, remote_score: float) -> float:
        """Blend in the remote pronunciation score when it is non-zero"""
        if remote_score <= 0:
            return score
        w = self.settings.remote_weight
        return _clamp_score((1.0 - w) * score + w * remote_score)

    def _penalised(self, detection: NonNativePatternDetection) -> bool:
        # Confidence alone gates the rules; the detected flag has its own cutoff
        return detection.confidence > self.settings.penalty_threshold

    def apply_penalty(self, score: float, detection: NonNativePatternDetection) -> float:
        """Subtract confidence x magnitude for a confident detection, floored at 0"""
        if not self._penalised(detection):
            return score
        penalty = detection.confidence * self.settings.penalty_magnitude
        logger.debug(f"Non-native penalty applied: -{penalty:.1f} (patterns={list(detection.patterns)})")
        return max(0.0, score - penalty)

    def apply_grade_cap(self, score: float, detection: NonNativePatternDetection) -> float:
        """Forced ceiling for a confident detection, applied after the penalty.

        Confidence at or above the cap threshold pulls anything above the hard
        trigger down to the hard cap score; otherwise anything above the soft
        trigger is pulled down to the soft cap score.
        """
        if not self._penalised(detection):
            return score

        s = self.settings
        if detection.confidence >= s.cap_threshold and score > s.hard_cap_trigger:
            return s.hard_cap_score
        if score > s.soft_cap_trigger:
            return s.soft_cap_score
        return score

    def timing_score(self, duration: float, reference_duration: Optional[float] = None) -> float:
        """Score the utterance length against the expected length"""
        s = self.settings
        if duration < s.timing_min_duration or duration > s.timing_max_duration:
            return s.timing_out_of_range_score
        expected = reference_duration if reference_duration else s.expected_duration
        error = abs(duration - expected)
        return max(0.0, 1.0 - error / s.timing_max_error) * 100.0

    def comparison_scores(self, recognized_text: str, reference_text: str,
                          features: AudioFeatureSet,
                          provider_prosody: float = 0.0,
                          reference_duration: Optional[float] = None) -> ComparisonResult:
        """Compute the five comparison dimensions and their weighted sum.

        Args:
            recognized_text: Text recognised from the learner's recording
            reference_text: Target phrase
            features: Enriched feature set of the recording
            provider_prosody: Provider ProsodyScore, 0 when unavailable
            reference_duration: Reference asset duration in seconds, if any

        Returns:
            ComparisonResult with the unpenalised weighted score
        """
        quality = features.quality
        text = text_similarity(recognized_text, reference_text) * 100.0
        phoneme = phoneme_accuracy(recognized_text, reference_text)
        prosody = provider_prosody if provider_prosody > 0 else float(quality.prosody)
        stress = float(quality.stress_pattern)
        timing = self.timing_score(features.duration, reference_duration)

        weights = self.settings.comparison_weights
        weighted = _weighted_sum(weights, {
            'text': text,
            'phoneme': phoneme,
            'prosody': prosody,
            'stress': stress,
            'timing': timing,
        })

        return ComparisonResult(
            text_accuracy=_clamp_score(text),
            phoneme_accuracy=_clamp_score(phoneme),
            prosody_score=_clamp_score(prosody),
            stress_score=_clamp_score(stress),
            timing_score=_clamp_score(timing),
            weighted_score=_clamp_score(weighted),
        )

    def fuse(self, features: AudioFeatureSet,
             detection: NonNativePatternDetection,
             native: NativeEvaluation,
             comparator_score: float = 0.0,
             remote: Optional[RemoteAssessmentResult] = None) -> FusedAssessment:
        """Fuse local, comparator and remote outputs into a graded assessment.

        Args:
            features: Enriched feature set of the recording
            detection: Combined acoustic and text detection
            native: Native-likeness evaluation
            comparator_score: Reference comparator score, 0 when unavailable
            remote: Remote assessment result, if the ladder ran

        Returns:
            FusedAssessment; a neutral failing result if fusion itself fails
        """
        try:
            local = self.local_composite(features, detection, native)
            score = self.blend_comparator(local, comparator_score)
            recognized = remote is not None and remote.has_recognition
            remote_score = remote.pronunciation_score if recognized else 0.0
            score = self.augment_with_remote(score, remote_score)
            score = self.apply_penalty(score, detection)
            score = self.apply_grade_cap(score, detection)
            overall = int(round(_clamp_score(score)))

            grade = self.standard_scale.grade_for(overall)
            quality = features.quality
            dimensions = {
                'accuracy': remote.accuracy_score if recognized else float(quality.pronunciation_quality),
                'fluency': remote.fluency_score if recognized else float(quality.fluency),
                'intonation': float(quality.intonation),
                'rhythm': float(quality.rhythm),
            }
            improvements, positives = generate_feedback(
                dimensions, self.assessment_rules,
                detection=detection, grade=grade,
                extra_improvements=native.improvements,
            )

            diagnostics: Dict[str, Any] = {
                'local_composite': round(local, 2),
                'comparator_score': comparator_score,
                'remote_score': remote_score,
                'remote_source': remote.source.value if remote is not None else None,
                'native_evaluation': {
                    'natural_rhythm': native.natural_rhythm,
                    'natural_transitions': native.natural_transitions,
                    'bonus_score': native.bonus_score,
                    'score': native.score,
                },
                'quality': quality.to_dict(),
                'features': features.summary(),
            }

            logger.debug(f"Fusion complete: local={local:.1f}, comparator={comparator_score}, "
                         f"remote={remote_score}, overall={overall}, grade={grade.value}")

            return FusedAssessment(
                overall_score=overall,
                grade=grade,
                grade_description=describe(grade),
                accuracy_score=_clamp_score(dimensions['accuracy']),
                fluency_score=_clamp_score(dimensions['fluency']),
                intonation_score=_clamp_score(dimensions['intonation']),
                rhythm_score=_clamp_score(dimensions['rhythm']),
                recognized_text=remote.recognized_text if recognized else "",
                improvements=improvements,
                positives=positives,
                feedback=summary_line(overall, grade, improvements),
                detection=detection,
                diagnostics=diagnostics,
                error=remote.error if remote is not None else None,
            )

        except Exception as e:
            logger.error(f"Fusion error: {e}", exc_info=True)
            return self._neutral(detection, f"Fusion failed: {e}")

    def fuse_comparison(self, recognized_text: str, reference_text: str,
                        features: AudioFeatureSet,
                        detection: NonNativePatternDetection,
                        provider_prosody: float = 0.0,
                        reference_duration: Optional[float] = None) -> FusedAssessment:
        """Score and grade the comparison pipeline on the comparison scale.

        The dimension scores map onto the assessment as accuracy = text,
        fluency = phoneme, intonation = prosody and rhythm = timing.
        """
        try:
            comparison = self.comparison_scores(recognized_text, reference_text, features,
                                                provider_prosody, reference_duration)
            score = self.apply_penalty(comparison.weighted_score, detection)
            score = self.apply_grade_cap(score, detection)
            overall = int(round(_clamp_score(score)))
            grade = self.comparison_scale.grade_for(overall)

            dimensions = {
                'overall': float(overall),
                'text': comparison.text_accuracy,
                'phoneme': comparison.phoneme_accuracy,
                'prosody': comparison.prosody_score,
                'stress': comparison.stress_score,
                'timing': comparison.timing_score,
            }
            improvements, positives = generate_feedback(
                dimensions, self.comparison_rules, detection=detection, grade=grade,
            )

            return FusedAssessment(
                overall_score=overall,
                grade=grade,
                grade_description=describe(grade, comparison=True),
                accuracy_score=comparison.text_accuracy,
                fluency_score=comparison.phoneme_accuracy,
                intonation_score=comparison.prosody_score,
                rhythm_score=comparison.timing_score,
                recognized_text=recognized_text,
                improvements=improvements,
                positives=positives,
                feedback=summary_line(overall, grade, improvements),
                detection=detection,
                diagnostics={'comparison': comparison.to_dict()},
            )

        except Exception as e:
            logger.error(f"Comparison fusion error: {e}", exc_info=True)
            return self._neutral(detection, f"Comparison failed: {e}")

    def merge(self, assessment: FusedAssessment, comparison: FusedAssessment) -> FusedAssessment:
        """Merge the full assessment with the comparison assessment.

        The lower score wins, together with its grade; when either detection is
        confident the grade is capped at C.
        """
        lower = comparison if comparison.overall_score < assessment.overall_score else assessment
        detection = assessment.detection.combine(comparison.detection)

        grade = lower.grade
        if max(assessment.detection.confidence, comparison.detection.confidence) > self.settings.merge_cap_threshold:
            grade = grade.capped_at(Grade.C)

        improvements = []
        for item in list(assessment.improvements) + list(comparison.improvements):
            if item not in improvements:
                improvements.append(item)
        improvements = improvements[:3]

        positives = []
        for item in list(assessment.positives) + list(comparison.positives):
            if item not in positives:
                positives.append(item)

        diagnostics = dict(assessment.diagnostics)
        diagnostics.update(comparison.diagnostics)
        diagnostics['merged_scores'] = {
            'assessment': assessment.overall_score,
            'comparison': comparison.overall_score,
        }

        return FusedAssessment(
            overall_score=lower.overall_score,
            grade=grade,
            grade_description=describe(grade, comparison=lower is comparison),
            accuracy_score=assessment.accuracy_score,
            fluency_score=assessment.fluency_score,
            intonation_score=assessment.intonation_score,
            rhythm_score=assessment.rhythm_score,
            recognized_text=assessment.recognized_text or comparison.recognized_text,
            improvements=improvements,
            positives=positives,
            feedback=summary_line(lower.overall_score, grade, improvements),
            detection=detection,
            diagnostics=diagnostics,
            error=assessment.error or comparison.error,
        )

    @staticmethod
    def _neutral(detection: NonNativePatternDetection, error: str) -> FusedAssessment:
        return FusedAssessment(
            overall_score=0,
            grade=Grade.E,
            grade_description=describe(Grade.E),
            accuracy_score=0.0,
            fluency_score=0.0,
            intonation_score=0.0,
            rhythm_score=0.0,
            feedback=summary_line(0, Grade.E, []),
            detection=detection,
            error=error,
        )
