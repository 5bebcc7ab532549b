"""Property-based tests for rhythm monotonicity

A steadier rhythm never lowers the native-likeness evaluation or the rhythm
quality score, all other features being equal.
"""

from dataclasses import replace

from hypothesis import given, strategies as st

from pronunciation_engine.analysis.classifier import PronunciationClassifier
from pronunciation_engine.config.settings import DetectorSettings
from pronunciation_engine.models.features import AudioFeatureSet


classifier = PronunciationClassifier(DetectorSettings())


@st.composite
def rhythm_pair_strategy(draw):
    """Two rhythm consistencies, lower first"""
    first = draw(st.floats(min_value=0.0, max_value=1.0))
    second = draw(st.floats(min_value=0.0, max_value=1.0))
    return min(first, second), max(first, second)


@st.composite
def base_features_strategy(draw):
    return replace(
        AudioFeatureSet.empty(),
        frame_count=draw(st.integers(min_value=1, max_value=500)),
        average_duration=draw(st.floats(min_value=0.0, max_value=1.0)),
        pitch_variation=draw(st.floats(min_value=0.0, max_value=1.0)),
        spectral_centroid=draw(st.floats(min_value=0.0, max_value=4000.0)),
        spectral_spread=draw(st.floats(min_value=0.0, max_value=2000.0)),
        zero_crossing_rate=draw(st.floats(min_value=0.0, max_value=0.5)),
    )


@given(features=base_features_strategy(), rhythm=rhythm_pair_strategy())
def test_native_score_non_decreasing_in_rhythm(features, rhythm):
    low, high = rhythm
    slower = classifier.evaluate_native(replace(features, rhythm_consistency=low))
    steadier = classifier.evaluate_native(replace(features, rhythm_consistency=high))

    assert steadier.score >= slower.score
    assert steadier.bonus_score >= slower.bonus_score
    assert len(steadier.improvements) <= len(slower.improvements)


@given(features=base_features_strategy(), rhythm=rhythm_pair_strategy())
def test_rhythm_quality_non_decreasing_in_rhythm(features, rhythm):
    low, high = rhythm
    slower = classifier.quality_scores(replace(features, rhythm_consistency=low))
    steadier = classifier.quality_scores(replace(features, rhythm_consistency=high))

    assert steadier.rhythm >= slower.rhythm
    assert steadier.prosody >= slower.prosody


@given(features=base_features_strategy(), rhythm=rhythm_pair_strategy())
def test_steadier_rhythm_never_adds_detection_weight(features, rhythm):
    low, high = rhythm
    slower = classifier.detect(replace(features, rhythm_consistency=low))
    steadier = classifier.detect(replace(features, rhythm_consistency=high))

    assert steadier.confidence <= slower.confidence
