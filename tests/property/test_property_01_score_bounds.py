"""Property-based tests for score bounds

Every quality sub-score, detection confidence and fused score stays within
its documented range for any feature set the extractor can produce.
"""

from hypothesis import given, strategies as st

from pronunciation_engine.analysis.classifier import PronunciationClassifier
from pronunciation_engine.config.settings import DetectorSettings, FusionSettings
from pronunciation_engine.fusion.fusion_engine import FusionEngine
from pronunciation_engine.models.features import AudioFeatureSet


ratio = st.floats(min_value=0.0, max_value=1.0)


@st.composite
def feature_set_strategy(draw):
    """Generate random AudioFeatureSet instances within the extractor's ranges."""
    return AudioFeatureSet(
        syllable_count=draw(st.integers(min_value=0, max_value=50)),
        average_duration=draw(st.floats(min_value=0.0, max_value=3.0)),
        rhythm_consistency=draw(ratio),
        pitch_variation=draw(ratio),
        energy_variation=draw(ratio),
        formants=tuple(draw(st.lists(st.floats(min_value=500.0, max_value=3500.0), max_size=3))),
        spectral_centroid=draw(st.floats(min_value=0.0, max_value=8000.0)),
        spectral_rolloff=draw(st.floats(min_value=0.0, max_value=8000.0)),
        spectral_bandwidth=draw(st.floats(min_value=0.0, max_value=8000.0)),
        spectral_flatness=draw(ratio),
        spectral_spread=draw(st.floats(min_value=0.0, max_value=4000.0)),
        spectral_skewness=draw(st.floats(min_value=-50.0, max_value=50.0)),
        spectral_kurtosis=draw(st.floats(min_value=-3.0, max_value=500.0)),
        spectral_flux=draw(ratio),
        spectral_contrast=draw(ratio),
        zero_crossing_rate=draw(ratio),
        energy_distribution=(0.1,) * 10,
        jitter=draw(ratio),
        shimmer=draw(ratio),
        hnr=draw(st.floats(min_value=0.0, max_value=80.0)),
        mfcc=(0.0,) * 13,
        frame_count=draw(st.integers(min_value=0, max_value=1000)),
        duration=draw(st.floats(min_value=0.0, max_value=10.0)),
    )


classifier = PronunciationClassifier(DetectorSettings())
fusion = FusionEngine(FusionSettings())


@given(features=feature_set_strategy())
def test_quality_scores_are_bounded(features):
    scores = classifier.quality_scores(features)

    for name, value in scores.to_dict().items():
        assert 0 <= value <= 100, name


@given(features=feature_set_strategy())
def test_detection_and_native_scores_are_bounded(features):
    detection = classifier.detect(features)
    native = classifier.evaluate_native(features, detection)

    assert 0.0 <= detection.confidence <= 1.0
    assert detection.detected == (detection.confidence > DetectorSettings().detection_cutoff)
    assert 0 <= native.bonus_score <= 100
    assert 0 <= native.score <= 100


@given(features=feature_set_strategy(),
       comparator_score=st.integers(min_value=0, max_value=100),
       recognized=st.text(max_size=30),
       reference=st.text(min_size=1, max_size=30))
def test_fused_scores_are_bounded(features, comparator_score, recognized, reference):
    features = classifier.enrich(features)
    detection = classifier.detect(features)
    native = classifier.evaluate_native(features, detection)

    assessment = fusion.fuse(features, detection, native, comparator_score)
    comparison = fusion.fuse_comparison(recognized, reference, features, detection)
    merged = fusion.merge(assessment, comparison)

    for result in (assessment, comparison, merged):
        assert 0 <= result.overall_score <= 100
        assert result.error is None
        assert len(result.improvements) <= 3
