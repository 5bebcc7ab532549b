"""Unit tests for the reference-audio comparator"""

import numpy as np
import pytest
import soundfile as sf

from pronunciation_engine.analysis.comparator import (
    ComparisonError,
    ReferenceCatalog,
    ReferenceComparator,
    phrase_key,
    sequence_similarity
)
from pronunciation_engine.config.settings import ComparatorSettings
from pronunciation_engine.input.audio_loader import load_audio_file
from pronunciation_engine.models.frames import AudioClip


@pytest.fixture
def comparator(reference_dir):
    settings = ComparatorSettings()
    return ReferenceComparator(ReferenceCatalog(str(reference_dir), settings), settings)


def rising_tone(sample_rate=16000, seconds=1.0):
    """Tone whose amplitude ramps up steadily from 0.05 to 1"""
    t = np.arange(int(sample_rate * seconds)) / sample_rate
    return (np.linspace(0.05, 1.0, len(t)) * np.sin(2 * np.pi * 220 * t)).astype(np.float32)


def test_phrase_key():
    assert phrase_key("Thank you!") == "thankyou"
    assert phrase_key("  How are you? ") == "howareyou"
    assert phrase_key("") == ""
    assert phrase_key(None) == ""


def test_identical_recording_scores_full(comparator, reference_dir):
    clip = load_audio_file(reference_dir / "thankyou.wav")
    assert comparator.compare(clip, "Thank you") == 100


def test_time_reversed_recording_scores_zero(tmp_path):
    directory = tmp_path / "ramp"
    directory.mkdir()
    sf.write(str(directory / "rising.wav"), rising_tone(), 16000)
    settings = ComparatorSettings()
    comparator = ReferenceComparator(ReferenceCatalog(str(directory), settings), settings)

    forward = load_audio_file(directory / "rising.wav")
    backward = AudioClip(samples=forward.samples[::-1].copy(), sample_rate=forward.sample_rate)

    assert comparator.compare(forward, "rising") == 100
    assert comparator.compare(backward, "rising") == 0


def test_reversed_speech_scores_zero(comparator, speech_clip, speech_samples):
    # Syllable envelopes are nearly symmetric, so only the order of frames differs
    backward = AudioClip(samples=speech_samples[::-1].copy(), sample_rate=16000)

    assert comparator.compare(speech_clip, "thank you") >= 90
    assert comparator.compare(backward, "thank you") == 0


def test_sample_rate_mismatch_scores_zero(comparator, make_speech):
    clip = AudioClip(samples=make_speech(sample_rate=22050), sample_rate=22050)
    assert comparator.compare(clip, "thank you") == 0


def test_missing_reference_scores_zero(comparator, speech_clip):
    assert comparator.compare(speech_clip, "good night") == 0


def test_no_clip_scores_zero(comparator):
    assert comparator.compare(None, "thank you") == 0


def test_silent_clip_scores_zero(comparator):
    clip = AudioClip(samples=np.zeros(16000, dtype=np.float32), sample_rate=16000)
    assert comparator.compare(clip, "thank you") == 0


def test_different_recording_scores_lower(comparator, make_speech):
    clip = AudioClip(samples=make_speech(f0=260.0, syllables=5, seed=3), sample_rate=16000)
    score = comparator.compare(clip, "thank you")

    assert 0 <= score < 100


class TestSequenceSimilarity:
    """DTW similarity of coefficient sequences"""

    def test_identical_sequences(self):
        sequence = np.random.default_rng(0).standard_normal((12, 20))
        assert sequence_similarity(sequence, sequence) == pytest.approx(1.0)

    def test_too_few_frames_raises(self):
        with pytest.raises(ComparisonError):
            sequence_similarity(np.zeros((12, 1)), np.zeros((12, 10)))

    def test_coefficient_mismatch_raises(self):
        with pytest.raises(ComparisonError):
            sequence_similarity(np.zeros((12, 5)), np.zeros((13, 5)))

    def test_distance_lowers_similarity(self):
        base = np.zeros((12, 10))
        assert sequence_similarity(base, base + 10.0) < sequence_similarity(base, base + 1.0) < 1.0


class TestReferenceCatalog:
    """Lazy loading and caching of reference entries"""

    def test_entries_are_cached(self, reference_dir):
        catalog = ReferenceCatalog(str(reference_dir), ComparatorSettings())

        first = catalog.load("Thank you")
        second = catalog.load("thank you!")

        assert first is second
        assert first.phrase_id == "thankyou"
        assert first.sample_rate == 16000
        assert first.coefficients.shape[0] == 13

    def test_duration_of_trimmed_reference(self, reference_dir, speech_samples):
        catalog = ReferenceCatalog(str(reference_dir), ComparatorSettings())
        duration = catalog.duration_for("thank you")

        assert 0.0 < duration <= len(speech_samples) / 16000

    def test_missing_reference(self, reference_dir):
        catalog = ReferenceCatalog(str(reference_dir), ComparatorSettings())

        assert catalog.duration_for("good night") is None
        with pytest.raises(ComparisonError):
            catalog.load("good night")

    def test_empty_phrase_is_missing(self, reference_dir):
        catalog = ReferenceCatalog(str(reference_dir), ComparatorSettings())
        with pytest.raises(ComparisonError):
            catalog.load("!!!")

    def test_silent_reference_raises(self, tmp_path):
        sf.write(str(tmp_path / "quiet.wav"), np.zeros(8000, dtype=np.float32), 16000)
        catalog = ReferenceCatalog(str(tmp_path), ComparatorSettings())

        with pytest.raises(ComparisonError):
            catalog.load("quiet")
