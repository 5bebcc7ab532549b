"""Unit tests for text-based non-native detection and text similarity"""

import pytest

from pronunciation_engine.analysis.similarity import normalize_text, similarity, text_similarity
from pronunciation_engine.analysis.text_patterns import (
    TextPatternDetector,
    extract_basic_phonemes,
    phoneme_accuracy,
    provider_prosody_score
)
from pronunciation_engine.config.settings import DetectorSettings


@pytest.fixture
def detector():
    return TextPatternDetector(DetectorSettings())


class TestSimilarity:
    """Levenshtein-based text similarity"""

    def test_identical(self):
        assert similarity("hello", "hello") == 1.0

    def test_both_empty(self):
        assert similarity("", "") == 1.0

    def test_one_empty(self):
        assert similarity("", "abc") == 0.0

    def test_known_distance(self):
        # kitten -> sitting needs 3 edits over 7 characters
        assert similarity("kitten", "sitting") == pytest.approx(4 / 7)

    def test_normalisation(self):
        assert normalize_text("  Thank   you! ") == "thank you"
        assert text_similarity("Hello.", "hello") == 1.0


class TestPhonemes:
    """Letter-level vowel/consonant approximation"""

    def test_extract(self):
        assert extract_basic_phonemes("Hi!") == ['C', 'V']
        assert extract_basic_phonemes("123") == []

    def test_accuracy(self):
        assert phoneme_accuracy("cat", "cat") == 100.0
        assert phoneme_accuracy("", "cat") == 0.0
        assert phoneme_accuracy("cat", "") == 0.0
        # V C against C V C: no position agrees
        assert phoneme_accuracy("at", "cat") == pytest.approx(0.0)

    def test_partial_accuracy(self):
        # "cot" vs "cat": same C V C shape
        assert phoneme_accuracy("cot", "cat") == 100.0
        # "ca" vs "cat": two of three positions agree
        assert phoneme_accuracy("ca", "cat") == pytest.approx(200 / 3)


class TestTextPatternDetector:
    """Rule accumulation, whitelist dampening and capping"""

    def test_matching_text_is_clean(self, detector):
        detection = detector.detect("Sorry.", "sorry")

        assert not detection.detected
        assert detection.confidence == 0.0
        assert detection.patterns == ()

    def test_romanised_spelling(self, detector):
        detection = detector.detect("sorii", "sorry")

        assert detection.detected
        # 0.8 + 0.4, capped
        assert detection.confidence == 1.0
        assert detection.patterns == ("transliterated spelling", "recognized text mismatch")

    def test_romanised_and_short(self, detector):
        detection = detector.detect("sankyuu", "thank you")

        assert detection.detected
        assert detection.confidence == 1.0
        assert detection.patterns == ("transliterated spelling", "recognized text too short",
                                      "recognized text mismatch", "English phoneme deficit")

    def test_kana_transcript(self, detector):
        detection = detector.detect("サンキュー", "thank you")

        assert detection.detected
        assert detection.confidence == 1.0
        assert "Japanese kana in transcript" in detection.patterns
        assert "missing phonemes" in detection.patterns

    def test_whitelist_dampens_without_transliteration(self, detector):
        prosody = {"NBest": [{"SNR": 20}]}
        detection = detector.detect("hello", "hello", prosody)

        assert detection.detected
        assert detection.patterns == ("low signal-to-noise ratio",)
        # 0.4 - 0.3 is floored at 0.2
        assert detection.confidence == pytest.approx(0.2)

    def test_whitelist_dampens_more_with_transliteration(self, detector):
        detection = detector.detect("sorii hello", "sorry hello")

        assert detection.patterns == ("transliterated spelling", "recognized text mismatch")
        # 0.8 + 0.4 - 0.5
        assert detection.confidence == pytest.approx(0.7)

    def test_text_mismatch(self, detector):
        detection = detector.detect("good mornin", "good morning")

        assert detection.patterns == ("recognized text mismatch",)
        assert detection.confidence == pytest.approx(0.4)

    def test_english_phoneme_deficit(self, detector):
        detection = detector.detect("wad did sei", "what did you say")

        assert "English phoneme deficit" not in detection.patterns
        detection = detector.detect("wato dito yuu sei", "what did you say")

        assert "English phoneme deficit" in detection.patterns
        assert "recognized text mismatch" in detection.patterns

    @pytest.mark.parametrize("recognized", ["wat dit yu sheh", "wat dit yu θei", "wat dit yu chei"])
    def test_english_sounds_clear_the_deficit(self, detector, recognized):
        detection = detector.detect(recognized, "what did you say")
        assert "English phoneme deficit" not in detection.patterns

    def test_deficit_needs_a_cue_word_in_the_reference(self, detector):
        detection = detector.detect("gudo mooningu", "good morning")

        assert "English phoneme deficit" not in detection.patterns
        assert "recognized text mismatch" in detection.patterns

    def test_monotone_prosody(self, detector):
        prosody = {"NBest": [{"Words": [
            {"Feedback": {"Prosody": {"Intonation": {"ErrorTypes": ["Monotone"]}}}}
        ]}]}
        detection = detector.detect("good morning", "good morning", prosody)

        assert detection.patterns == ("monotone intonation",)
        assert detection.confidence == pytest.approx(0.5)

    def test_low_recognition_confidence(self, detector):
        detection = detector.detect("good morning", "good morning", {"NBest": [{"Confidence": 0.5}]})

        assert detection.patterns == ("low recognition confidence",)
        assert detection.confidence == pytest.approx(0.3)

    def test_top_level_prosody_fields(self, detector):
        detection = detector.detect("good morning", "good morning", {"SNR": 10, "Confidence": 0.95})

        assert detection.patterns == ("low signal-to-noise ratio",)

    def test_malformed_prosody_is_ignored(self, detector):
        detection = detector.detect("good morning", "good morning", {"NBest": "oops", "SNR": "loud"})
        assert detection.patterns == ()


def test_provider_prosody_score():
    assert provider_prosody_score(None) == 0.0
    assert provider_prosody_score({}) == 0.0
    assert provider_prosody_score({"NBest": [{"PronunciationAssessment": {"ProsodyScore": 72.5}}]}) == 72.5
    assert provider_prosody_score({"NBest": [{"ProsodyScore": 60}]}) == 60.0
    assert provider_prosody_score({"PronunciationAssessment": {"ProsodyScore": 55}}) == 55.0
