"""Text-based non-native pattern detection

Used when only the recognised and reference texts are available (optionally
with the provider's prosody payload). Each rule adds a fixed confidence
increment; plausible native spellings shared by both texts dampen the result.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from pronunciation_engine.models.features import NonNativePatternDetection
from pronunciation_engine.analysis.similarity import normalize_text
from pronunciation_engine.config.config_loader import config
from pronunciation_engine.config.settings import DetectorSettings


logger = logging.getLogger(__name__)


# Known mis-romanised spellings of common practice phrases
ROMANIZATION_PATTERNS = tuple(re.compile(pattern) for pattern in (
    r"\bsorii\b", r"\bsori\b", r"\bsoorii\b",
    r"\bharoo\b", r"\bharo\b",
    r"\bsankyuu\b", r"\bsankyu\b", r"\bsanku\b",
    r"\bwatto\b", r"\bwot\b", r"\bdiddo\b",
    r"\byuu\b", r"\bsei\b",
    r"\bpuriizu\b", r"\bekusukyuuzu\b", r"\bwan moa taimu\b",
))

KANA = re.compile("[\u3040-\u30ff]")
VOWELS = re.compile(r"[aeiou]")
CONSONANTS = re.compile(r"[bcdfghjklmnpqrstvwxyz]")
# Spellings or IPA symbols only a native-like English transcript contains
ENGLISH_PHONEMES = re.compile("[\u03b8\u00f0\u0283\u0292\u014b\u00e6\u028c\u0259\u025c\u02d0]|th|sh|ch")


def extract_basic_phonemes(text: str) -> List[str]:
    """Map each Latin letter to 'V' (vowel) or 'C' (consonant); other characters are skipped"""
    phonemes = []
    for char in (text or "").lower():
        if VOWELS.match(char):
            phonemes.append('V')
        elif CONSONANTS.match(char):
            phonemes.append('C')
    return phonemes


def phoneme_accuracy(recognized: str, reference: str) -> float:
    """Positional V/C agreement as a percentage of the reference length"""
    reference_phonemes = extract_basic_phonemes(reference)
    if not reference_phonemes:
        return 0.0
    recognized_phonemes = extract_basic_phonemes(recognized)
    matches = sum(1 for r, u in zip(reference_phonemes, recognized_phonemes) if r == u)
    return matches / len(reference_phonemes) * 100


def _dig(payload: Any, *keys: Any) -> Any:
    """Walk nested dicts/lists, returning None at the first missing step"""
    current = payload
    for key in keys:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
        if current is None:
            return None
    return current


def _prosody_value(payload: Dict[str, Any], key: str) -> Any:
    """Look a field up on the best hypothesis first, then on the payload itself"""
    value = _dig(payload, 'NBest', 0, key)
    return value if value is not None else _dig(payload, key)


def provider_prosody_score(payload: Optional[Dict[str, Any]]) -> float:
    """Provider ProsodyScore from a payload, nested assessment first; 0 when absent"""
    if not isinstance(payload, dict):
        return 0.0
    for value in (_dig(payload, 'NBest', 0, 'PronunciationAssessment', 'ProsodyScore'),
                  _prosody_value(payload, 'ProsodyScore'),
                  _dig(payload, 'PronunciationAssessment', 'ProsodyScore')):
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return float(min(100.0, value))
    return 0.0


class TextPatternDetector:
    """Flags transliterated pronunciation from recognised vs. reference text.

    Attributes:
        settings: Rule weights, ratios and whitelist
    """

    def __init__(self, settings: Optional[DetectorSettings] = None):
        self.settings = settings or DetectorSettings.from_config(config)

    def detect(self, recognized_text: str, reference_text: str,
               prosody: Optional[Dict[str, Any]] = None) -> NonNativePatternDetection:
        """Evaluate every text rule and return the accumulated detection.

        Args:
            recognized_text: Text recognised from the learner's recording
            reference_text: Target phrase
            prosody: Provider payload (full response or best hypothesis), optional

        Returns:
            NonNativePatternDetection; detected when any rule fired
        """
        s = self.settings
        weights = s.text_weights
        recognized = normalize_text(recognized_text)
        reference = normalize_text(reference_text)

        confidence = 0.0
        patterns: List[str] = []
        transliterated = False

        def fire(pattern: str, weight: float):
            nonlocal confidence
            confidence += weight
            if pattern not in patterns:
                patterns.append(pattern)

        if any(p.search(recognized) for p in ROMANIZATION_PATTERNS):
            fire("transliterated spelling", weights['romanization'])
            transliterated = True

        if isinstance(prosody, dict):
            self._prosody_rules(prosody, fire)

        if len(recognized) < len(reference) * s.text_length_ratio:
            fire("recognized text too short", weights['short_text'])

        if len(extract_basic_phonemes(recognized)) < len(extract_basic_phonemes(reference)) * s.text_length_ratio:
            fire("missing phonemes", weights['missing_phonemes'])

        if KANA.search(recognized):
            fire("Japanese kana in transcript", weights['kana'])
            transliterated = True

        if len(VOWELS.findall(recognized)) < len(VOWELS.findall(reference)) * s.text_length_ratio:
            fire("simplified syllable structure", weights['simple_syllables'])

        if recognized != reference:
            fire("recognized text mismatch", weights['text_mismatch'])

        if self._lacks_english_phonemes(recognized, reference):
            fire("English phoneme deficit", weights['phoneme_deficit'])

        if confidence > 0 and any(w in recognized and w in reference for w in s.whitelist):
            reduction = s.transliteration_damping if transliterated else s.whitelist_damping
            confidence = min(confidence, max(s.damping_floor, confidence - reduction))

        confidence = min(1.0, confidence)
        if patterns:
            logger.debug(f"Text patterns fired: {patterns} (confidence={confidence:.2f})")
        return NonNativePatternDetection(detected=bool(patterns), confidence=confidence,
                                         patterns=tuple(patterns))

    def _lacks_english_phonemes(self, recognized: str, reference: str) -> bool:
        """Reference uses a cue word but the transcript shows no English-only sound"""
        if not any(cue in reference for cue in self.settings.deficit_cues):
            return False
        if ENGLISH_PHONEMES.search(recognized):
            return False
        return not any(word in recognized for word in self.settings.whitelist)

    def _prosody_rules(self, prosody: Dict[str, Any], fire) -> None:
        s = self.settings
        weights = s.text_weights

        words = _prosody_value(prosody, 'Words')
        error_types = _dig(words, 0, 'Feedback', 'Prosody', 'Intonation', 'ErrorTypes')
        if isinstance(error_types, list) and 'Monotone' in error_types:
            fire("monotone intonation", weights['monotone'])

        snr = _prosody_value(prosody, 'SNR')
        if isinstance(snr, (int, float)) and 0 < snr < s.snr_threshold:
            fire("low signal-to-noise ratio", weights['low_snr'])

        recognition_confidence = _prosody_value(prosody, 'Confidence')
        if isinstance(recognition_confidence, (int, float)) and \
                0 < recognition_confidence < s.confidence_threshold:
            fire("low recognition confidence", weights['low_confidence'])
