"""Decoding of provider pronunciation-assessment payloads

The provider reports scores either inside a nested ``PronunciationAssessment``
object on the best hypothesis or directly on the hypothesis. Decoding is an
explicit tagged union with an ordered fallback:

1. NESTED  - at least one score read from ``NBest[0].PronunciationAssessment``
2. FLAT    - scores read from ``NBest[0]`` itself
3. PHONEME_SYNTHESIS - pronunciation score is zero but per-phoneme detail is
   present; all scores are synthesised from recognised/reference similarity
4. EMPTY   - no hypothesis at all (total recognition failure)

For each score field the nested value wins when non-zero, then the flat one,
then 0.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pronunciation_engine.models.enums import ResponseShape
from pronunciation_engine.models.results import PhonemeDetail, WordDetail
from pronunciation_engine.analysis.similarity import text_similarity


logger = logging.getLogger(__name__)


SCORE_FIELDS = ('AccuracyScore', 'FluencyScore', 'CompletenessScore', 'PronScore', 'ProsodyScore')


class ResponseDecodeError(ValueError):
    """Exception raised when a provider payload does not have the expected structure"""
    pass


@dataclass(frozen=True)
class DecodedAssessment:
    """Scores and details decoded from one provider payload

    Attributes:
        shape: Which branch of the decode union produced the scores
        recognized_text: Best-hypothesis display text
        accuracy_score: Accuracy [0, 100]
        fluency_score: Fluency [0, 100]
        completeness_score: Completeness [0, 100]
        pronunciation_score: Pronunciation [0, 100]
        prosody_score: Prosody [0, 100], 0 when not assessed
        words: Per-word details
        payload: The raw payload, kept for prosody-based detection
    """
    shape: ResponseShape
    recognized_text: str = ""
    accuracy_score: float = 0.0
    fluency_score: float = 0.0
    completeness_score: float = 0.0
    pronunciation_score: float = 0.0
    prosody_score: float = 0.0
    words: List[WordDetail] = field(default_factory=list)
    payload: Optional[Dict[str, Any]] = None


def _number(value: Any) -> float:
    """Provider score as a float clamped to [0, 100]; anything non-numeric is 0"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return max(0.0, min(100.0, float(value)))


def _first_non_zero(nested: Optional[Dict[str, Any]], flat: Dict[str, Any], key: str) -> Tuple[float, bool]:
    """Score for `key`, and whether it came from the nested object"""
    if nested:
        value = _number(nested.get(key))
        if value > 0:
            return value, True
    return _number(flat.get(key)), False


def _accuracy_of(block: Dict[str, Any]) -> float:
    nested = block.get('PronunciationAssessment')
    if isinstance(nested, dict) and _number(nested.get('AccuracyScore')) > 0:
        return _number(nested.get('AccuracyScore'))
    return _number(block.get('AccuracyScore'))


def _decode_words(raw_words: Any) -> List[WordDetail]:
    if not isinstance(raw_words, list):
        return []

    words = []
    for raw in raw_words:
        if not isinstance(raw, dict):
            continue
        nested = raw.get('PronunciationAssessment')
        error_type = (nested or {}).get('ErrorType') if isinstance(nested, dict) else None
        phonemes = [
            PhonemeDetail(phoneme=str(p.get('Phoneme', '')), accuracy_score=_accuracy_of(p))
            for p in raw.get('Phonemes') or []
            if isinstance(p, dict)
        ]
        words.append(WordDetail(
            word=str(raw.get('Word', '')),
            accuracy_score=_accuracy_of(raw),
            error_type=str(error_type or raw.get('ErrorType') or 'None'),
            phonemes=phonemes,
        ))
    return words


def decode_assessment(payload: Any, reference_text: str) -> DecodedAssessment:
    """Decode an assessment response into scores.

    Args:
        payload: Parsed JSON body
        reference_text: Target phrase, used by the phoneme-synthesis branch

    Returns:
        DecodedAssessment tagged with the branch that produced it

    Raises:
        ResponseDecodeError: If the payload is not a JSON object or the
            hypothesis list is malformed
    """
    if not isinstance(payload, dict):
        raise ResponseDecodeError(f"Expected a JSON object, got {type(payload).__name__}")

    nbest = payload.get('NBest')
    if not nbest:
        logger.warning(f"Provider returned no hypotheses "
                       f"(RecognitionStatus={payload.get('RecognitionStatus')})")
        return DecodedAssessment(shape=ResponseShape.EMPTY, payload=payload)
    if not isinstance(nbest, list) or not isinstance(nbest[0], dict):
        raise ResponseDecodeError("NBest must be a list of hypothesis objects")

    hypothesis = nbest[0]
    nested = hypothesis.get('PronunciationAssessment')
    if nested is not None and not isinstance(nested, dict):
        raise ResponseDecodeError("PronunciationAssessment must be an object")

    scores = {}
    from_nested = False
    for key in SCORE_FIELDS:
        scores[key], nested_hit = _first_non_zero(nested, hypothesis, key)
        from_nested = from_nested or nested_hit

    recognized_text = str(hypothesis.get('Display') or payload.get('DisplayText') or '')
    words = _decode_words(hypothesis.get('Words'))

    if scores['PronScore'] == 0 and any(word.phonemes for word in words):
        synthesised = float(round(text_similarity(recognized_text, reference_text) * 100))
        logger.info(f"Scores synthesised from phoneme-level data: {synthesised}")
        return DecodedAssessment(
            shape=ResponseShape.PHONEME_SYNTHESIS,
            recognized_text=recognized_text,
            accuracy_score=synthesised,
            fluency_score=synthesised,
            completeness_score=synthesised,
            pronunciation_score=synthesised,
            prosody_score=scores['ProsodyScore'],
            words=words,
            payload=payload,
        )

    return DecodedAssessment(
        shape=ResponseShape.NESTED if from_nested else ResponseShape.FLAT,
        recognized_text=recognized_text,
        accuracy_score=scores['AccuracyScore'],
        fluency_score=scores['FluencyScore'],
        completeness_score=scores['CompletenessScore'],
        pronunciation_score=scores['PronScore'],
        prosody_score=scores['ProsodyScore'],
        words=words,
        payload=payload,
    )


def decode_transcription(payload: Any) -> str:
    """Recognised text of a transcription-only response, empty when there is none.

    Raises:
        ResponseDecodeError: If the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise ResponseDecodeError(f"Expected a JSON object, got {type(payload).__name__}")

    text = payload.get('DisplayText')
    if not text:
        nbest = payload.get('NBest')
        if isinstance(nbest, list) and nbest and isinstance(nbest[0], dict):
            text = nbest[0].get('Display')
    return str(text or '').strip()
