"""Grade scales and rule-based feedback generation"""

from collections import namedtuple
from typing import Dict, Iterable, List, Optional, Tuple

from pronunciation_engine.models.enums import Grade
from pronunciation_engine.models.features import NonNativePatternDetection


MAX_IMPROVEMENTS = 3

# One rule per dimension: improvement below `improve_below`, praise at `praise_at`
FeedbackRule = namedtuple(
    'FeedbackRule', ['dimension', 'improve_below', 'improvement', 'praise_at', 'positive']
)

# dimension -> (improvement, positive); the thresholds come from the settings
REMOTE_FEEDBACK = {
    'accuracy': ("Pronounce consonants and vowels more precisely", "Accurate pronunciation"),
    'fluency': ("Speak with a more natural flow", "Fluent delivery"),
    'completeness': ("Pronounce every word clearly", "Every word was pronounced"),
}

COMPARISON_FEEDBACK = {
    'overall': (None, "Very close to the model pronunciation"),
    'text': ("Say the words of the model phrase exactly", "Words were recognised accurately"),
    'phoneme': ("Pronounce each sound precisely", "Individual sounds are accurate"),
    'prosody': ("Use more natural intonation", "Natural intonation"),
    'stress': ("Pay attention to where the stress falls", None),
    'timing': ("Keep the rhythm and timing natural", "Natural rhythm"),
}

ASSESSMENT_FEEDBACK = {
    'accuracy': ("Pronounce consonants and vowels more precisely", "Accurate pronunciation"),
    'fluency': ("Speak with a more natural flow", "Fluent delivery"),
    'intonation': ("Let your pitch rise and fall more naturally", "Natural intonation"),
    'rhythm': ("Keep syllable timing even and relaxed", "Steady rhythm"),
}

REMEDIATION = (
    "Avoid katakana-style pronunciation and practise the native sounds",
    "Articulate English phonemes precisely",
    "Make rhythm and intonation more natural",
)

GRADE_DESCRIPTIONS = {
    Grade.A: "Excellent - native-like pronunciation",
    Grade.B: "Good - very easy to understand",
    Grade.C: "Fair - understandable pronunciation",
    Grade.D: "Needs work - keep practising",
    Grade.E: "Needs intensive practice",
    Grade.F: "Not recognised - please try again",
}

COMPARISON_DESCRIPTIONS = {
    Grade.A: "Excellent - close to the model recording (pass)",
    Grade.B: "Good - close to the model recording (pass)",
    Grade.C: "Fair - noticeable differences from the model",
    Grade.D: "Needs work - large differences from the model",
    Grade.E: "Needs intensive practice - very different from the model",
    Grade.F: "Not recognised - please try again",
}

GRADE_PRAISE = {
    Grade.A: "Excellent pronunciation!",
    Grade.B: "Good pronunciation, keep practising",
}


class GradeScale:
    """Maps a numeric score to a letter grade using minimum scores per grade

    Attributes:
        thresholds: Minimum score for A-D, in descending order; below D is E
    """

    def __init__(self, thresholds: Dict[str, float]):
        self.thresholds: List[Tuple[Grade, float]] = sorted(
            ((Grade(letter), float(minimum)) for letter, minimum in thresholds.items()),
            key=lambda item: item[1],
            reverse=True,
        )

    def grade_for(self, score: float) -> Grade:
        for grade, minimum in self.thresholds:
            if score >= minimum:
                return grade
        return Grade.E


def build_rules(texts: Dict[str, Tuple[Optional[str], Optional[str]]],
                thresholds: Dict[str, Tuple[Optional[float], Optional[float]]]) -> Tuple[FeedbackRule, ...]:
    """Pair each dimension's strings with its configured thresholds.

    Dimensions without thresholds get no rule; a missing string or threshold
    disables that half of the rule.
    """
    rules = []
    for dimension, (improvement, positive) in texts.items():
        if dimension not in thresholds:
            continue
        improve_below, praise_at = thresholds[dimension]
        rules.append(FeedbackRule(
            dimension,
            improve_below if improvement else None, improvement,
            praise_at if positive else None, positive,
        ))
    return tuple(rules)


def describe(grade: Grade, comparison: bool = False) -> str:
    return (COMPARISON_DESCRIPTIONS if comparison else GRADE_DESCRIPTIONS)[grade]


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def generate_feedback(scores: Dict[str, float],
                      rules: Iterable[FeedbackRule],
                      detection: Optional[NonNativePatternDetection] = None,
                      grade: Optional[Grade] = None,
                      extra_improvements: Iterable[str] = ()) -> Tuple[List[str], List[str]]:
    """Apply feedback rules to a set of dimension scores.

    Remediation strings for a detected non-native pattern come first; the
    improvement list is de-duplicated and capped at MAX_IMPROVEMENTS.

    Args:
        scores: Dimension name to score in [0, 100]
        rules: Rules to evaluate, in order
        detection: Non-native pattern detection, optional
        grade: Final grade, adds praise for A and B
        extra_improvements: Component-specific strings appended after the rules

    Returns:
        (improvements, positives)
    """
    improvements: List[str] = []
    positives: List[str] = []

    if detection is not None and detection.detected:
        improvements.extend(REMEDIATION)

    for rule in rules:
        value = scores.get(rule.dimension)
        if value is None:
            continue
        if rule.improve_below is not None and value < rule.improve_below:
            improvements.append(rule.improvement)
        if rule.praise_at is not None and value >= rule.praise_at:
            positives.append(rule.positive)

    improvements.extend(extra_improvements)

    if grade in GRADE_PRAISE:
        positives.append(GRADE_PRAISE[grade])

    return _dedupe(improvements)[:MAX_IMPROVEMENTS], _dedupe(positives)


def summary_line(score: float, grade: Grade, improvements: List[str]) -> str:
    """One-line feedback sentence for the response"""
    if grade is Grade.F:
        return "Speech could not be recognised. Please record again."
    advice = improvements[0] if improvements else "Keep up the great work!"
    return f"Pronunciation score {score:.0f}/100 ({grade.value}). {advice}"
