"""Enumerations for grades, fallback-ladder stages and result provenance"""

from enum import Enum


class Grade(Enum):
    """Letter grades; F only marks a total recognition failure from the provider"""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"

    @property
    def rank(self) -> int:
        """Position on the scale, 0 is best"""
        return list(Grade).index(self)

    def capped_at(self, ceiling: "Grade") -> "Grade":
        """Return this grade, or the ceiling if this grade is better than it"""
        return ceiling if self.rank < ceiling.rank else self


class AttemptStage(Enum):
    """States of the remote assessment fallback ladder"""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TRANSCRIBE = "transcribe"
    DEMO = "demo"


class FailureKind(Enum):
    """Failure classes that move the ladder to its next stage"""
    TRANSPORT = "transport"      # connection errors and timeouts
    HTTP_STATUS = "http_status"  # non-2xx response
    DECODE = "decode"            # body is not the JSON we expect
    NO_TEXT = "no_text"          # transcription returned no text


class ResponseShape(Enum):
    """Which part of the provider payload the scores were read from"""
    NESTED = "nested"
    FLAT = "flat"
    PHONEME_SYNTHESIS = "phoneme_synthesis"
    EMPTY = "empty"


class ResultSource(Enum):
    """How a remote assessment result was produced"""
    ASSESSMENT = "assessment"
    PHONEME_SYNTHESIS = "phoneme_synthesis"
    TRANSCRIPTION = "transcription"
    NO_DATA = "no_data"
    DEMO = "demo"
