"""
Integration tests for the end-to-end assessment pipeline.

Runs real feature extraction, reference comparison and fusion on synthetic
recordings; the remote service is replaced by canned results or an httpx
MockTransport.
"""

import asyncio

import httpx
import pytest

from pronunciation_engine.config.settings import RemoteSettings
from pronunciation_engine.fusion.grading import describe
from pronunciation_engine.models.enums import Grade, ResultSource
from pronunciation_engine.models.results import FusedAssessment, RemoteAssessmentResult
from pronunciation_engine.remote.azure_client import RemoteAssessmentClient


class CannedClient:
    """Stand-in for the remote client returning a fixed result."""
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def assess(self, audio, reference_text):
        self.calls.append((len(audio), reference_text))
        await asyncio.sleep(0)
        return self.result


def remote_result(text="thank you", score=85.0, source=ResultSource.ASSESSMENT, error=None):
    return RemoteAssessmentResult(
        recognized_text=text,
        accuracy_score=score,
        fluency_score=score,
        completeness_score=score,
        pronunciation_score=score,
        prosody_score=score,
        grade=Grade.B,
        grade_description=describe(Grade.B),
        source=source,
        error=error,
        prosody_payload={'NBest': [{'Display': text, 'Confidence': 0.95}]},
    )


class TestCompare:
    """Comparison pipeline"""

    def test_matching_transcript(self, assessment_engine, speech_wav):
        result = assessment_engine.compare(speech_wav, "Thank you", recognized_text="thank you")

        assert isinstance(result, FusedAssessment)
        assert result.accuracy_score == 100
        assert result.fluency_score == 100
        assert not result.detection.detected
        comparison = result.diagnostics['comparison']
        # The recording is the reference itself, so its length matches exactly
        assert comparison['timing_score'] == pytest.approx(100.0, abs=1.0)

    def test_transliterated_transcript_is_capped(self, assessment_engine, speech_wav):
        clean = assessment_engine.compare(speech_wav, "thank you", recognized_text="thank you")
        katakana = assessment_engine.compare(speech_wav, "thank you", recognized_text="sankyuu")

        assert katakana.detection.detected
        assert katakana.overall_score < clean.overall_score
        assert katakana.overall_score <= 60
        assert katakana.improvements[0].startswith("Avoid katakana")

    def test_unknown_phrase_uses_default_timing(self, assessment_engine, speech_wav):
        result = assessment_engine.compare(speech_wav, "good night", recognized_text="good night")
        assert 0 <= result.overall_score <= 100

    def test_undecodable_audio_still_scores_text(self, assessment_engine):
        result = assessment_engine.compare(b"not audio at all", "thank you", recognized_text="thank you")

        assert result.accuracy_score == 100
        assert result.diagnostics['comparison']['timing_score'] == 30

    @pytest.mark.parametrize("audio, reference", [(b"", "thank you"), (b"RIFF", ""), (b"RIFF", "   ")])
    def test_invalid_inputs_raise(self, assessment_engine, audio, reference):
        with pytest.raises(ValueError):
            assessment_engine.compare(audio, reference)


class TestAssess:
    """Full assessment pipeline"""

    @pytest.mark.asyncio
    async def test_recognised_remote_result_is_merged(self, assessment_engine, speech_wav):
        client = CannedClient(remote_result())
        result = await assessment_engine.assess(speech_wav, "thank you", client)

        assert client.calls == [(len(speech_wav), "thank you")]
        assert result.recognized_text == "thank you"
        assert result.diagnostics['remote_source'] == "assessment"
        assert result.diagnostics['comparator_score'] == 100
        merged = result.diagnostics['merged_scores']
        assert result.overall_score == min(merged['assessment'], merged['comparison'])

    @pytest.mark.asyncio
    async def test_demo_result_is_local_only(self, assessment_engine, speech_wav):
        demo = remote_result(text="Demo recognition result", score=75.0,
                             source=ResultSource.DEMO, error="HTTP 503: busy")
        result = await assessment_engine.assess(speech_wav, "thank you", CannedClient(demo))

        assert result.recognized_text == ""
        assert result.error == "HTTP 503: busy"
        assert result.diagnostics['remote_score'] == 0.0
        assert 'merged_scores' not in result.diagnostics

    @pytest.mark.asyncio
    async def test_silent_recording(self, assessment_engine, silent_wav):
        no_data = remote_result(text="", score=0.0, source=ResultSource.NO_DATA, error="no data")
        result = await assessment_engine.assess(silent_wav, "thank you", CannedClient(no_data))

        assert result.overall_score == 0
        assert result.grade is Grade.E
        assert result.diagnostics['local_composite'] == 0

    @pytest.mark.asyncio
    async def test_transliterated_recognition_caps_grade(self, assessment_engine, speech_wav):
        client = CannedClient(remote_result(text="sankyuu", score=95.0))
        result = await assessment_engine.assess(speech_wav, "thank you", client)

        assert result.detection.detected
        assert "transliterated spelling" in result.detection.patterns
        assert result.grade.rank >= Grade.C.rank

    @pytest.mark.asyncio
    async def test_with_mock_provider(self, assessment_engine, speech_wav):
        body = {'NBest': [{'Display': 'Thank you.',
                           'PronunciationAssessment': {'AccuracyScore': 90, 'FluencyScore': 90,
                                                       'CompletenessScore': 100, 'PronScore': 92}}]}
        client = RemoteAssessmentClient(
            subscription_key="key",
            region="japaneast",
            settings=RemoteSettings(),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
        )
        result = await assessment_engine.assess(speech_wav, "thank you", client)

        assert result.recognized_text == "Thank you."
        assert result.diagnostics['remote_score'] == 92
        assert result.to_dict()['overall_grade'] in {"A", "B", "C", "D", "E"}

    @pytest.mark.asyncio
    async def test_invalid_inputs_raise(self, assessment_engine):
        with pytest.raises(ValueError):
            await assessment_engine.assess(b"", "thank you", CannedClient(remote_result()))
