"""Property-based tests for the remote fallback ladder

For any combination of per-stage outcomes the client never raises, stops at
the first stage that succeeds and otherwise ends at the demo result.
"""

import asyncio

import httpx
from hypothesis import given, settings, strategies as st

from pronunciation_engine.config.settings import FusionSettings, RemoteSettings
from pronunciation_engine.fusion.grading import GradeScale
from pronunciation_engine.models.enums import ResultSource
from pronunciation_engine.remote.azure_client import RemoteAssessmentClient


STAGES = ("primary", "secondary", "transcribe")

ASSESSMENT_BODY = {
    'NBest': [{'Display': 'hello',
               'PronunciationAssessment': {'AccuracyScore': 80, 'FluencyScore': 80,
                                           'CompletenessScore': 100, 'PronScore': 82}}],
}

outcome = st.sampled_from(["ok", "http_error", "timeout", "connect_error", "not_json", "empty"])


def stage_of(request):
    if 'Pronunciation-Assessment' not in request.headers:
        return "transcribe"
    return "primary" if request.url.params.get('profanity') == 'raw' else "secondary"


def respond(kind, stage):
    if kind == "ok":
        return httpx.Response(200, json={'DisplayText': 'hello'} if stage == "transcribe" else ASSESSMENT_BODY)
    if kind == "http_error":
        return httpx.Response(503, text="busy")
    if kind == "timeout":
        raise httpx.ConnectTimeout("timed out")
    if kind == "connect_error":
        raise httpx.ConnectError("refused")
    if kind == "not_json":
        return httpx.Response(200, text="<html/>")
    # well-formed body without any recognition result
    return httpx.Response(200, json={'RecognitionStatus': 'NoMatch'})


def expected_outcome(outcomes):
    """(requests made, source) implied by the per-stage outcomes"""
    for index, (stage, kind) in enumerate(zip(STAGES, outcomes)):
        if kind == "ok":
            source = ResultSource.TRANSCRIPTION if stage == "transcribe" else ResultSource.ASSESSMENT
            return index + 1, source
        if kind == "empty" and stage != "transcribe":
            return index + 1, ResultSource.NO_DATA
    return len(STAGES), ResultSource.DEMO


@settings(max_examples=50, deadline=None)
@given(outcomes=st.tuples(outcome, outcome, outcome))
def test_ladder_stops_at_first_success(outcomes):
    plan = dict(zip(STAGES, outcomes))
    seen = []

    def handler(request):
        stage = stage_of(request)
        seen.append(stage)
        return respond(plan[stage], stage)

    client = RemoteAssessmentClient(
        subscription_key="key",
        region="westus",
        settings=RemoteSettings(),
        transport=httpx.MockTransport(handler),
        grade_scale=GradeScale(FusionSettings().standard_scale),
    )
    result = asyncio.run(client.assess(b"audio", "hello"))

    requests, source = expected_outcome(outcomes)
    assert seen == list(STAGES[:requests])
    assert result.source is source
    assert (result.error is not None) == (source in (ResultSource.DEMO, ResultSource.NO_DATA))
    assert 0 <= result.pronunciation_score <= 100
