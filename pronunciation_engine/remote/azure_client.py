"""Remote Assessment Client

Calls the cloud speech service's pronunciation-assessment endpoint through a
fixed ladder of attempts:

    PRIMARY    comprehensive assessment (phoneme granularity, prosody)
    SECONDARY  reduced assessment configuration
    TRANSCRIBE plain transcription, scored locally by text similarity
    DEMO       labelled placeholder result carrying the last error

Attempts run strictly one after another, each with its own timeout. Any
failure (transport, HTTP status, undecodable body, empty transcription) moves
the ladder to the next stage; the DEMO stage never raises.
"""

import base64
import json
import logging
import os
from typing import Any, Dict, Optional

import httpx

from pronunciation_engine.models.enums import (
    AttemptStage,
    FailureKind,
    Grade,
    ResponseShape,
    ResultSource
)
from pronunciation_engine.models.results import RemoteAssessmentResult
from pronunciation_engine.remote.response_decoder import (
    DecodedAssessment,
    ResponseDecodeError,
    decode_assessment,
    decode_transcription
)
from pronunciation_engine.analysis.similarity import text_similarity
from pronunciation_engine.fusion.grading import (
    REMOTE_FEEDBACK,
    GradeScale,
    build_rules,
    describe,
    generate_feedback,
    summary_line
)
from pronunciation_engine.config.config_loader import config
from pronunciation_engine.config.settings import FusionSettings, RemoteSettings


logger = logging.getLogger(__name__)


NO_DATA_MESSAGE = "No pronunciation assessment data received"

_NEXT_STAGE = {
    AttemptStage.PRIMARY: AttemptStage.SECONDARY,
    AttemptStage.SECONDARY: AttemptStage.TRANSCRIBE,
    AttemptStage.TRANSCRIBE: AttemptStage.DEMO,
    AttemptStage.DEMO: AttemptStage.DEMO,
}


class ConfigurationError(Exception):
    """Exception raised when provider credentials or region are not configured"""
    pass


class RemoteAssessmentError(Exception):
    """Exception raised when a single ladder attempt fails"""

    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind


def next_stage(stage: AttemptStage, failure: FailureKind) -> AttemptStage:
    """Ladder transition for a failed attempt.

    Every failure class advances exactly one stage; DEMO is terminal.
    """
    following = _NEXT_STAGE[stage]
    logger.warning(f"Attempt {stage.value} failed ({failure.value}), moving to {following.value}")
    return following


class RemoteAssessmentClient:
    """Pronunciation assessment against the cloud speech endpoint.

    Attributes:
        region: Provider region used to build the endpoint URL
        settings: Endpoint template, language and per-attempt timeout
        grade_scale: Scale used to grade provider scores
        feedback_rules: Remote accuracy, fluency and completeness rules
    """

    def __init__(self, subscription_key: Optional[str], region: Optional[str],
                 settings: Optional[RemoteSettings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 grade_scale: Optional[GradeScale] = None):
        """Initialize the client.

        Args:
            subscription_key: Provider subscription key
            region: Provider region (e.g., "japaneast")
            settings: Remote settings, defaults to the configured ones
            transport: httpx transport override, used by tests
            grade_scale: Grade scale, defaults to the configured standard scale

        Raises:
            ConfigurationError: If the key or region is missing
        """
        if not subscription_key:
            raise ConfigurationError(
                "Speech service configuration error: AZURE_SPEECH_KEY is not set")
        if not region:
            raise ConfigurationError(
                "Speech service configuration error: AZURE_SPEECH_REGION is not set")

        self._subscription_key = subscription_key
        self.region = region
        self.settings = settings or RemoteSettings.from_config(config)
        self.grade_scale = grade_scale or GradeScale(FusionSettings.from_config(config).standard_scale)
        self.feedback_rules = build_rules(REMOTE_FEEDBACK, self.settings.feedback)
        self._transport = transport
        self._timeout = httpx.Timeout(self.settings.attempt_timeout)

        logger.info(f"RemoteAssessmentClient initialized for region={self.region}, "
                    f"timeout={self.settings.attempt_timeout}s")

    @classmethod
    def from_env(cls, settings: Optional[RemoteSettings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> "RemoteAssessmentClient":
        """Build a client from AZURE_SPEECH_KEY and AZURE_SPEECH_REGION.

        Raises:
            ConfigurationError: If either variable is unset or empty
        """
        return cls(
            subscription_key=os.getenv('AZURE_SPEECH_KEY', ''),
            region=os.getenv('AZURE_SPEECH_REGION', ''),
            settings=settings,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return self.settings.endpoint.format(region=self.region)

    async def assess(self, audio: bytes, reference_text: str) -> RemoteAssessmentResult:
        """Run the fallback ladder until one stage produces a result.

        Never raises for provider or network problems; total failure returns
        the demo result with ``error`` populated. Cancellation of the calling
        task propagates.

        Args:
            audio: WAV bytes (mono PCM, 16 kHz expected by the provider)
            reference_text: Target phrase

        Returns:
            RemoteAssessmentResult from the first successful stage
        """
        stage = AttemptStage.PRIMARY
        last_error: Optional[Exception] = None

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as http:
                while stage is not AttemptStage.DEMO:
                    try:
                        result = await self._attempt(http, stage, audio, reference_text)
                        logger.info(f"Remote assessment succeeded at stage {stage.value} "
                                    f"(score={result.pronunciation_score})")
                        return result
                    except RemoteAssessmentError as failure:
                        logger.warning(f"Remote attempt {stage.value} failed: {failure}")
                        last_error = failure
                        stage = next_stage(stage, failure.kind)
        except Exception as e:
            logger.error(f"Unexpected error in remote assessment: {e}", exc_info=True)
            last_error = e

        return self._demo_result(last_error)

    async def _attempt(self, http: httpx.AsyncClient, stage: AttemptStage,
                       audio: bytes, reference_text: str) -> RemoteAssessmentResult:
        """Run one ladder stage.

        Raises:
            RemoteAssessmentError: If the stage did not produce a usable result
        """
        if stage is AttemptStage.TRANSCRIBE:
            payload = await self._post(http, self._params(stage), self._headers(None), audio)
            try:
                text = decode_transcription(payload)
            except ResponseDecodeError as e:
                raise RemoteAssessmentError(FailureKind.DECODE, str(e))
            if not text:
                raise RemoteAssessmentError(FailureKind.NO_TEXT, "Transcription returned no text")
            return self._result_from_transcription(text, reference_text)

        assessment = self._assessment_config(reference_text, reduced=stage is AttemptStage.SECONDARY)
        payload = await self._post(http, self._params(stage), self._headers(assessment), audio)
        try:
            decoded = decode_assessment(payload, reference_text)
        except ResponseDecodeError as e:
            raise RemoteAssessmentError(FailureKind.DECODE, str(e))
        return self._result_from_decoded(decoded)

    async def _post(self, http: httpx.AsyncClient, params: Dict[str, str],
                    headers: Dict[str, str], audio: bytes) -> Any:
        """POST the audio and return the parsed JSON body.

        Raises:
            RemoteAssessmentError: On transport errors, timeouts, non-2xx
                responses and non-JSON bodies
        """
        try:
            response = await http.post(self.endpoint, params=params, headers=headers, content=audio)
        except httpx.TimeoutException as e:
            raise RemoteAssessmentError(FailureKind.TRANSPORT, f"Request timed out: {e}")
        except httpx.HTTPError as e:
            raise RemoteAssessmentError(FailureKind.TRANSPORT, f"Request failed: {e}")

        if not response.is_success:
            raise RemoteAssessmentError(
                FailureKind.HTTP_STATUS,
                f"HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteAssessmentError(FailureKind.DECODE, f"Response is not JSON: {e}")

    def _params(self, stage: AttemptStage) -> Dict[str, str]:
        params = {'language': self.settings.language, 'format': 'detailed'}
        if stage is AttemptStage.PRIMARY:
            params['profanity'] = 'raw'
        return params

    def _headers(self, assessment: Optional[Dict[str, Any]]) -> Dict[str, str]:
        headers = {
            'Ocp-Apim-Subscription-Key': self._subscription_key,
            'Content-Type': 'audio/wav',
            'Accept': 'application/json',
        }
        if assessment is not None:
            encoded = base64.b64encode(json.dumps(assessment).encode('utf-8')).decode('ascii')
            headers['Pronunciation-Assessment'] = encoded
        return headers

    def _assessment_config(self, reference_text: str, reduced: bool = False) -> Dict[str, Any]:
        """Assessment configuration sent base64-encoded in the request header"""
        if reduced:
            return {
                'ReferenceText': reference_text,
                'GradingSystem': 'HundredMark',
                'Granularity': 'Word',
                'Dimension': 'Comprehensive',
                'EnableMiscue': False,
            }
        return {
            'ReferenceText': reference_text,
            'GradingSystem': 'HundredMark',
            'Granularity': 'Phoneme',
            'Dimension': 'Comprehensive',
            'EnableMiscue': False,
            'EnableProsodyAssessment': True,
            'NBestPhonemeCount': self.settings.n_best_phoneme_count,
        }

    def _result_from_decoded(self, decoded: DecodedAssessment) -> RemoteAssessmentResult:
        if decoded.shape is ResponseShape.EMPTY:
            return RemoteAssessmentResult(
                recognized_text="",
                accuracy_score=0.0,
                fluency_score=0.0,
                completeness_score=0.0,
                pronunciation_score=0.0,
                grade=Grade.F,
                grade_description=describe(Grade.F),
                source=ResultSource.NO_DATA,
                improvements=["Speak clearly into the microphone and try again"],
                feedback=summary_line(0.0, Grade.F, []),
                error=NO_DATA_MESSAGE,
                prosody_payload=decoded.payload,
            )

        grade = self.grade_scale.grade_for(decoded.pronunciation_score)
        improvements, positives = generate_feedback(
            {
                'accuracy': decoded.accuracy_score,
                'fluency': decoded.fluency_score,
                'completeness': decoded.completeness_score,
            },
            self.feedback_rules,
        )
        source = (ResultSource.PHONEME_SYNTHESIS
                  if decoded.shape is ResponseShape.PHONEME_SYNTHESIS
                  else ResultSource.ASSESSMENT)
        return RemoteAssessmentResult(
            recognized_text=decoded.recognized_text,
            accuracy_score=decoded.accuracy_score,
            fluency_score=decoded.fluency_score,
            completeness_score=decoded.completeness_score,
            pronunciation_score=decoded.pronunciation_score,
            prosody_score=decoded.prosody_score,
            grade=grade,
            grade_description=describe(grade),
            source=source,
            words=decoded.words,
            improvements=improvements,
            positives=positives,
            feedback=summary_line(decoded.pronunciation_score, grade, improvements),
            prosody_payload=decoded.payload,
        )

    def _result_from_transcription(self, text: str, reference_text: str) -> RemoteAssessmentResult:
        score = float(round(text_similarity(text, reference_text) * 100))
        grade = self.grade_scale.grade_for(score)
        logger.info(f"Transcription fallback: '{text}' scored {score}")
        passed = score >= self.settings.transcription_pass_score
        improvements = [] if passed else ["Improve pronunciation accuracy"]
        positives = ["Your pronunciation was recognisable"] if passed else []
        return RemoteAssessmentResult(
            recognized_text=text,
            accuracy_score=score,
            fluency_score=score,
            completeness_score=score,
            pronunciation_score=score,
            grade=grade,
            grade_description=describe(grade),
            source=ResultSource.TRANSCRIPTION,
            improvements=improvements,
            positives=positives,
            feedback=f'Recognised "{text}". Approximate score {score:.0f}/100',
        )

    def _demo_result(self, error: Optional[Exception]) -> RemoteAssessmentResult:
        message = str(error) if error is not None else "All speech service attempts failed"
        logger.warning(f"Returning demo assessment result: {message}")
        return RemoteAssessmentResult(
            recognized_text="Demo recognition result",
            grade=Grade.C,
            grade_description=describe(Grade.C),
            source=ResultSource.DEMO,
            improvements=["Improve pronunciation accuracy"],
            positives=["Easy to understand"],
            feedback="Demo assessment: the speech service could not be reached. Keep practising!",
            error=message or "All speech service attempts failed",
            **self.settings.demo_scores
        )
