"""Assessment pipeline

This module orchestrates the complete assessment flow, coordinating the
feature extractor, heuristic classifier, text detector, reference comparator,
remote client and fusion engine.

Local analysis is CPU-bound and runs in worker threads concurrently with the
remote call; the engine keeps no state between calls.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from pronunciation_engine.models.frames import AudioClip
from pronunciation_engine.models.features import AudioFeatureSet
from pronunciation_engine.models.results import FusedAssessment
from pronunciation_engine.input.audio_loader import AudioDecodeError, decode_audio
from pronunciation_engine.analysis.acoustic import FeatureExtractor
from pronunciation_engine.analysis.classifier import PronunciationClassifier
from pronunciation_engine.analysis.text_patterns import TextPatternDetector, provider_prosody_score
from pronunciation_engine.analysis.comparator import ReferenceComparator, ReferenceCatalog
from pronunciation_engine.fusion.fusion_engine import FusionEngine
from pronunciation_engine.config.settings import EngineSettings


logger = logging.getLogger(__name__)


def _validate_inputs(audio_bytes: bytes, reference_text: str) -> None:
    if not audio_bytes:
        raise ValueError("Audio data is required")
    if not reference_text or not reference_text.strip():
        raise ValueError("Reference text is required")


class AssessmentEngine:
    """Orchestrator for the pronunciation assessment pipeline.

    Components are injected for testing; by default each is built from the
    configured settings.

    Attributes:
        settings: Settings shared by every component
        extractor: Signal feature extractor
        classifier: Quality scores and acoustic non-native detector
        text_detector: Text-based non-native detector
        comparator: Reference-audio comparator
        fusion: Fusion engine
    """

    def __init__(self, settings: Optional[EngineSettings] = None,
                 extractor: Optional[FeatureExtractor] = None,
                 classifier: Optional[PronunciationClassifier] = None,
                 text_detector: Optional[TextPatternDetector] = None,
                 comparator: Optional[ReferenceComparator] = None,
                 fusion: Optional[FusionEngine] = None):
        logger.info("Initializing AssessmentEngine...")
        self.settings = settings or EngineSettings.from_config()
        self.extractor = extractor or FeatureExtractor(self.settings.features)
        self.classifier = classifier or PronunciationClassifier(self.settings.detector)
        self.text_detector = text_detector or TextPatternDetector(self.settings.detector)
        self.comparator = comparator or ReferenceComparator(
            ReferenceCatalog(settings=self.settings.comparator), self.settings.comparator)
        self.fusion = fusion or FusionEngine(self.settings.fusion)
        logger.info("AssessmentEngine initialized successfully")

    def analyze_audio(self, audio_bytes: bytes) -> Tuple[Optional[AudioClip], AudioFeatureSet]:
        """Decode, extract and score a recording.

        Returns:
            (clip, enriched feature set); (None, empty set) when decoding fails
        """
        try:
            clip = decode_audio(audio_bytes)
        except AudioDecodeError as e:
            logger.warning(f"Audio could not be decoded, continuing without local analysis: {e}")
            return None, self.classifier.enrich(self.extractor.extract(None))

        features = self.classifier.enrich(self.extractor.extract(clip))
        logger.debug(f"Audio analysed: duration={clip.duration:.2f}s, "
                     f"overall quality={features.quality.overall}")
        return clip, features

    def _local_analysis(self, audio_bytes: bytes, reference_text: str):
        """Feature extraction followed by the comparator, run in a worker thread"""
        clip, features = self.analyze_audio(audio_bytes)
        comparator_score = self.comparator.compare(clip, reference_text)
        return clip, features, comparator_score

    def compare(self, audio_bytes: bytes, reference_text: str,
                recognized_text: str = "",
                prosody: Optional[Dict[str, Any]] = None) -> FusedAssessment:
        """Comparison pipeline only; never touches the network.

        Args:
            audio_bytes: Learner's recording
            reference_text: Target phrase
            recognized_text: Text recognised from the recording, if known
            prosody: Provider payload for the recording, if known

        Raises:
            ValueError: If the audio is empty or the reference text is blank
        """
        _validate_inputs(audio_bytes, reference_text)

        _, features = self.analyze_audio(audio_bytes)
        detection = self.text_detector.detect(recognized_text, reference_text, prosody)
        reference_duration = self.comparator.catalog.duration_for(reference_text)

        assessment = self.fusion.fuse_comparison(
            recognized_text, reference_text, features, detection,
            provider_prosody=provider_prosody_score(prosody),
            reference_duration=reference_duration,
        )
        logger.info(f"Comparison complete for '{reference_text}': "
                    f"score={assessment.overall_score}, grade={assessment.grade.value}")
        return assessment

    async def assess(self, audio_bytes: bytes, reference_text: str, client) -> FusedAssessment:
        """Full assessment: local analysis, comparator and remote ladder, fused.

        Args:
            audio_bytes: Learner's recording (WAV)
            reference_text: Target phrase
            client: RemoteAssessmentClient (or anything with the same assess())

        Raises:
            ValueError: If the audio is empty or the reference text is blank
        """
        _validate_inputs(audio_bytes, reference_text)

        local, remote = await asyncio.gather(
            asyncio.to_thread(self._local_analysis, audio_bytes, reference_text),
            client.assess(audio_bytes, reference_text),
        )
        _, features, comparator_score = local

        acoustic_detection = self.classifier.detect(features)
        native = self.classifier.evaluate_native(features, acoustic_detection)

        detection = acoustic_detection
        if remote.has_recognition:
            text_detection = self.text_detector.detect(
                remote.recognized_text, reference_text, remote.prosody_payload)
            detection = acoustic_detection.combine(text_detection)

        assessment = self.fusion.fuse(features, detection, native, comparator_score, remote)

        if remote.has_recognition:
            comparison = self.fusion.fuse_comparison(
                remote.recognized_text, reference_text, features, detection,
                provider_prosody=remote.prosody_score,
                reference_duration=self.comparator.catalog.duration_for(reference_text),
            )
            assessment = self.fusion.merge(assessment, comparison)

        logger.info(f"Assessment complete for '{reference_text}': score={assessment.overall_score}, "
                    f"grade={assessment.grade.value}, remote source={remote.source.value}")
        return assessment
