"""Typed settings injected into the detection, comparison and fusion components.

Every threshold, weight and penalty magnitude used by the engine is read once
from the YAML configuration into these dataclasses. Components accept a
settings object in their constructor so tests can tune behaviour without
touching the global config file.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pronunciation_engine.config.config_loader import Config, config as default_config


Thresholds = Tuple[Optional[float], Optional[float]]


def _thresholds(values: Dict[str, Any]) -> Dict[str, Thresholds]:
    """YAML lists of [improve below, praise at] as tuples"""
    return {dimension: tuple(pair) for dimension, pair in values.items()}


@dataclass(frozen=True)
class FeatureSettings:
    """Framing and estimator constants for the signal feature extractor"""
    trim_threshold: float = 0.02
    frame_ms: float = 25.0
    hop_ms: float = 10.0
    syllable_energy_threshold: float = 0.01
    pitch_min_hz: float = 80.0
    pitch_max_hz: float = 400.0
    voicing_threshold: float = 0.3
    formant_min_hz: float = 500.0
    formant_max_hz: float = 3500.0
    formant_magnitude: float = 0.1
    max_formants: int = 3
    n_mfcc: int = 13
    energy_bins: int = 10
    rolloff_percent: float = 0.85

    @classmethod
    def from_config(cls, cfg: Config) -> "FeatureSettings":
        return cls(
            trim_threshold=cfg.get('audio.trim_threshold', 0.02),
            frame_ms=cfg.get('features.frame_ms', 25.0),
            hop_ms=cfg.get('features.hop_ms', 10.0),
            syllable_energy_threshold=cfg.get('features.syllable_energy_threshold', 0.01),
            pitch_min_hz=cfg.get('features.pitch_min_hz', 80.0),
            pitch_max_hz=cfg.get('features.pitch_max_hz', 400.0),
            voicing_threshold=cfg.get('features.voicing_threshold', 0.3),
            formant_min_hz=cfg.get('features.formant_min_hz', 500.0),
            formant_max_hz=cfg.get('features.formant_max_hz', 3500.0),
            formant_magnitude=cfg.get('features.formant_magnitude', 0.1),
            max_formants=cfg.get('features.max_formants', 3),
            n_mfcc=cfg.get('features.n_mfcc', 13),
            energy_bins=cfg.get('features.energy_bins', 10),
            rolloff_percent=cfg.get('features.rolloff_percent', 0.85),
        )


@dataclass(frozen=True)
class DetectorSettings:
    """Rule thresholds and weights for the acoustic and text non-native detectors"""
    long_duration: float = 0.4
    short_duration: float = 0.12
    low_rhythm: float = 0.5
    high_rhythm: float = 0.7
    low_pitch_variation: float = 0.05
    high_pitch_variation: float = 0.2
    low_centroid: float = 800.0
    high_centroid: float = 1500.0
    low_zcr: float = 0.05
    high_zcr: float = 0.2
    acoustic_weights: Dict[str, float] = field(default_factory=lambda: {
        'duration': 0.30, 'rhythm': 0.25, 'pitch': 0.20, 'timbre': 0.15, 'complexity': 0.10,
    })
    native_bonus: Dict[str, float] = field(default_factory=lambda: {
        'duration': 20, 'rhythm': 25, 'pitch': 20, 'timbre': 15, 'complexity': 10,
    })
    detection_cutoff: float = 0.6
    natural_rhythm: float = 0.7
    natural_transitions: float = 0.6
    quality_weights: Dict[str, float] = field(default_factory=lambda: {
        'pronunciation_quality': 0.15, 'naturalness': 0.15, 'fluency': 0.15, 'clarity': 0.15,
        'stress_pattern': 0.10, 'intonation': 0.10, 'rhythm': 0.10, 'articulation': 0.05,
        'prosody': 0.05,
    })

    text_length_ratio: float = 0.8
    text_weights: Dict[str, float] = field(default_factory=lambda: {
        'romanization': 0.8, 'monotone': 0.5, 'low_snr': 0.4, 'low_confidence': 0.3,
        'short_text': 0.4, 'missing_phonemes': 0.5, 'kana': 0.9, 'simple_syllables': 0.4,
        'text_mismatch': 0.4, 'phoneme_deficit': 0.5,
    })
    snr_threshold: float = 30.0
    confidence_threshold: float = 0.8
    whitelist: Tuple[str, ...] = ('sorry', 'hello', 'thank', 'you', 'how', 'are', 'what', 'did', 'say')
    deficit_cues: Tuple[str, ...] = ('what', 'did', 'you', 'say')
    transliteration_damping: float = 0.5
    whitelist_damping: float = 0.3
    damping_floor: float = 0.2

    @classmethod
    def from_config(cls, cfg: Config) -> "DetectorSettings":
        defaults = cls()
        return cls(
            long_duration=cfg.get('detector.acoustic.long_duration', defaults.long_duration),
            short_duration=cfg.get('detector.acoustic.short_duration', defaults.short_duration),
            low_rhythm=cfg.get('detector.acoustic.low_rhythm', defaults.low_rhythm),
            high_rhythm=cfg.get('detector.acoustic.high_rhythm', defaults.high_rhythm),
            low_pitch_variation=cfg.get('detector.acoustic.low_pitch_variation',
                                        defaults.low_pitch_variation),
            high_pitch_variation=cfg.get('detector.acoustic.high_pitch_variation',
                                         defaults.high_pitch_variation),
            low_centroid=cfg.get('detector.acoustic.low_centroid', defaults.low_centroid),
            high_centroid=cfg.get('detector.acoustic.high_centroid', defaults.high_centroid),
            low_zcr=cfg.get('detector.acoustic.low_zcr', defaults.low_zcr),
            high_zcr=cfg.get('detector.acoustic.high_zcr', defaults.high_zcr),
            acoustic_weights=dict(cfg.get('detector.acoustic.weights', defaults.acoustic_weights)),
            native_bonus=dict(cfg.get('detector.acoustic.native_bonus', defaults.native_bonus)),
            detection_cutoff=cfg.get('detector.acoustic.detection_cutoff', defaults.detection_cutoff),
            natural_rhythm=cfg.get('detector.acoustic.natural_rhythm', defaults.natural_rhythm),
            natural_transitions=cfg.get('detector.acoustic.natural_transitions',
                                        defaults.natural_transitions),
            quality_weights=dict(cfg.get('detector.quality_weights', defaults.quality_weights)),
            text_length_ratio=cfg.get('detector.text.length_ratio', defaults.text_length_ratio),
            text_weights=dict(cfg.get('detector.text.weights', defaults.text_weights)),
            snr_threshold=cfg.get('detector.text.snr_threshold', defaults.snr_threshold),
            confidence_threshold=cfg.get('detector.text.confidence_threshold',
                                         defaults.confidence_threshold),
            whitelist=tuple(cfg.get('detector.text.whitelist', defaults.whitelist)),
            deficit_cues=tuple(cfg.get('detector.text.deficit_cues', defaults.deficit_cues)),
            transliteration_damping=cfg.get('detector.text.transliteration_damping',
                                            defaults.transliteration_damping),
            whitelist_damping=cfg.get('detector.text.whitelist_damping', defaults.whitelist_damping),
            damping_floor=cfg.get('detector.text.damping_floor', defaults.damping_floor),
        )


@dataclass(frozen=True)
class ComparatorSettings:
    """MFCC and DTW constants for the reference-audio comparator"""
    reference_dir: str = "assets/reference"
    n_fft: int = 512
    hop_length: int = 128
    n_mfcc: int = 13
    distance_decay: float = 0.005
    frame_mismatch_ratio: float = 0.5
    reversal_margin: float = 0.5
    trim_threshold: float = 0.02

    @classmethod
    def from_config(cls, cfg: Config) -> "ComparatorSettings":
        return cls(
            reference_dir=cfg.get('comparator.reference_dir', "assets/reference"),
            n_fft=cfg.get('comparator.n_fft', 512),
            hop_length=cfg.get('comparator.hop_length', 128),
            n_mfcc=cfg.get('comparator.n_mfcc', 13),
            distance_decay=cfg.get('comparator.distance_decay', 0.005),
            frame_mismatch_ratio=cfg.get('comparator.frame_mismatch_ratio', 0.5),
            reversal_margin=cfg.get('comparator.reversal_margin', 0.5),
            trim_threshold=cfg.get('audio.trim_threshold', 0.02),
        )


@dataclass(frozen=True)
class FusionSettings:
    """Fusion weights, penalty rules and grade boundaries"""
    local_weights: Dict[str, float] = field(default_factory=lambda: {
        'acoustic': 0.3, 'rhythm': 0.2, 'phoneme': 0.2, 'native': 0.3,
    })
    comparator_weight: float = 0.2
    remote_weight: float = 0.3
    comparison_weights: Dict[str, float] = field(default_factory=lambda: {
        'text': 0.3, 'phoneme': 0.3, 'prosody': 0.2, 'stress': 0.1, 'timing': 0.1,
    })
    penalty_threshold: float = 0.2
    penalty_magnitude: float = 60.0
    cap_threshold: float = 0.5
    hard_cap_trigger: float = 60.0
    hard_cap_score: float = 50.0
    soft_cap_trigger: float = 70.0
    soft_cap_score: float = 60.0
    merge_cap_threshold: float = 0.5
    expected_duration: float = 1.0
    timing_max_error: float = 0.8
    timing_min_duration: float = 0.3
    timing_max_duration: float = 3.0
    timing_out_of_range_score: float = 30.0
    standard_scale: Dict[str, float] = field(default_factory=lambda: {
        'A': 90, 'B': 80, 'C': 70, 'D': 60,
    })
    comparison_scale: Dict[str, float] = field(default_factory=lambda: {
        'A': 90, 'B': 80, 'C': 50, 'D': 30,
    })
    # dimension -> (improve below, praise at); None disables that half of the rule
    assessment_feedback: Dict[str, Thresholds] = field(default_factory=lambda: {
        'accuracy': (70, 85), 'fluency': (70, 85), 'intonation': (60, 80), 'rhythm': (60, 80),
    })
    comparison_feedback: Dict[str, Thresholds] = field(default_factory=lambda: {
        'overall': (None, 90), 'text': (90, 90), 'phoneme': (80, 85), 'prosody': (75, 80),
        'stress': (80, None), 'timing': (70, 75),
    })

    @classmethod
    def from_config(cls, cfg: Config) -> "FusionSettings":
        defaults = cls()
        values = {}
        for name in ('comparator_weight', 'remote_weight', 'penalty_threshold',
                     'penalty_magnitude', 'cap_threshold', 'hard_cap_trigger',
                     'hard_cap_score', 'soft_cap_trigger', 'soft_cap_score',
                     'merge_cap_threshold', 'expected_duration', 'timing_max_error',
                     'timing_min_duration', 'timing_max_duration',
                     'timing_out_of_range_score'):
            values[name] = cfg.get(f'fusion.{name}', getattr(defaults, name))
        return cls(
            local_weights=dict(cfg.get('fusion.local_weights', defaults.local_weights)),
            comparison_weights=dict(cfg.get('fusion.comparison_weights',
                                            defaults.comparison_weights)),
            standard_scale=dict(cfg.get('grading.standard', defaults.standard_scale)),
            comparison_scale=dict(cfg.get('grading.comparison', defaults.comparison_scale)),
            assessment_feedback=_thresholds(cfg.get('grading.feedback.assessment',
                                                    defaults.assessment_feedback)),
            comparison_feedback=_thresholds(cfg.get('grading.feedback.comparison',
                                                    defaults.comparison_feedback)),
            **values,
        )


@dataclass(frozen=True)
class RemoteSettings:
    """Endpoint and per-attempt limits for the remote assessment client"""
    endpoint: str = ("https://{region}.stt.speech.microsoft.com/speech/recognition/"
                     "conversation/cognitiveservices/v1")
    language: str = "en-US"
    attempt_timeout: float = 10.0
    n_best_phoneme_count: int = 5
    transcription_pass_score: float = 70.0
    demo_scores: Dict[str, float] = field(default_factory=lambda: {
        'pronunciation_score': 75.0, 'accuracy_score': 72.0,
        'fluency_score': 78.0, 'completeness_score': 75.0,
    })
    feedback: Dict[str, Thresholds] = field(default_factory=lambda: {
        'accuracy': (70, 80), 'fluency': (70, 80), 'completeness': (70, 80),
    })

    @classmethod
    def from_config(cls, cfg: Config) -> "RemoteSettings":
        defaults = cls()
        return cls(
            endpoint=cfg.get('remote.endpoint', defaults.endpoint),
            language=cfg.get('remote.language', defaults.language),
            attempt_timeout=float(cfg.get('remote.attempt_timeout', defaults.attempt_timeout)),
            n_best_phoneme_count=cfg.get('remote.n_best_phoneme_count',
                                         defaults.n_best_phoneme_count),
            transcription_pass_score=float(cfg.get('remote.transcription_pass_score',
                                                   defaults.transcription_pass_score)),
            demo_scores={name: float(value) for name, value
                         in cfg.get('remote.demo_scores', defaults.demo_scores).items()},
            feedback=_thresholds(cfg.get('grading.feedback.remote', defaults.feedback)),
        )


@dataclass(frozen=True)
class EngineSettings:
    """Single configuration structure grouping every component's settings"""
    features: FeatureSettings = field(default_factory=FeatureSettings)
    detector: DetectorSettings = field(default_factory=DetectorSettings)
    comparator: ComparatorSettings = field(default_factory=ComparatorSettings)
    fusion: FusionSettings = field(default_factory=FusionSettings)
    remote: RemoteSettings = field(default_factory=RemoteSettings)

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None) -> "EngineSettings":
        cfg = cfg or default_config
        cfg.validate()
        return cls(
            features=FeatureSettings.from_config(cfg),
            detector=DetectorSettings.from_config(cfg),
            comparator=ComparatorSettings.from_config(cfg),
            fusion=FusionSettings.from_config(cfg),
            remote=RemoteSettings.from_config(cfg),
        )
