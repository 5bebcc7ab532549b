"""Pytest configuration and fixtures"""

import io

import numpy as np
import pytest
import soundfile as sf
from hypothesis import settings, Verbosity

from pronunciation_engine.config.settings import ComparatorSettings, EngineSettings
from pronunciation_engine.models.frames import AudioClip
from pronunciation_engine.pipeline import AssessmentEngine

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=20, verbosity=Verbosity.normal)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose)

# Use CI profile by default
settings.load_profile("ci")


SAMPLE_RATE = 16000


def synthesize_speech_like(f0=140.0, syllables=3, sample_rate=SAMPLE_RATE, seed=0,
                           amplitude=0.6, glide=0.15):
    """Harmonic bursts with a gliding pitch and Hann envelopes, separated by pauses"""
    rng = np.random.default_rng(seed)
    pieces = []
    for i in range(syllables):
        duration = 0.18 + 0.04 * (i % 2)
        t = np.arange(int(sample_rate * duration)) / sample_rate
        pitch = f0 * (1.0 + glide * np.sin(np.pi * t / duration) + 0.05 * i)
        phase = 2 * np.pi * np.cumsum(pitch) / sample_rate
        voiced = sum(np.sin(k * phase) / k for k in range(1, 6))
        pieces.append(amplitude * np.hanning(len(t)) * voiced
                      + 0.005 * rng.standard_normal(len(t)))
        pieces.append(np.zeros(int(sample_rate * 0.06)))
    return np.concatenate(pieces).astype(np.float32)


def to_wav_bytes(samples, sample_rate=SAMPLE_RATE):
    buffer = io.BytesIO()
    sf.write(buffer, np.asarray(samples, dtype=np.float32), sample_rate, format='WAV', subtype='PCM_16')
    return buffer.getvalue()


@pytest.fixture
def engine_settings():
    """Default settings, independent of the YAML file"""
    return EngineSettings()


@pytest.fixture
def speech_samples():
    """About 0.8 s of synthetic voiced 'speech' at 16 kHz"""
    return synthesize_speech_like()


@pytest.fixture
def speech_clip(speech_samples):
    return AudioClip(samples=speech_samples, sample_rate=SAMPLE_RATE)


@pytest.fixture
def speech_wav(speech_samples):
    """WAV-encoded bytes of the synthetic utterance"""
    return to_wav_bytes(speech_samples)


@pytest.fixture
def silent_wav():
    return to_wav_bytes(np.zeros(SAMPLE_RATE // 2, dtype=np.float32))


@pytest.fixture
def reference_dir(tmp_path, speech_samples):
    """Reference catalog directory holding 'thankyou.wav' (the speech fixture)"""
    directory = tmp_path / "reference"
    directory.mkdir()
    sf.write(str(directory / "thankyou.wav"), speech_samples, SAMPLE_RATE)
    return directory


@pytest.fixture
def make_speech():
    """Factory for synthetic utterances with custom pitch, syllables or sample rate"""
    return synthesize_speech_like


@pytest.fixture
def make_wav():
    """Factory encoding float samples as WAV bytes"""
    return to_wav_bytes


@pytest.fixture
def assessment_engine(reference_dir):
    """Engine with default settings whose reference catalog is the temporary directory"""
    settings = EngineSettings(comparator=ComparatorSettings(reference_dir=str(reference_dir)))
    return AssessmentEngine(settings)
