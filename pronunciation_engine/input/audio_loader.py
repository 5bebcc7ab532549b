"""Audio input decoding

Turns uploaded waveform bytes into an AudioClip and prepares samples for
analysis: leading and trailing samples below the amplitude threshold are
trimmed, then the remainder is peak-normalised.
"""

import io
import logging
from pathlib import Path
from typing import Union

import numpy as np
import librosa

from pronunciation_engine.models.frames import AudioClip


logger = logging.getLogger(__name__)


class AudioDecodeError(Exception):
    """Exception raised when an audio payload cannot be decoded"""
    pass


def decode_audio(data: bytes) -> AudioClip:
    """Decode waveform bytes (WAV or any format soundfile reads) into a mono clip.

    The native sample rate is preserved; no resampling happens here.

    Args:
        data: Raw file bytes as uploaded

    Returns:
        AudioClip with float32 samples

    Raises:
        AudioDecodeError: If the payload is empty or not decodable audio
    """
    if not data:
        raise AudioDecodeError("Audio payload is empty")

    try:
        samples, sample_rate = librosa.load(io.BytesIO(data), sr=None, mono=True)
    except Exception as e:
        logger.error(f"Audio decoding failed: {e}")
        raise AudioDecodeError(f"Failed to decode audio: {e}")

    return AudioClip(samples=np.asarray(samples, dtype=np.float32), sample_rate=int(sample_rate))


def load_audio_file(path: Union[str, Path]) -> AudioClip:
    """Decode a waveform file from disk into a mono clip.

    Raises:
        AudioDecodeError: If the file is missing or not decodable audio
    """
    try:
        samples, sample_rate = librosa.load(str(path), sr=None, mono=True)
    except Exception as e:
        raise AudioDecodeError(f"Failed to load {path}: {e}")

    return AudioClip(samples=np.asarray(samples, dtype=np.float32), sample_rate=int(sample_rate))


def trim_and_normalize(samples: np.ndarray, threshold: float = 0.02) -> np.ndarray:
    """Trim sub-threshold samples from both ends and peak-normalise the rest.

    Returns an empty array when every sample is below the threshold; callers
    treat that as silence, not as an error.
    """
    samples = np.asarray(samples, dtype=np.float32)
    if samples.size == 0:
        return samples

    loud = np.flatnonzero(np.abs(samples) >= threshold)
    if loud.size == 0:
        return np.zeros(0, dtype=np.float32)

    trimmed = samples[loud[0]:loud[-1] + 1]
    peak = float(np.max(np.abs(trimmed)))
    return (trimmed / peak).astype(np.float32)
