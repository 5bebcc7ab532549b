"""Reference-Audio Comparator

Aligns a learner's recording with a pre-recorded reference rendition of the
same phrase. Both recordings are reduced to MFCC sequences; coefficients 1-12
are aligned with dynamic time warping and the path-normalised distance is
mapped to a similarity through exponential decay. A recording that aligns far
better with the reference played backwards than forwards is rejected as
time-reversed.

Every failure (missing asset, undecodable file, sample-rate mismatch, too few
frames) yields a score of 0; nothing propagates past the comparator.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import librosa

from pronunciation_engine.models.frames import AudioClip
from pronunciation_engine.models.results import ReferenceAudioEntry
from pronunciation_engine.input.audio_loader import (
    AudioDecodeError,
    load_audio_file,
    trim_and_normalize
)
from pronunciation_engine.config.config_loader import config, PROJECT_ROOT
from pronunciation_engine.config.settings import ComparatorSettings


logger = logging.getLogger(__name__)


class ComparisonError(Exception):
    """Exception raised for errors during reference comparison"""
    pass


def phrase_key(text: str) -> str:
    """Catalog key for a phrase: lower-cased, alphanumeric characters only"""
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


def mfcc_sequence(samples: np.ndarray, sample_rate: int, settings: ComparatorSettings) -> np.ndarray:
    """MFCC matrix of shape (n_mfcc, frames) for already-normalised samples"""
    return librosa.feature.mfcc(
        y=samples,
        sr=sample_rate,
        n_mfcc=settings.n_mfcc,
        n_fft=settings.n_fft,
        hop_length=settings.hop_length,
        n_mels=40
    )


def sequence_similarity(user: np.ndarray, reference: np.ndarray, decay: float = 0.005) -> float:
    """DTW similarity in (0, 1] between two coefficient sequences.

    Args:
        user: Shape (n_coefficients, frames)
        reference: Shape (n_coefficients, frames)
        decay: Exponential decay constant applied to the normalised distance

    Returns:
        exp(-decay * accumulated_cost / path_length); 1.0 for identical input

    Raises:
        ComparisonError: If either sequence has fewer than two frames or the
            coefficient counts differ
    """
    if user.ndim != 2 or reference.ndim != 2 or user.shape[0] != reference.shape[0]:
        raise ComparisonError(f"Incompatible sequences: {user.shape} vs {reference.shape}")
    if user.shape[1] < 2 or reference.shape[1] < 2:
        raise ComparisonError("Both sequences need at least 2 frames")

    return float(np.exp(-decay * alignment_cost(user, reference)))


def alignment_cost(user: np.ndarray, reference: np.ndarray) -> float:
    """Accumulated DTW cost divided by the warping-path length"""
    D, wp = librosa.sequence.dtw(X=user, Y=reference, metric='euclidean')
    return float(D[-1, -1]) / len(wp)


class ReferenceCatalog:
    """Read-only catalog of reference recordings keyed by normalised phrase text.

    Entries are decoded on first use and cached for the lifetime of the catalog.

    Attributes:
        directory: Folder holding ``<key>.wav`` files
        settings: MFCC constants used to precompute coefficient sequences
    """

    def __init__(self, directory: Optional[str] = None, settings: Optional[ComparatorSettings] = None):
        self.settings = settings or ComparatorSettings.from_config(config)
        self.directory = self._resolve(directory or self.settings.reference_dir)
        self._entries: Dict[str, ReferenceAudioEntry] = {}

    @staticmethod
    def _resolve(directory: str) -> Path:
        path = Path(directory)
        if path.is_absolute() or path.exists():
            return path
        return PROJECT_ROOT / path

    def path_for(self, reference_text: str) -> Path:
        return self.directory / f"{phrase_key(reference_text)}.wav"

    def load(self, reference_text: str) -> ReferenceAudioEntry:
        """Return the reference entry for a phrase.

        Raises:
            ComparisonError: If the asset is missing, undecodable or silent
        """
        key = phrase_key(reference_text)
        if key in self._entries:
            return self._entries[key]

        path = self.path_for(reference_text)
        if not key or not path.exists():
            raise ComparisonError(f"Reference audio not found: {path}")

        try:
            clip = load_audio_file(path)
        except AudioDecodeError as e:
            raise ComparisonError(str(e))

        samples = trim_and_normalize(clip.samples, self.settings.trim_threshold)
        if samples.size == 0:
            raise ComparisonError(f"Reference audio is silent: {path}")

        entry = ReferenceAudioEntry(
            phrase_id=key,
            reference_text=reference_text,
            coefficients=mfcc_sequence(samples, clip.sample_rate, self.settings),
            sample_rate=clip.sample_rate,
            duration=len(samples) / float(clip.sample_rate),
        )
        self._entries[key] = entry
        logger.info(f"Loaded reference audio '{key}' ({entry.frame_count} frames)")
        return entry

    def duration_for(self, reference_text: str) -> Optional[float]:
        """Trimmed reference duration in seconds, or None when no asset exists"""
        try:
            return self.load(reference_text).duration
        except ComparisonError:
            return None


class ReferenceComparator:
    """Scores a recording against the reference rendition of its phrase.

    Attributes:
        catalog: Reference asset catalog
        settings: MFCC, DTW and guard constants
    """

    def __init__(self, catalog: Optional[ReferenceCatalog] = None,
                 settings: Optional[ComparatorSettings] = None):
        self.settings = settings or ComparatorSettings.from_config(config)
        self.catalog = catalog or ReferenceCatalog(settings=self.settings)
        logger.info(f"ReferenceComparator initialized with catalog at {self.catalog.directory}")

    def compare(self, clip: Optional[AudioClip], reference_text: str) -> int:
        """Similarity score in [0, 100] between a clip and the phrase's reference.

        Returns 0 instead of raising on every failure.
        """
        if clip is None:
            return 0
        try:
            entry = self.catalog.load(reference_text)
        except ComparisonError as e:
            logger.warning(f"Reference comparison skipped: {e}")
            return 0

        try:
            return self.compare_to_entry(clip, entry)
        except ComparisonError as e:
            logger.error(f"Reference comparison failed: {e}")
            return 0
        except Exception as e:
            logger.error(f"Unexpected error in reference comparison: {e}", exc_info=True)
            return 0

    def compare_to_entry(self, clip: AudioClip, entry: ReferenceAudioEntry) -> int:
        """Compare a clip with a loaded reference entry.

        Raises:
            ComparisonError: On sample-rate mismatch, silent input or too few frames
        """
        if clip.sample_rate != entry.sample_rate:
            raise ComparisonError(
                f"Sample rate mismatch: user {clip.sample_rate} Hz, "
                f"reference {entry.sample_rate} Hz"
            )

        samples = trim_and_normalize(clip.samples, self.settings.trim_threshold)
        if samples.size == 0:
            raise ComparisonError("User audio is silent")

        user = mfcc_sequence(samples, clip.sample_rate, self.settings)
        reference = entry.coefficients
        if user.shape[1] < 2 or reference.shape[1] < 2:
            raise ComparisonError("Both recordings need at least 2 frames")

        user_frames, reference_frames = user.shape[1], reference.shape[1]
        if abs(user_frames - reference_frames) > self.settings.frame_mismatch_ratio * max(user_frames, reference_frames):
            logger.warning(f"Frame counts differ substantially: user {user_frames}, "
                           f"reference {reference_frames}")

        if self._is_time_reversed(samples, clip.sample_rate, user, reference):
            logger.warning("User audio matches the time-reversed reference, scoring 0")
            return 0

        similarity = sequence_similarity(user[1:], reference[1:], self.settings.distance_decay)
        score = int(round(similarity * 100))
        logger.debug(f"Reference comparison complete: similarity={similarity:.3f}, score={score}")
        return score

    def _is_time_reversed(self, samples: np.ndarray, sample_rate: int,
                          user: np.ndarray, reference: np.ndarray) -> bool:
        """True when the recording played backwards aligns clearly better than forwards.

        Reversing the trimmed samples and recomputing the MFCCs keeps the frame
        grid of a reversed reference identical to the reference's own grid, so
        a reversed rendition costs close to nothing against it.
        """
        backwards = mfcc_sequence(np.ascontiguousarray(samples[::-1]), sample_rate, self.settings)
        forward_cost = alignment_cost(user, reference)
        backward_cost = alignment_cost(backwards, reference)
        logger.debug(f"Reversal check: forward cost={forward_cost:.2f}, backward cost={backward_cost:.2f}")
        return backward_cost < (1.0 - self.settings.reversal_margin) * forward_cost
