"""Acoustic Feature Extraction Module

This module turns a mono recording into the utterance-level descriptors used by
the pronunciation classifier: syllable timing, rhythm, pitch movement, formant
candidates, spectral moments, voice-quality perturbation measures and a mean
MFCC vector.

Audio is silence-trimmed and peak-normalised before framing. Silent or
unusable input produces a zeroed feature set rather than an error.
"""

import logging
from typing import Optional, Tuple

import numpy as np
import librosa

from pronunciation_engine.models.frames import AudioClip
from pronunciation_engine.models.features import AudioFeatureSet
from pronunciation_engine.input.audio_loader import trim_and_normalize
from pronunciation_engine.config.config_loader import config
from pronunciation_engine.config.settings import FeatureSettings


logger = logging.getLogger(__name__)


class AudioProcessingError(Exception):
    """Exception raised for errors during audio processing"""
    pass


def _clamp01(value: float) -> float:
    value = float(np.nan_to_num(value))
    return max(0.0, min(1.0, value))


def _coefficient_of_variation(values: np.ndarray) -> float:
    """Standard deviation over mean; 0 with fewer than two values or a zero mean"""
    if len(values) < 2:
        return 0.0
    mean = float(np.mean(values))
    if mean <= 0:
        return 0.0
    return float(np.std(values)) / mean


def _relative_perturbation(values: np.ndarray) -> float:
    """Mean absolute consecutive difference relative to the mean value"""
    if len(values) < 2:
        return 0.0
    mean = float(np.mean(values))
    if mean <= 0:
        return 0.0
    return float(np.mean(np.abs(np.diff(values)))) / mean


class FeatureExtractor:
    """Extracts an AudioFeatureSet from a mono recording.

    This class implements the signal analysis stage that:
    1. Trims leading/trailing silence and peak-normalises the samples
    2. Frames the signal into short overlapping analysis windows
    3. Detects syllable onsets from frame energy and measures rhythm
    4. Estimates per-frame pitch by autocorrelation in a plausible lag range
    5. Computes spectral moments, formant candidates and MFCCs
    6. Estimates jitter, shimmer and harmonics-to-noise ratio from voiced frames

    Attributes:
        settings: Framing and estimator constants
    """

    def __init__(self, settings: Optional[FeatureSettings] = None):
        """Initialize the extractor with injected or configured settings."""
        self.settings = settings or FeatureSettings.from_config(config)
        logger.info(f"FeatureExtractor initialized with frame={self.settings.frame_ms}ms, "
                    f"hop={self.settings.hop_ms}ms")

    def extract(self, clip: Optional[AudioClip]) -> AudioFeatureSet:
        """Extract features from a decoded clip.

        Never raises: processing failures and silent input both produce the
        zeroed feature set.

        Args:
            clip: Decoded audio, or None when decoding failed upstream

        Returns:
            AudioFeatureSet for the clip (quality sub-scores not yet filled in)
        """
        if clip is None or clip.is_empty:
            return self._empty()

        try:
            return self._extract_features(clip.samples, clip.sample_rate)
        except AudioProcessingError as e:
            logger.warning(f"Audio processing failed, using empty feature set: {e}")
            return self._empty()

    def _empty(self) -> AudioFeatureSet:
        return AudioFeatureSet.empty(self.settings.n_mfcc, self.settings.energy_bins)

    def _frame_sizes(self, sr: int) -> Tuple[int, int, int]:
        frame_length = max(2, int(round(sr * self.settings.frame_ms / 1000.0)))
        hop_length = max(1, int(round(sr * self.settings.hop_ms / 1000.0)))
        n_fft = int(2 ** np.ceil(np.log2(frame_length)))
        return frame_length, hop_length, n_fft

    def _extract_features(self, samples: np.ndarray, sr: int) -> AudioFeatureSet:
        """Run the full analysis on raw samples.

        Raises:
            AudioProcessingError: If any numeric stage fails
        """
        y = trim_and_normalize(samples, self.settings.trim_threshold)
        if y.size == 0:
            logger.debug("Input is entirely below the trim threshold, treating as silence")
            return self._empty()

        try:
            frame_length, hop_length, n_fft = self._frame_sizes(sr)
            if len(y) < frame_length:
                y = np.pad(y, (0, frame_length - len(y)))
            frames = np.ascontiguousarray(
                librosa.util.frame(y, frame_length=frame_length, hop_length=hop_length).T
            )
            duration = len(y) / float(sr)

            energies = np.mean(frames ** 2, axis=1)
            syllable_count, rhythm_consistency = self._syllable_timing(energies)

            pitches, periods, strengths, voiced = self._estimate_pitch(frames, sr)
            voiced_peaks = np.max(np.abs(frames[voiced]), axis=1) if np.any(voiced) else np.zeros(0)

            spectrum = np.abs(np.fft.rfft(
                frames * librosa.filters.get_window('hann', frame_length, fftbins=True),
                n=n_fft,
                axis=1
            ))
            freqs = librosa.fft_frequencies(sr=sr, n_fft=n_fft)
            spectral = self._spectral_statistics(spectrum, freqs, sr, n_fft)
            formants = self._formants(spectrum, freqs)

            zcr = librosa.feature.zero_crossing_rate(
                y, frame_length=frame_length, hop_length=hop_length
            )[0]
            mfcc = librosa.feature.mfcc(
                y=y, sr=sr, n_mfcc=self.settings.n_mfcc,
                n_fft=n_fft, hop_length=hop_length, n_mels=40
            )

            return AudioFeatureSet(
                syllable_count=syllable_count,
                average_duration=duration / max(syllable_count, 1),
                rhythm_consistency=_clamp01(rhythm_consistency),
                pitch_variation=_clamp01(_coefficient_of_variation(pitches[voiced])),
                energy_variation=_clamp01(_coefficient_of_variation(energies)),
                formants=formants,
                zero_crossing_rate=_clamp01(np.mean(zcr)),
                energy_distribution=self._energy_distribution(energies),
                jitter=_clamp01(_relative_perturbation(periods[voiced])),
                shimmer=_clamp01(_relative_perturbation(voiced_peaks)),
                hnr=self._harmonics_to_noise(strengths[voiced]),
                mfcc=tuple(float(v) for v in np.nan_to_num(np.mean(mfcc, axis=1))),
                frame_count=int(frames.shape[0]),
                duration=duration,
                **spectral
            )
        except Exception as e:
            logger.error(f"Feature extraction failed: {e}")
            raise AudioProcessingError(f"Failed to extract acoustic features: {e}")

    def _syllable_timing(self, energies: np.ndarray) -> Tuple[int, float]:
        """Count rising energy edges and measure the regularity of their spacing.

        A frame is an onset when its energy is above the threshold and the
        previous frame's is not; the clip start counts as a quiet frame.
        """
        above = energies > self.settings.syllable_energy_threshold
        previous = np.concatenate(([False], above[:-1]))
        onsets = np.flatnonzero(above & ~previous)

        if len(onsets) < 2:
            return len(onsets), 0.0

        intervals = np.diff(onsets).astype(np.float64)
        consistency = max(0.0, 1.0 - float(np.std(intervals)) / float(np.mean(intervals)))
        return len(onsets), consistency

    def _estimate_pitch(self, frames: np.ndarray, sr: int):
        """Autocorrelation pitch per frame, restricted to the plausible lag range.

        Returns:
            Tuple of (pitch Hz, period seconds, normalised correlation at the
            chosen lag, voiced mask), one entry per frame
        """
        n_frames, frame_length = frames.shape
        min_lag = int(np.ceil(sr / self.settings.pitch_max_hz))
        max_lag = min(int(np.floor(sr / self.settings.pitch_min_hz)), frame_length - 1)

        zeros = np.zeros(n_frames)
        if max_lag <= min_lag:
            return zeros, zeros, zeros, np.zeros(n_frames, dtype=bool)

        ac = librosa.autocorrelate(frames, max_size=max_lag + 1, axis=-1)
        r0 = ac[:, 0]
        has_energy = r0 > 1e-10
        normalised = np.zeros_like(ac)
        normalised[has_energy] = ac[has_energy] / r0[has_energy, None]

        lags = np.argmax(normalised[:, min_lag:max_lag + 1], axis=1) + min_lag
        strengths = normalised[np.arange(n_frames), lags]
        pitches = sr / lags.astype(np.float64)

        voiced = (
            has_energy
            & (strengths >= self.settings.voicing_threshold)
            & (pitches > self.settings.pitch_min_hz)
            & (pitches < self.settings.pitch_max_hz)
        )
        pitches = np.where(voiced, pitches, 0.0)
        periods = np.where(voiced, lags / float(sr), 0.0)
        return pitches, periods, strengths, voiced

    @staticmethod
    def _harmonics_to_noise(strengths: np.ndarray) -> float:
        """Mean HNR in dB from the normalised autocorrelation peak, floored at 0"""
        if len(strengths) == 0:
            return 0.0
        r = np.clip(strengths, 1e-6, 1.0 - 1e-6)
        return max(0.0, float(np.mean(10.0 * np.log10(r / (1.0 - r)))))

    def _spectral_statistics(self, spectrum: np.ndarray, freqs: np.ndarray,
                             sr: int, n_fft: int) -> dict:
        """Spectral moments and shape descriptors averaged over non-silent frames"""
        stats = {
            'spectral_centroid': 0.0,
            'spectral_rolloff': 0.0,
            'spectral_bandwidth': 0.0,
            'spectral_flatness': 0.0,
            'spectral_spread': 0.0,
            'spectral_skewness': 0.0,
            'spectral_kurtosis': 0.0,
            'spectral_flux': 0.0,
            'spectral_contrast': 0.0,
        }
        active = spectrum.sum(axis=1) > 1e-10
        if not np.any(active):
            return stats

        # librosa expects (frequency, time)
        S = spectrum[active].T
        stats['spectral_centroid'] = float(np.mean(
            librosa.feature.spectral_centroid(S=S, sr=sr, n_fft=n_fft)[0]))
        stats['spectral_rolloff'] = float(np.mean(librosa.feature.spectral_rolloff(
            S=S, sr=sr, n_fft=n_fft, roll_percent=self.settings.rolloff_percent)[0]))
        stats['spectral_bandwidth'] = float(np.mean(
            librosa.feature.spectral_bandwidth(S=S, sr=sr, n_fft=n_fft, p=1)[0]))
        stats['spectral_flatness'] = _clamp01(np.mean(librosa.feature.spectral_flatness(S=S)[0]))

        p = S / S.sum(axis=0, keepdims=True)
        centroid = np.sum(freqs[:, None] * p, axis=0)
        deviation = freqs[:, None] - centroid[None, :]
        spread = np.sqrt(np.sum(deviation ** 2 * p, axis=0))
        third = np.sum(deviation ** 3 * p, axis=0)
        fourth = np.sum(deviation ** 4 * p, axis=0)
        has_spread = spread > 0
        skewness = np.divide(third, spread ** 3, out=np.zeros_like(third), where=has_spread)
        kurtosis = np.divide(fourth, spread ** 4, out=np.zeros_like(fourth), where=has_spread)
        kurtosis = np.where(has_spread, kurtosis - 3.0, 0.0)

        stats['spectral_spread'] = float(np.mean(spread))
        stats['spectral_skewness'] = float(np.mean(skewness))
        stats['spectral_kurtosis'] = float(np.mean(kurtosis))

        if p.shape[1] >= 2:
            stats['spectral_flux'] = _clamp01(np.mean(np.linalg.norm(np.diff(p, axis=1), axis=0)))

        ordered = np.sort(S, axis=0)
        k = max(1, S.shape[0] // 10)
        valleys = ordered[:k].mean(axis=0)
        peaks = ordered[-k:].mean(axis=0)
        ratio = np.divide(valleys, peaks, out=np.ones_like(valleys), where=peaks > 0)
        stats['spectral_contrast'] = _clamp01(np.mean(1.0 - ratio))

        return stats

    def _formants(self, spectrum: np.ndarray, freqs: np.ndarray) -> Tuple[float, ...]:
        """Average the first spectral peaks inside the formant band, per formant index"""
        limit = self.settings.max_formants
        band = (freqs > self.settings.formant_min_hz) & (freqs < self.settings.formant_max_hz)
        sums = np.zeros(limit)
        counts = np.zeros(limit, dtype=int)

        for frame in spectrum:
            peak = frame.max()
            if peak <= 0:
                continue
            magnitude = frame / peak
            candidates = librosa.util.localmax(magnitude) & band & (magnitude > self.settings.formant_magnitude)
            found = freqs[candidates][:limit]
            sums[:len(found)] += found
            counts[:len(found)] += 1

        formants = []
        for total, count in zip(sums, counts):
            if count == 0:
                break
            formants.append(float(total / count))
        return tuple(formants)

    def _energy_distribution(self, energies: np.ndarray) -> Tuple[float, ...]:
        """Fraction of frames falling in each energy bin over [0, 1]"""
        bins = self.settings.energy_bins
        if len(energies) == 0:
            return (0.0,) * bins
        indices = np.clip(np.floor(energies * bins).astype(int), 0, bins - 1)
        counts = np.bincount(indices, minlength=bins)
        return tuple(float(c) / len(energies) for c in counts)
