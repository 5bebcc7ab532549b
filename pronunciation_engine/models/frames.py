"""Data model for decoded audio"""

from dataclasses import dataclass
import numpy as np


@dataclass
class AudioClip:
    """Mono PCM audio decoded from a request payload

    Attributes:
        samples: Float samples in [-1, 1] as numpy array
        sample_rate: Sample rate in Hz (e.g., 16000)
    """
    samples: np.ndarray  # mono float32 samples
    sample_rate: int     # e.g., 16000 Hz

    def __post_init__(self):
        """Validate audio clip data"""
        assert isinstance(self.samples, np.ndarray), "Samples must be numpy array"
        assert self.samples.ndim == 1, "Samples must be mono (1D array)"
        assert self.sample_rate > 0, "Sample rate must be positive"

    @property
    def duration(self) -> float:
        """Clip length in seconds"""
        return len(self.samples) / float(self.sample_rate)

    @property
    def is_empty(self) -> bool:
        return self.samples.size == 0
