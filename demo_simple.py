#!/usr/bin/env python3
"""Simple offline demo of the pronunciation assessment pipeline.

Synthesises a short voiced "utterance", stores it as the reference rendition
of a phrase in a temporary catalog, then runs the local analysis and the
comparison pipeline against it. No speech service credentials are needed.
"""

import io
import logging
import sys
import tempfile
from pathlib import Path

import numpy as np
import soundfile as sf

from pronunciation_engine.analysis.comparator import ReferenceCatalog, ReferenceComparator, phrase_key
from pronunciation_engine.config.settings import EngineSettings
from pronunciation_engine.pipeline import AssessmentEngine


SAMPLE_RATE = 16000
PHRASE = "Thank you"


def synthesize_utterance(f0: float = 140.0, syllables: int = 3, seed: int = 0) -> np.ndarray:
    """Harmonic tone bursts with a gliding pitch, separated by short pauses."""
    rng = np.random.default_rng(seed)
    pieces = []
    for i in range(syllables):
        duration = 0.18 + 0.04 * (i % 2)
        t = np.arange(int(SAMPLE_RATE * duration)) / SAMPLE_RATE
        pitch = f0 * (1.0 + 0.15 * np.sin(np.pi * t / duration) + 0.05 * i)
        phase = 2 * np.pi * np.cumsum(pitch) / SAMPLE_RATE
        voiced = sum(np.sin(k * phase) / k for k in range(1, 6))
        envelope = np.hanning(len(t))
        pieces.append(0.6 * envelope * voiced + 0.01 * rng.standard_normal(len(t)))
        pieces.append(np.zeros(int(SAMPLE_RATE * 0.06)))
    return np.concatenate(pieces).astype(np.float32)


def to_wav_bytes(samples: np.ndarray) -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, samples, SAMPLE_RATE, format='WAV', subtype='PCM_16')
    return buffer.getvalue()


def main():
    logging.basicConfig(level=logging.WARNING,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        handlers=[logging.StreamHandler(sys.stdout)])

    print("=" * 60)
    print("Pronunciation Assessment Demo")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as reference_dir:
        reference = synthesize_utterance(seed=1)
        sf.write(str(Path(reference_dir) / f"{phrase_key(PHRASE)}.wav"), reference, SAMPLE_RATE)

        settings = EngineSettings.from_config()
        comparator = ReferenceComparator(ReferenceCatalog(reference_dir, settings.comparator),
                                         settings.comparator)
        engine = AssessmentEngine(settings, comparator=comparator)

        attempts = {
            "close to reference": synthesize_utterance(seed=2),
            "lower, flatter voice": synthesize_utterance(f0=95.0, syllables=2, seed=3),
        }

        for label, samples in attempts.items():
            audio = to_wav_bytes(samples)
            clip, features = engine.analyze_audio(audio)

            print(f"\n{label}:")
            print(f"  Duration:          {features.duration:.2f}s")
            print(f"  Syllables:         {features.syllable_count}")
            print(f"  Rhythm:            {features.rhythm_consistency:.2f}")
            print(f"  Quality overall:   {features.quality.overall}")
            print(f"  Comparator score:  {engine.comparator.compare(clip, PHRASE)}")

            detection = engine.classifier.detect(features)
            print(f"  Non-native:        {detection.detected} "
                  f"(confidence {detection.confidence:.2f}) {list(detection.patterns)}")

            for recognized in ("thank you", "sankyuu"):
                result = engine.compare(audio, PHRASE, recognized_text=recognized)
                print(f"  Comparison '{recognized}': {result.overall_score} "
                      f"({result.grade.value}) - {result.feedback}")

    print("\n" + "=" * 60)
    print("Demo complete")


if __name__ == "__main__":
    main()
