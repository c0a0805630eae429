"""Audio classifier handle backed by a MediaPipe YAMNet model."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from config import ClassifierConfig
from errors import ModelLoadError
from models import AudioFormat, Category

logger = logging.getLogger(__name__)

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    from mediapipe.tasks import python as mp_python
    from mediapipe.tasks.python import audio as mp_audio
    from mediapipe.tasks.python.components import containers
except Exception:  # pragma: no cover
    mp_python = None  # type: ignore
    mp_audio = None  # type: ignore
    containers = None  # type: ignore


class MediaPipeAudioClassifier:
    def __init__(self, classifier: Any, audio_format: AudioFormat, window_samples: int) -> None:
        self._classifier = classifier
        self._format = audio_format
        self._window_samples = window_samples

    @classmethod
    def create(cls, config: ClassifierConfig) -> "MediaPipeAudioClassifier":
        if mp_audio is None or mp_python is None:
            raise RuntimeError("mediapipe is not installed")
        if not Path(config.model_path).is_file():
            raise ModelLoadError(f"model file not found: {config.model_path}")
        options = mp_audio.AudioClassifierOptions(
            base_options=mp_python.BaseOptions(model_asset_path=config.model_path),
            running_mode=mp_audio.RunningMode.AUDIO_CLIPS,
            max_results=config.max_results,
        )
        try:
            classifier = mp_audio.AudioClassifier.create_from_options(options)
        except (RuntimeError, ValueError) as exc:
            raise ModelLoadError(f"cannot load {config.model_path}: {exc}") from exc
        logger.info("Loaded audio classifier from %s", config.model_path)
        return cls(
            classifier,
            AudioFormat(channels=config.channels, sample_rate=config.sample_rate),
            config.window_samples,
        )

    @property
    def required_format(self) -> AudioFormat:
        return self._format

    @property
    def window_samples(self) -> int:
        return self._window_samples

    def classify(self, samples: Any) -> list[Category]:
        """Classify one window of float samples in [-1, 1].

        Only the first result of the first classification head is used.
        """
        clip = containers.AudioData.create_from_array(
            np.asarray(samples, dtype=np.float32), self._format.sample_rate
        )
        results = self._classifier.classify(clip)
        if not results or not results[0].classifications:
            return []
        return [
            Category(label=c.category_name or c.display_name or str(c.index), score=float(c.score))
            for c in results[0].classifications[0].categories
        ]

    def close(self) -> None:
        self._classifier.close()
