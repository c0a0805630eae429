"""Classifier settings and a simple JSON-based config store."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MODEL_PATH = "yamnet.tflite"
DEFAULT_SCORE_THRESHOLD = 0.3
MODEL_PATH_ENV = "SOUND_CLASSIFIER_MODEL"


@dataclass(frozen=True)
class ClassifierConfig:
    model_path: str = DEFAULT_MODEL_PATH
    score_threshold: float = DEFAULT_SCORE_THRESHOLD
    max_results: int = -1
    sample_rate: int = 16000
    channels: int = 1
    # YAMNet consumes 0.975 s per inference.
    window_samples: int = 15600
    input_device: str = ""
    poll_interval_s: float = 0.5
    initial_delay_s: float = 0.001
    max_attempts: int = 3
    backoff_step_s: float = 1.0


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "sound_classifier" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_model_path(self) -> str:
        data = self._read_all()
        return str(data.get("model_path") or os.getenv(MODEL_PATH_ENV, DEFAULT_MODEL_PATH))

    def set_model_path(self, path: str) -> None:
        data = self._read_all()
        data["model_path"] = path
        self._write_all(data)

    def get_score_threshold(self) -> float:
        data = self._read_all()
        try:
            value = float(data.get("score_threshold", DEFAULT_SCORE_THRESHOLD))
        except (TypeError, ValueError):
            return DEFAULT_SCORE_THRESHOLD
        if not 0.0 <= value <= 1.0:
            return DEFAULT_SCORE_THRESHOLD
        return value

    def set_score_threshold(self, threshold: float) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"score threshold must be within [0, 1], got {threshold}")
        data = self._read_all()
        data["score_threshold"] = threshold
        self._write_all(data)

    def get_input_device(self) -> str:
        data = self._read_all()
        return str(data.get("input_device", ""))

    def set_input_device(self, device: str) -> None:
        data = self._read_all()
        data["input_device"] = device
        self._write_all(data)

    def load_classifier_config(self) -> ClassifierConfig:
        return ClassifierConfig(
            model_path=self.get_model_path(),
            score_threshold=self.get_score_threshold(),
            input_device=self.get_input_device(),
        )

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
