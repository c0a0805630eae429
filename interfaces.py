"""Protocol interfaces used by AcquisitionManager and PollingLoop."""

from __future__ import annotations

from typing import Any, Callable, Protocol

from config import ClassifierConfig
from models import AudioFormat, Category


class ClassifierHandle(Protocol):
    @property
    def required_format(self) -> AudioFormat: ...

    @property
    def window_samples(self) -> int: ...

    def classify(self, samples: Any) -> list[Category]: ...

    def close(self) -> None: ...


class AudioSource(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def release(self) -> None: ...

    def read(self, num_samples: int) -> Any: ...


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, fn: Callable[[], None]) -> Cancellable: ...


class ConfigStore(Protocol):
    def get_model_path(self) -> str: ...

    def set_model_path(self, path: str) -> None: ...

    def get_score_threshold(self) -> float: ...

    def set_score_threshold(self, threshold: float) -> None: ...

    def get_input_device(self) -> str: ...

    def set_input_device(self, device: str) -> None: ...

    def load_classifier_config(self) -> ClassifierConfig: ...
