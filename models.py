"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class AcquisitionOutcome(str, Enum):
    STARTED = "STARTED"
    RETRY_SCHEDULED = "RETRY_SCHEDULED"
    MUTED = "MUTED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class AudioFormat:
    channels: int = 1
    sample_rate: int = 16000


@dataclass(frozen=True)
class Category:
    label: str
    score: float


@dataclass(frozen=True)
class Initial:
    pass


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class RecordingSpecs:
    channels: int
    sample_rate: int

    def describe(self) -> str:
        return f"Channels: {self.channels}, Sample Rate: {self.sample_rate}"


@dataclass(frozen=True)
class Success:
    text: str


@dataclass(frozen=True)
class Error:
    message: str
    code: str = ""


ViewState = Union[Initial, Loading, RecordingSpecs, Success, Error]
