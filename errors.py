"""Shared error codes, user-facing messages and exceptions."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
MICROPHONE_MUTED = "MICROPHONE_MUTED"
CAPTURE_UNAVAILABLE = "CAPTURE_UNAVAILABLE"
INITIALIZATION_FAILED = "INITIALIZATION_FAILED"
CLASSIFICATION_FAILED = "CLASSIFICATION_FAILED"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Permission denied - the microphone cannot be accessed",
    MICROPHONE_MUTED: "Microphone is muted",
    CAPTURE_UNAVAILABLE: "Failed after {attempts} attempts",
    INITIALIZATION_FAILED: "Initialization failed: {detail}",
    CLASSIFICATION_FAILED: "Classification error: {detail}",
}


def error_message(code: str, **kwargs: object) -> str:
    return ERROR_MESSAGES[code].format(**kwargs)


class SoundClassifierError(Exception):
    """Base class for errors raised by the classifier adapters."""


class CaptureUnavailableError(SoundClassifierError):
    """The capture device is busy or unavailable; worth retrying."""


class ModelLoadError(SoundClassifierError):
    """The model resource is missing or cannot be loaded."""
