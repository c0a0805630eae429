"""Lifecycle of the microphone, classifier and classification loop."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from classifier import MediaPipeAudioClassifier
from config import ClassifierConfig
from errors import (
    CAPTURE_UNAVAILABLE,
    INITIALIZATION_FAILED,
    MICROPHONE_MUTED,
    PERMISSION_DENIED,
    CaptureUnavailableError,
    error_message,
)
from interfaces import AudioSource, Cancellable, ClassifierHandle, Scheduler
from models import AcquisitionOutcome, AudioFormat, Error, Loading, RecordingSpecs
from polling import PollingLoop
from recorder import SoundDeviceAudioSource
from scheduling import CancelToken, ThreadingScheduler
from state import ViewStateStore

logger = logging.getLogger(__name__)

ClassifierFactory = Callable[[ClassifierConfig], ClassifierHandle]
SourceFactory = Callable[[ClassifierConfig, AudioFormat], AudioSource]
PollerFactory = Callable[..., PollingLoop]
MuteProbe = Callable[[], bool]


def create_sound_device_source(config: ClassifierConfig, audio_format: AudioFormat) -> AudioSource:
    return SoundDeviceAudioSource(
        audio_format,
        buffer_samples=config.window_samples,
        device=config.input_device or None,
    )


def _never_muted() -> bool:
    return False


class AcquisitionManager:
    """Owns the one live set of audio resources and the retry state.

    Failures never escape: every outcome is published to ``store`` as a
    view state, and ``acquire`` reports what happened as an
    ``AcquisitionOutcome``.
    """

    def __init__(
        self,
        store: ViewStateStore,
        classifier_factory: ClassifierFactory = MediaPipeAudioClassifier.create,
        source_factory: SourceFactory = create_sound_device_source,
        scheduler: Optional[Scheduler] = None,
        is_microphone_muted: MuteProbe = _never_muted,
        poller_factory: PollerFactory = PollingLoop,
    ) -> None:
        self._store = store
        self._classifier_factory = classifier_factory
        self._source_factory = source_factory
        self._scheduler = scheduler or ThreadingScheduler()
        self._is_microphone_muted = is_microphone_muted
        self._poller_factory = poller_factory

        self._lock = threading.RLock()
        self._attempts = 0
        self._classifier: Optional[ClassifierHandle] = None
        self._source: Optional[AudioSource] = None
        self._poller: Optional[PollingLoop] = None
        self._retry_token: Optional[CancelToken] = None
        self._retry_handle: Optional[Cancellable] = None
        self._permission_granted = False

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def holds_resources(self) -> bool:
        return any(r is not None for r in (self._classifier, self._source, self._poller))

    @property
    def retry_pending(self) -> bool:
        return self._retry_token is not None

    def on_permission_result(self, granted: bool, config: ClassifierConfig) -> AcquisitionOutcome:
        with self._lock:
            self._permission_granted = granted
        if granted:
            return self.acquire(config)
        logger.warning("Microphone permission denied")
        self._store.publish(Error(error_message(PERMISSION_DENIED), code=PERMISSION_DENIED))
        return AcquisitionOutcome.FAILED

    def acquire(self, config: ClassifierConfig) -> AcquisitionOutcome:
        """Set up the classifier and microphone and start classifying.

        The caller must already hold microphone permission. A pending retry
        is superseded by this call.
        """
        with self._lock:
            self._cancel_pending_retry()
            return self._acquire(config)

    def release(self) -> None:
        """Stop everything. Safe to call repeatedly; never raises."""
        with self._lock:
            self._cancel_pending_retry()
            self._attempts = 0
            self._release_resources()

    def pause(self) -> None:
        self.release()

    def resume(self, config: ClassifierConfig) -> Optional[AcquisitionOutcome]:
        with self._lock:
            if not self._permission_granted:
                return None
            return self.acquire(config)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _acquire(self, config: ClassifierConfig) -> AcquisitionOutcome:
        self._release_resources()
        self._store.publish(Loading())
        try:
            classifier = self._classifier_factory(config)
            self._classifier = classifier
            audio_format = classifier.required_format
            self._store.publish(RecordingSpecs(audio_format.channels, audio_format.sample_rate))

            if self._is_microphone_muted():
                logger.warning("Microphone is muted")
                self._release_resources()
                self._store.publish(Error(error_message(MICROPHONE_MUTED), code=MICROPHONE_MUTED))
                return AcquisitionOutcome.MUTED

            source = self._source_factory(config, audio_format)
            self._source = source
            try:
                source.start()
            except CaptureUnavailableError as exc:
                return self._schedule_retry(config, exc)

            self._attempts = 0
            poller = self._poller_factory(
                source,
                classifier,
                self._store,
                score_threshold=config.score_threshold,
                interval_s=config.poll_interval_s,
                initial_delay_s=config.initial_delay_s,
            )
            self._poller = poller
            poller.start()
            logger.info("Classification started")
            return AcquisitionOutcome.STARTED
        except Exception as exc:
            logger.exception("Audio initialization failed")
            self._release_resources()
            self._store.publish(
                Error(error_message(INITIALIZATION_FAILED, detail=exc), code=INITIALIZATION_FAILED)
            )
            return AcquisitionOutcome.FAILED

    def _schedule_retry(self, config: ClassifierConfig, exc: Exception) -> AcquisitionOutcome:
        self._release_resources()
        if self._attempts >= config.max_attempts:
            logger.error("Giving up on the microphone after %d attempts: %s", self._attempts, exc)
            self._store.publish(
                Error(
                    error_message(CAPTURE_UNAVAILABLE, attempts=config.max_attempts),
                    code=CAPTURE_UNAVAILABLE,
                )
            )
            return AcquisitionOutcome.FAILED

        self._attempts += 1
        delay_s = config.backoff_step_s * self._attempts
        logger.warning(
            "Microphone unavailable (%s), retrying in %.1fs, attempt %d of %d",
            exc,
            delay_s,
            self._attempts,
            config.max_attempts,
        )
        token = CancelToken()
        self._retry_token = token
        self._retry_handle = self._scheduler.call_later(
            delay_s, lambda: self._run_retry(token, config)
        )
        return AcquisitionOutcome.RETRY_SCHEDULED

    def _run_retry(self, token: CancelToken, config: ClassifierConfig) -> AcquisitionOutcome:
        with self._lock:
            if token.cancelled or token is not self._retry_token:
                logger.debug("Skipping cancelled microphone retry")
                return AcquisitionOutcome.CANCELLED
            self._retry_token = None
            self._retry_handle = None
            return self._acquire(config)

    def _cancel_pending_retry(self) -> None:
        token, handle = self._retry_token, self._retry_handle
        self._retry_token = None
        self._retry_handle = None
        if token is not None:
            token.cancel()
        if handle is not None:
            try:
                handle.cancel()
            except Exception:
                logger.exception("Error cancelling pending retry")

    def _release_resources(self) -> None:
        poller, source, classifier = self._poller, self._source, self._classifier
        self._poller = None
        self._source = None
        self._classifier = None
        if poller is not None:
            self._safe_release_step("cancel classification loop", poller.cancel)
        if source is not None:
            self._safe_release_step("stop capture", source.stop)
            self._safe_release_step("release capture", source.release)
        if classifier is not None:
            self._safe_release_step("close classifier", classifier.close)

    def _safe_release_step(self, what: str, step: Callable[[], None]) -> None:
        try:
            step()
        except Exception:
            logger.exception("Failed to %s", what)
